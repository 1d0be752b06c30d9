"""CLI interface for remarko."""

import logging
import posixpath
from pathlib import Path
from typing import Any, Optional

import click

from .config import config
from .exceptions import RemarkoError
from .models import Directory, find_subdirectory, make_directory_metadata
from .output import OutputFormatter, directory_to_dict
from .remote import SSHRemote
from .sync.comparator import TreeComparator
from .sync.engine import SyncEngine
from .sync.reconstructor import ReconstructionReport, build_remote_trees
from .sync.scanner import build_local_tree

logger = logging.getLogger(__name__)


def open_remote(ctx: Any) -> SSHRemote:
    """Create a remote handle for the host selected on the command line."""
    profile = config.resolve_host(ctx.obj.get("host"))
    return SSHRemote(profile, document_dir=config.document_dir)


def load_remote_trees(
    remote: SSHRemote, out: OutputFormatter
) -> tuple[Directory, Directory]:
    """List the device and rebuild its trees, reporting any problems."""
    report = ReconstructionReport()
    root, trash = build_remote_trees(
        remote.list_hashes(), remote.fetch_metadata, report=report
    )

    if report.errors:
        out.warning(f"{len(report.errors)} object(s) with unreadable metadata:")
        for error in report.errors.values():
            out.warning(f"  • {error}")
    if report.anomalies:
        out.warning(f"{len(report.anomalies)} object(s) placed by fallback:")
        for anomaly in report.anomalies:
            out.warning(f"  • {anomaly.hash}: {anomaly.kind.value}, {anomaly.detail}")

    return root, trash


@click.group()
@click.option(
    "--host", "-H", envvar="REMARKO_HOST", help="SSH host alias of the device"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="remarko")
@click.pass_context
def main(
    ctx: Any,
    host: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """remarko - Mirror documents from a reMarkable tablet over SSH."""
    ctx.ensure_object(dict)
    ctx.obj["host"] = host
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("remarko").setLevel(logging.DEBUG)
        logging.getLogger("paramiko").setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--trash/--no-trash", default=True, help="Also show the trash")
@click.pass_context
def ls(ctx: Any, trash: bool) -> None:
    """List the documents on the device as a tree."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        with open_remote(ctx) as remote:
            out.heading(f"Listing files on {remote.host}")
            root, trash_tree = load_remote_trees(remote, out)
    except RemarkoError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        data = {"root": directory_to_dict(root)}
        if trash:
            data["trash"] = directory_to_dict(trash_tree)
        out.output_json(data)
        return

    out.print_tree(root)
    if trash:
        out.print("")
        out.print_tree(trash_tree)


@main.command()
@click.argument("local_path", type=click.Path(path_type=Path))
@click.option(
    "--remote-path",
    "-r",
    default="",
    help="Remote folder to compare (e.g. 'Books/Fiction'), default: root",
)
@click.option(
    "--describe",
    "-d",
    is_flag=True,
    help="Report names missing on either side, matching exact file names",
)
@click.pass_context
def diff(ctx: Any, local_path: Path, remote_path: str, describe: bool) -> None:
    """Compare a local directory with the documents on the device.

    Files match by name without their .pdf/.epub extension, so 'Book.pdf'
    and 'Book.epub' count as the same document.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        local_tree = build_local_tree(local_path)
        with open_remote(ctx) as remote:
            root, _ = load_remote_trees(remote, out)
        remote_tree = find_subdirectory(root, remote_path)
    except RemarkoError as e:
        out.error(str(e))
        ctx.exit(1)

    comparator = TreeComparator()

    if describe:
        messages = comparator.describe(remote_tree, local_tree)
        if out.json_output:
            out.output_json(messages)
            return
        for message in messages:
            out.print(message)
        if not messages:
            out.success("No differences")
        return

    only_remote, only_local = comparator.diff(remote_tree, local_tree)

    if out.json_output:
        out.output_json(
            {
                "only_remote": [path for path, _ in only_remote.iter_files()],
                "only_local": [path for path, _ in only_local.iter_files()],
            }
        )
        return

    if only_remote.is_empty and only_local.is_empty:
        out.success("No differences")
        return

    out.heading("Only on the device")
    out.print_tree(only_remote, show_dates=False)
    out.heading(f"Only in {local_path}")
    out.print_tree(only_local, show_dates=False)


@main.command()
@click.argument("destination", type=click.Path(path_type=Path))
@click.option(
    "--remote-path",
    "-r",
    default="",
    help="Remote folder to pull (e.g. 'Books/Fiction'), default: root",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be copied without copying",
)
@click.pass_context
def pull(ctx: Any, destination: Path, remote_path: str, dry_run: bool) -> None:
    """Copy documents that exist only on the device into DESTINATION.

    Existing local files are never modified or deleted.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        if destination.exists():
            local_tree = build_local_tree(destination)
        else:
            local_tree = Directory(
                hash="", metadata=make_directory_metadata(destination.name)
            )

        with open_remote(ctx) as remote:
            out.heading(f"Pulling from {remote.host}")
            root, _ = load_remote_trees(remote, out)
            remote_tree = find_subdirectory(root, remote_path)
            only_remote, _ = TreeComparator().diff(remote_tree, local_tree)

            if only_remote.is_empty:
                out.success("Everything is already present locally")
                return

            engine = SyncEngine(remote, out)
            stats = engine.sync_unique_to_local(
                only_remote, destination, dry_run=dry_run
            )
    except RemarkoError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(stats)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--remote-path",
    "-r",
    default=None,
    help="Destination path on the device (default: /home/root/<file name>)",
)
@click.pass_context
def push(ctx: Any, file: Path, remote_path: Optional[str]) -> None:
    """Upload a single FILE to the device."""
    out: OutputFormatter = ctx.obj["out"]
    target = remote_path or posixpath.join("/home/root", file.name)

    try:
        with open_remote(ctx) as remote:
            out.heading(f"Pushing {file.name} to {remote.host}")
            remote.send_file(file, target)
    except RemarkoError as e:
        out.error(str(e))
        ctx.exit(1)

    size = out.format_size(file.stat().st_size)
    out.success(f"Uploaded {file.name} ({size}) to {target}")


if __name__ == "__main__":
    main()
