"""One-way copy of remote-only documents into a local directory."""

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..exceptions import LocalIOError, RemoteObjectMissingError
from ..models import Directory, File
from ..output import OutputFormatter
from ..remote import RemoteAccess
from ..utils import (
    DEFAULT_DOCUMENT_DIR,
    DEFAULT_DOCUMENT_EXTENSION,
    document_extension,
    safe_path_component,
)

logger = logging.getLogger(__name__)


def remote_object_path(file: File, document_dir: str = DEFAULT_DOCUMENT_DIR) -> str:
    """Location of a document's content in the device's object store.

    The object is named by its hash plus the document extension of its
    visible name, or ``.pdf`` when the name has none.
    """
    extension = document_extension(file.visible_name) or DEFAULT_DOCUMENT_EXTENSION
    return posixpath.join(document_dir, f"{file.hash}{extension}")


@dataclass
class CopyOperation:
    """A single planned file copy."""

    file: File
    """Remote file to copy"""

    remote_path: str
    """Path of the object on the device"""

    local_path: Path
    """Destination path"""


@dataclass
class SyncPlan:
    """Directories to create and files to copy, in traversal order."""

    destination: Path
    directories: list[Path] = field(default_factory=list)
    copies: list[CopyOperation] = field(default_factory=list)


def plan_sync(
    diff_tree: Directory,
    destination: Path,
    document_dir: str = DEFAULT_DOCUMENT_DIR,
) -> SyncPlan:
    """Plan the copy of a "unique on remote" diff tree.

    Files of a directory are planned before its subdirectories. Every local
    path stays inside ``destination``: each visible name becomes a single
    path component (see :func:`safe_path_component`).

    Args:
        diff_tree: Tree of remote-only content
        destination: Local directory mirroring the diff tree's root
        document_dir: Object store directory on the device

    Returns:
        SyncPlan for the tree
    """
    plan = SyncPlan(destination=destination)
    _plan_directory(diff_tree, destination, document_dir, plan)
    return plan


def _plan_directory(
    directory: Directory, local_dir: Path, document_dir: str, plan: SyncPlan
) -> None:
    for file in directory.files:
        plan.copies.append(
            CopyOperation(
                file=file,
                remote_path=remote_object_path(file, document_dir),
                local_path=local_dir / safe_path_component(file.visible_name),
            )
        )
    for subdirectory in directory.directories:
        sub_dir = local_dir / safe_path_component(subdirectory.visible_name)
        plan.directories.append(sub_dir)
        _plan_directory(subdirectory, sub_dir, document_dir, plan)


class SyncEngine:
    """Copies remote-only documents to a local directory.

    Nothing that already exists locally is deleted or overwritten.
    """

    def __init__(
        self,
        remote: RemoteAccess,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            remote: Remote access handle used for every transfer
            output: Output formatter for displaying progress/status
        """
        self.remote = remote
        self.output = output or OutputFormatter(quiet=True)

    def sync_unique_to_local(
        self,
        diff_tree: Directory,
        destination: Path,
        dry_run: bool = False,
    ) -> dict:
        """Copy every file of a "unique on remote" diff tree.

        Args:
            diff_tree: Tree of remote-only content (first result of diff)
            destination: Local directory to copy into
            dry_run: If True, only show what would be done

        Returns:
            Dictionary with sync statistics

        Raises:
            LocalIOError: If a local directory or file cannot be written
            TransportError: If a transfer fails

        Examples:
            >>> engine = SyncEngine(remote, out)
            >>> stats = engine.sync_unique_to_local(only_remote, Path("~/books"))
            >>> print(f"Copied {stats['copied']} files")
        """
        destination = Path(destination)
        plan = plan_sync(diff_tree, destination, self.remote.document_dir)

        stats = {
            "copied": 0,
            "skipped_missing": 0,
            "existing": 0,
            "directories_created": 0,
        }

        if dry_run:
            self._display_plan(plan)
            return stats

        self._ensure_directory(destination, stats)
        for directory in plan.directories:
            self._ensure_directory(directory, stats)

        for copy in plan.copies:
            try:
                self._copy_file(copy, stats)
            except RemoteObjectMissingError as e:
                logger.info(f"Skipping {copy.file.visible_name}: {e}")
                self.output.warning(
                    f"Skipped {copy.file.visible_name}: not on device"
                )
                stats["skipped_missing"] += 1

        if not self.output.quiet:
            self._display_summary(stats)
        return stats

    def _copy_file(self, copy: CopyOperation, stats: dict) -> None:
        local_path = copy.local_path
        if local_path.exists():
            logger.info(f"Not overwriting existing file {local_path}")
            self.output.warning(f"Exists, not overwritten: {local_path}")
            stats["existing"] += 1
            return

        remote_path = copy.remote_path
        if not self.remote.exists(remote_path):
            raise RemoteObjectMissingError(remote_path)

        content = self.remote.fetch_file(remote_path)
        try:
            with open(local_path, "xb") as f:
                f.write(content)
        except OSError as e:
            raise LocalIOError(str(local_path), e.strerror or str(e)) from e

        logger.debug(f"Copied {remote_path} -> {local_path}")
        self.output.success(f"Copied {local_path}")
        stats["copied"] += 1

    def _ensure_directory(self, path: Path, stats: dict) -> None:
        if path.is_dir():
            return
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalIOError(str(path), e.strerror or str(e)) from e
        logger.debug(f"Created directory {path}")
        stats["directories_created"] += 1

    def _display_plan(self, plan: SyncPlan) -> None:
        if self.output.quiet:
            return
        self.output.info("Dry run: No changes will be made")
        for directory in plan.directories:
            self.output.print(f"  mkdir {directory}")
        for copy in plan.copies:
            self.output.print(f"  copy  {copy.remote_path} -> {copy.local_path}")
        self.output.info(
            f"Would create {len(plan.directories)} directories "
            f"and copy {len(plan.copies)} file(s)"
        )

    def _display_summary(self, stats: dict) -> None:
        self.output.print("")
        self.output.success(f"Copied {stats['copied']} file(s)")
        if stats["existing"]:
            self.output.info(f"{stats['existing']} file(s) already existed")
        if stats["skipped_missing"]:
            self.output.warning(
                f"{stats['skipped_missing']} file(s) skipped (missing on device)"
            )


def sync_unique_to_local(
    diff_tree: Directory,
    destination: Path,
    remote: RemoteAccess,
    output: Optional[OutputFormatter] = None,
    dry_run: bool = False,
) -> dict:
    """Copy a "unique on remote" diff tree into ``destination``."""
    return SyncEngine(remote, output).sync_unique_to_local(
        diff_tree, destination, dry_run=dry_run
    )
