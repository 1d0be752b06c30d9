"""Local directory scanning for tree comparison."""

import logging
from pathlib import Path
from typing import Optional

from ..exceptions import LocalIOError
from ..models import Directory, File, Metadata, NodeKind

logger = logging.getLogger(__name__)


class LocalTreeScanner:
    """Builds a Directory tree mirroring a local directory.

    Hashes of local nodes are their POSIX paths relative to the scan root,
    and ``last_modified`` is the mtime in milliseconds. Neither is used for
    matching against remote trees; the comparator matches by name.

    Examples:
        >>> scanner = LocalTreeScanner()
        >>> tree = scanner.scan(Path("~/Documents/remarkable").expanduser())
        >>> [f.visible_name for f in tree.files]
        ['Book.pdf', 'Paper.epub']
    """

    def __init__(self, hidden_prefix: str = "."):
        """Initialize local tree scanner.

        Args:
            hidden_prefix: Entries whose name starts with this are skipped
        """
        self.hidden_prefix = hidden_prefix

    def is_hidden(self, path: Path) -> bool:
        return path.name.startswith(self.hidden_prefix)

    def scan(self, directory: Path, base_path: Optional[Path] = None) -> Directory:
        """Recursively scan a local directory.

        Any error aborts the whole scan; partial trees are never returned.

        Args:
            directory: Directory to scan
            base_path: Root of the scan (defaults to directory)

        Returns:
            Directory node for the scanned path

        Raises:
            LocalIOError: If the path is not a readable directory
        """
        if base_path is None:
            base_path = directory

        if not directory.is_dir():
            raise LocalIOError(str(directory), "not a directory")

        files: list[File] = []
        directories: list[Directory] = []

        try:
            for item in directory.iterdir():
                if self.is_hidden(item):
                    continue

                if item.is_file():
                    files.append(
                        File(
                            hash=item.relative_to(base_path).as_posix(),
                            metadata=self._make_metadata(item, NodeKind.FILE),
                        )
                    )
                elif item.is_dir():
                    directories.append(self.scan(item, base_path))
                else:
                    logger.debug(f"Skipping special file: {item}")

            metadata = self._make_metadata(directory, NodeKind.DIRECTORY)
        except OSError as e:
            raise LocalIOError(str(directory), e.strerror or str(e)) from e

        relative_path = directory.relative_to(base_path).as_posix()
        return Directory(
            hash="" if relative_path == "." else relative_path,
            metadata=metadata,
            files=tuple(files),
            directories=tuple(directories),
        )

    def _make_metadata(self, path: Path, kind: NodeKind) -> Metadata:
        stat = path.stat()
        return Metadata(
            visible_name=path.name or path.resolve().name,
            parent=None,
            last_modified=str(int(stat.st_mtime * 1000)),
            kind=kind,
        )


def build_local_tree(path: Path) -> Directory:
    """Build a Directory tree mirroring ``path``, skipping hidden entries.

    Raises:
        LocalIOError: If the path or any entry below it cannot be read
    """
    return LocalTreeScanner().scan(Path(path))
