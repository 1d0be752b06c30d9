"""Tree comparison logic for sync operations.

Two deliberately different comparisons live here:

- :meth:`TreeComparator.diff` matches files by stem, so ``Book.pdf`` and
  ``Book.epub`` count as the same document, and prunes empty directories.
- :meth:`TreeComparator.describe` matches files and directories by their
  exact visible name and produces human-readable messages.
"""

import logging

from ..models import Directory, File
from ..utils import DOCUMENT_EXTENSIONS, file_stem

logger = logging.getLogger(__name__)


class TreeComparator:
    """Compares two directory trees."""

    def __init__(self, extensions: tuple[str, ...] = DOCUMENT_EXTENSIONS):
        """Initialize tree comparator.

        Args:
            extensions: Document extensions ignored when matching file stems
        """
        self.extensions = extensions

    def stem(self, file: File) -> str:
        return file_stem(file.visible_name, self.extensions)

    def diff(self, dir1: Directory, dir2: Directory) -> tuple[Directory, Directory]:
        """Compute what is unique to each side.

        Files match when their stems are equal; directories match by exact
        visible name. Matched directories are compared recursively and only
        kept when something in them differs. Unmatched directories are kept
        whole.

        Args:
            dir1: First tree
            dir2: Second tree

        Returns:
            Tuple of (unique_to_dir1, unique_to_dir2). Each result carries
            the hash and metadata of the directory it summarizes.

        Examples:
            >>> only_remote, only_local = comparator.diff(remote_tree, local_tree)
            >>> [f.visible_name for f in only_remote.files]
            ['B.pdf']
        """
        dir1_stems = {self.stem(f) for f in dir1.files}
        dir2_stems = {self.stem(f) for f in dir2.files}

        dir1_diff_files = [f for f in dir1.files if self.stem(f) not in dir2_stems]
        dir2_diff_files = [f for f in dir2.files if self.stem(f) not in dir1_stems]

        dir1_diff_directories: list[Directory] = []
        dir2_diff_directories: list[Directory] = []

        pairs, only_dir1, only_dir2 = self._pair_directories(dir1, dir2)
        for subdir1, subdir2 in pairs:
            sub_diff1, sub_diff2 = self.diff(subdir1, subdir2)
            if not sub_diff1.is_empty:
                dir1_diff_directories.append(sub_diff1)
            if not sub_diff2.is_empty:
                dir2_diff_directories.append(sub_diff2)

        dir1_diff_directories.extend(only_dir1)
        dir2_diff_directories.extend(only_dir2)

        return (
            Directory(
                hash=dir1.hash,
                metadata=dir1.metadata,
                files=tuple(dir1_diff_files),
                directories=tuple(dir1_diff_directories),
            ),
            Directory(
                hash=dir2.hash,
                metadata=dir2.metadata,
                files=tuple(dir2_diff_files),
                directories=tuple(dir2_diff_directories),
            ),
        )

    def _pair_directories(
        self, dir1: Directory, dir2: Directory
    ) -> tuple[list[tuple[Directory, Directory]], list[Directory], list[Directory]]:
        """Pair subdirectories by name, each one used at most once.

        Returns:
            Tuple of (pairs, only_in_dir1, only_in_dir2)
        """
        unmatched = list(dir2.directories)
        pairs: list[tuple[Directory, Directory]] = []
        only_dir1: list[Directory] = []

        for subdir1 in dir1.directories:
            for index, candidate in enumerate(unmatched):
                if candidate.visible_name == subdir1.visible_name:
                    pairs.append((subdir1, unmatched.pop(index)))
                    break
            else:
                only_dir1.append(subdir1)

        return pairs, only_dir1, unmatched

    def describe(self, dir1: Directory, dir2: Directory) -> list[str]:
        """Describe every name present on one side only.

        Files and directories match by exact visible name. Directories
        present on both sides are compared recursively; a directory missing
        on one side is reported once, without listing its contents.

        Args:
            dir1: First tree
            dir2: Second tree

        Returns:
            Messages such as ``"File Book.pdf is missing in root."``
        """
        diffs: list[str] = []

        dir1_files = [f.visible_name for f in dir1.files]
        dir2_files = [f.visible_name for f in dir2.files]

        for name in dir1_files:
            if name not in dir2_files:
                diffs.append(f"File {name} is missing in {dir2.visible_name}.")

        for name in dir2_files:
            if name not in dir1_files:
                diffs.append(f"File {name} is missing in {dir1.visible_name}.")

        for subdir1 in dir1.directories:
            subdir2 = dir2.get_directory(subdir1.visible_name)
            if subdir2 is not None:
                diffs.extend(self.describe(subdir1, subdir2))
            else:
                diffs.append(
                    f"Directory {subdir1.visible_name} is missing "
                    f"in {dir2.visible_name}."
                )

        for subdir2 in dir2.directories:
            if dir1.get_directory(subdir2.visible_name) is None:
                diffs.append(
                    f"Directory {subdir2.visible_name} is missing "
                    f"in {dir1.visible_name}."
                )

        return diffs


def diff(dir1: Directory, dir2: Directory) -> tuple[Directory, Directory]:
    """Return (unique_to_dir1, unique_to_dir2) using stem matching."""
    return TreeComparator().diff(dir1, dir2)


def describe(dir1: Directory, dir2: Directory) -> list[str]:
    """Return messages for every name missing on one side."""
    return TreeComparator().describe(dir1, dir2)
