"""Data models for document trees.

A tree is built from two frozen dataclasses, :class:`File` and
:class:`Directory`. Together they form the closed ``Node`` variant; code
that handles both dispatches with ``isinstance`` on exactly these two types.
"""

import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from .exceptions import MetadataError, PathSegmentNotFoundError
from .utils import file_stem, parse_last_modified


class NodeKind(str, Enum):
    """Kind of object in the document store."""

    FILE = "DocumentType"
    """A document (PDF, EPUB or notebook)"""

    DIRECTORY = "CollectionType"
    """A folder"""

    @classmethod
    def from_value(cls, value: Any) -> "NodeKind":
        """Parse a ``type`` value from a metadata sidecar.

        Accepts the device names as well as ``"file"``/``"directory"``.

        Raises:
            ValueError: If the value names no known kind
        """
        if isinstance(value, str):
            aliases = {"file": cls.FILE, "directory": cls.DIRECTORY}
            if value.lower() in aliases:
                return aliases[value.lower()]
        return cls(value)


@dataclass(frozen=True)
class Metadata:
    """Contents of a ``<hash>.metadata`` sidecar."""

    visible_name: str
    """Display name, possibly with a document extension"""

    parent: Optional[str]
    """Hash of the parent folder, ``"trash"``, or None for the root"""

    last_modified: str
    """Milliseconds since the epoch, as stored by the device"""

    kind: NodeKind
    """File or directory"""

    @property
    def last_modified_at(self) -> Optional[datetime]:
        """Parsed modification time, or None if unparseable."""
        return parse_last_modified(self.last_modified)

    @classmethod
    def from_dict(cls, hash_value: str, data: Any) -> "Metadata":
        """Create Metadata from a decoded sidecar.

        Args:
            hash_value: Hash the sidecar belongs to (used in errors)
            data: Decoded JSON document

        Returns:
            Metadata instance

        Raises:
            MetadataError: If a required key is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise MetadataError(hash_value, "metadata is not a JSON object")

        for key in ("visibleName", "type"):
            if key not in data:
                raise MetadataError(hash_value, f"missing '{key}'")

        visible_name = data["visibleName"]
        if not isinstance(visible_name, str):
            raise MetadataError(hash_value, "'visibleName' is not a string")

        try:
            kind = NodeKind.from_value(data["type"])
        except ValueError:
            raise MetadataError(
                hash_value, f"unknown type {data['type']!r}"
            ) from None

        parent = data.get("parent")
        if parent is not None and not isinstance(parent, str):
            raise MetadataError(hash_value, "'parent' is not a string")

        return cls(
            visible_name=visible_name,
            parent=parent or None,
            last_modified=str(data.get("lastModified", "")),
            kind=kind,
        )

    @classmethod
    def from_json(cls, hash_value: str, text: str) -> "Metadata":
        """Parse a sidecar from its raw JSON text.

        Raises:
            MetadataError: If the text is not valid metadata JSON
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MetadataError(hash_value, f"invalid JSON: {e}") from e
        return cls.from_dict(hash_value, data)


@dataclass(frozen=True)
class File:
    """A document leaf."""

    hash: str
    metadata: Metadata

    @property
    def visible_name(self) -> str:
        return self.metadata.visible_name

    @property
    def parent(self) -> Optional[str]:
        return self.metadata.parent

    @property
    def stem(self) -> str:
        """Visible name without one trailing ``.pdf``/``.epub``."""
        return file_stem(self.metadata.visible_name)


@dataclass(frozen=True)
class Directory:
    """A folder with its child files and folders.

    Children keep the order in which the source produced them.
    """

    hash: str
    metadata: Metadata
    files: tuple[File, ...] = field(default_factory=tuple)
    directories: tuple["Directory", ...] = field(default_factory=tuple)

    @property
    def visible_name(self) -> str:
        return self.metadata.visible_name

    @property
    def parent(self) -> Optional[str]:
        return self.metadata.parent

    @property
    def is_empty(self) -> bool:
        """True if the directory has neither files nor subdirectories."""
        return not self.files and not self.directories

    def iter_files(self, prefix: str = "") -> Iterator[tuple[str, File]]:
        """Yield ``(relative_path, file)`` for every file in the subtree.

        Traversal is depth-first: files of a directory come before its
        subdirectories.
        """
        for file in self.files:
            yield f"{prefix}{file.visible_name}", file
        for directory in self.directories:
            yield from directory.iter_files(f"{prefix}{directory.visible_name}/")

    def count(self) -> tuple[int, int]:
        """Count files and directories in the subtree (excluding self)."""
        files = len(self.files)
        directories = len(self.directories)
        for directory in self.directories:
            sub_files, sub_directories = directory.count()
            files += sub_files
            directories += sub_directories
        return files, directories

    def get_directory(self, name: str) -> Optional["Directory"]:
        """Return the first child directory with the given visible name."""
        for directory in self.directories:
            if directory.visible_name == name:
                return directory
        return None


Node = Union[File, Directory]


def make_directory_metadata(name: str, parent: Optional[str] = None) -> Metadata:
    """Metadata for a directory that has no sidecar (tree roots)."""
    return Metadata(
        visible_name=name,
        parent=parent,
        last_modified="",
        kind=NodeKind.DIRECTORY,
    )


def find_subdirectory(tree: Directory, path: str) -> Directory:
    """Navigate a ``/``-separated path of directory names.

    Args:
        tree: Directory to start from
        path: Path such as ``"Books/Fiction"``; empty or ``"/"`` returns tree

    Returns:
        The directory at the path

    Raises:
        PathSegmentNotFoundError: If a segment does not exist
    """
    current = tree
    for segment in path.split("/"):
        if not segment:
            continue
        child = current.get_directory(segment)
        if child is None:
            raise PathSegmentNotFoundError(segment, path)
        current = child
    return current
