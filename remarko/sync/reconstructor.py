"""Rebuild document trees from the device's flat object listing.

Every object on the device only knows its parent's hash. The reconstructor
inverts those pointers into a root tree and a trash tree, tolerating
missing sidecars, dangling parents and parent-pointer cycles.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ..exceptions import MetadataError
from ..models import (
    Directory,
    File,
    Metadata,
    Node,
    NodeKind,
    make_directory_metadata,
)
from ..utils import TRASH_PARENT

logger = logging.getLogger(__name__)

ROOT_HASH = ""
TRASH_HASH = TRASH_PARENT
ROOT_NAME = "root"
TRASH_NAME = "trash"

DEFAULT_MAX_DEPTH = 128

MetadataFetcher = Callable[[str], Metadata]


class AnomalyKind(str, Enum):
    """Structural problems found while linking nodes."""

    ORPHAN = "orphan"
    """Parent is not a directory of the listing"""

    CYCLE = "cycle"
    """Node is part of a parent-pointer cycle"""

    DEPTH_LIMIT = "depth_limit"
    """Tree is deeper than the traversal bound"""


@dataclass
class TreeAnomaly:
    """A node that could not be placed by its parent pointer alone."""

    hash: str
    kind: AnomalyKind
    detail: str


@dataclass
class ReconstructionReport:
    """Problems collected during one reconstruction."""

    errors: dict[str, MetadataError] = field(default_factory=dict)
    """Hashes whose metadata could not be fetched, with the error"""

    anomalies: list[TreeAnomaly] = field(default_factory=list)
    """Orphans, cycles and depth overflows"""

    @property
    def has_problems(self) -> bool:
        return bool(self.errors or self.anomalies)

    def add_anomaly(self, hash_value: str, kind: AnomalyKind, detail: str) -> None:
        logger.info(f"{kind.value}: {hash_value}: {detail}")
        self.anomalies.append(TreeAnomaly(hash=hash_value, kind=kind, detail=detail))


class TreeReconstructor:
    """Turns a flat hash listing into a root tree and a trash tree.

    Examples:
        >>> reconstructor = TreeReconstructor(remote.fetch_metadata)
        >>> root, trash = reconstructor.build(remote.list_hashes())
        >>> reconstructor.report.has_problems
        False
    """

    def __init__(
        self,
        fetch_metadata: MetadataFetcher,
        max_depth: int = DEFAULT_MAX_DEPTH,
        report: Optional[ReconstructionReport] = None,
    ):
        """Initialize the reconstructor.

        Args:
            fetch_metadata: Returns the Metadata of a hash; may raise
                MetadataError for that hash only
            max_depth: Maximum nesting depth expanded below each root
            report: Report to collect problems into (a new one if omitted)
        """
        self.fetch_metadata = fetch_metadata
        self.max_depth = max_depth
        self.report = report if report is not None else ReconstructionReport()

        self._records: dict[str, Metadata] = {}
        self._children: dict[Optional[str], list[str]] = defaultdict(list)
        self._visited: set[str] = set()
        self._truncated: list[tuple[str, Optional[str]]] = []

    def build(self, hashes: Iterable[str]) -> tuple[Directory, Directory]:
        """Build the root and trash trees.

        Args:
            hashes: Object hashes in listing order

        Returns:
            Tuple of (root_tree, trash_tree)
        """
        self._fetch_all(hashes)
        self._index_children()

        root_files, root_directories = self._expand(None, depth=0, sentinel=None)
        trash_files, trash_directories = self._expand(
            TRASH_PARENT, depth=0, sentinel=TRASH_PARENT
        )
        targets = {
            None: (root_files, root_directories),
            TRASH_PARENT: (trash_files, trash_directories),
        }

        # Orphans first, then subtrees cut at the depth bound, then whatever
        # only a cycle can still hold
        for hash_value in self._records:
            if hash_value in self._visited or not self._is_orphan(hash_value):
                continue
            parent = self._records[hash_value].parent
            self.report.add_anomaly(
                hash_value,
                AnomalyKind.ORPHAN,
                f"parent {parent!r} is not a known directory, attached to root",
            )
            self._adopt(hash_value, *targets[None], sentinel=None)

        self._attach_truncated(targets)

        for hash_value in self._records:
            if hash_value in self._visited:
                continue
            self.report.add_anomaly(
                hash_value,
                AnomalyKind.CYCLE,
                "unreachable from any root, cycle broken and attached to root",
            )
            self._adopt(hash_value, *targets[None], sentinel=None)
            self._attach_truncated(targets)

        root = Directory(
            hash=ROOT_HASH,
            metadata=make_directory_metadata(ROOT_NAME),
            files=tuple(root_files),
            directories=tuple(root_directories),
        )
        trash = Directory(
            hash=TRASH_HASH,
            metadata=make_directory_metadata(TRASH_NAME),
            files=tuple(trash_files),
            directories=tuple(trash_directories),
        )

        logger.debug(
            f"Reconstructed {len(self._visited)} of {len(self._records)} node(s), "
            f"{len(self.report.errors)} error(s), "
            f"{len(self.report.anomalies)} anomalies"
        )
        return root, trash

    def _fetch_all(self, hashes: Iterable[str]) -> None:
        for hash_value in hashes:
            if hash_value in self._records or hash_value in self.report.errors:
                continue
            try:
                self._records[hash_value] = self.fetch_metadata(hash_value)
            except MetadataError as e:
                logger.info(f"Skipping {hash_value}: {e}")
                self.report.errors[hash_value] = e

    def _index_children(self) -> None:
        for hash_value, metadata in self._records.items():
            self._children[metadata.parent or None].append(hash_value)

    def _is_orphan(self, hash_value: str) -> bool:
        parent = self._records[hash_value].parent
        if not parent or parent == TRASH_PARENT:
            return False
        parent_metadata = self._records.get(parent)
        return parent_metadata is None or parent_metadata.kind != NodeKind.DIRECTORY

    def _attach_truncated(
        self, targets: dict[Optional[str], tuple[list[File], list[Directory]]]
    ) -> None:
        """Attach subtrees cut at the depth bound under the tree they came from."""
        while self._truncated:
            hash_value, sentinel = self._truncated.pop(0)
            if hash_value in self._visited:
                continue
            tree_name = TRASH_NAME if sentinel == TRASH_PARENT else ROOT_NAME
            self.report.add_anomaly(
                hash_value,
                AnomalyKind.DEPTH_LIMIT,
                f"nested deeper than {self.max_depth} levels, "
                f"attached to {tree_name}",
            )
            self._adopt(hash_value, *targets[sentinel], sentinel=sentinel)

    def _adopt(
        self,
        hash_value: str,
        files: list[File],
        directories: list[Directory],
        sentinel: Optional[str],
    ) -> None:
        """Attach a node and its subtree directly under a tree root."""
        node = self._build_node(hash_value, depth=1, sentinel=sentinel)
        if isinstance(node, Directory):
            directories.append(node)
        elif isinstance(node, File):
            files.append(node)

    def _expand(
        self, parent: Optional[str], depth: int, sentinel: Optional[str]
    ) -> tuple[list[File], list[Directory]]:
        """Build the children of a parent key, depth-first.

        ``sentinel`` is the tree being built (None for root, ``"trash"`` for
        trash); children cut at the depth bound are queued with it.
        """
        files: list[File] = []
        directories: list[Directory] = []

        if depth >= self.max_depth:
            self._truncated.extend(
                (child, sentinel) for child in self._children.get(parent, [])
            )
            return files, directories

        for child in self._children.get(parent, []):
            node = self._build_node(child, depth + 1, sentinel)
            if isinstance(node, Directory):
                directories.append(node)
            elif isinstance(node, File):
                files.append(node)

        return files, directories

    def _build_node(
        self, hash_value: str, depth: int, sentinel: Optional[str]
    ) -> Optional[Node]:
        if hash_value in self._visited:
            self.report.add_anomaly(
                hash_value,
                AnomalyKind.CYCLE,
                "reached a second time, not expanded again",
            )
            return None
        self._visited.add(hash_value)

        metadata = self._records[hash_value]
        if metadata.kind == NodeKind.FILE:
            return File(hash=hash_value, metadata=metadata)

        files, directories = self._expand(hash_value, depth, sentinel)
        return Directory(
            hash=hash_value,
            metadata=metadata,
            files=tuple(files),
            directories=tuple(directories),
        )


def build_remote_trees(
    hashes: Iterable[str],
    fetch_metadata: MetadataFetcher,
    report: Optional[ReconstructionReport] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> tuple[Directory, Directory]:
    """Build the root and trash trees from a flat hash listing.

    Args:
        hashes: Object hashes in listing order
        fetch_metadata: Callable returning the Metadata for a hash
        report: Optional report that receives metadata errors and anomalies
        max_depth: Maximum nesting depth below each root

    Returns:
        Tuple of (root_tree, trash_tree)
    """
    reconstructor = TreeReconstructor(
        fetch_metadata, max_depth=max_depth, report=report
    )
    return reconstructor.build(hashes)
