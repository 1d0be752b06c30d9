"""Tree reconstruction, comparison and one-way sync."""

from .comparator import TreeComparator, describe, diff
from .engine import CopyOperation, SyncEngine, SyncPlan, plan_sync, sync_unique_to_local
from .reconstructor import (
    AnomalyKind,
    ReconstructionReport,
    TreeAnomaly,
    TreeReconstructor,
    build_remote_trees,
)
from .scanner import LocalTreeScanner, build_local_tree

__all__ = [
    "TreeComparator",
    "describe",
    "diff",
    "SyncEngine",
    "SyncPlan",
    "CopyOperation",
    "plan_sync",
    "sync_unique_to_local",
    "TreeReconstructor",
    "ReconstructionReport",
    "TreeAnomaly",
    "AnomalyKind",
    "build_remote_trees",
    "LocalTreeScanner",
    "build_local_tree",
]
