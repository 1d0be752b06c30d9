"""remarko - Mirror documents from a reMarkable tablet to a local directory."""

from .exceptions import (
    ConfigResolutionError,
    LocalIOError,
    MetadataError,
    PathSegmentNotFoundError,
    RemarkoError,
    RemoteObjectMissingError,
    TransportError,
)
from .models import Directory, File, Metadata, Node, NodeKind, find_subdirectory
from .sync import (
    TreeComparator,
    build_local_tree,
    build_remote_trees,
    describe,
    diff,
    sync_unique_to_local,
)

__all__ = [
    "Directory",
    "File",
    "Metadata",
    "Node",
    "NodeKind",
    "find_subdirectory",
    "TreeComparator",
    "build_local_tree",
    "build_remote_trees",
    "describe",
    "diff",
    "sync_unique_to_local",
    "RemarkoError",
    "ConfigResolutionError",
    "LocalIOError",
    "MetadataError",
    "PathSegmentNotFoundError",
    "RemoteObjectMissingError",
    "TransportError",
]
