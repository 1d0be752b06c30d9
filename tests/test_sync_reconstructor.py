"""Tests for rebuilding trees from the flat object listing."""

import logging
from typing import Optional

import pytest

from remarko.exceptions import MetadataError, TransportError
from remarko.models import Directory, Metadata, NodeKind
from remarko.sync.reconstructor import (
    AnomalyKind,
    ReconstructionReport,
    TreeReconstructor,
    build_remote_trees,
)


def _doc(name: str, parent: Optional[str] = None) -> Metadata:
    return Metadata(name, parent, "1700000000000", NodeKind.FILE)


def _folder(name: str, parent: Optional[str] = None) -> Metadata:
    return Metadata(name, parent, "1700000000000", NodeKind.DIRECTORY)


def _fetcher(records: dict):
    """Build a metadata fetcher; values that are exceptions are raised."""

    def fetch(hash_value: str) -> Metadata:
        value = records[hash_value]
        if isinstance(value, Exception):
            raise value
        return value

    return fetch


def _all_hashes(tree: Directory) -> list[str]:
    hashes = [f.hash for f in tree.files]
    for directory in tree.directories:
        hashes.append(directory.hash)
        hashes.extend(_all_hashes(directory))
    return hashes


class TestBuildRemoteTrees:
    """Tests for the normal reconstruction path."""

    def test_simple_hierarchy(self):
        """Parent pointers are inverted into a nested tree."""
        records = {
            "a": _doc("A.pdf"),
            "b": _doc("B.pdf"),
            "notes": _folder("Notes"),
            "c": _doc("C.pdf", parent="notes"),
        }

        root, trash = build_remote_trees(list(records), _fetcher(records))

        assert [f.visible_name for f in root.files] == ["A.pdf", "B.pdf"]
        assert [d.visible_name for d in root.directories] == ["Notes"]
        notes = root.directories[0]
        assert notes.hash == "notes"
        assert [f.visible_name for f in notes.files] == ["C.pdf"]
        assert trash.is_empty

    def test_children_keep_listing_order(self):
        """Children are not sorted; they follow the listing order."""
        records = {
            "z": _doc("Zebra.pdf"),
            "a": _doc("Aardvark.pdf"),
        }

        root, _ = build_remote_trees(["z", "a"], _fetcher(records))

        assert [f.visible_name for f in root.files] == ["Zebra.pdf", "Aardvark.pdf"]

    def test_child_listed_before_parent(self):
        """A child may appear in the listing before its parent."""
        records = {
            "c": _doc("C.pdf", parent="notes"),
            "notes": _folder("Notes"),
        }

        root, _ = build_remote_trees(["c", "notes"], _fetcher(records))

        assert root.directories[0].files[0].hash == "c"

    def test_trash_tree(self):
        """Nodes whose parent is 'trash' form the trash tree."""
        records = {
            "a": _doc("A.pdf"),
            "old": _folder("Old", parent="trash"),
            "x": _doc("X.pdf", parent="old"),
            "y": _doc("Y.pdf", parent="trash"),
        }

        root, trash = build_remote_trees(list(records), _fetcher(records))

        assert _all_hashes(root) == ["a"]
        assert trash.visible_name == "trash"
        assert [f.hash for f in trash.files] == ["y"]
        assert [d.hash for d in trash.directories] == ["old"]
        assert [f.hash for f in trash.directories[0].files] == ["x"]

    def test_root_names(self):
        root, trash = build_remote_trees([], _fetcher({}))
        assert root.visible_name == "root"
        assert trash.visible_name == "trash"
        assert root.is_empty and trash.is_empty

    def test_duplicate_hash_fetched_once(self):
        """A hash listed twice is fetched and placed once."""
        calls = []
        records = {"a": _doc("A.pdf")}

        def fetch(hash_value):
            calls.append(hash_value)
            return records[hash_value]

        root, _ = build_remote_trees(["a", "a"], fetch)

        assert calls == ["a"]
        assert len(root.files) == 1

    def test_every_hash_appears_once(self):
        """Every fetched hash lands in exactly one tree, exactly once."""
        records = {
            "d1": _folder("D1"),
            "d2": _folder("D2", parent="d1"),
            "f1": _doc("F1", parent="d2"),
            "t1": _folder("T1", parent="trash"),
            "f2": _doc("F2", parent="t1"),
            "o1": _doc("Orphan", parent="gone"),
            "c1": _folder("C1", parent="c2"),
            "c2": _folder("C2", parent="c1"),
        }

        root, trash = build_remote_trees(list(records), _fetcher(records))

        placed = _all_hashes(root) + _all_hashes(trash)
        assert sorted(placed) == sorted(records)


class TestMetadataErrors:
    """Tests for per-hash metadata failures."""

    def test_failed_hash_is_excluded_and_reported(self):
        """A MetadataError skips that hash but not the rest."""
        records = {
            "a": _doc("A.pdf"),
            "bad": MetadataError("bad", "invalid JSON"),
            "b": _doc("B.pdf"),
        }
        report = ReconstructionReport()

        root, _ = build_remote_trees(list(records), _fetcher(records), report=report)

        assert [f.hash for f in root.files] == ["a", "b"]
        assert list(report.errors) == ["bad"]
        assert report.has_problems

    def test_children_of_failed_directory_become_orphans(self):
        """Children of an unreadable folder are attached to the root."""
        records = {
            "dir": MetadataError("dir", "missing"),
            "c": _doc("C.pdf", parent="dir"),
        }
        report = ReconstructionReport()

        root, _ = build_remote_trees(list(records), _fetcher(records), report=report)

        assert [f.hash for f in root.files] == ["c"]
        assert [a.kind for a in report.anomalies] == [AnomalyKind.ORPHAN]

    def test_transport_errors_propagate(self):
        """Errors other than MetadataError abort the build."""
        records = {"a": TransportError("connection lost", host="tablet")}

        with pytest.raises(TransportError):
            build_remote_trees(["a"], _fetcher(records))


class TestOrphans:
    """Tests for nodes whose parent is not in the listing."""

    def test_dangling_parent_attached_to_root(self):
        """An orphan is kept, under the root, and flagged."""
        records = {
            "a": _doc("A.pdf"),
            "lost": _doc("Lost.pdf", parent="missing-hash"),
        }
        report = ReconstructionReport()

        root, trash = build_remote_trees(
            list(records), _fetcher(records), report=report
        )

        assert [f.hash for f in root.files] == ["a", "lost"]
        assert trash.is_empty
        assert len(report.anomalies) == 1
        assert report.anomalies[0].hash == "lost"
        assert report.anomalies[0].kind == AnomalyKind.ORPHAN

    def test_orphan_directory_keeps_subtree(self):
        """An orphaned folder is attached with all its children."""
        records = {
            "dir": _folder("Dir", parent="missing"),
            "c": _doc("C.pdf", parent="dir"),
        }

        root, _ = build_remote_trees(list(records), _fetcher(records))

        assert root.directories[0].hash == "dir"
        assert root.directories[0].files[0].hash == "c"

    def test_parent_is_a_file(self):
        """A node pointing at a document as parent is an orphan."""
        records = {
            "doc": _doc("Doc.pdf"),
            "child": _doc("Child.pdf", parent="doc"),
        }
        report = ReconstructionReport()

        root, _ = build_remote_trees(list(records), _fetcher(records), report=report)

        assert [f.hash for f in root.files] == ["doc", "child"]
        assert report.anomalies[0].kind == AnomalyKind.ORPHAN

    def test_anomalies_logged_below_warning(self, caplog):
        """Problems go to the report; the log carries them at INFO only."""
        records = {
            "lost": _doc("Lost.pdf", parent="missing-hash"),
            "bad": MetadataError("bad", "missing 'type'"),
        }

        with caplog.at_level(logging.INFO, logger="remarko"):
            build_remote_trees(list(records), _fetcher(records))

        levels = {r.levelno for r in caplog.records}
        assert levels == {logging.INFO}


class TestCycles:
    """Tests for parent-pointer cycles."""

    def test_two_node_cycle_terminates(self):
        """h1 -> h2 -> h1 terminates and is flagged."""
        records = {
            "h1": _folder("H1", parent="h2"),
            "h2": _folder("H2", parent="h1"),
        }
        report = ReconstructionReport()

        root, _ = build_remote_trees(list(records), _fetcher(records), report=report)

        assert sorted(_all_hashes(root)) == ["h1", "h2"]
        assert any(a.kind == AnomalyKind.CYCLE for a in report.anomalies)
        assert {a.hash for a in report.anomalies} == {"h1"}

    def test_self_parent(self):
        """A folder that is its own parent is placed once."""
        records = {"h1": _folder("H1", parent="h1")}
        report = ReconstructionReport()

        root, _ = build_remote_trees(["h1"], _fetcher(records), report=report)

        assert _all_hashes(root) == ["h1"]
        assert root.directories[0].is_empty
        assert report.anomalies[0].kind == AnomalyKind.CYCLE

    def test_cycle_with_hanging_document(self):
        """Documents hanging off a cycle are kept."""
        records = {
            "h1": _folder("H1", parent="h2"),
            "h2": _folder("H2", parent="h1"),
            "doc": _doc("Doc.pdf", parent="h2"),
        }

        root, _ = build_remote_trees(list(records), _fetcher(records))

        assert sorted(_all_hashes(root)) == ["doc", "h1", "h2"]

    def test_cycle_does_not_affect_normal_tree(self):
        records = {
            "a": _doc("A.pdf"),
            "h1": _folder("H1", parent="h2"),
            "h2": _folder("H2", parent="h1"),
        }

        root, _ = build_remote_trees(list(records), _fetcher(records))

        assert root.files[0].hash == "a"


class TestDepthLimit:
    """Tests for the traversal depth bound."""

    def test_deep_chain_is_cut_and_reattached(self):
        """Nodes below max_depth are attached to the root and flagged."""
        records = {"d0": _folder("D0")}
        for i in range(1, 6):
            records[f"d{i}"] = _folder(f"D{i}", parent=f"d{i - 1}")
        report = ReconstructionReport()

        reconstructor = TreeReconstructor(
            _fetcher(records), max_depth=3, report=report
        )
        root, _ = reconstructor.build(list(records))

        assert sorted(_all_hashes(root)) == sorted(records)
        assert [a.kind for a in report.anomalies] == [AnomalyKind.DEPTH_LIMIT]
        assert [d.hash for d in root.directories] == ["d0", "d3"]

    def test_deep_trash_chain_stays_in_trash(self):
        """Subtrees cut below the trash sentinel are attached to the trash."""
        records = {"t0": _folder("T0", parent="trash")}
        for i in range(1, 5):
            records[f"t{i}"] = _folder(f"T{i}", parent=f"t{i - 1}")
        records["doc"] = _doc("Deleted.pdf", parent="t4")
        report = ReconstructionReport()

        reconstructor = TreeReconstructor(
            _fetcher(records), max_depth=2, report=report
        )
        root, trash = reconstructor.build(list(records))

        assert root.is_empty
        assert sorted(_all_hashes(trash)) == sorted(records)
        assert [d.hash for d in trash.directories] == ["t0", "t2", "t4"]
        assert [(a.hash, a.kind) for a in report.anomalies] == [
            ("t2", AnomalyKind.DEPTH_LIMIT),
            ("t4", AnomalyKind.DEPTH_LIMIT),
        ]

    def test_deep_subtree_under_broken_cycle(self):
        """Depth overflow inside a broken cycle is flagged as a depth overflow."""
        records = {
            "c1": _folder("C1", parent="c2"),
            "c2": _folder("C2", parent="c1"),
            "x1": _folder("X1", parent="c1"),
            "x2": _folder("X2", parent="x1"),
            "x3": _folder("X3", parent="x2"),
            "f": _doc("F.pdf", parent="x3"),
        }
        report = ReconstructionReport()

        reconstructor = TreeReconstructor(
            _fetcher(records), max_depth=2, report=report
        )
        root, trash = reconstructor.build(list(records))

        assert trash.is_empty
        assert sorted(_all_hashes(root)) == sorted(records)
        depth_limited = {
            a.hash for a in report.anomalies if a.kind == AnomalyKind.DEPTH_LIMIT
        }
        assert depth_limited == {"x2", "f"}

    def test_reconstructor_uses_given_report(self):
        report = ReconstructionReport()
        reconstructor = TreeReconstructor(_fetcher({}), report=report)
        assert reconstructor.report is report
