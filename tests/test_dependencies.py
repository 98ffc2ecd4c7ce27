"""
Tests for dependency closure.
"""

from updater.errors import DependencyDriftWarning, DependencyMissingWarning
from updater.index import Dependency, FileCollection, FileRecord, Version
from updater.sync.dependencies import resolve_closure


def make_collection(graph, timestamps=None):
    """graph: {name: [dependency names or Dependency]}"""
    timestamps = timestamps or {}
    records = []
    for name, deps in graph.items():
        records.append(FileRecord(
            filename=name,
            versions=[Version(f"sum-{name}", timestamps.get(name, 20200101000000))],
            dependencies=[d if isinstance(d, Dependency) else Dependency(d) for d in deps],
        ))
    return FileCollection(records=records)


class TestResolveClosure:

    def test_transitive(self):
        collection = make_collection({"a": ["b"], "b": ["c"], "c": [], "d": []})
        closure = resolve_closure(["a"], collection)
        assert set(closure.files) == {"a", "b", "c"}
        assert closure.warnings == ()

    def test_cycle_terminates_without_duplicates(self):
        collection = make_collection({"a": ["b"], "b": ["a"]})
        closure = resolve_closure(["a"], collection)
        assert sorted(closure.files) == ["a", "b"]

    def test_self_dependency(self):
        collection = make_collection({"a": ["a"]})
        assert resolve_closure(["a"], collection).files == ("a",)

    def test_idempotent_on_closed_set(self):
        collection = make_collection({"a": ["b", "c"], "b": ["c"], "c": ["a"], "x": []})
        first = resolve_closure(["a"], collection)
        second = resolve_closure(first.files, collection)
        assert set(second.files) == set(first.files)
        assert len(second.files) == len(first.files)

    def test_missing_target_dropped_with_warning(self):
        collection = make_collection({"a": ["ghost", "b"], "b": []})
        closure = resolve_closure(["a"], collection)
        assert set(closure.files) == {"a", "b"}
        assert len(closure.warnings) == 1
        assert isinstance(closure.warnings[0], DependencyMissingWarning)
        assert "ghost" in str(closure.warnings[0])

    def test_unknown_requested_names_ignored(self):
        collection = make_collection({"a": []})
        assert resolve_closure(["nope", "a"], collection).files == ("a",)

    def test_depth_first_order(self):
        collection = make_collection({"a": ["b", "d"], "b": ["c"], "c": [], "d": []})
        assert resolve_closure(["a"], collection).files == ("a", "b", "c", "d")

    def test_drift_warning_for_too_old_target(self):
        collection = make_collection(
            {"a": [Dependency("b", timestamp=20220101000000)], "b": []},
            timestamps={"b": 20200101000000},
        )
        closure = resolve_closure(["a"], collection)
        assert len(closure.warnings) == 1
        assert isinstance(closure.warnings[0], DependencyDriftWarning)

    def test_overridable_dependency_never_drifts(self):
        collection = make_collection(
            {"a": [Dependency("b", timestamp=20220101000000, overrides=True)], "b": []},
            timestamps={"b": 20200101000000},
        )
        assert resolve_closure(["a"], collection).warnings == ()
