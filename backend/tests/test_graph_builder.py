"""
Test tree projections: depth limits, relation types, cycles in the data,
dangling edges and the creation-time cycle check.
"""

import pytest

from trellis.exceptions import InvalidParameterError
from trellis.services.graph import (
    RelationType,
    TreeOptions,
    build_dependency_tree,
    build_forest,
    find_root_tasks,
    parse_relations,
    tree_stats,
    would_create_cycle,
)


def ids(nodes):
    return [node.id for node in nodes]


class TestDependencyTree:
    """Expanding the dependencies of one task."""

    def test_depth_zero_is_root_only(self, make_snapshot):
        snapshot = make_snapshot({"A": {}, "B": {}}, [("B", "A")])

        tree = build_dependency_tree(snapshot, "A", TreeOptions(max_depth=0))

        assert tree.id == "A"
        assert tree.depth == 0
        assert tree.dependencies == []

    def test_depth_limits_expansion(self, make_snapshot):
        """
        Scenario: A depends on B, B depends on C
        Expected: max_depth=1 shows B under A but nothing under B
        """
        snapshot = make_snapshot(
            {"A": {}, "B": {}, "C": {}},
            [("B", "A"), ("C", "B")],
        )

        tree = build_dependency_tree(snapshot, "A", TreeOptions(max_depth=1))

        assert ids(tree.dependencies) == ["B"]
        assert tree.dependencies[0].depth == 1
        assert tree.dependencies[0].relation is RelationType.DEPENDENCIES
        assert tree.dependencies[0].dependencies == []

        full = build_dependency_tree(snapshot, "A", TreeOptions(max_depth=5))
        assert ids(full.dependencies[0].dependencies) == ["C"]

    def test_cycle_terminates_with_repeated_marker(self, make_snapshot):
        """
        Scenario: A depends on B, B depends on A
        Expected: A -> B -> A(repeated), and the repeated node is not expanded
        """
        snapshot = make_snapshot({"A": {}, "B": {}}, [("B", "A"), ("A", "B")])

        tree = build_dependency_tree(snapshot, "A", TreeOptions(max_depth=10))

        b = tree.dependencies[0]
        assert b.id == "B"
        assert not b.repeated
        again = b.dependencies[0]
        assert again.id == "A"
        assert again.repeated
        assert again.dependencies == []

    def test_self_loop_is_repeated_child(self, make_snapshot):
        snapshot = make_snapshot({"A": {}}, [("A", "A")])

        tree = build_dependency_tree(snapshot, "A")

        assert ids(tree.dependencies) == ["A"]
        assert tree.dependencies[0].repeated

    def test_diamond_shows_shared_dependency_in_each_branch(self, make_snapshot):
        """
        Scenario: A depends on B and C, both depend on D
        Expected: D appears under B and under C, neither marked repeated
        """
        snapshot = make_snapshot(
            {"A": {}, "B": {}, "C": {}, "D": {}},
            [("B", "A"), ("C", "A"), ("D", "B"), ("D", "C")],
        )

        tree = build_dependency_tree(snapshot, "A")

        assert ids(tree.dependencies) == ["B", "C"]
        for branch in tree.dependencies:
            assert ids(branch.dependencies) == ["D"]
            assert not branch.dependencies[0].repeated
        assert len(list(tree.walk())) == 5

    def test_dependents_are_the_transpose(self, make_snapshot):
        snapshot = make_snapshot({"A": {}, "B": {}}, [("B", "A")])

        options = TreeOptions(include_dependencies=False, include_dependents=True)
        tree = build_dependency_tree(snapshot, "B", options)

        assert ids(tree.dependents) == ["A"]
        assert tree.dependents[0].relation is RelationType.DEPENDENTS
        assert tree.dependencies == []

    def test_subtasks_are_separate_relation(self, make_snapshot):
        snapshot = make_snapshot(
            {"A": {}, "B": {}, "C": {"parent": "A"}},
            [("B", "A")],
        )

        tree = build_dependency_tree(snapshot, "A", TreeOptions(include_subtasks=True))

        assert ids(tree.dependencies) == ["B"]
        assert ids(tree.subtasks) == ["C"]
        assert tree.subtasks[0].relation.label == "subtask"

    def test_dangling_edges_are_skipped(self, make_snapshot):
        snapshot = make_snapshot({"A": {}, "B": {}}, [("GHOST", "A"), ("B", "A")])

        tree = build_dependency_tree(snapshot, "A")

        assert ids(tree.dependencies) == ["B"]

    def test_missing_root_returns_none(self, make_snapshot):
        snapshot = make_snapshot({"A": {}})

        assert build_dependency_tree(snapshot, "NOPE") is None

    @pytest.mark.parametrize("depth", [-1, 1.5, True])
    def test_invalid_depth_is_rejected(self, make_snapshot, depth):
        snapshot = make_snapshot({"A": {}})

        with pytest.raises(InvalidParameterError) as exc_info:
            build_dependency_tree(snapshot, "A", TreeOptions(max_depth=depth))

        assert exc_info.value.parameter == "max_depth"

    def test_max_nodes_truncates(self, make_snapshot):
        snapshot = make_snapshot(
            {"A": {}, "B": {}, "C": {}, "D": {}},
            [("B", "A"), ("C", "A"), ("D", "A")],
        )

        tree = build_dependency_tree(snapshot, "A", TreeOptions(max_nodes=2))

        assert tree.truncated
        assert ids(tree.dependencies) == ["B"]

    def test_rebuilding_gives_the_same_tree(self, make_snapshot):
        snapshot = make_snapshot(
            {"A": {}, "B": {}, "C": {"parent": "A"}},
            [("B", "A"), ("A", "B")],
        )
        options = TreeOptions(include_dependents=True, include_subtasks=True)

        assert build_dependency_tree(snapshot, "A", options) == build_dependency_tree(
            snapshot, "A", options
        )


class TestParseRelations:

    def test_named_relations(self):
        flags = parse_relations(["dependents", " Subtasks "])

        assert flags == {
            "include_dependencies": False,
            "include_dependents": True,
            "include_subtasks": True,
        }

    def test_all(self):
        assert all(parse_relations(["all"]).values())

    def test_unknown_relation(self):
        with pytest.raises(InvalidParameterError) as exc_info:
            parse_relations(["dependencies", "parents"])

        assert "parents" in exc_info.value.message


class TestForest:
    """Root tasks expanded through dependents and subtasks."""

    def test_roots_are_active_top_level_unblocked_tasks(self, make_snapshot):
        snapshot = make_snapshot(
            {
                "A": {},
                "B": {},
                "C": {"status": "completed"},
                "D": {"parent": "A"},
            },
            [("A", "B")],
        )

        assert [task.id for task in find_root_tasks(snapshot)] == ["A"]

        forest = build_forest(snapshot)
        assert len(forest) == 1
        assert ids(forest[0].dependents) == ["B"]
        assert ids(forest[0].subtasks) == ["D"]
        assert forest[0].dependencies == []


class TestTreeStats:

    def test_counts(self, make_snapshot):
        snapshot = make_snapshot(
            {
                "A": {"hours": 2, "priority": "high"},
                "B": {"hours": 3, "status": "completed"},
                "C": {},
            },
            [("B", "A"), ("C", "B")],
        )

        stats = tree_stats(build_dependency_tree(snapshot, "A"))

        assert stats.total_nodes == 3
        assert stats.max_depth == 2
        assert stats.by_status == {"todo": 2, "completed": 1}
        assert stats.by_priority == {"high": 1, "medium": 2}
        assert stats.total_estimate == 5.0


class TestWouldCreateCycle:

    def test_reverse_edge_closes_cycle(self, make_snapshot):
        # B depends on A, C depends on B
        snapshot = make_snapshot({"A": {}, "B": {}, "C": {}}, [("A", "B"), ("B", "C")])

        # A depending on C would close A -> B -> C -> A
        assert would_create_cycle(snapshot, "C", "A")
        assert not would_create_cycle(snapshot, "A", "C")

    def test_self_edge(self, make_snapshot):
        snapshot = make_snapshot({"A": {}})

        assert would_create_cycle(snapshot, "A", "A")

    def test_unknown_task(self, make_snapshot):
        snapshot = make_snapshot({"A": {}})

        assert not would_create_cycle(snapshot, "A", "NOPE")
