"""Tests for the view projection and relative dates."""

from datetime import timedelta

import pytest

from converse.services.projection import node_to_out, project, relative_date, toggle_visibility
from converse.services.tree import EMPTY_TREE, MessageTree
from tests.helpers import BASE_TIME, make_message


@pytest.fixture
def tree() -> MessageTree:
    """Two root lineages; message 1 has replies 3 and 4, reply 4 has reply 5."""
    return MessageTree.from_messages(
        [
            make_message(1, "Hello"),
            make_message(2, "Hello v2", version=2),
            make_message(3, "Reply A", parent_id=1),
            make_message(4, "Reply B", parent_id=1),
            make_message(5, "Reply to B", parent_id=4),
            make_message(6, "Another topic"),
        ]
    )


class TestProject:
    """Tests for project()."""

    def test_collapsed_by_default(self, tree):
        nodes = project(tree, {})

        assert [(n.message.id, n.depth) for n in nodes] == [(2, 0), (6, 0), (1, 0)]

    def test_expanded_node_shows_children_at_next_depth(self, tree):
        nodes = project(tree, {1: True})

        assert [(n.message.id, n.depth) for n in nodes] == [
            (2, 0),
            (6, 0),
            (1, 0),
            (4, 1),
            (3, 1),
        ]

    def test_children_follow_their_parent_directly(self, tree):
        nodes = project(tree, {1: True, 4: True})

        ids = [n.message.id for n in nodes]
        assert ids == [2, 6, 1, 4, 5, 3]
        assert [n.depth for n in nodes] == [0, 0, 0, 1, 2, 1]

    def test_expanding_a_hidden_descendant_shows_nothing_extra(self, tree):
        # 4 is expanded but its parent is collapsed
        assert project(tree, {4: True}) == project(tree, {})

    def test_false_entry_means_collapsed(self, tree):
        assert project(tree, {1: False}) == project(tree, {})

    def test_projection_from_a_parent(self, tree):
        nodes = project(tree, {4: True}, parent_id=1)

        assert [(n.message.id, n.depth) for n in nodes] == [(4, 0), (5, 1), (3, 0)]

    def test_visibility_never_removes_messages(self, tree):
        everything = {message.id: True for message in tree}

        assert len(project(tree, everything)) == len(tree)

    def test_empty_tree(self):
        assert project(EMPTY_TREE, {}) == []


class TestToggleVisibility:
    """Tests for toggle_visibility()."""

    def test_missing_entry_toggles_to_visible(self):
        assert toggle_visibility({}, 1) == {1: True}

    def test_toggle_twice_restores(self):
        once = toggle_visibility({}, 1)

        assert toggle_visibility(once, 1) == {1: False}

    def test_input_is_not_mutated(self):
        visibility = {1: True}

        toggle_visibility(visibility, 1)

        assert visibility == {1: True}


class TestRelativeDate:
    """Tests for relative_date()."""

    @pytest.mark.parametrize(
        ("offset", "expected"),
        [
            (timedelta(0), "Today"),
            (timedelta(hours=11), "Today"),
            (timedelta(hours=12), "Yesterday"),
            (timedelta(days=1), "Yesterday"),
            (timedelta(days=3), "3 days ago"),
            (timedelta(days=3, hours=13), "4 days ago"),
            (-timedelta(days=1), "Tomorrow"),
            (-timedelta(days=5), "In 5 days"),
        ],
    )
    def test_labels(self, offset, expected):
        assert relative_date(BASE_TIME - offset, now=BASE_TIME) == expected

    def test_naive_timestamp_treated_as_utc(self):
        naive = BASE_TIME.replace(tzinfo=None) - timedelta(days=2)

        assert relative_date(naive, now=BASE_TIME) == "2 days ago"


class TestNodeToOut:
    """Tests for node_to_out()."""

    def test_carries_depth_visibility_and_label(self, tree):
        node = project(tree, {1: True})[3]

        out = node_to_out(node, {1: True}, now=BASE_TIME + timedelta(days=2))

        assert out.message.id == 4
        assert out.depth == 1
        assert out.branches_visible is False
        assert out.relative_date == "2 days ago"
