"""View projection: tree + visibility map -> ordered render list.

project() walks the tree from a parent_id (None = root level) and emits each
node with its depth. A node's children are emitted only when its entry in the
visibility map is true; a missing entry means collapsed. Collapsing hides a
subtree, it never removes anything.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

from converse.schemas.message import Message, MessageOut, ProjectedNodeOut
from converse.services.tree import MessageTree

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class ProjectedNode:
    """A message to render and its nesting depth (0 = top level)."""

    message: Message
    depth: int


def project(
    tree: MessageTree,
    visibility: Mapping[int, bool],
    parent_id: int | None = None,
) -> list[ProjectedNode]:
    """Render the forest under parent_id in pre-order.

    Siblings keep the tree's order (newest version first).
    """
    nodes: list[ProjectedNode] = []
    stack = [(message, 0) for message in reversed(tree.children_of(parent_id))]
    while stack:
        message, depth = stack.pop()
        nodes.append(ProjectedNode(message=message, depth=depth))
        if visibility.get(message.id, False):
            stack.extend((child, depth + 1) for child in reversed(tree.children_of(message.id)))
    return nodes


def toggle_visibility(visibility: Mapping[int, bool], message_id: int) -> dict[int, bool]:
    """Return a copy of visibility with message_id's branches flipped."""
    toggled = dict(visibility)
    toggled[message_id] = not visibility.get(message_id, False)
    return toggled


def relative_date(created_at: datetime, now: datetime | None = None) -> str:
    """Day-granularity label for a timestamp, e.g. "Today" or "3 days ago".

    Naive timestamps are taken as UTC.
    """
    if now is None:
        now = datetime.now(UTC)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    # Round half up
    days = math.floor((now - created_at).total_seconds() / SECONDS_PER_DAY + 0.5)

    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days == -1:
        return "Tomorrow"
    if days > 0:
        return f"{days} days ago"
    return f"In {abs(days)} days"


def node_to_out(
    node: ProjectedNode,
    visibility: Mapping[int, bool],
    now: datetime | None = None,
) -> ProjectedNodeOut:
    """Convert a projected node to its response schema."""
    return ProjectedNodeOut(
        message=MessageOut.model_validate(node.message, from_attributes=True),
        depth=node.depth,
        branches_visible=visibility.get(node.message.id, False),
        relative_date=relative_date(node.message.created_at, now),
    )
