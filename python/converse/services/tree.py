"""Tree model derived from the flat message collection.

A MessageTree is built once per snapshot: an adjacency map from parent_id to
the messages hanging under it, plus an id index. Nothing is cached between
snapshots; the flat collection is the source of truth.

Ordering among siblings (messages sharing a parent_id):
- version descending, so the newest edit of a lineage comes first
- ties (concurrent edits of one lineage, or distinct lineages with the same
  version) broken by created_at descending, then id descending

Every version is returned. Collapsing a lineage to its latest row is left to
the consumer (current_version).
"""

from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

from converse.errors import ConverseErrorCode, NotFoundError
from converse.schemas.message import Message


def sibling_sort_key(message: Message) -> tuple:
    return (message.version, message.created_at, message.id)


def sort_siblings(messages: Iterable[Message]) -> list[Message]:
    """Order sibling messages newest version first."""
    return sorted(messages, key=sibling_sort_key, reverse=True)


@dataclass(frozen=True)
class MessageTree:
    """Immutable parent -> children view over one snapshot of messages."""

    by_id: Mapping[int, Message]
    children: Mapping[int | None, tuple[Message, ...]]

    @classmethod
    def from_messages(cls, messages: Iterable[Message]) -> "MessageTree":
        by_id: dict[int, Message] = {}
        grouped: dict[int | None, list[Message]] = defaultdict(list)
        for message in messages:
            by_id[message.id] = message
            grouped[message.parent_id].append(message)

        children = {parent_id: tuple(sort_siblings(group)) for parent_id, group in grouped.items()}
        return cls(by_id=by_id, children=children)

    def __len__(self) -> int:
        return len(self.by_id)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self.by_id

    def __iter__(self) -> Iterator[Message]:
        return iter(self.by_id.values())

    def get(self, message_id: int) -> Message | None:
        return self.by_id.get(message_id)

    def get_or_404(self, message_id: int) -> Message:
        """Look up a message.

        Raises:
            NotFoundError(E_MESSAGE_NOT_FOUND): If the id is not in this snapshot.
        """
        message = self.by_id.get(message_id)
        if message is None:
            raise NotFoundError(ConverseErrorCode.E_MESSAGE_NOT_FOUND, "Message not found")
        return message

    def children_of(self, parent_id: int | None) -> tuple[Message, ...]:
        """All messages whose parent_id equals parent_id, every version included."""
        return self.children.get(parent_id, ())

    def lineage(self, parent_id: int | None) -> list[Message]:
        """Rows sharing parent_id in ascending version order (edit history)."""
        return list(reversed(self.children_of(parent_id)))

    def current_version(self, parent_id: int | None) -> Message | None:
        """Highest-version row under parent_id, or None if there are none."""
        siblings = self.children_of(parent_id)
        return siblings[0] if siblings else None

    def has_children(self, message_id: int) -> bool:
        return bool(self.children.get(message_id))

    def descendant_ids(self, message_id: int) -> list[int]:
        """Every transitive descendant of message_id, children before parents.

        Sibling versions of message_id are not descendants and are never
        included. Uses an explicit stack, so depth is not bounded by the
        recursion limit.
        """
        ordered: list[int] = []
        stack: list[tuple[int, bool]] = [(child.id, False) for child in self.children_of(message_id)]
        while stack:
            node_id, expanded = stack.pop()
            if expanded:
                ordered.append(node_id)
                continue
            stack.append((node_id, True))
            stack.extend((child.id, False) for child in self.children_of(node_id))
        return ordered

    def subtree_ids(self, message_id: int) -> list[int]:
        """descendant_ids plus message_id itself, last."""
        return [*self.descendant_ids(message_id), message_id]


EMPTY_TREE = MessageTree(by_id={}, children={})
