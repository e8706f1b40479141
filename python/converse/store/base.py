"""Message store client abstraction.

The store is an external persistent collaborator reachable through simple
CRUD plus subscribe operations:
- insert(record) -> Message
- delete_by_id(id) / delete_many(ids)
- select_all(order_by) -> list[Message]
- subscribe(on_change) -> Subscription / unsubscribe(subscription)

All I/O methods are async and raise StoreError on network or backend
failure. Change listeners are plain callables invoked with a ChangeEvent;
adapters share the fan-out implemented here.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Literal

from converse.logging import get_logger
from converse.schemas.message import Message, NewMessage

logger = get_logger(__name__)

ChangeType = Literal["INSERT", "UPDATE", "DELETE"]


@dataclass(frozen=True)
class OrderBy:
    """One ordering term for select_all.

    NULLs sort as the largest value (PostgreSQL default): last ascending,
    first descending.
    """

    field: str
    descending: bool = False


# Ordering used for every full snapshot fetch
SNAPSHOT_ORDER: tuple[OrderBy, ...] = (
    OrderBy("parent_id", descending=True),
    OrderBy("version", descending=True),
    OrderBy("created_at", descending=True),
)


@dataclass(frozen=True)
class ChangeEvent:
    """A row-level change notification for the messages table.

    Attributes:
        event_type: INSERT, UPDATE or DELETE
        table: Table the change happened in
        record: The new row (None for deletes)
        old_record: The previous row or its primary key (None for inserts)
    """

    event_type: ChangeType
    table: str = "messages"
    record: dict[str, Any] | None = None
    old_record: dict[str, Any] | None = None

    @classmethod
    def from_realtime_payload(cls, payload: dict[str, Any]) -> "ChangeEvent":
        """Build an event from a Supabase postgres_changes payload.

        Payload shape: {"eventType": "INSERT", "table": "messages",
        "new": {...}, "old": {...}}. Empty dicts become None.
        """
        event_type = payload.get("eventType") or payload.get("type")
        if event_type not in ("INSERT", "UPDATE", "DELETE"):
            raise ValueError(f"Unsupported change event type: {event_type!r}")
        return cls(
            event_type=event_type,
            table=payload.get("table", "messages"),
            record=payload.get("new") or payload.get("record") or None,
            old_record=payload.get("old") or payload.get("old_record") or None,
        )


ChangeHandler = Callable[[ChangeEvent], None]

_subscription_ids = count(1)


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe(); pass it back to unsubscribe()."""

    on_change: ChangeHandler
    id: int = field(default_factory=lambda: next(_subscription_ids))


def _nulls_largest(message: Message, field_name: str) -> tuple:
    value = getattr(message, field_name)
    # NULLs only ever compare against each other on the second element
    return (True, 0) if value is None else (False, value)


def sort_messages(messages: Sequence[Message], order_by: Sequence[OrderBy]) -> list[Message]:
    """Sort messages by several terms, first term most significant."""
    result = list(messages)
    # Stable sorts applied from least to most significant term
    for term in reversed(order_by):
        result.sort(
            key=lambda m, f=term.field: _nulls_largest(m, f),
            reverse=term.descending,
        )
    return result


class MessageStoreBase(ABC):
    """Abstract base class for message store implementations."""

    def __init__(self) -> None:
        self._subscriptions: dict[int, Subscription] = {}

    @abstractmethod
    async def insert(self, record: NewMessage) -> Message:
        """Insert a message row.

        Args:
            record: Content, parent_id and version of the new row.

        Returns:
            The stored message with its store-assigned id and created_at.

        Raises:
            StoreError: E_PARENT_NOT_FOUND if parent_id references no row,
                E_STORE_ERROR / E_STORE_UNAVAILABLE on backend failure.
        """
        ...

    @abstractmethod
    async def delete_by_id(self, message_id: int) -> None:
        """Delete a single row. Deleting a missing id is not an error.

        Raises:
            StoreError: On backend failure.
        """
        ...

    @abstractmethod
    async def delete_many(self, message_ids: Sequence[int]) -> None:
        """Delete several rows in one backend operation.

        Missing ids are ignored.

        Raises:
            StoreError: On backend failure.
        """
        ...

    @abstractmethod
    async def select_all(self, order_by: Sequence[OrderBy] = SNAPSHOT_ORDER) -> list[Message]:
        """Fetch every message row in the given order.

        Raises:
            StoreError: On backend failure.
        """
        ...

    async def aclose(self) -> None:
        """Release backend resources. Default: nothing to release."""
        self._subscriptions.clear()

    def subscribe(self, on_change: ChangeHandler) -> Subscription:
        """Register a listener for change events on the messages table."""
        subscription = Subscription(on_change=on_change)
        self._subscriptions[subscription.id] = subscription
        logger.debug("store_subscribed", subscription_id=subscription.id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a listener. Unknown subscriptions are ignored."""
        self._subscriptions.pop(subscription.id, None)
        logger.debug("store_unsubscribed", subscription_id=subscription.id)

    def emit(self, event: ChangeEvent) -> None:
        """Deliver a change event to every current listener.

        A failing listener is logged and does not stop delivery to the rest.
        """
        for subscription in list(self._subscriptions.values()):
            try:
                subscription.on_change(event)
            except Exception as e:
                logger.warning(
                    "change_listener_failed",
                    subscription_id=subscription.id,
                    event_type=event.event_type,
                    error=str(e),
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
