"""Fake message store for testing and local development.

Keeps rows in memory, assigns monotonically increasing ids, enforces the
parent_id foreign key, and emits change events after every successful
write the same way a realtime channel would.
"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from converse.errors import ConverseErrorCode, StoreError
from converse.schemas.message import Message, NewMessage
from converse.store.base import SNAPSHOT_ORDER, ChangeEvent, MessageStoreBase, OrderBy, sort_messages


def utc_now() -> datetime:
    return datetime.now(UTC)


class FakeMessageStore(MessageStoreBase):
    """In-memory message store with deterministic behavior for unit tests."""

    def __init__(self, table: str = "messages", clock: Callable[[], datetime] = utc_now):
        super().__init__()
        self._table = table
        self._clock = clock
        self._rows: dict[int, Message] = {}
        self._next_id = 1
        self._failing: set[str] = set()
        self.delete_calls: list[list[int]] = []

    async def insert(self, record: NewMessage) -> Message:
        """Insert a row with the next id and the current clock time."""
        await self._round_trip("insert")

        if record.parent_id is not None and record.parent_id not in self._rows:
            raise StoreError(
                f"Parent message {record.parent_id} does not exist",
                code=ConverseErrorCode.E_PARENT_NOT_FOUND,
            )

        message = Message(
            id=self._next_id,
            content=record.content,
            parent_id=record.parent_id,
            version=record.version,
            created_at=self._clock(),
        )
        self._next_id += 1
        self._rows[message.id] = message

        self.emit(ChangeEvent("INSERT", self._table, record=message.model_dump(mode="json")))
        return message

    async def delete_by_id(self, message_id: int) -> None:
        """Delete one row (no-op if missing)."""
        await self.delete_many([message_id])

    async def delete_many(self, message_ids: Sequence[int]) -> None:
        """Delete rows in the given order, emitting one event per removed row."""
        await self._round_trip("delete")
        self.delete_calls.append(list(message_ids))

        removed = [self._rows.pop(message_id) for message_id in message_ids if message_id in self._rows]
        for message in removed:
            self.emit(ChangeEvent("DELETE", self._table, old_record={"id": message.id}))

    async def select_all(self, order_by: Sequence[OrderBy] = SNAPSHOT_ORDER) -> list[Message]:
        """Return every row in the requested order."""
        await self._round_trip("select")
        return sort_messages(self._rows.values(), order_by)

    async def _round_trip(self, operation: str) -> None:
        # Suspension point standing in for the network round-trip
        await asyncio.sleep(0)
        if operation in self._failing:
            raise StoreError(
                f"Simulated {operation} failure",
                code=ConverseErrorCode.E_STORE_UNAVAILABLE,
            )

    # Test helper methods

    def fail_on(self, *operations: str) -> None:
        """Make the given operations ("insert", "delete", "select") raise StoreError."""
        self._failing.update(operations)

    def recover(self) -> None:
        """Stop simulating failures."""
        self._failing.clear()

    def get(self, message_id: int) -> Message | None:
        """Get a row directly (test helper)."""
        return self._rows.get(message_id)

    @property
    def ids(self) -> list[int]:
        """All stored ids in ascending order (test helper)."""
        return sorted(self._rows)

    def clear(self) -> None:
        """Remove all rows without emitting events (test helper)."""
        self._rows.clear()
        self.delete_calls.clear()
