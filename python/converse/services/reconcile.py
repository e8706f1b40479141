"""Reconciliation loop: keeps an always-fresh snapshot of every message.

Lifecycle:
- start(): subscribe to the store's change stream, then fetch everything
- any change event (insert/update/delete of any row) schedules a full refetch;
  events arriving while a scheduled refetch has not started yet share it
- stop(): unsubscribe and cancel pending refetches; nothing refetches after

Snapshot rules:
- The snapshot is replaced whole, never patched, and only by this loop
- A failed fetch keeps the previous snapshot and sets the error banner
- A successful fetch clears the banner
- Each fetch takes a ticket; a fetch that completes after a newer one has
  been installed is discarded
"""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from itertools import count

from converse.errors import StoreError
from converse.logging import get_logger
from converse.schemas.message import Message
from converse.services.tree import EMPTY_TREE, MessageTree
from converse.store.base import SNAPSHOT_ORDER, ChangeEvent, MessageStoreBase, OrderBy, Subscription

logger = get_logger(__name__)

FETCH_ERROR_MESSAGE = "Error fetching messages. Please try again."


@dataclass(frozen=True)
class Snapshot:
    """One full copy of the message collection and the tree derived from it."""

    messages: tuple[Message, ...] = ()
    tree: MessageTree = EMPTY_TREE
    generation: int = 0
    fetched_at: datetime | None = None

    @classmethod
    def from_messages(cls, messages: Sequence[Message], generation: int) -> "Snapshot":
        return cls(
            messages=tuple(messages),
            tree=MessageTree.from_messages(messages),
            generation=generation,
            fetched_at=datetime.now(UTC),
        )


EMPTY_SNAPSHOT = Snapshot()

SnapshotListener = Callable[[Snapshot, str | None], None]


class ReconciliationLoop:
    """Owns the snapshot and re-synchronizes it on every change notification."""

    def __init__(self, store: MessageStoreBase, *, order_by: Sequence[OrderBy] = SNAPSHOT_ORDER):
        self._store = store
        self._order_by = tuple(order_by)
        self._snapshot = EMPTY_SNAPSHOT
        self._error: str | None = None
        self._subscription: Subscription | None = None
        self._pending: set[asyncio.Task] = set()
        # A scheduled refetch that has not taken its ticket yet
        self._queued = False
        self._listeners: dict[int, SnapshotListener] = {}
        self._listener_ids = count(1)
        self._tickets = 0
        self._installed_ticket = 0
        self._running = False
        self._stopped = False

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def error(self) -> str | None:
        """Current user-visible error banner, if any."""
        return self._error

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Subscribe to changes and install the first snapshot.

        A failed first fetch leaves the empty snapshot in place with the
        error banner set; the next change notification retries.
        """
        if self._stopped:
            raise RuntimeError("ReconciliationLoop cannot be restarted after stop()")
        if self._running:
            return

        self._running = True
        self._subscription = self._store.subscribe(self._on_change)
        await self.refresh()
        logger.info(
            "reconciliation_started",
            generation=self._snapshot.generation,
            message_count=len(self._snapshot.messages),
        )

    async def stop(self) -> None:
        """Unsubscribe and cancel any refetch still in flight."""
        if self._stopped:
            return
        self._stopped = True
        self._running = False

        if self._subscription is not None:
            self._store.unsubscribe(self._subscription)
            self._subscription = None

        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()
        logger.info("reconciliation_stopped", generation=self._snapshot.generation)

    async def __aenter__(self) -> "ReconciliationLoop":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def refresh(self) -> bool:
        """Fetch the full collection and install it as the snapshot.

        Returns:
            True if a new snapshot was installed.
        """
        if self._stopped:
            return False

        self._tickets += 1
        ticket = self._tickets

        try:
            messages = await self._store.select_all(self._order_by)
        except StoreError as e:
            if self._stopped or ticket < self._installed_ticket:
                return False
            logger.warning("snapshot_fetch_failed", code=e.code.value, error=e.message)
            self._set_error(FETCH_ERROR_MESSAGE)
            return False

        if self._stopped:
            return False
        if ticket < self._installed_ticket:
            logger.info("stale_snapshot_discarded", ticket=ticket, installed=self._installed_ticket)
            return False

        self._installed_ticket = ticket
        self._snapshot = Snapshot.from_messages(messages, generation=ticket)
        self._error = None
        logger.debug("snapshot_installed", generation=ticket, message_count=len(messages))
        self._notify()
        return True

    def report_error(self, message: str) -> None:
        """Show a user-visible error banner (e.g. after a failed mutation)."""
        self._set_error(message)

    def clear_error(self) -> None:
        if self._error is not None:
            self._set_error(None)

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a callback for snapshot and banner changes.

        Returns:
            A callable that removes the listener.
        """
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = listener

        def remove() -> None:
            self._listeners.pop(listener_id, None)

        return remove

    async def wait_until_idle(self) -> None:
        """Wait for every scheduled refetch, including ones scheduled meanwhile."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _on_change(self, event: ChangeEvent) -> None:
        if not self._running:
            return
        logger.debug("change_received", event_type=event.event_type, table=event.table)
        if self._queued:
            logger.debug("refetch_coalesced", event_type=event.event_type)
            return
        self._queued = True
        task = asyncio.get_running_loop().create_task(self._queued_refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _queued_refresh(self) -> bool:
        # Events arriving from here on need a fetch that starts after this one
        self._queued = False
        return await self.refresh()

    def _set_error(self, message: str | None) -> None:
        self._error = message
        self._notify()

    def _notify(self) -> None:
        for listener_id, listener in list(self._listeners.items()):
            try:
                listener(self._snapshot, self._error)
            except Exception as e:
                logger.warning("snapshot_listener_failed", listener_id=listener_id, error=str(e))
