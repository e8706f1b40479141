"""SQL message store backed by SQLAlchemy.

Session work runs in a worker thread (asyncio.to_thread) so the event loop
keeps serving while the database round-trip is in flight. Change events are
emitted on the event loop after each commit.

Bulk deletes run in one transaction: either the whole subtree goes or none
of it does.
"""

import asyncio
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from converse.db.models import Base, MessageRow
from converse.db.session import transaction
from converse.errors import ConverseErrorCode, StoreError
from converse.logging import get_logger
from converse.schemas.message import Message, NewMessage
from converse.store.base import SNAPSHOT_ORDER, ChangeEvent, MessageStoreBase, OrderBy

logger = get_logger(__name__)


def create_schema(engine: Engine) -> None:
    """Create the messages table if it does not exist."""
    Base.metadata.create_all(engine)


class SqlMessageStore(MessageStoreBase):
    """Message store over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker[Session]):
        super().__init__()
        self._session_factory = session_factory
        # One database round-trip at a time per store
        self._lock = asyncio.Lock()

    async def aclose(self) -> None:
        """Drop subscribers and release pooled connections."""
        await super().aclose()
        bind = self._session_factory.kw.get("bind")
        if bind is not None:
            await asyncio.to_thread(bind.dispose)

    async def insert(self, record: NewMessage) -> Message:
        """Insert a row after checking that its parent exists."""
        message = await self._run(self._insert_sync, record)
        self.emit(ChangeEvent("INSERT", MessageRow.__tablename__, record=message.model_dump(mode="json")))
        return message

    async def delete_by_id(self, message_id: int) -> None:
        """Delete one row by id."""
        await self.delete_many([message_id])

    async def delete_many(self, message_ids: Sequence[int]) -> None:
        """Delete rows in a single transaction."""
        if not message_ids:
            return
        deleted = await self._run(self._delete_many_sync, list(message_ids))
        for message_id in deleted:
            self.emit(ChangeEvent("DELETE", MessageRow.__tablename__, old_record={"id": message_id}))

    async def select_all(self, order_by: Sequence[OrderBy] = SNAPSHOT_ORDER) -> list[Message]:
        """Fetch every row in the requested order."""
        return await self._run(self._select_all_sync, tuple(order_by))

    def _insert_sync(self, record: NewMessage) -> Message:
        with transaction(self._session_factory) as db:
            if record.parent_id is not None and db.get(MessageRow, record.parent_id) is None:
                raise StoreError(
                    f"Parent message {record.parent_id} does not exist",
                    code=ConverseErrorCode.E_PARENT_NOT_FOUND,
                )
            row = MessageRow(
                content=record.content,
                parent_id=record.parent_id,
                version=record.version,
            )
            db.add(row)
            db.flush()
        return Message.model_validate(row)

    def _delete_many_sync(self, message_ids: list[int]) -> list[int]:
        with transaction(self._session_factory) as db:
            existing = set(
                db.scalars(select(MessageRow.id).where(MessageRow.id.in_(message_ids)))
            )
            db.execute(delete(MessageRow).where(MessageRow.id.in_(message_ids)))
        # Preserve the caller's order (children before parents)
        return [message_id for message_id in message_ids if message_id in existing]

    def _select_all_sync(self, order_by: tuple[OrderBy, ...]) -> list[Message]:
        clauses = []
        for term in order_by:
            column = getattr(MessageRow, term.field)
            if term.descending:
                clauses.append(column.desc().nulls_first())
            else:
                clauses.append(column.asc().nulls_last())

        with self._session_factory() as db:
            rows = db.scalars(select(MessageRow).order_by(*clauses)).all()
            return [Message.model_validate(row) for row in rows]

    async def _run(self, func, *args):
        try:
            async with self._lock:
                return await asyncio.to_thread(func, *args)
        except OperationalError as e:
            logger.warning("store_database_unavailable", error=str(e))
            raise StoreError(
                "Message store unavailable",
                code=ConverseErrorCode.E_STORE_UNAVAILABLE,
            ) from e
        except SQLAlchemyError as e:
            logger.warning("store_database_error", error=str(e))
            raise StoreError("Message store error", code=ConverseErrorCode.E_STORE_ERROR) from e
