"""SQLAlchemy ORM models for Converse.

Defines the messages table using SQLAlchemy 2.x declarative patterns.
Column types are portable so the same model serves PostgreSQL and SQLite.
"""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    return datetime.now(UTC)


class MessageRow(Base):
    """Message model - one version of one conversation node.

    Rows are append-only: edits insert a new row with version + 1 under the
    same parent_id, and rows are only ever removed by cascading delete.
    """

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("messages.id"),
        nullable=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_messages_version_positive"),
        Index("idx_messages_parent_version", "parent_id", "version"),
    )
