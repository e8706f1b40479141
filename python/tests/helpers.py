"""Test helpers for building messages and driving the board.

Provides:
- A deterministic clock for stores
- Message construction with sensible defaults
- Shorthands for reading the API envelope
"""

from datetime import UTC, datetime, timedelta

from converse.schemas.message import Message

BASE_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


class TickingClock:
    """Deterministic clock: each call returns a time one second after the last."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current


def make_message(
    message_id: int,
    content: str | None = None,
    *,
    parent_id: int | None = None,
    version: int = 1,
    created_at: datetime | None = None,
) -> Message:
    """Build a stored message. created_at defaults to BASE_TIME + id seconds."""
    if created_at is None:
        created_at = BASE_TIME + timedelta(seconds=message_id)
    return Message(
        id=message_id,
        content=content if content is not None else f"message {message_id}",
        parent_id=parent_id,
        version=version,
        created_at=created_at,
    )


def data(response) -> dict | list:
    """Unwrap the success envelope of a test client response."""
    body = response.json()
    assert "data" in body, body
    return body["data"]


def error_code(response) -> str:
    """Error code from the error envelope of a test client response."""
    return response.json()["error"]["code"]
