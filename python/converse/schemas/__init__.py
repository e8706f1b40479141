"""Pydantic schemas for records and request/response models.

All schemas are re-exported here for convenient imports.
"""

from converse.schemas.message import (
    MAX_MESSAGE_CONTENT_LENGTH,
    BoardOut,
    DeleteResultOut,
    Message,
    MessageContentRequest,
    MessageOut,
    NewMessage,
    ProjectedNodeOut,
)

__all__ = [
    "MAX_MESSAGE_CONTENT_LENGTH",
    "BoardOut",
    "DeleteResultOut",
    "Message",
    "MessageContentRequest",
    "MessageOut",
    "NewMessage",
    "ProjectedNodeOut",
]
