"""Message Pydantic schemas.

Contains the stored message record, the insert payload, and the request and
response models for the message endpoints.

Messages are never updated in place: an edit inserts a new row in the same
lineage with version + 1, and a branch reply starts a new lineage at
version 1 under the replied-to message.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Max content length accepted over HTTP
MAX_MESSAGE_CONTENT_LENGTH = 20000


class Message(BaseModel):
    """A stored message row.

    parent_id is the structural parent: the message this lineage branches
    from, or None for root-level lineages.
    """

    id: int
    content: str
    parent_id: int | None = None
    version: int = Field(ge=1)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class NewMessage(BaseModel):
    """Insert payload for a message row. id and created_at are store-assigned."""

    content: str
    parent_id: int | None = None
    version: int = Field(default=1, ge=1)

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Request Schemas
# =============================================================================


class MessageContentRequest(BaseModel):
    """Request body for create, edit and branch-reply endpoints.

    Whitespace-only content is accepted here and treated as a no-op by the
    service layer.
    """

    content: str = Field(max_length=MAX_MESSAGE_CONTENT_LENGTH)


# =============================================================================
# Response Schemas
# =============================================================================


class MessageOut(BaseModel):
    """Response schema for a message."""

    id: int
    content: str
    parent_id: int | None
    version: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectedNodeOut(BaseModel):
    """A rendered node of the message tree."""

    message: MessageOut
    depth: int
    branches_visible: bool
    relative_date: str


class BoardOut(BaseModel):
    """Rendered board: projected nodes plus the current error banner."""

    nodes: list[ProjectedNodeOut]
    error: str | None = None
    generation: int


class DeleteResultOut(BaseModel):
    """Ids removed by a cascading delete, children before parents."""

    deleted_ids: list[int]
