"""Message board API routes.

Routes are transport-only: each resolves its inputs and calls one service.

- GET    /messages                  projected board (expanded=<id> opens branches)
- GET    /messages/{id}/children    raw children of a message, every version
- POST   /messages                  new root message
- POST   /messages/{id}/versions    edit: new version in the same lineage
- POST   /messages/{id}/branches    branch reply: new lineage under {id}
- DELETE /messages/{id}?confirm=1   cascading delete
- POST   /messages/refresh          manual refetch

Edit and branch targets are resolved against the current snapshot, so an
edit computes version + 1 from what the client last saw.

Empty content is a no-op answered with 204. Mutations return once the
reconciliation loop has caught up with the resulting change events. A store
failure while sending or deleting sets the matching board banner.

Response envelope: {"data": ...}
Error envelope: {"error": {"code": "...", "message": "...", "request_id": "..."}}
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response

from converse.api.deps import get_mutation_engine, get_reconciler
from converse.errors import StoreError, ValidationError
from converse.responses import success_response
from converse.schemas.message import BoardOut, DeleteResultOut, MessageContentRequest, MessageOut
from converse.services.board import DELETE_ERROR_MESSAGE, SEND_ERROR_MESSAGE
from converse.services.mutations import MutationEngine
from converse.services.projection import node_to_out, project
from converse.services.reconcile import ReconciliationLoop

router = APIRouter(tags=["messages"])

Reconciler = Annotated[ReconciliationLoop, Depends(get_reconciler)]
Engine = Annotated[MutationEngine, Depends(get_mutation_engine)]


@contextmanager
def store_failure_banner(banner: str) -> Iterator[None]:
    """Label store failures inside the block with the banner for that operation."""
    try:
        yield
    except StoreError as e:
        e.banner = banner
        raise


@router.get("/messages")
async def get_board(
    reconciler: Reconciler,
    expanded: list[int] = Query(default=[], description="Ids whose branches are shown"),
) -> dict:
    """Render the board from the current snapshot.

    Always answers from the last good snapshot; a failed refresh shows up in
    the error field rather than as an error response.
    """
    snapshot = reconciler.snapshot
    visibility = {message_id: True for message_id in expanded}
    nodes = project(snapshot.tree, visibility)
    board = BoardOut(
        nodes=[node_to_out(node, visibility) for node in nodes],
        error=reconciler.error,
        generation=snapshot.generation,
    )
    return success_response(board.model_dump(mode="json"))


@router.get("/messages/{message_id}/children")
async def list_children(message_id: int, reconciler: Reconciler) -> dict:
    """List every version of every lineage directly under a message.

    Errors:
        E_MESSAGE_NOT_FOUND (404): Message is not in the current snapshot.
    """
    tree = reconciler.snapshot.tree
    tree.get_or_404(message_id)
    children = [MessageOut.model_validate(m).model_dump(mode="json") for m in tree.children_of(message_id)]
    return success_response(children)


@router.post("/messages", status_code=201, response_model=None)
async def create_message(
    body: MessageContentRequest,
    engine: Engine,
    reconciler: Reconciler,
) -> Response | dict:
    """Create a root message (version 1, no parent)."""
    try:
        with store_failure_banner(SEND_ERROR_MESSAGE):
            message = await engine.create_root(body.content)
    except ValidationError:
        return Response(status_code=204)
    await reconciler.wait_until_idle()
    return success_response(MessageOut.model_validate(message).model_dump(mode="json"))


@router.post("/messages/{message_id}/versions", status_code=201, response_model=None)
async def edit_message(
    message_id: int,
    body: MessageContentRequest,
    engine: Engine,
    reconciler: Reconciler,
) -> Response | dict:
    """Append a new version to the message's lineage.

    Errors:
        E_MESSAGE_NOT_FOUND (404): Message is not in the current snapshot.
    """
    existing = reconciler.snapshot.tree.get_or_404(message_id)
    try:
        with store_failure_banner(SEND_ERROR_MESSAGE):
            message = await engine.edit(existing, body.content)
    except ValidationError:
        return Response(status_code=204)
    await reconciler.wait_until_idle()
    return success_response(MessageOut.model_validate(message).model_dump(mode="json"))


@router.post("/messages/{message_id}/branches", status_code=201, response_model=None)
async def branch_message(
    message_id: int,
    body: MessageContentRequest,
    engine: Engine,
    reconciler: Reconciler,
) -> Response | dict:
    """Start a reply lineage under the message.

    Errors:
        E_MESSAGE_NOT_FOUND (404): Message is not in the current snapshot.
        E_PARENT_NOT_FOUND (409): Message was deleted from the store meanwhile.
    """
    existing = reconciler.snapshot.tree.get_or_404(message_id)
    try:
        with store_failure_banner(SEND_ERROR_MESSAGE):
            message = await engine.branch_reply(existing, body.content)
    except ValidationError:
        return Response(status_code=204)
    await reconciler.wait_until_idle()
    return success_response(MessageOut.model_validate(message).model_dump(mode="json"))


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: int,
    engine: Engine,
    reconciler: Reconciler,
    confirm: bool = Query(default=False, description="Confirm deleting the message and all replies"),
) -> dict:
    """Delete a message and all its replies.

    Deleting an id that is already gone succeeds with no deleted ids.

    Errors:
        E_CONFIRMATION_REQUIRED (409): confirm was not set.
    """
    with store_failure_banner(DELETE_ERROR_MESSAGE):
        deleted_ids = await engine.delete(message_id, confirmed=confirm)
    await reconciler.wait_until_idle()
    return success_response(DeleteResultOut(deleted_ids=deleted_ids).model_dump(mode="json"))


@router.post("/messages/refresh")
async def refresh_messages(reconciler: Reconciler) -> dict:
    """Refetch the whole collection now.

    A failed refetch keeps the previous snapshot and reports the banner.
    """
    installed = await reconciler.refresh()
    snapshot = reconciler.snapshot
    return success_response(
        {"refreshed": installed, "generation": snapshot.generation, "error": reconciler.error}
    )
