"""Message board session: selection, visibility and the error banner.

Mirrors what a single client of the board holds:
- at most one selected message, selected either for editing or for a
  branch reply
- a per-message branches-visible toggle (default hidden)
- a single error banner, owned by the reconciliation loop

Failure policy:
- Empty input is ignored silently
- Store failures on send or delete set a generic banner; nothing raises
  to the renderer, which always sees the last good snapshot
- Nothing is retried automatically; the next successful refresh clears
  the banner
"""

from dataclasses import dataclass
from typing import Literal

from converse.errors import ConfirmationRequiredError, StoreError, ValidationError
from converse.logging import get_logger
from converse.schemas.message import Message
from converse.services.mutations import MutationEngine
from converse.services.projection import ProjectedNode, project, toggle_visibility
from converse.services.reconcile import ReconciliationLoop, Snapshot
from converse.store.base import MessageStoreBase

logger = get_logger(__name__)

SEND_ERROR_MESSAGE = "Error sending message. Please try again."
DELETE_ERROR_MESSAGE = "Error deleting message. Please try again."

SelectionMode = Literal["edit", "branch"]


@dataclass(frozen=True)
class Selection:
    """The message currently targeted by the input box."""

    message: Message
    mode: SelectionMode


class MessageBoard:
    """One client's view of the board, over a shared store."""

    def __init__(self, store: MessageStoreBase, loop: ReconciliationLoop | None = None):
        self.store = store
        self.loop = loop or ReconciliationLoop(store)
        self.engine = MutationEngine(store)
        self.selection: Selection | None = None
        self.visibility: dict[int, bool] = {}

    async def start(self) -> None:
        await self.loop.start()

    async def stop(self) -> None:
        await self.loop.stop()

    @property
    def snapshot(self) -> Snapshot:
        return self.loop.snapshot

    @property
    def error(self) -> str | None:
        return self.loop.error

    # -- selection ---------------------------------------------------------

    def select_for_edit(self, message: Message) -> str:
        """Target message for editing. Returns the text to prefill."""
        self.selection = Selection(message=message, mode="edit")
        return message.content

    def select_for_branch(self, message: Message) -> str:
        """Target message for a branch reply. Returns the text to prefill."""
        self.selection = Selection(message=message, mode="branch")
        return ""

    def cancel(self) -> None:
        self.selection = None

    # -- mutations ---------------------------------------------------------

    async def submit(self, text: str) -> Message | None:
        """Send text according to the current selection.

        No selection creates a root message; an edit selection appends a new
        version; a branch selection starts a reply lineage.

        Returns:
            The stored message, or None if nothing was written.
        """
        selection = self.selection
        try:
            if selection is None:
                message = await self.engine.create_root(text)
            elif selection.mode == "edit":
                message = await self.engine.edit(selection.message, text)
            else:
                message = await self.engine.branch_reply(selection.message, text)
        except ValidationError:
            logger.debug("empty_message_ignored")
            return None
        except StoreError as e:
            logger.warning("message_send_failed", code=e.code.value, error=e.message)
            self.loop.report_error(SEND_ERROR_MESSAGE)
            return None

        self.selection = None
        return message

    async def delete(self, message_id: int, *, confirmed: bool) -> list[int]:
        """Delete a message and all its replies once the user has confirmed.

        Returns:
            Deleted ids, or [] if declined, already gone, or failed.
        """
        try:
            deleted = await self.engine.delete(message_id, confirmed=confirmed)
        except ConfirmationRequiredError:
            logger.debug("message_delete_declined", message_id=message_id)
            return []
        except StoreError as e:
            logger.warning("message_delete_failed", message_id=message_id, code=e.code.value, error=e.message)
            self.loop.report_error(DELETE_ERROR_MESSAGE)
            return []

        if self.selection is not None and self.selection.message.id in deleted:
            self.selection = None
        await self.loop.refresh()
        return deleted

    # -- rendering ---------------------------------------------------------

    def toggle_branches(self, message_id: int) -> bool:
        """Flip a message's branches-visible flag. Returns the new value."""
        self.visibility = toggle_visibility(self.visibility, message_id)
        return self.visibility[message_id]

    def render(self) -> list[ProjectedNode]:
        """Project the current snapshot with this board's visibility."""
        return project(self.loop.snapshot.tree, self.visibility)
