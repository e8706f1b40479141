"""Mutation engine: create, edit, branch and cascading delete.

All operations write to the store and return; none of them touch the local
snapshot. The change notification that follows each write brings the
reconciliation loop's snapshot up to date.

Versioning rules:
- create_root:  parent_id=None,               version=1
- edit:         parent_id=existing.parent_id, version=existing.version + 1
- branch_reply: parent_id=existing.id,        version=1

Edits never modify or delete the edited row. Two actors editing the same
lineage from the same snapshot both write version + 1; the rows coexist and
sort by created_at.
"""

from converse.errors import ConfirmationRequiredError, ConverseErrorCode, NotFoundError, ValidationError
from converse.logging import get_logger
from converse.schemas.message import Message, NewMessage
from converse.services.tree import MessageTree
from converse.store.base import SNAPSHOT_ORDER, MessageStoreBase

logger = get_logger(__name__)


def validate_content(text: str) -> str:
    """Reject empty or whitespace-only text.

    Returns the text unchanged; surrounding whitespace is preserved.

    Raises:
        ValidationError(E_EMPTY_CONTENT): If text has no visible characters.
    """
    if not text or not text.strip():
        raise ValidationError(ConverseErrorCode.E_EMPTY_CONTENT, "Message content is empty")
    return text


class MutationEngine:
    """Applies message mutations against a store."""

    def __init__(self, store: MessageStoreBase):
        self.store = store

    async def create_root(self, text: str) -> Message:
        """Start a new root-level lineage.

        Raises:
            ValidationError: If text is empty.
            StoreError: If the insert fails.
        """
        content = validate_content(text)
        message = await self.store.insert(NewMessage(content=content, parent_id=None, version=1))
        logger.info("message_created", message_id=message.id)
        return message

    async def edit(self, existing: Message, text: str) -> Message:
        """Append a new version to existing's lineage.

        The new row shares existing.parent_id and carries existing.version + 1.

        Raises:
            ValidationError: If text is empty.
            StoreError: If the insert fails.
        """
        content = validate_content(text)
        message = await self.store.insert(
            NewMessage(content=content, parent_id=existing.parent_id, version=existing.version + 1)
        )
        logger.info(
            "message_edited",
            message_id=message.id,
            edited_message_id=existing.id,
            version=message.version,
        )
        return message

    async def branch_reply(self, existing: Message, text: str) -> Message:
        """Start a new lineage under existing, at version 1.

        Raises:
            ValidationError: If text is empty.
            StoreError: E_PARENT_NOT_FOUND if existing is gone, or other failures.
        """
        content = validate_content(text)
        message = await self.store.insert(NewMessage(content=content, parent_id=existing.id, version=1))
        logger.info("message_branched", message_id=message.id, parent_id=existing.id)
        return message

    async def delete(self, message_id: int, *, confirmed: bool) -> list[int]:
        """Delete message_id and every transitive descendant.

        The subtree is collected from a fresh fetch of the whole collection,
        then removed with one bulk delete, children listed before parents.
        Sibling versions of message_id are left alone.

        Args:
            message_id: Root of the subtree to delete.
            confirmed: The user explicitly confirmed the delete.

        Returns:
            Deleted ids in deletion order, or [] if message_id was already gone.

        Raises:
            ConfirmationRequiredError: If confirmed is false.
            StoreError: If the fetch or the delete fails.
        """
        if not confirmed:
            raise ConfirmationRequiredError()

        tree = MessageTree.from_messages(await self.store.select_all(SNAPSHOT_ORDER))
        try:
            tree.get_or_404(message_id)
        except NotFoundError:
            # A concurrent delete got there first
            logger.info("message_already_deleted", message_id=message_id)
            return []

        doomed = tree.subtree_ids(message_id)
        await self.store.delete_many(doomed)
        logger.info("message_subtree_deleted", message_id=message_id, deleted_count=len(doomed))
        return doomed
