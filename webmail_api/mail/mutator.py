"""Message mutations: move, copy, trash, spam, star and draft saving.

Every public operation reports its outcome as a value instead of raising:
IMAP-layer failures are logged and turned into a failed result.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from imapclient import DELETED, DRAFT, SEEN

from ..errors import MailboxUnavailable, MailError
from ..imap.client import ImapClient
from ..schemas.actions import ActionResult, DraftSaved
from .compose import Draft, build_message
from .directory import MailboxDirectory, Role

logger = structlog.get_logger()

UNABLE_TO_CREATE_STARRED = "Unable to create starred folder"
ALREADY_STARRED = "Message is already in starred folder"


class MessageMutator:
    def __init__(
        self,
        client: ImapClient,
        directory: MailboxDirectory,
        *,
        starred_fallback: str = "INBOX.Starred",
    ) -> None:
        self._client = client
        self._directory = directory
        self._starred_fallback = starred_fallback

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def move_to(self, source: str, destination: str, uids: Sequence[int]) -> bool:
        """Move *uids* from *source* to *destination* as one server operation."""
        try:
            await self._client.select(source)
            moved = await self._client.uid_move(uids, destination)
        except MailError as exc:
            logger.error("messages_move_failed", source=source, destination=destination, error=str(exc))
            return False
        if moved:
            logger.info("messages_moved", source=source, destination=destination, count=len(uids))
        else:
            logger.error("messages_move_failed", source=source, destination=destination)
        return moved

    async def copy_to(self, source: str, destination: str, uids: Sequence[int]) -> bool:
        try:
            await self._client.select(source, readonly=True)
            copied = await self._client.uid_copy(uids, destination)
        except MailError as exc:
            logger.error("messages_copy_failed", source=source, destination=destination, error=str(exc))
            return False
        if copied:
            logger.info("messages_copied", source=source, destination=destination, count=len(uids))
        else:
            logger.error("messages_copy_failed", source=source, destination=destination)
        return copied

    async def _delete_permanently(self, mailbox: str, uids: Sequence[int]) -> list[int]:
        await self._client.select(mailbox)
        await self._client.add_flags(uids, [DELETED])
        expunged = await self._client.uid_expunge(uids)
        logger.info("messages_expunged", mailbox=mailbox, requested=len(uids), expunged=len(expunged))
        return expunged

    # ------------------------------------------------------------------
    # Folder-to-folder operations
    # ------------------------------------------------------------------

    async def move(self, source_ref: str, destination_ref: str, uids: Sequence[int]) -> ActionResult:
        try:
            source = await self._directory.resolve_mailbox(source_ref)
            destination = await self._directory.resolve_mailbox(destination_ref)
        except MailError as exc:
            logger.error("move_aborted", source=source_ref, destination=destination_ref, error=str(exc))
            return ActionResult(result=0, status=False)
        return ActionResult(result=1, status=await self.move_to(source.path, destination.path, uids))

    async def copy(self, source_ref: str, destination_ref: str, uids: Sequence[int]) -> ActionResult:
        try:
            source = await self._directory.resolve_mailbox(source_ref)
            destination = await self._directory.resolve_mailbox(destination_ref)
        except MailError as exc:
            logger.error("copy_aborted", source=source_ref, destination=destination_ref, error=str(exc))
            return ActionResult(result=0, status=False)
        return ActionResult(result=1, status=await self.copy_to(source.path, destination.path, uids))

    async def trash(self, uids: Sequence[int], current_ref: str, trash_ref: str) -> ActionResult:
        """Move to trash, or delete permanently when already in trash."""
        try:
            trash = await self._directory.resolve_mailbox(trash_ref)
            current = await self._directory.resolve_mailbox(current_ref)
        except MailError as exc:
            logger.error("trash_aborted", error=str(exc))
            return ActionResult(result=0, status=False)

        if trash.path != current.path:
            return ActionResult(result=1, status=await self.move_to(current.path, trash.path, uids))

        try:
            expunged = await self._delete_permanently(trash.path, uids)
        except MailError as exc:
            logger.error("trash_delete_failed", mailbox=trash.path, error=str(exc))
            return ActionResult(result=0, status=False)
        result = 1 if expunged else 0
        return ActionResult(result=result, status=bool(result))

    async def untrash(self, uids: Sequence[int], trash_ref: str, current_ref: str) -> ActionResult:
        return await self.move(trash_ref, current_ref, uids)

    async def spam(self, uids: Sequence[int], current_ref: str, spam_ref: str) -> ActionResult:
        """Move to spam; already in spam is a failed no-op."""
        try:
            spam = await self._directory.resolve_mailbox(spam_ref)
            current = await self._directory.resolve_mailbox(current_ref)
        except MailError as exc:
            logger.error("spam_aborted", error=str(exc))
            return ActionResult(result=0, status=False)

        if spam.path == current.path:
            logger.info("spam_noop", mailbox=spam.path)
            return ActionResult(result=0, status=False)
        return ActionResult(result=1, status=await self.move_to(current.path, spam.path, uids))

    async def unspam(self, uids: Sequence[int], spam_ref: str, current_ref: str) -> ActionResult:
        return await self.move(spam_ref, current_ref, uids)

    async def star(self, uids: Sequence[int], current_ref: str, starred_ref: str, state: int) -> ActionResult:
        """Star (``state=1``) or unstar (``state=0``) by moving into or out of the starred folder."""
        try:
            current = await self._directory.resolve_mailbox(current_ref)
        except MailError as exc:
            logger.error("star_aborted", error=str(exc))
            return ActionResult(result=0, status=False)

        starred = None
        for reference in (starred_ref, self._starred_fallback):
            try:
                starred = await self._directory.resolve_mailbox(reference)
                break
            except MailboxUnavailable:
                logger.warning("starred_folder_unavailable", reference=reference)
        if starred is None:
            return ActionResult(result=0, status=UNABLE_TO_CREATE_STARRED)

        if current.path == starred.path:
            if state:
                return ActionResult(result=0, status=ALREADY_STARRED)
            try:
                inbox = await self._directory.resolve_mailbox("inbox")
            except MailError as exc:
                logger.error("unstar_aborted", error=str(exc))
                return ActionResult(result=0, status=False)
            return ActionResult(result=1, status=await self.move_to(starred.path, inbox.path, uids))

        if state:
            return ActionResult(result=1, status=await self.move_to(current.path, starred.path, uids))
        return ActionResult(result=1, status=True)

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    async def drafts_folder(self, remembered: str | None = None) -> str:
        if remembered:
            return remembered
        mailbox = await self._directory.find_by_role(Role.DRAFTS)
        if mailbox is None:
            mailbox = await self._directory.resolve_mailbox("Drafts")
        return mailbox.path

    async def save_draft(
        self,
        draft: Draft,
        *,
        previous_uid: int | None = None,
        draft_folder: str | None = None,
    ) -> DraftSaved:
        """Replace the previous copy of a draft with a freshly composed one."""
        try:
            folder = await self.drafts_folder(draft_folder)
            if previous_uid:
                await self._delete_permanently(folder, [previous_uid])
                logger.info("previous_draft_deleted", mailbox=folder, uid=previous_uid)

            raw, message_id = build_message(draft)
            uid = await self._client.append(folder, raw, flags=[DRAFT, SEEN])
            if uid is None:
                await self._client.select(folder)
                found = await self._client.uid_search(["HEADER", "Message-ID", message_id])
                uid = max(found) if found else None
        except MailError as exc:
            logger.error("draft_save_failed", error=str(exc))
            return DraftSaved(success=False)

        logger.info("draft_saved", mailbox=folder, uid=uid, attachments=len(draft.attachments or []))
        return DraftSaved(success=True, draft=uid)
