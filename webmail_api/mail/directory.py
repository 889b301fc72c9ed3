"""Mailbox directory: list folders, resolve them by fuzzy name, create on demand."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

import structlog

from ..errors import MailboxUnavailable, OperationFailed
from ..imap.client import ImapClient, ListEntry

logger = structlog.get_logger()

_SEPARATORS = re.compile(r"[./]+")


class Role(str, Enum):
    INBOX = "inbox"
    TRASH = "trash"
    SPAM = "spam"
    DRAFTS = "drafts"
    STARRED = "starred"
    SENT = "sent"
    OTHER = "other"


_SPECIAL_USE = {
    "\\trash": Role.TRASH,
    "\\junk": Role.SPAM,
    "\\drafts": Role.DRAFTS,
    "\\sent": Role.SENT,
    "\\flagged": Role.STARRED,
}

_NAMES = {
    "inbox": Role.INBOX,
    "trash": Role.TRASH,
    "deleted items": Role.TRASH,
    "spam": Role.SPAM,
    "junk": Role.SPAM,
    "drafts": Role.DRAFTS,
    "draft": Role.DRAFTS,
    "starred": Role.STARRED,
    "sent": Role.SENT,
    "sent items": Role.SENT,
}


def format_folder_name(path: str) -> str:
    """Return the last path segment of *path*, lowercased."""
    segments = [s for s in _SEPARATORS.split(path) if s]
    return (segments[-1] if segments else path).lower()


@dataclass
class Mailbox:
    path: str
    delimiter: str | None = None
    flags: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        segments = [s for s in _SEPARATORS.split(self.path) if s]
        return segments[-1] if segments else self.path

    @property
    def role(self) -> Role:
        for flag in self.flags:
            role = _SPECIAL_USE.get(flag.lower())
            if role is not None:
                return role
        if self.path.upper() == "INBOX":
            return Role.INBOX
        return _NAMES.get(format_folder_name(self.path), Role.OTHER)

    @classmethod
    def from_entry(cls, entry: ListEntry) -> Mailbox:
        return cls(path=entry.name, delimiter=entry.delimiter, flags=entry.flags)


def match_mailbox(mailboxes: list[Mailbox], reference: str) -> Mailbox | None:
    """Case-insensitive match of *reference* against *mailboxes*.

    An exact match wins; otherwise the first mailbox (in server order) whose
    path contains the reference.
    """
    wanted = reference.lower()
    if not wanted:
        return None
    for mailbox in mailboxes:
        if mailbox.path.lower() == wanted:
            return mailbox
    for mailbox in mailboxes:
        if wanted in mailbox.path.lower():
            return mailbox
    return None


class MailboxDirectory:
    """Folder lookups against the live server listing (never cached)."""

    def __init__(self, client: ImapClient) -> None:
        self._client = client

    async def list_mailboxes(self) -> list[Mailbox]:
        entries = await self._client.list_mailboxes()
        logger.debug("mailboxes_listed", count=len(entries))
        return [Mailbox.from_entry(entry) for entry in entries]

    async def resolve_mailbox(self, reference: str) -> Mailbox:
        """Find the folder matching *reference*, creating it if absent.

        Raises :class:`MailboxUnavailable` when the folder can neither be
        found nor created.
        """
        if not reference:
            raise MailboxUnavailable("empty mailbox reference")

        found = match_mailbox(await self.list_mailboxes(), reference)
        if found is not None:
            return found

        try:
            await self._client.create_mailbox(reference)
        except OperationFailed as exc:
            logger.error("mailbox_create_failed", mailbox=reference, error=str(exc))
            raise MailboxUnavailable(f"unable to create mailbox {reference}") from exc

        mailboxes = await self.list_mailboxes()
        for mailbox in mailboxes:
            if mailbox.path == reference:
                return mailbox
        found = match_mailbox(mailboxes, reference)
        if found is None:
            raise MailboxUnavailable(f"mailbox {reference} not listed after creation")
        return found

    async def find_by_role(self, role: Role) -> Mailbox | None:
        for mailbox in await self.list_mailboxes():
            if mailbox.role is role:
                return mailbox
        return None
