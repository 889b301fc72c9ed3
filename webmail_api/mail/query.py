"""Message listing, search, threading and full message retrieval."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from ..imap.client import ImapClient
from ..imap.structure import (
    Envelope,
    MimePart,
    decode_words,
    flag_names,
    parse_bodystructure,
    parse_envelope,
    parse_internaldate,
)
from ..schemas.message import AttachmentInfo, MessageDetail, MessageSummary, ThreadInfo
from .attachments import human_file_size

logger = structlog.get_logger()

SUMMARY_ITEMS = ["FLAGS", "INTERNALDATE", "ENVELOPE", "BODYSTRUCTURE"]

_LEADER = re.compile(r"^(?:(?:re|fwd?|aw|wg)\s*(?:\[\d+\])?\s*:\s*)", re.IGNORECASE)
_BLOB = re.compile(r"^\[[^\[\]]*\]\s*")
_TRAILER = re.compile(r"\s*\(fwd\)\s*$", re.IGNORECASE)
_FWD_WRAPPER = re.compile(r"^\[fwd:\s*(.*)\]$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def normalize_subject(subject: str) -> str:
    """Reduce *subject* to its base subject for thread grouping.

    Strips reply/forward prefixes, ``[list]`` tags, ``(fwd)`` trailers and
    ``[Fwd: ...]`` wrappers, folds whitespace, and lowercases.
    """
    text = _WHITESPACE.sub(" ", decode_words(subject)).strip()
    while True:
        before = text
        text = _TRAILER.sub("", text)
        while True:
            stripped = _LEADER.sub("", text)
            blob_stripped = _BLOB.sub("", stripped)
            if blob_stripped:
                stripped = blob_stripped
            if stripped == text:
                break
            text = stripped
        wrapped = _FWD_WRAPPER.match(text)
        if wrapped:
            text = wrapped.group(1).strip()
        if text == before:
            break
    return text.lower()


def _join(addresses) -> str:
    return ",".join(address.bare for address in addresses)


def _timestamp(envelope: Envelope, item: dict[bytes, Any]) -> int | None:
    ts = envelope.timestamp()
    if ts is None:
        internal = parse_internaldate(item.get(b"INTERNALDATE"))
        ts = int(internal.timestamp()) if internal else None
    return ts


def group_threads(subjects: dict[int, str]) -> list[list[int]]:
    """Group uids by normalized subject; members ascending, threads by first uid."""
    groups: dict[str, list[int]] = {}
    for uid in sorted(subjects):
        groups.setdefault(normalize_subject(subjects[uid]), []).append(uid)
    return sorted(groups.values(), key=lambda members: members[0])


class MessageQueryEngine:
    """Read-only view over one account's messages."""

    def __init__(
        self,
        client: ImapClient,
        *,
        window_seconds: int = 604800,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Listing and search
    # ------------------------------------------------------------------

    async def list(self, mailbox: str) -> list[MessageSummary]:
        return await self._threaded(mailbox, None)

    async def search(self, mailbox: str, term: str) -> list[MessageSummary]:
        return await self._threaded(mailbox, term or None)

    async def _threaded(self, mailbox: str, term: str | None) -> list[MessageSummary]:
        await self._client.select(mailbox, readonly=True)
        cutoff = self._clock() - self._window
        within = self._client.has_capability("WITHIN")
        if within:
            criteria = ["YOUNGER", str(int(self._window.total_seconds()))]
        else:
            # SINCE compares dates in the server's timezone; the exact cut is
            # made locally on INTERNALDATE.
            criteria = ["SINCE", (cutoff - timedelta(days=1)).strftime("%d-%b-%Y")]

        if within and self._client.has_capability("THREAD=ORDEREDSUBJECT"):
            threads = await self._client.uid_thread(criteria, text=term)
            representatives = {max(members): members for members in threads}
            items = await self._client.uid_fetch(list(representatives), SUMMARY_ITEMS)
        else:
            # Server cannot thread or cannot cut the window exactly: fetch
            # every candidate once and do both locally.
            uids = await self._client.uid_search(criteria, text=term)
            items = await self._client.uid_fetch(uids, SUMMARY_ITEMS)
            items = {uid: item for uid, item in items.items() if self._is_recent(item, cutoff)}
            subjects = {uid: self._subject(item) for uid, item in items.items()}
            representatives = {max(members): members for members in group_threads(subjects)}

        summaries: list[MessageSummary] = []
        for uid, members in representatives.items():
            if uid not in items:
                continue
            try:
                summaries.append(self._summary(uid, items[uid], mailbox, members))
            except ValueError as exc:
                logger.warning("message_unparseable", mailbox=mailbox, uid=uid, error=str(exc))
        summaries.sort(key=lambda s: (s.date or 0, s.uid), reverse=True)
        logger.info(
            "messages_listed",
            mailbox=mailbox,
            searched=term is not None,
            threads=len(summaries),
        )
        return summaries

    @staticmethod
    def _is_recent(item: dict[bytes, Any], cutoff: datetime) -> bool:
        internal = parse_internaldate(item.get(b"INTERNALDATE"))
        return internal is None or internal >= cutoff

    @staticmethod
    def _subject(item: dict[bytes, Any]) -> str:
        try:
            return parse_envelope(item.get(b"ENVELOPE")).subject
        except ValueError:
            return ""

    @staticmethod
    def _summary(uid: int, item: dict[bytes, Any], mailbox: str, members: Iterable[int]) -> MessageSummary:
        envelope = parse_envelope(item.get(b"ENVELOPE"))
        structure = item.get(b"BODYSTRUCTURE")
        members = sorted(members)
        return MessageSummary(
            uid=uid,
            sender=_join(envelope.from_),
            to=_join(envelope.to),
            cc=_join(envelope.cc),
            bcc=_join(envelope.bcc),
            date=_timestamp(envelope, item),
            subject=envelope.subject,
            has_attachments=parse_bodystructure(structure).has_attachments() if structure else False,
            folder=mailbox,
            message_id=envelope.message_id,
            flags=flag_names(item.get(b"FLAGS")),
            thread=ThreadInfo(uids=",".join(str(m) for m in members), count=len(members)),
        )

    # ------------------------------------------------------------------
    # Full message
    # ------------------------------------------------------------------

    async def get_message(self, mailbox: str, uids: list[int]) -> list[MessageDetail]:
        """Fetch envelope, body and attachment list for each uid.

        The body is the HTML part when it has content, else the plain-text
        part.  Reading a message marks it ``\\Seen``.
        """
        await self._client.select(mailbox)
        items = await self._client.uid_fetch(uids, SUMMARY_ITEMS)

        results: list[MessageDetail] = []
        for uid in uids:
            item = items.get(uid)
            if item is None or b"ENVELOPE" not in item or b"BODYSTRUCTURE" not in item:
                logger.warning("message_missing", mailbox=mailbox, uid=uid)
                continue
            try:
                envelope = parse_envelope(item[b"ENVELOPE"])
                structure = parse_bodystructure(item[b"BODYSTRUCTURE"])
            except ValueError as exc:
                logger.warning("message_unparseable", mailbox=mailbox, uid=uid, error=str(exc))
                continue
            html = structure.find_body("html")
            plain = structure.find_body("plain")
            body = await self._fetch_body(uid, html, plain)
            attachments = self._attachments(structure, {p.part_id for p in (html, plain) if p is not None})
            results.append(MessageDetail(
                uid=uid,
                sender=_join(envelope.from_),
                to=_join(envelope.to),
                cc=_join(envelope.cc),
                bcc=_join(envelope.bcc),
                date=_timestamp(envelope, item),
                subject=envelope.subject,
                body=body,
                has_attachments=bool(attachments),
                folder=mailbox,
                message_id=envelope.message_id,
                flags=flag_names(item.get(b"FLAGS")),
                attachments=attachments,
            ))

        logger.info("messages_fetched", mailbox=mailbox, requested=len(uids), returned=len(results))
        return results

    async def _fetch_body(self, uid: int, html: MimePart | None, plain: MimePart | None) -> str:
        parts = [p for p in (html, plain) if p is not None]
        if not parts:
            return ""
        fetched = (await self._client.uid_fetch([uid], [f"BODY[{p.part_id}]" for p in parts])).get(uid, {})
        for part in parts:
            payload = fetched.get(f"BODY[{part.part_id}]".encode())
            if isinstance(payload, bytes):
                text = part.decode_text(payload)
                if text.strip():
                    return text
        return ""

    @staticmethod
    def _attachments(structure: MimePart, body_ids: set[str]) -> list[AttachmentInfo]:
        attachments: list[AttachmentInfo] = []
        for part in structure.leaves():
            if part.part_id in body_ids:
                continue
            name = part.filename
            if name:
                attachments.append(AttachmentInfo(
                    file=name,
                    type=part.content_type,
                    size=human_file_size(part.size),
                    part_id=part.part_id,
                ))
        return attachments
