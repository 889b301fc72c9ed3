"""Attachment lookup and the human-readable size formatter."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import structlog

from ..errors import NotFound
from ..imap.client import ImapClient
from ..imap.structure import parse_bodystructure

logger = structlog.get_logger()

_UNITS = ["B", "kB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]


def human_file_size(size: float, decimals: int = 2) -> str:
    """Format a byte count, moving up a unit once the next one reaches 0.9.

    >>> human_file_size(900)
    '900B'
    >>> human_file_size(922)
    '0.9kB'
    """
    index = 0
    while size / 1024 > 0.9 and index < len(_UNITS) - 1:
        size /= 1024
        index += 1
    # Half away from zero on the shortest decimal repr, as PHP round() does.
    rounded = Decimal(repr(float(size))).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    if rounded == rounded.to_integral_value():
        text = str(int(rounded))
    else:
        text = format(rounded, "f").rstrip("0")
    return f"{text}{_UNITS[index]}"


@dataclass
class AttachmentContent:
    file_name: str
    content_type: str
    data: bytes


class AttachmentResolver:
    """Fetches one named MIME part.

    Structure and content come back in the same FETCH response, so the part
    the bytes belong to is the part whose name was checked.
    """

    def __init__(self, client: ImapClient) -> None:
        self._client = client

    async def get_attachment(self, mailbox: str, uid: int, part_id: str, file_name: str) -> AttachmentContent:
        await self._client.select(mailbox, readonly=True)
        section = f"BODY[{part_id}]".encode()
        fetched = await self._client.uid_fetch([uid], ["BODYSTRUCTURE", f"BODY.PEEK[{part_id}]"])
        item = fetched.get(uid)
        if item is None or b"BODYSTRUCTURE" not in item:
            raise NotFound(f"message {uid} not found in {mailbox}")

        try:
            part = parse_bodystructure(item[b"BODYSTRUCTURE"]).get_part(part_id)
        except ValueError as exc:
            raise NotFound(f"message {uid} has an unreadable structure") from exc
        if part is None:
            raise NotFound(f"part {part_id} not found in message {uid}")
        if part.filename != file_name:
            logger.warning(
                "attachment_name_mismatch",
                mailbox=mailbox,
                uid=uid,
                part_id=part_id,
                expected=file_name,
                actual=part.filename,
            )
            raise NotFound(f"part {part_id} of message {uid} is not {file_name!r}")

        payload = item.get(section)
        if not isinstance(payload, bytes):
            raise NotFound(f"no content for part {part_id} of message {uid}")

        logger.info("attachment_fetched", mailbox=mailbox, uid=uid, part_id=part_id, size=len(payload))
        return AttachmentContent(
            file_name=file_name,
            content_type=part.content_type,
            data=part.decode(payload),
        )
