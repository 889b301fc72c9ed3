"""Adapters from IMAPClient's parsed ENVELOPE and BODYSTRUCTURE to message models."""

from __future__ import annotations

import base64
import binascii
import email.utils
import quopri
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from typing import Any


def as_text(value: Any) -> str:
    """Decode a response atom; ``None`` becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def flag_names(value: Any) -> list[str]:
    return [as_text(flag) for flag in value or ()]


def decode_words(value: str) -> str:
    """Decode RFC 2047 encoded-words, returning the input if it is malformed."""
    if "=?" not in value:
        return value
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, UnicodeDecodeError, LookupError):
        return value


# ----------------------------------------------------------------------
# Envelope
# ----------------------------------------------------------------------


@dataclass
class Address:
    name: str
    mailbox: str
    host: str

    @property
    def bare(self) -> str:
        return f"{self.mailbox}@{self.host}"


@dataclass
class Envelope:
    date: datetime | None
    subject: str
    from_: list[Address]
    sender: list[Address]
    reply_to: list[Address]
    to: list[Address]
    cc: list[Address]
    bcc: list[Address]
    in_reply_to: str
    message_id: str

    def timestamp(self) -> int | None:
        if self.date is None:
            return None
        date = self.date if self.date.tzinfo else self.date.replace(tzinfo=timezone.utc)
        return int(date.timestamp())


def _addresses(value: Any) -> list[Address]:
    result: list[Address] = []
    for entry in value or ():
        # Group start/end markers carry no host.
        if getattr(entry, "host", None) is None or getattr(entry, "mailbox", None) is None:
            continue
        result.append(Address(
            name=decode_words(as_text(entry.name)),
            mailbox=as_text(entry.mailbox),
            host=as_text(entry.host),
        ))
    return result


_ENVELOPE_FIELDS = ("date", "subject", "from_", "sender", "reply_to", "to", "cc", "bcc", "in_reply_to", "message_id")


def parse_envelope(value: Any) -> Envelope:
    """Convert an IMAPClient ``Envelope``; anything else raises ``ValueError``."""
    if value is None or not all(hasattr(value, name) for name in _ENVELOPE_FIELDS):
        raise ValueError(f"malformed ENVELOPE: {value!r}")
    date = value.date if isinstance(value.date, datetime) else None
    return Envelope(
        date=date,
        subject=decode_words(as_text(value.subject)),
        from_=_addresses(value.from_),
        sender=_addresses(value.sender),
        reply_to=_addresses(value.reply_to),
        to=_addresses(value.to),
        cc=_addresses(value.cc),
        bcc=_addresses(value.bcc),
        in_reply_to=as_text(value.in_reply_to),
        message_id=as_text(value.message_id),
    )


def parse_internaldate(value: Any) -> datetime | None:
    if not isinstance(value, datetime):
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ----------------------------------------------------------------------
# Body structure
# ----------------------------------------------------------------------


def _params(value: Any) -> dict[str, str]:
    if not isinstance(value, (list, tuple)):
        return {}
    pairs = [as_text(v) for v in value]
    return {pairs[i].lower(): pairs[i + 1] for i in range(0, len(pairs) - 1, 2)}


def _rfc2231(value: str) -> str:
    return email.utils.collapse_rfc2231_value(email.utils.decode_rfc2231(value))


def _param_value(params: dict[str, str], key: str) -> str | None:
    if key in params:
        return decode_words(params[key])
    if f"{key}*" in params:
        return _rfc2231(params[f"{key}*"])
    # RFC 2231 continuations: key*0, key*1*, ...
    pieces: list[str] = []
    index = 0
    encoded = False
    while True:
        if f"{key}*{index}*" in params:
            pieces.append(params[f"{key}*{index}*"])
            encoded = encoded or index == 0
        elif f"{key}*{index}" in params:
            pieces.append(params[f"{key}*{index}"])
        else:
            break
        index += 1
    if not pieces:
        return None
    joined = "".join(pieces)
    return _rfc2231(joined) if encoded else decode_words(joined)


@dataclass
class MimePart:
    """One node of a message's MIME tree.

    ``part_id`` is the IMAP section number (``"1"``, ``"2.1"``); the root of a
    multipart message has the empty id.
    """

    part_id: str
    content_type: str
    params: dict[str, str] = field(default_factory=dict)
    encoding: str = "7bit"
    size: int = 0
    disposition: str | None = None
    disposition_params: dict[str, str] = field(default_factory=dict)
    children: list[MimePart] = field(default_factory=list)

    @property
    def is_multipart(self) -> bool:
        return self.content_type.startswith("multipart/")

    @property
    def charset(self) -> str:
        return self.params.get("charset") or "utf-8"

    @property
    def filename(self) -> str | None:
        return _param_value(self.disposition_params, "filename") or _param_value(self.params, "name")

    def walk(self) -> Iterator[MimePart]:
        yield self
        for child in self.children:
            yield from child.walk()

    def leaves(self) -> Iterator[MimePart]:
        return (part for part in self.walk() if not part.is_multipart)

    def get_part(self, part_id: str) -> MimePart | None:
        for part in self.walk():
            if part.part_id == part_id:
                return part
        return None

    def find_body(self, subtype: str) -> MimePart | None:
        """First inline ``text/<subtype>`` leaf, in depth-first order."""
        wanted = f"text/{subtype}"
        for part in self.leaves():
            if part.content_type == wanted and part.disposition != "attachment":
                return part
        return None

    def has_attachments(self) -> bool:
        return any(
            part.disposition == "attachment" or part.filename
            for part in self.leaves()
        )

    def decode(self, payload: bytes) -> bytes:
        """Undo the transfer encoding of *payload*."""
        encoding = self.encoding.lower()
        if encoding == "base64":
            try:
                return base64.b64decode(payload)
            except binascii.Error:
                return base64.b64decode(payload + b"=" * (-len(payload) % 4), validate=False)
        if encoding == "quoted-printable":
            return quopri.decodestring(payload)
        return payload

    def decode_text(self, payload: bytes) -> str:
        raw = self.decode(payload)
        try:
            return raw.decode(self.charset, errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")


def _disposition(value: Any) -> tuple[str | None, dict[str, str]]:
    if not isinstance(value, (list, tuple)) or not value:
        return None, {}
    return as_text(value[0]).lower(), _params(value[1] if len(value) > 1 else None)


def _child_id(prefix: str, index: int) -> str:
    return f"{prefix}.{index}" if prefix else str(index)


def _parse_body(node: Any, part_id: str) -> MimePart:
    if not isinstance(node, tuple) or not node:
        raise ValueError(f"malformed BODYSTRUCTURE part: {node!r}")

    # IMAPClient's BodyData gathers the children of a multipart into one list.
    if isinstance(node[0], list):
        children = [_parse_body(child, _child_id(part_id, i)) for i, child in enumerate(node[0], start=1)]
        subtype = as_text(node[1]).lower() if len(node) > 1 else "mixed"
        ext = node[2:]
        disposition, disposition_params = _disposition(ext[1] if len(ext) > 1 else None)
        return MimePart(
            part_id=part_id,
            content_type=f"multipart/{subtype}",
            params=_params(ext[0] if ext else None),
            disposition=disposition,
            disposition_params=disposition_params,
            children=children,
        )

    if len(node) < 7:
        raise ValueError(f"malformed BODYSTRUCTURE part: {node!r}")
    maintype = as_text(node[0]).lower()
    subtype = as_text(node[1]).lower()
    content_type = f"{maintype}/{subtype}"
    if maintype == "text":
        ext_start = 8
    elif content_type == "message/rfc822":
        ext_start = 10
    else:
        ext_start = 7
    ext = node[ext_start:]
    disposition, disposition_params = _disposition(ext[1] if len(ext) > 1 else None)
    size = node[6] if isinstance(node[6], int) else 0
    return MimePart(
        part_id=part_id or "1",
        content_type=content_type,
        params=_params(node[2]),
        encoding=as_text(node[5]) or "7bit",
        size=size,
        disposition=disposition,
        disposition_params=disposition_params,
    )


def parse_bodystructure(value: Any) -> MimePart:
    """Convert an IMAPClient ``BodyData`` into a tree of :class:`MimePart`."""
    return _parse_body(value, "")
