"""Builds RFC 5322 draft messages from form fields."""

from __future__ import annotations

import email.utils
from dataclasses import dataclass
from email.message import EmailMessage


@dataclass
class DraftAttachment:
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"


@dataclass
class Draft:
    """Form fields of a draft being saved."""

    sender: str
    to: str = ""
    cc: str = ""
    bcc: str = ""
    subject: str = ""
    html_body: str = ""
    attachments: list[DraftAttachment] | None = None


def _domain(address: str) -> str | None:
    _, parsed = email.utils.parseaddr(address)
    _, _, domain = parsed.rpartition("@")
    return domain or None


def build_message(draft: Draft) -> tuple[bytes, str]:
    """Return the raw message bytes and the Message-ID assigned to it."""
    msg = EmailMessage()
    msg["From"] = draft.sender
    for header, value in (("To", draft.to), ("Cc", draft.cc), ("Bcc", draft.bcc)):
        if value and value.strip():
            msg[header] = value
    msg["Subject"] = draft.subject
    msg["Date"] = email.utils.formatdate(localtime=True)
    message_id = email.utils.make_msgid(domain=_domain(draft.sender))
    msg["Message-ID"] = message_id

    msg.set_content(draft.html_body, subtype="html")
    for attachment in draft.attachments or []:
        maintype, _, subtype = attachment.content_type.partition("/")
        msg.add_attachment(
            attachment.data,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return msg.as_bytes(), message_id
