"""Request/response schemas for message listing, search and retrieval."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _split_uids(value):
    """Accept ``[1, 2]``, ``"1,2"`` or ``"[1, 2]"`` for uid lists."""
    if isinstance(value, int):
        return [value]
    if isinstance(value, str):
        cleaned = value.strip().strip("[]")
        return [part.strip() for part in cleaned.split(",") if part.strip()]
    return value


class UidListMixin(BaseModel):
    uids: list[int] = Field(min_length=1)

    @field_validator("uids", mode="before")
    @classmethod
    def _coerce_uids(cls, value):
        return _split_uids(value)


class ListMessagesRequest(BaseModel):
    folder: str = "INBOX"


class SearchMessagesRequest(BaseModel):
    folder: str = "INBOX"
    term: str = ""


class GetMessageRequest(UidListMixin):
    folder: str


class ThreadInfo(BaseModel):
    uids: str
    count: int


class MessageSummary(BaseModel):
    """One row of a folder listing: the newest message of a thread."""

    model_config = ConfigDict(populate_by_name=True)

    uid: int
    sender: str = Field(alias="from")
    to: str
    cc: str
    bcc: str
    date: int | None
    subject: str
    has_attachments: bool
    folder: str
    message_id: str
    flags: list[str]
    thread: ThreadInfo


class AttachmentInfo(BaseModel):
    file: str
    type: str
    size: str
    part_id: str


class MessageDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: int
    sender: str = Field(alias="from")
    to: str
    cc: str
    bcc: str
    date: int | None
    subject: str
    body: str
    has_attachments: bool
    folder: str
    message_id: str
    flags: list[str]
    attachments: list[AttachmentInfo]
