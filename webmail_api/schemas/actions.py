"""Request/response schemas for message mutations."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .message import UidListMixin


class ActionResult(BaseModel):
    """Outcome of a mutation.

    Business-level failures are reported here with HTTP 200; ``status`` is a
    boolean, or a message for the star folder edge cases.
    """

    result: int
    status: bool | str


class MoveRequest(UidListMixin):
    source: str
    destination: str


class TrashRequest(UidListMixin):
    current_folder: str
    trash_folder: str = "Trash"


class SpamRequest(UidListMixin):
    current_folder: str
    spam_folder: str = "Spam"


class StarRequest(UidListMixin):
    current_folder: str
    starred_folder: str = "Starred"
    state: int = Field(default=1, ge=0, le=1, description="1 to star, 0 to unstar")


class DraftSaved(BaseModel):
    success: bool
    draft: int | None = None


class UploadedFile(BaseModel):
    file: str
    size: int
