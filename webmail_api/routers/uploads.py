"""Temporary file uploads referenced later by drafts."""

from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, UploadFile, status

from webmail_api.auth.guard import get_current_session
from webmail_api.auth.session import MailSession
from webmail_api.config import Settings
from webmail_api.deps import get_settings
from webmail_api.schemas.actions import UploadedFile

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/uploads", tags=["uploads"])

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def upload_root(settings: Settings) -> Path:
    return Path(settings.upload_dir).resolve()


def resolve_upload(settings: Settings, reference: str) -> Path:
    """Map a stored upload name back to its path, refusing anything outside the upload directory."""
    root = upload_root(settings)
    path = (root / reference).resolve()
    if root not in path.parents or not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown upload {reference!r}",
        )
    return path


def stored_name(original: str) -> str:
    """``<hex>_<sanitised original>``; the original name follows the first underscore."""
    safe = _UNSAFE.sub("_", Path(original).name).strip("._") or "file"
    return f"{uuid.uuid4().hex}_{safe}"


def original_name(stored: str) -> str:
    _, sep, rest = stored.partition("_")
    return rest if sep else stored


@router.post("", response_model=UploadedFile, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile,
    session: Annotated[MailSession, Depends(get_current_session)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Store an upload; the returned ``file`` is passed back in ``attachment_refs``."""
    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Upload exceeds {settings.max_upload_bytes} bytes",
        )

    root = upload_root(settings)
    root.mkdir(parents=True, exist_ok=True)
    name = stored_name(file.filename or "file")
    (root / name).write_bytes(data)

    logger.info("file_uploaded", username=session.account.username, file=name, size=len(data))
    return UploadedFile(file=name, size=len(data))
