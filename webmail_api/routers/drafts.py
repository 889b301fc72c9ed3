"""Draft saving endpoint (multipart form)."""

from __future__ import annotations

import json
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from webmail_api.auth.guard import get_current_session
from webmail_api.auth.session import MailSession
from webmail_api.config import Settings
from webmail_api.deps import get_mutator, get_settings
from webmail_api.mail.compose import Draft, DraftAttachment
from webmail_api.mail.mutator import MessageMutator
from webmail_api.routers.uploads import original_name, resolve_upload
from webmail_api.schemas.actions import DraftSaved

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/drafts", tags=["drafts"])


def _parse_refs(raw: str) -> list[str]:
    """Accept ``["name", ...]`` or ``[{"file": "name"}, ...]``."""
    try:
        refs = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="attachment_refs must be a JSON list",
        ) from exc
    if not isinstance(refs, list):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="attachment_refs must be a JSON list",
        )
    names: list[str] = []
    for ref in refs:
        name = ref.get("file") if isinstance(ref, dict) else ref
        if not isinstance(name, str) or not name:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid attachment reference {ref!r}",
            )
        names.append(name)
    return names


async def _collect_attachments(
    files: list[UploadFile] | None,
    refs: str | None,
    settings: Settings,
) -> list[DraftAttachment]:
    # Uploaded files take precedence over references to earlier uploads.
    if files:
        attachments: list[DraftAttachment] = []
        for upload in files:
            data = await upload.read()
            if len(data) > settings.max_upload_bytes:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"Attachment {upload.filename!r} exceeds {settings.max_upload_bytes} bytes",
                )
            attachments.append(DraftAttachment(filename=upload.filename or "attachment", data=data))
        return attachments
    if refs:
        return [
            DraftAttachment(filename=original_name(name), data=resolve_upload(settings, name).read_bytes())
            for name in _parse_refs(refs)
        ]
    return []


@router.post("", response_model=DraftSaved)
async def save_draft(
    session: Annotated[MailSession, Depends(get_current_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    mutator: Annotated[MessageMutator, Depends(get_mutator)],
    to: Annotated[str, Form()] = "",
    cc: Annotated[str, Form()] = "",
    bcc: Annotated[str, Form()] = "",
    subject: Annotated[str, Form()] = "",
    body: Annotated[str, Form()] = "",
    draft_id: Annotated[int | None, Form()] = None,
    attachment: Annotated[list[UploadFile] | None, File()] = None,
    attachment_refs: Annotated[str | None, Form()] = None,
):
    """Save a draft, replacing the copy identified by ``draft_id``.

    Returns the uid of the new copy, which the client sends as ``draft_id``
    on the next save.
    """
    draft = Draft(
        sender=session.account.address,
        to=to,
        cc=cc,
        bcc=bcc,
        subject=subject,
        html_body=body,
        attachments=await _collect_attachments(attachment, attachment_refs, settings),
    )
    return await mutator.save_draft(
        draft,
        previous_uid=draft_id,
        draft_folder=session.draft_folder,
    )
