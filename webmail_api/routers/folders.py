"""Folder listing endpoint."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends

from webmail_api.auth.guard import get_current_session
from webmail_api.auth.session import MailSession, SessionStore
from webmail_api.deps import get_directory, get_session_store
from webmail_api.mail.directory import MailboxDirectory, format_folder_name

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/folders", tags=["folders"])

_DRAFT_NAMES = {"drafts", "draft"}


@router.get("", response_model=list[str])
async def list_folders(
    session: Annotated[MailSession, Depends(get_current_session)],
    store: Annotated[SessionStore, Depends(get_session_store)],
    directory: Annotated[MailboxDirectory, Depends(get_directory)],
):
    """Every folder path on the server.

    A folder whose last segment is ``drafts`` or ``draft`` is remembered in
    the session as the place new drafts are appended to.
    """
    paths: list[str] = []
    for mailbox in await directory.list_mailboxes():
        if format_folder_name(mailbox.path) in _DRAFT_NAMES:
            store.update_draft_folder(session.session_id, mailbox.path)
        paths.append(mailbox.path)
    logger.info("folders_listed", username=session.account.username, count=len(paths))
    return paths
