"""FastAPI dependency-injection helpers for mail connections and services."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request

from webmail_api.auth.guard import get_current_session
from webmail_api.auth.session import MailSession, SessionStore
from webmail_api.config import Settings
from webmail_api.imap.client import ImapClient
from webmail_api.mail.attachments import AttachmentResolver
from webmail_api.mail.autoconfig import AutoconfigClient
from webmail_api.mail.directory import MailboxDirectory
from webmail_api.mail.mutator import MessageMutator
from webmail_api.mail.query import MessageQueryEngine


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_autoconfig(request: Request) -> AutoconfigClient:
    return request.app.state.autoconfig


async def get_mail_client(
    session: Annotated[MailSession, Depends(get_current_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AsyncGenerator[ImapClient, None]:
    """One logged-in IMAP connection per request."""
    client = ImapClient(
        session.account,
        timeout=settings.imap_timeout_seconds,
        retry=settings.retry,
    )
    async with client:
        yield client


def get_directory(client: Annotated[ImapClient, Depends(get_mail_client)]) -> MailboxDirectory:
    return MailboxDirectory(client)


def get_query_engine(
    client: Annotated[ImapClient, Depends(get_mail_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageQueryEngine:
    return MessageQueryEngine(client, window_seconds=settings.message_window_seconds)


def get_mutator(
    client: Annotated[ImapClient, Depends(get_mail_client)],
    directory: Annotated[MailboxDirectory, Depends(get_directory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageMutator:
    return MessageMutator(client, directory, starred_fallback=settings.starred_fallback_folder)


def get_attachment_resolver(client: Annotated[ImapClient, Depends(get_mail_client)]) -> AttachmentResolver:
    return AttachmentResolver(client)
