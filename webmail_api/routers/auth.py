"""Authentication endpoints: login, logout, me."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status

from webmail_api.auth.guard import get_current_session
from webmail_api.auth.jwt import create_session_token
from webmail_api.auth.schemas import AccountProfile, LoginRequest, TokenResponse
from webmail_api.auth.session import MailSession, SessionStore
from webmail_api.config import Settings
from webmail_api.deps import get_session_store, get_settings
from webmail_api.imap.account import Account
from webmail_api.imap.client import ImapClient

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[SessionStore, Depends(get_session_store)],
):
    """Verify the credentials against the IMAP server and open a session."""
    account = Account(**body.model_dump())
    # Raises AuthenticationError (401) or ImapConnectionError.
    async with ImapClient(account, timeout=settings.imap_timeout_seconds, retry=settings.retry):
        pass

    store.purge_expired()
    session = store.create(account)
    logger.info("user_login", username=account.username, host=account.host)
    return TokenResponse(access_token=create_session_token(session.session_id, settings))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    session: Annotated[MailSession, Depends(get_current_session)],
    store: Annotated[SessionStore, Depends(get_session_store)],
):
    """Destroy the current session; its token stops working immediately."""
    store.delete(session.session_id)
    logger.info("user_logout", username=session.account.username)


@router.get("/me", response_model=AccountProfile)
async def me(session: Annotated[MailSession, Depends(get_current_session)]):
    account = session.account
    return AccountProfile(
        username=account.username,
        email=account.address,
        host=account.host,
        port=account.port,
        encryption=account.encryption,
    )
