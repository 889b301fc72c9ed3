"""FastAPI dependency resolving the bearer token to a live mail session."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from webmail_api.auth.jwt import decode_token
from webmail_api.auth.session import MailSession, SessionStore
from webmail_api.config import Settings

_bearer_scheme = HTTPBearer()


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_store(request: Request) -> SessionStore:
    return request.app.state.sessions


async def get_current_session(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
    settings: Annotated[Settings, Depends(_get_settings)],
    store: Annotated[SessionStore, Depends(_get_store)],
) -> MailSession:
    """Decode the JWT and return the session it references."""
    try:
        payload = decode_token(credentials.credentials, settings)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if payload.get("type") != "session" or "sid" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    session = store.get(payload["sid"])
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )
    return session
