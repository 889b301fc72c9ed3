"""JWT session token creation and validation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt

from webmail_api.config import Settings


def create_session_token(session_id: str, settings: Settings) -> str:
    """Create a signed JWT referencing a server-side mail session."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.session_ttl_minutes,
    )
    payload = {
        "sid": session_id,
        "exp": expire,
        "type": "session",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token. Raises ``JWTError`` on failure."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
