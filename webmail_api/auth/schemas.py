"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from pydantic import BaseModel, SecretStr

from webmail_api.imap.account import Encryption


class LoginRequest(BaseModel):
    host: str
    port: int = 993
    encryption: Encryption = Encryption.SSL
    username: str
    password: SecretStr
    protocol: str = "imap"
    email: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AccountProfile(BaseModel):
    """Returned by GET /auth/me."""

    username: str
    email: str
    host: str
    port: int
    encryption: Encryption
