"""Mail account credentials as held by a server-side session."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, SecretStr


class Encryption(str, Enum):
    SSL = "ssl"
    STARTTLS = "starttls"
    NONE = "none"


class Account(BaseModel):
    """IMAP connection settings for one mail account."""

    host: str = Field(description="IMAP server hostname")
    port: int = Field(default=993, description="IMAP server port")
    encryption: Encryption = Field(default=Encryption.SSL, description="Transport security mode")
    username: str = Field(description="IMAP login username")
    password: SecretStr = Field(description="IMAP login password")
    protocol: str = Field(default="imap", description="Mail access protocol")
    email: str | None = Field(default=None, description="Address used as the From of drafts")

    @property
    def address(self) -> str:
        return self.email or self.username
