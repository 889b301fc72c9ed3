"""Backend configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetryConfig(BaseSettings):
    """Backoff settings for transient IMAP connection failures."""

    model_config = SettingsConfigDict(env_prefix="WEBMAIL_RETRY_")

    max_attempts: int = Field(default=3, description="Maximum connection attempts per request")
    initial_wait_seconds: float = Field(
        default=0.5,
        description="Initial backoff wait in seconds",
    )
    max_wait_seconds: float = Field(
        default=4.0,
        description="Maximum backoff wait in seconds",
    )
    multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")


class Settings(BaseSettings):
    """Top-level settings for the webmail backend.

    All env vars are prefixed with ``WEBMAIL_``.
    Example: ``WEBMAIL_JWT_SECRET=mysecret``
    """

    model_config = SettingsConfigDict(env_prefix="WEBMAIL_")

    # --- JWT / sessions -----------------------------------------------------
    jwt_secret: str = Field(
        description="Secret key used to sign session tokens",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm",
    )
    session_ttl_minutes: int = Field(
        default=120,
        description="Idle lifetime of a mail session (and its token) in minutes",
    )

    # --- IMAP ---------------------------------------------------------------
    imap_timeout_seconds: float = Field(
        default=30.0,
        description="Socket timeout for every IMAP round trip",
    )
    message_window_seconds: int = Field(
        default=604800,
        description="Only messages younger than this are listed or searched",
    )
    starred_fallback_folder: str = Field(
        default="INBOX.Starred",
        description="Folder tried when the requested starred folder cannot be resolved",
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)

    # --- Uploads ------------------------------------------------------------
    upload_dir: str = Field(
        default="storage/uploads",
        description="Directory holding files uploaded for later attachment to drafts",
    )
    max_upload_bytes: int = Field(
        default=25 * 1024 * 1024,
        description="Largest accepted upload",
    )

    # --- Autoconfig ---------------------------------------------------------
    autoconfig_url: str = Field(
        default="https://autoconfig.thunderbird.net/v1.1",
        description="Base URL of the public mail-provider autoconfig directory",
    )
    autoconfig_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for autoconfig lookups",
    )
    dig_binary: str = Field(default="dig", description="Executable used for MX lookups")

    # --- Server -------------------------------------------------------------
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(
        default=True,
        description="Use JSON log output (True for prod, False for dev)",
    )
