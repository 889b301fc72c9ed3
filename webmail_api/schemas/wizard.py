"""Schemas for mail-server settings autodetection."""

from __future__ import annotations

from pydantic import BaseModel


class WizardRequest(BaseModel):
    email: str


class ServerSettings(BaseModel):
    host: str
    port: int
    encryption: str


class WizardResponse(BaseModel):
    status: int
    msg: str
    imap: ServerSettings | None = None
    smtp: ServerSettings | None = None
