"""Mail-server settings autodetection."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends

from webmail_api.deps import get_autoconfig
from webmail_api.errors import AutoconfigError
from webmail_api.mail.autoconfig import NOT_FOUND_MSG, AutoconfigClient
from webmail_api.schemas.wizard import WizardRequest, WizardResponse

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/wizard", tags=["wizard"])


@router.post("", response_model=WizardResponse)
async def detect_settings(
    body: WizardRequest,
    autoconfig: Annotated[AutoconfigClient, Depends(get_autoconfig)],
):
    """Guess IMAP/SMTP settings for an address. No login required."""
    try:
        return await autoconfig.detect(body.email)
    except AutoconfigError as exc:
        logger.warning("autoconfig_failed", email_domain=body.email.rpartition("@")[2], error=str(exc))
        return WizardResponse(status=0, msg=NOT_FOUND_MSG)
