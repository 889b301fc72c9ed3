"""Message mutation endpoints.

Every endpoint answers 200 with ``{"result": ..., "status": ...}``; callers
inspect those fields for business-level failure.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from webmail_api.deps import get_mutator
from webmail_api.mail.mutator import MessageMutator
from webmail_api.schemas.actions import ActionResult, MoveRequest, SpamRequest, StarRequest, TrashRequest

router = APIRouter(prefix="/api/v1/actions", tags=["actions"])

Mutator = Annotated[MessageMutator, Depends(get_mutator)]


@router.post("/move", response_model=ActionResult)
async def move(body: MoveRequest, mutator: Mutator):
    return await mutator.move(body.source, body.destination, body.uids)


@router.post("/copy", response_model=ActionResult)
async def copy(body: MoveRequest, mutator: Mutator):
    return await mutator.copy(body.source, body.destination, body.uids)


@router.post("/trash", response_model=ActionResult)
async def trash(body: TrashRequest, mutator: Mutator):
    """Move to trash; messages already in trash are deleted permanently."""
    return await mutator.trash(body.uids, body.current_folder, body.trash_folder)


@router.post("/untrash", response_model=ActionResult)
async def untrash(body: TrashRequest, mutator: Mutator):
    return await mutator.untrash(body.uids, body.trash_folder, body.current_folder)


@router.post("/spam", response_model=ActionResult)
async def spam(body: SpamRequest, mutator: Mutator):
    return await mutator.spam(body.uids, body.current_folder, body.spam_folder)


@router.post("/unspam", response_model=ActionResult)
async def unspam(body: SpamRequest, mutator: Mutator):
    return await mutator.unspam(body.uids, body.spam_folder, body.current_folder)


@router.post("/star", response_model=ActionResult)
async def star(body: StarRequest, mutator: Mutator):
    return await mutator.star(body.uids, body.current_folder, body.starred_folder, body.state)
