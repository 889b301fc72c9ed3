"""Message listing, search, retrieval and attachment download."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response

from webmail_api.deps import get_attachment_resolver, get_query_engine
from webmail_api.mail.attachments import AttachmentResolver
from webmail_api.mail.query import MessageQueryEngine
from webmail_api.schemas.message import (
    GetMessageRequest,
    ListMessagesRequest,
    MessageDetail,
    MessageSummary,
    SearchMessagesRequest,
)

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


def _content_disposition(file_name: str) -> str:
    fallback = file_name.encode("ascii", "replace").decode().replace("\\", "_").replace('"', "_")
    header = f'attachment; filename="{fallback}"'
    if fallback != file_name:
        header += f"; filename*=UTF-8''{quote(file_name)}"
    return header


@router.post("/list", response_model=list[MessageSummary], response_model_by_alias=True)
async def list_messages(
    body: ListMessagesRequest,
    engine: Annotated[MessageQueryEngine, Depends(get_query_engine)],
):
    """Threads received within the listing window, newest first."""
    return await engine.list(body.folder)


@router.post("/search", response_model=list[MessageSummary], response_model_by_alias=True)
async def search_messages(
    body: SearchMessagesRequest,
    engine: Annotated[MessageQueryEngine, Depends(get_query_engine)],
):
    return await engine.search(body.folder, body.term)


@router.post("/get", response_model=list[MessageDetail], response_model_by_alias=True)
async def get_messages(
    body: GetMessageRequest,
    engine: Annotated[MessageQueryEngine, Depends(get_query_engine)],
):
    """Full messages with body and attachment list; marks them as seen."""
    return await engine.get_message(body.folder, body.uids)


@router.get("/attachment")
async def download_attachment(
    resolver: Annotated[AttachmentResolver, Depends(get_attachment_resolver)],
    mailbox: str = Query(),
    uid: int = Query(ge=1),
    part_id: str = Query(pattern=r"^\d+(\.\d+)*$"),
    file_name: str = Query(min_length=1),
):
    """Stream one attachment; the part must carry exactly *file_name*."""
    attachment = await resolver.get_attachment(mailbox, uid, part_id, file_name)
    return Response(
        content=attachment.data,
        media_type=attachment.content_type,
        headers={
            "Content-Disposition": _content_disposition(attachment.file_name),
        },
    )
