"""Tests for message listing, retrieval and attachment download endpoints."""

from __future__ import annotations

import base64

import pytest

from tests.conftest import MIXED_BODYSTRUCTURE, make_mail_client, make_session_headers, override_mail_client, parsed
from tests.test_query import _item

THREADING = ["WITHIN", "THREAD=ORDEREDSUBJECT"]


@pytest.mark.asyncio
async def test_list_messages(app, client, account):
    mail_client = make_mail_client(capabilities=THREADING)
    mail_client.uid_thread.return_value = [[1, 4]]
    mail_client.uid_fetch.return_value = {4: _item(4, "Re: Hi")}
    override_mail_client(app, mail_client)
    headers, _ = make_session_headers(app, account)

    resp = await client.post("/api/v1/messages/list", json={"folder": "INBOX"}, headers=headers)

    assert resp.status_code == 200
    (row,) = resp.json()
    assert row["uid"] == 4
    assert row["from"] == "alice@example.com"
    assert row["thread"] == {"uids": "1,4", "count": 2}
    assert row["folder"] == "INBOX"


@pytest.mark.asyncio
async def test_search_messages(app, client, account):
    mail_client = make_mail_client(capabilities=THREADING)
    override_mail_client(app, mail_client)
    headers, _ = make_session_headers(app, account)

    resp = await client.post(
        "/api/v1/messages/search",
        json={"folder": "INBOX.Sent", "term": "invoice"},
        headers=headers,
    )

    assert resp.status_code == 200
    assert resp.json() == []
    mail_client.select.assert_awaited_once_with("INBOX.Sent", readonly=True)
    mail_client.uid_thread.assert_awaited_once_with(["YOUNGER", "604800"], text="invoice")


@pytest.mark.asyncio
async def test_get_message_accepts_uid_string(app, client, account):
    mail_client = make_mail_client()
    mail_client.uid_fetch.side_effect = [
        {7: _item(7, "Report", structure=parsed(MIXED_BODYSTRUCTURE))},
        {7: {b"SEQ": 1, b"BODY[1.2]": b"<p>Hi</p>"}},
    ]
    override_mail_client(app, mail_client)
    headers, _ = make_session_headers(app, account)

    resp = await client.post("/api/v1/messages/get", json={"folder": "INBOX", "uids": "[7]"}, headers=headers)

    assert resp.status_code == 200
    (message,) = resp.json()
    assert message["body"] == "<p>Hi</p>"
    assert message["attachments"] == [
        {"file": "report.pdf", "type": "application/pdf", "size": "2kB", "part_id": "2"},
    ]


@pytest.mark.asyncio
async def test_get_message_requires_uids(app, client, account):
    override_mail_client(app, make_mail_client())
    headers, _ = make_session_headers(app, account)
    resp = await client.post("/api/v1/messages/get", json={"folder": "INBOX", "uids": []}, headers=headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_download_attachment(app, client, account):
    mail_client = make_mail_client()
    mail_client.uid_fetch.return_value = {
        7: {b"SEQ": 1, b"BODYSTRUCTURE": parsed(MIXED_BODYSTRUCTURE), b"BODY[2]": base64.b64encode(b"%PDF-1.4")},
    }
    override_mail_client(app, mail_client)
    headers, _ = make_session_headers(app, account)

    resp = await client.get(
        "/api/v1/messages/attachment",
        params={"mailbox": "INBOX", "uid": 7, "part_id": "2", "file_name": "report.pdf"},
        headers=headers,
    )

    assert resp.status_code == 200
    assert resp.content == b"%PDF-1.4"
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.headers["content-disposition"] == 'attachment; filename="report.pdf"'


@pytest.mark.asyncio
async def test_download_attachment_name_mismatch(app, client, account):
    mail_client = make_mail_client()
    mail_client.uid_fetch.return_value = {
        7: {b"SEQ": 1, b"BODYSTRUCTURE": parsed(MIXED_BODYSTRUCTURE), b"BODY[2]": b""},
    }
    override_mail_client(app, mail_client)
    headers, _ = make_session_headers(app, account)

    resp = await client.get(
        "/api/v1/messages/attachment",
        params={"mailbox": "INBOX", "uid": 7, "part_id": "2", "file_name": "../../etc/passwd"},
        headers=headers,
    )

    assert resp.status_code == 200
    assert resp.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_download_attachment_rejects_bad_part_id(app, client, account):
    override_mail_client(app, make_mail_client())
    headers, _ = make_session_headers(app, account)
    resp = await client.get(
        "/api/v1/messages/attachment",
        params={"mailbox": "INBOX", "uid": 7, "part_id": "2]", "file_name": "a"},
        headers=headers,
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_requires_token(app, client):
    override_mail_client(app, make_mail_client())
    resp = await client.post("/api/v1/messages/list", json={"folder": "INBOX"})
    assert resp.status_code in (401, 403)
