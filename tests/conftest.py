"""Shared test fixtures for the webmail backend."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from imapclient.response_parser import parse_response
from imapclient.response_types import BodyData

from webmail_api.app import create_app
from webmail_api.auth.guard import get_current_session
from webmail_api.auth.jwt import create_session_token
from webmail_api.auth.session import MailSession
from webmail_api.config import RetryConfig, Settings
from webmail_api.deps import get_mail_client
from webmail_api.errors import OperationFailed
from webmail_api.imap.account import Account
from webmail_api.imap.client import ImapClient, ListEntry

DEFAULT_MAILBOXES = ("INBOX", "INBOX.Drafts", "INBOX.Trash", "INBOX.Spam", "INBOX.Starred")

# multipart/mixed: (alternative: 1.1 text/plain, 1.2 text/html), 2 application/pdf attachment
MIXED_BODYSTRUCTURE = (
    b'((("text" "plain" ("charset" "utf-8") NIL NIL "7bit" 2 1 NIL NIL NIL)'
    b'("text" "html" ("charset" "utf-8") NIL NIL "7bit" 9 1 NIL NIL NIL)'
    b' "alternative" ("boundary" "b2") NIL NIL)'
    b'("application" "pdf" ("name" "report.pdf") NIL NIL "base64" 2048 NIL'
    b' ("attachment" ("filename" "report.pdf")) NIL NIL)'
    b' "mixed" ("boundary" "b1") NIL NIL)'
)


def _test_settings(**overrides) -> Settings:
    """Create Settings with test defaults."""
    defaults = {
        "jwt_secret": "test-secret",
        "log_json": False,
        "retry": RetryConfig(max_attempts=2, initial_wait_seconds=0.01, max_wait_seconds=0.02),
    }
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def settings(tmp_path):
    return _test_settings(upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def account() -> Account:
    return Account(
        host="imap.test.com",
        port=993,
        username="testuser",
        password="testpass",
        email="testuser@test.com",
    )


@pytest.fixture
async def app(settings):
    application = create_app(settings)
    return application


@pytest.fixture
async def client(app):
    """Async HTTP test client. Lifespan is not started; use dependency_overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def parsed(raw: bytes) -> BodyData:
    """Build the BODYSTRUCTURE value IMAPClient delivers for *raw*."""
    return BodyData.create(parse_response([raw])[0])


def make_mail_client(
    mailboxes=DEFAULT_MAILBOXES,
    *,
    capabilities=(),
    refuse_create=(),
) -> MagicMock:
    """Build an ``ImapClient`` mock whose folder list grows on CREATE."""
    folders = list(mailboxes)
    caps = {c.upper() for c in capabilities}
    mock = MagicMock(spec=ImapClient)

    def _list():
        return [ListEntry(name=name, delimiter=".", flags=[]) for name in folders]

    def _create(name):
        if name in refuse_create:
            raise OperationFailed(f"CREATE {name} failed")
        folders.append(name)

    mock.list_mailboxes.side_effect = _list
    mock.create_mailbox.side_effect = _create
    mock.has_capability.side_effect = lambda name: name.upper() in caps
    mock.uid_move.return_value = True
    mock.uid_copy.return_value = True
    mock.uid_expunge.return_value = [1]
    mock.append.return_value = 42
    mock.uid_fetch.return_value = {}
    mock.uid_search.return_value = []
    mock.uid_thread.return_value = []
    return mock


@pytest.fixture
def mail_client() -> MagicMock:
    return make_mail_client()


def override_mail_client(app, mail_client):
    """Serve *mail_client* to every route; bearer auth is still enforced."""

    async def _get_client(session: MailSession = Depends(get_current_session)):
        yield mail_client

    app.dependency_overrides[get_mail_client] = _get_client
    return app


def make_session_headers(app, account: Account) -> tuple[dict, MailSession]:
    session = app.state.sessions.create(account)
    token = create_session_token(session.session_id, app.state.settings)
    return {"Authorization": f"Bearer {token}"}, session
