"""Tests for webmail_api.mail.mutator."""

from __future__ import annotations

from unittest.mock import ANY, MagicMock, patch

import pytest
from imapclient import DELETED, DRAFT, SEEN

from tests.conftest import make_mail_client
from webmail_api.errors import OperationFailed
from webmail_api.imap.client import ImapClient
from webmail_api.mail.compose import Draft
from webmail_api.mail.directory import MailboxDirectory
from webmail_api.mail.mutator import ALREADY_STARRED, UNABLE_TO_CREATE_STARRED, MessageMutator
from webmail_api.schemas.actions import ActionResult, DraftSaved


def _mutator(client) -> MessageMutator:
    return MessageMutator(client, MailboxDirectory(client), starred_fallback="INBOX.Starred")


def _ok(status=True) -> ActionResult:
    return ActionResult(result=1, status=status)


FAILED = ActionResult(result=0, status=False)


class TestMoveCopy:
    @pytest.mark.asyncio
    async def test_move(self):
        client = make_mail_client()
        assert await _mutator(client).move("inbox", "trash", [1, 2]) == _ok()
        client.select.assert_awaited_once_with("INBOX")
        client.uid_move.assert_awaited_once_with([1, 2], "INBOX.Trash")

    @pytest.mark.asyncio
    async def test_move_rejected_by_server(self):
        client = make_mail_client()
        client.uid_move.return_value = False
        assert await _mutator(client).move("inbox", "trash", [1]) == _ok(False)

    @pytest.mark.asyncio
    async def test_move_error_reported_not_raised(self):
        client = make_mail_client()
        client.uid_move.side_effect = OperationFailed("MOVE failed")
        assert await _mutator(client).move("inbox", "trash", [1]) == _ok(False)

    @pytest.mark.asyncio
    async def test_move_to_unavailable_folder(self):
        client = make_mail_client(refuse_create={"Nowhere"})
        assert await _mutator(client).move("inbox", "Nowhere", [1]) == FAILED
        client.uid_move.assert_not_called()

    @pytest.mark.asyncio
    async def test_copy(self):
        client = make_mail_client()
        assert await _mutator(client).copy("inbox", "spam", [3]) == _ok()
        client.select.assert_awaited_once_with("INBOX", readonly=True)
        client.uid_copy.assert_awaited_once_with([3], "INBOX.Spam")


class TestTrash:
    @pytest.mark.asyncio
    async def test_moves_into_trash(self):
        client = make_mail_client()
        assert await _mutator(client).trash([5], "INBOX", "Trash") == _ok()
        client.uid_move.assert_awaited_once_with([5], "INBOX.Trash")
        client.add_flags.assert_not_called()

    @pytest.mark.asyncio
    async def test_deletes_when_already_in_trash(self):
        client = make_mail_client()
        result = await _mutator(client).trash([5], "INBOX.Trash", "Trash")
        assert result == _ok()
        client.select.assert_awaited_once_with("INBOX.Trash")
        client.add_flags.assert_awaited_once_with([5], [DELETED])
        client.uid_expunge.assert_awaited_once_with([5])
        client.uid_move.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_expunged(self):
        client = make_mail_client()
        client.uid_expunge.return_value = []
        assert await _mutator(client).trash([5], "INBOX.Trash", "Trash") == FAILED

    @pytest.mark.asyncio
    async def test_untrash(self):
        client = make_mail_client()
        assert await _mutator(client).untrash([5], "Trash", "INBOX") == _ok()
        client.select.assert_awaited_once_with("INBOX.Trash")
        client.uid_move.assert_awaited_once_with([5], "INBOX")


class TestSpam:
    @pytest.mark.asyncio
    async def test_moves_into_spam(self):
        client = make_mail_client()
        assert await _mutator(client).spam([9], "INBOX", "Spam") == _ok()
        client.uid_move.assert_awaited_once_with([9], "INBOX.Spam")

    @pytest.mark.asyncio
    async def test_already_in_spam_is_noop(self):
        client = make_mail_client()
        assert await _mutator(client).spam([9], "INBOX.Spam", "Spam") == FAILED
        client.uid_move.assert_not_called()

    @pytest.mark.asyncio
    async def test_unspam(self):
        client = make_mail_client()
        assert await _mutator(client).unspam([9], "Spam", "INBOX") == _ok()
        client.uid_move.assert_awaited_once_with([9], "INBOX")


class TestStar:
    @pytest.mark.asyncio
    async def test_star_moves_to_starred(self):
        client = make_mail_client()
        assert await _mutator(client).star([4], "INBOX", "Starred", 1) == _ok()
        client.uid_move.assert_awaited_once_with([4], "INBOX.Starred")

    @pytest.mark.asyncio
    async def test_already_starred(self):
        client = make_mail_client()
        result = await _mutator(client).star([4], "INBOX.Starred", "Starred", 1)
        assert result == ActionResult(result=0, status=ALREADY_STARRED)
        client.uid_move.assert_not_called()

    @pytest.mark.asyncio
    async def test_unstar_returns_to_inbox(self):
        client = make_mail_client()
        assert await _mutator(client).star([4], "INBOX.Starred", "Starred", 0) == _ok()
        client.select.assert_awaited_once_with("INBOX.Starred")
        client.uid_move.assert_awaited_once_with([4], "INBOX")

    @pytest.mark.asyncio
    async def test_unstar_outside_starred_is_noop(self):
        client = make_mail_client()
        assert await _mutator(client).star([4], "INBOX", "Starred", 0) == _ok()
        client.uid_move.assert_not_called()

    @pytest.mark.asyncio
    async def test_fallback_folder_used(self):
        client = make_mail_client(["INBOX", "INBOX.Trash"], refuse_create={"Starred"})
        assert await _mutator(client).star([4], "INBOX", "Starred", 1) == _ok()
        client.create_mailbox.assert_any_await("INBOX.Starred")
        client.uid_move.assert_awaited_once_with([4], "INBOX.Starred")

    @pytest.mark.asyncio
    async def test_no_starred_folder_possible(self):
        client = make_mail_client(["INBOX"], refuse_create={"Starred", "INBOX.Starred"})
        result = await _mutator(client).star([4], "INBOX", "Starred", 1)
        assert result == ActionResult(result=0, status=UNABLE_TO_CREATE_STARRED)
        client.uid_move.assert_not_called()


class TestSaveDraft:
    @pytest.mark.asyncio
    async def test_replaces_previous_copy(self):
        client = make_mail_client()
        draft = Draft(sender="me@example.com", to="a@example.org", subject="Hello", html_body="<p>x</p>")

        result = await _mutator(client).save_draft(draft, previous_uid=12, draft_folder="INBOX.Drafts")

        assert result == DraftSaved(success=True, draft=42)
        client.add_flags.assert_awaited_once_with([12], [DELETED])
        client.uid_expunge.assert_awaited_once_with([12])
        client.append.assert_awaited_once_with("INBOX.Drafts", ANY, flags=[DRAFT, SEEN])
        assert b"Subject: Hello" in client.append.await_args.args[1]
        calls = [name for name, _, _ in client.mock_calls]
        assert calls.index("uid_expunge") < calls.index("append")

    @pytest.mark.asyncio
    async def test_first_save_uses_drafts_role(self):
        client = make_mail_client()
        result = await _mutator(client).save_draft(Draft(sender="me@example.com"))
        assert result == DraftSaved(success=True, draft=42)
        client.add_flags.assert_not_called()
        client.append.assert_awaited_once_with("INBOX.Drafts", ANY, flags=[DRAFT, SEEN])

    @pytest.mark.asyncio
    async def test_drafts_folder_created_when_missing(self):
        client = make_mail_client(["INBOX"])
        await _mutator(client).save_draft(Draft(sender="me@example.com"))
        client.create_mailbox.assert_awaited_once_with("Drafts")
        client.append.assert_awaited_once_with("Drafts", ANY, flags=[DRAFT, SEEN])

    @pytest.mark.asyncio
    async def test_uid_found_by_message_id_without_appenduid(self):
        client = make_mail_client()
        client.append.return_value = None
        client.uid_search.return_value = [50, 51]
        result = await _mutator(client).save_draft(Draft(sender="me@example.com"), draft_folder="INBOX.Drafts")
        assert result == DraftSaved(success=True, draft=51)
        criteria = client.uid_search.await_args.args[0]
        assert criteria[:2] == ["HEADER", "Message-ID"]

    @pytest.mark.asyncio
    async def test_append_failure(self):
        client = make_mail_client()
        client.append.side_effect = OperationFailed("APPEND failed")
        result = await _mutator(client).save_draft(Draft(sender="me@example.com"), draft_folder="INBOX.Drafts")
        assert result == DraftSaved(success=False, draft=None)


class TestDeleteWithoutUidplus:
    """Permanent deletes through a real client on a server with plain EXPUNGE only."""

    @staticmethod
    def _connection(search_results) -> MagicMock:
        conn = MagicMock()
        conn.capabilities.return_value = (b"IMAP4REV1", b"MOVE")
        conn.list_folders.return_value = [
            ((b"\\HasNoChildren",), b".", "INBOX"),
            ((b"\\HasNoChildren",), b".", "INBOX.Drafts"),
            ((b"\\HasNoChildren",), b".", "INBOX.Trash"),
        ]
        conn.search.side_effect = search_results
        conn.append.return_value = b"[APPENDUID 1 43] APPEND completed"
        return conn

    @staticmethod
    async def _client(account, conn) -> ImapClient:
        client = ImapClient(account)
        with patch("webmail_api.imap.client.IMAPClient", return_value=conn):
            await client.connect()
        conn.reset_mock()
        return client

    @staticmethod
    def _flag_calls(conn) -> list[tuple]:
        return [
            (name, args)
            for name, args, _kwargs in conn.method_calls
            if name in ("add_flags", "remove_flags", "expunge", "uid_expunge")
        ]

    @pytest.mark.asyncio
    async def test_trash_delete_keeps_other_deleted_messages(self, account):
        # Messages 3 and 7 were flagged \Deleted by another client.
        conn = self._connection([[3, 7], []])
        client = await self._client(account, conn)

        assert await _mutator(client).trash([5], "trash", "trash") == _ok()

        conn.select_folder.assert_called_once_with("INBOX.Trash", readonly=False)
        conn.search.assert_any_call(["DELETED", "NOT", "UID", "5"])
        assert self._flag_calls(conn) == [
            ("add_flags", ([5], [DELETED])),
            ("remove_flags", ([3, 7], [DELETED])),
            ("expunge", ()),
            ("add_flags", ([3, 7], [DELETED])),
        ]

    @pytest.mark.asyncio
    async def test_draft_replace_keeps_other_deleted_messages(self, account):
        conn = self._connection([[9], []])
        client = await self._client(account, conn)

        result = await _mutator(client).save_draft(
            Draft(sender="me@example.com", subject="Hello"),
            previous_uid=12,
            draft_folder="INBOX.Drafts",
        )

        assert result == DraftSaved(success=True, draft=43)
        conn.search.assert_any_call(["DELETED", "NOT", "UID", "12"])
        assert self._flag_calls(conn) == [
            ("add_flags", ([12], [DELETED])),
            ("remove_flags", ([9], [DELETED])),
            ("expunge", ()),
            ("add_flags", ([9], [DELETED])),
        ]
        conn.append.assert_called_once_with("INBOX.Drafts", ANY, flags=[DRAFT, SEEN])
