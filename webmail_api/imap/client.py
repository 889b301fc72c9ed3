"""Async IMAP client wrapping IMAPClient with asyncio.to_thread."""

from __future__ import annotations

import asyncio
import re
import ssl
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog
from imapclient import DELETED, IMAPClient
from imapclient.exceptions import IMAPClientAbortError, IMAPClientError

from ..config import RetryConfig
from ..errors import AuthenticationError, ImapConnectionError, MailboxUnavailable, OperationFailed
from ..retry import with_retry
from .account import Account, Encryption
from .structure import as_text

logger = structlog.get_logger()

T = TypeVar("T")

_APPENDUID = re.compile(rb"\[APPENDUID \d+ (\d+)\]", re.IGNORECASE)


@dataclass
class ListEntry:
    """One LIST response line, mailbox name already decoded from modified UTF-7."""

    name: str
    delimiter: str | None
    flags: list[str] = field(default_factory=list)


def uid_set(uids: Iterable[int]) -> str:
    return ",".join(str(uid) for uid in uids)


def _flatten(node: Any) -> Iterable[int]:
    if isinstance(node, int):
        yield node
        return
    for child in node:
        yield from _flatten(child)


class ImapClient:
    """Async-friendly IMAP client bound to one account.

    All blocking ``IMAPClient`` operations are wrapped with
    ``asyncio.to_thread()`` to avoid blocking the event loop.  One instance
    serves a single HTTP request and is not shared.  Every message id is a
    UID.
    """

    def __init__(
        self,
        account: Account,
        *,
        timeout: float = 30.0,
        retry: RetryConfig | None = None,
    ) -> None:
        self._account = account
        self._timeout = timeout
        self._retry = retry or RetryConfig()
        self._conn: IMAPClient | None = None
        self._capabilities: frozenset[str] = frozenset()
        self._selected: tuple[str, bool] | None = None

    @property
    def account(self) -> Account:
        return self._account

    def has_capability(self, name: str) -> bool:
        return name.upper() in self._capabilities

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the transport and log in, retrying transient network failures."""
        connect = with_retry(self._retry, retryable_exceptions=(ImapConnectionError,))(self._connect_sync)
        await asyncio.to_thread(connect)
        logger.info(
            "imap_connected",
            host=self._account.host,
            username=self._account.username,
        )

    def _open_sync(self) -> IMAPClient:
        account = self._account
        if account.encryption is Encryption.SSL:
            return IMAPClient(
                account.host,
                port=account.port,
                ssl=True,
                ssl_context=ssl.create_default_context(),
                timeout=self._timeout,
            )
        conn = IMAPClient(account.host, port=account.port, ssl=False, timeout=self._timeout)
        if account.encryption is Encryption.STARTTLS:
            conn.starttls(ssl.create_default_context())
        return conn

    def _connect_sync(self) -> None:
        try:
            conn = self._open_sync()
        except (OSError, IMAPClientAbortError) as exc:
            logger.warning("imap_connect_failed", host=self._account.host, error=str(exc))
            raise ImapConnectionError(f"cannot reach {self._account.host}: {exc}") from exc
        except IMAPClientError as exc:
            raise ImapConnectionError(f"handshake with {self._account.host} failed: {exc}") from exc

        try:
            conn.login(self._account.username, self._account.password.get_secret_value())
            capabilities = conn.capabilities()
        except (OSError, IMAPClientAbortError) as exc:
            raise ImapConnectionError(f"connection lost during login: {exc}") from exc
        except IMAPClientError as exc:
            logger.warning("imap_login_rejected", host=self._account.host, username=self._account.username)
            raise AuthenticationError("invalid mail account credentials") from exc

        # Keep INTERNALDATE and ENVELOPE dates timezone-aware.
        conn.normalise_times = False
        self._conn = conn
        self._capabilities = frozenset(as_text(c).upper() for c in capabilities)

    async def disconnect(self) -> None:
        """Logout, ignoring errors from an already broken connection."""
        if self._conn is not None:
            await asyncio.to_thread(self._disconnect_sync)
            self._conn = None
            self._selected = None
            logger.info("imap_disconnected")

    def _disconnect_sync(self) -> None:
        assert self._conn is not None
        try:
            self._conn.logout()
        except (IMAPClientError, OSError) as exc:
            logger.debug("imap_logout_failed", error=str(exc))

    async def __aenter__(self) -> ImapClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        assert self._conn is not None, "Not connected"
        try:
            return await asyncio.to_thread(fn, *args)
        except (IMAPClientAbortError, OSError) as exc:
            self._selected = None
            raise ImapConnectionError(str(exc)) from exc
        except IMAPClientError as exc:
            # Includes imapclient's ProtocolError for unparseable responses.
            raise OperationFailed(str(exc)) from exc

    # ------------------------------------------------------------------
    # Mailboxes
    # ------------------------------------------------------------------

    async def list_mailboxes(self) -> list[ListEntry]:
        return await self._run(self._list_sync)

    def _list_sync(self) -> list[ListEntry]:
        assert self._conn is not None
        return [
            ListEntry(
                name=as_text(name),
                delimiter=as_text(delimiter) or None,
                flags=[as_text(flag) for flag in flags],
            )
            for flags, delimiter, name in self._conn.list_folders()
        ]

    async def create_mailbox(self, name: str) -> None:
        await self._run(self._create_sync, name)
        logger.info("mailbox_created", mailbox=name)

    def _create_sync(self, name: str) -> None:
        assert self._conn is not None
        self._conn.create_folder(name)

    async def select(self, mailbox: str, *, readonly: bool = False) -> None:
        """SELECT (or EXAMINE) *mailbox* unless it is already selected that way."""
        if self._selected == (mailbox, readonly):
            return
        await self._run(self._select_sync, mailbox, readonly)

    def _select_sync(self, mailbox: str, readonly: bool) -> None:
        assert self._conn is not None
        try:
            self._conn.select_folder(mailbox, readonly=readonly)
        except IMAPClientAbortError:
            raise
        except IMAPClientError as exc:
            self._selected = None
            raise MailboxUnavailable(f"cannot select {mailbox}: {exc}") from exc
        self._selected = (mailbox, readonly)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def _criteria(criteria: Sequence[Any], text: str | None) -> list[Any]:
        return [*criteria, "TEXT", text] if text else list(criteria)

    async def uid_search(self, criteria: Sequence[Any], *, text: str | None = None) -> list[int]:
        return await self._run(self._search_sync, criteria, text)

    def _search_sync(self, criteria: Sequence[Any], text: str | None) -> list[int]:
        assert self._conn is not None
        # Non-ASCII terms are sent as a literal under CHARSET UTF-8.
        charset = "UTF-8" if text and not text.isascii() else None
        return sorted(self._conn.search(self._criteria(criteria, text), charset=charset))

    async def uid_thread(
        self,
        criteria: Sequence[Any],
        *,
        text: str | None = None,
        algorithm: str = "ORDEREDSUBJECT",
    ) -> list[list[int]]:
        return await self._run(self._thread_sync, algorithm, criteria, text)

    def _thread_sync(self, algorithm: str, criteria: Sequence[Any], text: str | None) -> list[list[int]]:
        assert self._conn is not None
        threads = self._conn.thread(algorithm, self._criteria(criteria, text), charset="UTF-8")
        return [sorted(_flatten(thread)) for thread in threads]

    async def uid_fetch(self, uids: Iterable[int], items: Sequence[str]) -> dict[int, dict[bytes, Any]]:
        """FETCH *items* for *uids*; response keys are IMAPClient's bytes keys."""
        uids = list(uids)
        if not uids:
            return {}
        return await self._run(self._fetch_sync, uids, list(items))

    def _fetch_sync(self, uids: list[int], items: list[str]) -> dict[int, dict[bytes, Any]]:
        assert self._conn is not None
        try:
            return dict(self._conn.fetch(uids, items))
        except (IndexError, TypeError, ValueError) as exc:
            # IMAPClient fails the whole FETCH on one malformed ENVELOPE or BODYSTRUCTURE.
            if len(uids) == 1:
                logger.warning("message_unparseable", uid=uids[0], error=str(exc))
                return {}
            logger.warning("fetch_response_unparseable", count=len(uids), error=str(exc))
        fetched: dict[int, dict[bytes, Any]] = {}
        for uid in uids:
            fetched.update(self._fetch_sync([uid], items))
        return fetched

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def uid_copy(self, uids: Iterable[int], destination: str) -> bool:
        return await self._run(self._copy_sync, list(uids), destination)

    def _copy_sync(self, uids: list[int], destination: str) -> bool:
        assert self._conn is not None
        self._conn.copy(uids, destination)
        return True

    async def uid_move(self, uids: Iterable[int], destination: str) -> bool:
        """Move via ``UID MOVE``, or COPY + ``\\Deleted`` + scoped expunge without it."""
        return await self._run(self._move_sync, list(uids), destination)

    def _move_sync(self, uids: list[int], destination: str) -> bool:
        assert self._conn is not None
        if self.has_capability("MOVE"):
            self._conn.move(uids, destination)
            return True
        self._copy_sync(uids, destination)
        self._conn.add_flags(uids, [DELETED], silent=True)
        self._expunge_sync(uids)
        return True

    async def add_flags(self, uids: Iterable[int], flags: Sequence[bytes | str]) -> None:
        await self._run(self._add_flags_sync, list(uids), list(flags))

    def _add_flags_sync(self, uids: list[int], flags: list[bytes | str]) -> None:
        assert self._conn is not None
        self._conn.add_flags(uids, flags, silent=True)

    async def uid_expunge(self, uids: Iterable[int]) -> list[int]:
        """Expunge ``\\Deleted`` messages among *uids* and no others.

        Returns the uids that are gone from the selected mailbox afterwards.
        """
        return await self._run(self._expunge_sync, list(uids))

    def _expunge_sync(self, uids: list[int]) -> list[int]:
        assert self._conn is not None
        if self.has_capability("UIDPLUS"):
            self._conn.uid_expunge(uids)
        else:
            self._scoped_expunge_sync(uids)
        remaining = set(self._conn.search(["UID", uid_set(uids)]))
        return [uid for uid in uids if uid not in remaining]

    def _scoped_expunge_sync(self, uids: list[int]) -> None:
        """Plain EXPUNGE with every other ``\\Deleted`` message shielded."""
        assert self._conn is not None
        others = self._conn.search(["DELETED", "NOT", "UID", uid_set(uids)])
        if others:
            self._conn.remove_flags(others, [DELETED], silent=True)
            logger.debug("expunge_shielded", count=len(others))
        try:
            self._conn.expunge()
        finally:
            if others:
                self._conn.add_flags(others, [DELETED], silent=True)

    async def append(self, mailbox: str, message: bytes, *, flags: Sequence[bytes | str] = ()) -> int | None:
        """APPEND *message*; returns the new uid when the server reports APPENDUID."""
        return await self._run(self._append_sync, mailbox, message, list(flags))

    def _append_sync(self, mailbox: str, message: bytes, flags: list[bytes | str]) -> int | None:
        assert self._conn is not None
        result = self._conn.append(mailbox, message, flags=flags)
        match = _APPENDUID.search(result if isinstance(result, bytes) else as_text(result).encode())
        return int(match.group(1)) if match else None
