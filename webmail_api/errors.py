"""Error taxonomy for mail-server operations.

Every failure raised by the IMAP layer derives from :class:`MailError` so the
HTTP layer can render it as a ``200`` response carrying a failure flag.
"""

from __future__ import annotations


class MailError(Exception):
    """Base class for all mail-server failures."""

    code = "mail_error"


class AuthenticationError(MailError):
    """The mail server rejected the stored credentials."""

    code = "authentication_failed"


class ImapConnectionError(MailError, ConnectionError):
    """Network or TLS failure while talking to the mail server."""

    code = "connection_failed"


class MailboxUnavailable(MailError):
    """A mailbox could not be resolved or created."""

    code = "mailbox_unavailable"


class OperationFailed(MailError):
    """A copy/move/store/expunge/append command returned no usable result."""

    code = "operation_failed"


class NotFound(MailError):
    """Message, MIME part or attachment file name did not match."""

    code = "not_found"


class AutoconfigError(MailError):
    """Mail-server settings could not be detected."""

    code = "autoconfig_failed"
