"""Webmail API: an HTTP backend proxying IMAP mailbox operations.

Public API re-exported here for convenience::

    from webmail_api import ImapClient, MailboxDirectory, MessageQueryEngine
"""

from .config import RetryConfig, Settings
from .errors import (
    AuthenticationError,
    AutoconfigError,
    ImapConnectionError,
    MailboxUnavailable,
    MailError,
    NotFound,
    OperationFailed,
)
from .imap.account import Account, Encryption
from .imap.client import ImapClient
from .logging import setup_logging
from .mail.attachments import AttachmentResolver, human_file_size
from .mail.directory import Mailbox, MailboxDirectory, Role
from .mail.mutator import MessageMutator
from .mail.query import MessageQueryEngine
from .retry import with_retry

__all__ = [
    "Account",
    "AttachmentResolver",
    "AuthenticationError",
    "AutoconfigError",
    "Encryption",
    "ImapClient",
    "ImapConnectionError",
    "MailError",
    "Mailbox",
    "MailboxDirectory",
    "MailboxUnavailable",
    "MessageMutator",
    "MessageQueryEngine",
    "NotFound",
    "OperationFailed",
    "RetryConfig",
    "Role",
    "Settings",
    "human_file_size",
    "setup_logging",
    "with_retry",
]
