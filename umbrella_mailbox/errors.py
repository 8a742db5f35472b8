"""Exception hierarchy for the mailbox ingestion core."""

from __future__ import annotations


class MailboxError(Exception):
    """Base class for every error raised by ``umbrella_mailbox``."""


class SourceError(MailboxError):
    """The message source could not deliver bytes (unreachable, I/O failure).

    Raised by source collaborators; never retried by the engine.
    """


class MessageFormatError(MailboxError):
    """A record is unusable: missing/empty message-id or date, an
    unparsable date, or a text part whose payload cannot be decoded.
    """
