"""Umbrella Mailbox — mbox record parsing and body chunking.

Public API re-exported here for convenience::

    from umbrella_mailbox import Message, MboxSource, BodyChunker
"""

from .address import Address
from .chunker import BodyChunker, ChunkState, SnippetBuilder, next_state
from .chunks import (
    AttachmentChunk,
    AttachmentViewer,
    BlockQuoteChunk,
    Chunk,
    QuoteChunk,
    SignatureChunk,
    TextChunk,
)
from .config import MailboxConfig
from .errors import MailboxError, MessageFormatError, SourceError
from .headers import (
    MessageIdentity,
    normalize_header,
    normalize_subj,
    parse_date,
    reify_subj,
    subj_is_reply,
)
from .logging import configure_logging, message_context, setup_logging
from .mbox import RawHeaderMap, read_body, read_header
from .message import Message, MessageIndex
from .source import MboxSource, MessageSource
from .walker import MimeWalker, PartKind, classify_part

__all__ = [
    "Address",
    "AttachmentChunk",
    "AttachmentViewer",
    "BlockQuoteChunk",
    "BodyChunker",
    "Chunk",
    "ChunkState",
    "MailboxConfig",
    "MailboxError",
    "MboxSource",
    "Message",
    "MessageFormatError",
    "MessageIdentity",
    "MessageIndex",
    "MessageSource",
    "MimeWalker",
    "PartKind",
    "QuoteChunk",
    "RawHeaderMap",
    "SignatureChunk",
    "SnippetBuilder",
    "SourceError",
    "TextChunk",
    "classify_part",
    "configure_logging",
    "message_context",
    "next_state",
    "normalize_header",
    "normalize_subj",
    "parse_date",
    "read_body",
    "read_header",
    "reify_subj",
    "setup_logging",
    "subj_is_reply",
]
