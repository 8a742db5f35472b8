"""MIME tree walker — flattens a parsed message into an ordered chunk list."""

from __future__ import annotations

import email.message
from enum import Enum

import structlog

from .chunker import BodyChunker, SnippetBuilder
from .chunks import AttachmentChunk, Chunk
from .config import MailboxConfig
from .errors import MessageFormatError
from .text import collapse_whitespace, normalize_whitespace, split_lines

logger = structlog.get_logger()


class PartKind(str, Enum):
    """How a MIME part is handled, decided once from its declared type."""

    PLAIN_TEXT = "plain_text"
    MULTIPART = "multipart"
    OTHER = "other"


def classify_part(part: email.message.Message) -> PartKind:
    # Ask for the raw header: get_content_type() would invent a default.
    if part.get("Content-Type") is None:
        return PartKind.PLAIN_TEXT
    content_type = part.get_content_type()
    if content_type == "text/plain":
        return PartKind.PLAIN_TEXT
    if part.get_content_maintype() == "multipart":
        return PartKind.MULTIPART
    return PartKind.OTHER


class MimeWalker:
    """Depth-first walk of a MIME part tree, dispatching leaves by type.

    ``text/plain`` leaves go through the :class:`BodyChunker`; every other
    leaf becomes an :class:`AttachmentChunk` that references the part
    without decoding it.
    """

    def __init__(
        self,
        config: MailboxConfig | None = None,
        chunker: BodyChunker | None = None,
    ) -> None:
        self._config = config or MailboxConfig()
        self._chunker = chunker or BodyChunker(self._config)

    @property
    def chunker(self) -> BodyChunker:
        return self._chunker

    def walk(
        self,
        part: email.message.Message,
        snippet: SnippetBuilder | None = None,
    ) -> list[Chunk]:
        """Return the flattened chunks for *part* and all of its children.

        Raises :class:`MessageFormatError` if a text part cannot be decoded.
        """
        kind = classify_part(part)

        if kind is PartKind.PLAIN_TEXT:
            text = self._decode_text(part)
            return self._chunker.chunk(split_lines(normalize_whitespace(text)), snippet)

        if kind is PartKind.MULTIPART:
            chunks: list[Chunk] = []
            children = part.get_payload()
            if not isinstance(children, list):
                return chunks
            for child in children:
                chunks.extend(self.walk(child, snippet))
            return chunks

        return [self._attachment(part)]

    def _decode_text(self, part: email.message.Message) -> str:
        payload = part.get_payload(decode=True)
        if not isinstance(payload, bytes):
            raise MessageFormatError("text/plain part has no decodable payload")
        charset = part.get_content_charset() or self._config.default_charset
        try:
            return payload.decode(charset)
        except (LookupError, UnicodeDecodeError) as exc:
            raise MessageFormatError(
                f"cannot decode text/plain part as {charset!r}: {exc}"
            ) from exc

    def _attachment(self, part: email.message.Message) -> AttachmentChunk:
        content_type = part.get_content_type()
        description = collapse_whitespace(str(part.get("Content-Disposition", "")))
        filename = part.get_filename()
        logger.debug("mime_attachment_found", content_type=content_type, filename=filename)
        return AttachmentChunk(
            content_type=content_type,
            description=description,
            part=part,
            filename=filename,
        )
