"""The classified spans a message body is split into."""

from __future__ import annotations

import email.message
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar, Protocol

from .text import wrap_line


@dataclass(frozen=True)
class TextChunk:
    """Body text written by the sender."""

    kind: ClassVar[str] = "text"

    lines: tuple[str, ...]

    @classmethod
    def from_lines(cls, lines: Iterable[str], width: int = 80) -> TextChunk:
        """Build a TextChunk, soft-wrapping every line at *width* columns."""
        wrapped: list[str] = []
        for line in lines:
            wrapped.extend(wrap_line(line, width))
        return cls(lines=tuple(wrapped))


@dataclass(frozen=True)
class QuoteChunk:
    """Quoted reply text (``> ...``), stored verbatim."""

    kind: ClassVar[str] = "quote"

    lines: tuple[str, ...]


@dataclass(frozen=True)
class BlockQuoteChunk(QuoteChunk):
    """Everything after a legacy ``----- Original Message -----`` delimiter."""

    kind: ClassVar[str] = "block_quote"


@dataclass(frozen=True)
class SignatureChunk:
    """Trailing signature block, delimiter line included."""

    kind: ClassVar[str] = "signature"

    lines: tuple[str, ...]


@dataclass(frozen=True)
class AttachmentChunk:
    """A non-text leaf part.

    Holds a reference to the undecoded MIME part; the payload is only
    transfer-decoded when :meth:`payload` is called.
    """

    kind: ClassVar[str] = "attachment"

    content_type: str
    description: str
    part: email.message.Message = field(repr=False, compare=False)
    filename: str | None = None

    def payload(self) -> bytes:
        data = self.part.get_payload(decode=True)
        return data if isinstance(data, bytes) else b""


Chunk = TextChunk | QuoteChunk | SignatureChunk | AttachmentChunk


class AttachmentViewer(Protocol):
    """Capability for showing an attachment to a human.

    Implemented outside the engine (temp file + external viewer program);
    parsing never calls it.
    """

    def materialize(self, attachment: AttachmentChunk) -> Path: ...

    def view(self, path: Path) -> None: ...
