"""One mail record: typed identity plus lazily parsed content."""

from __future__ import annotations

import email.utils
import io
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Protocol

import structlog

from .address import Address
from .chunker import BodyChunker
from .chunks import Chunk, QuoteChunk, TextChunk
from .config import MailboxConfig
from .errors import MessageFormatError, SourceError
from .headers import MessageIdentity, normalize_header, normalize_subj
from .logging import message_context
from .mbox import read_header
from .source import MessageSource
from .text import split_lines
from .walker import MimeWalker

logger = structlog.get_logger()

_ERROR_BANNER = """\
***********************************************************************
* An error occurred while loading this message. It is possible that   *
* the source has changed, or (in the case of remote sources) is down. *
***********************************************************************"""


class MessageIndex(Protocol):
    """Persistence collaborator that :meth:`Message.save` writes through."""

    def update_message(self, message: Message) -> None: ...


class Message:
    """A message as seen by indexing and display collaborators.

    The identity (ids, date, addresses, subject) is parsed eagerly and a
    failure there raises.  The body is parsed on first demand by
    :meth:`to_chunks`; failures there degrade to an explanatory text chunk.
    """

    def __init__(
        self,
        source: MessageSource,
        locator: Any,
        *,
        header: Mapping[str, Any] | None = None,
        snippet: str | None = None,
        labels: Iterable[str] | None = None,
        config: MailboxConfig | None = None,
    ) -> None:
        if source is None:
            raise ValueError("source can't be None")
        if locator is None:
            raise ValueError("locator can't be None")
        self.source = source
        self.locator = locator
        self._config = config or MailboxConfig()
        self._walker = MimeWalker(self._config, BodyChunker(self._config))

        # A snippet handed in (e.g. restored from the index) is never recomputed.
        self._have_snippet = snippet is not None
        self._snippet: str | None = snippet
        self._chunks: list[Chunk] | None = None
        self._labels: list[str] = list(labels or [])
        self._dirty = False

        if header is None:
            header = self._scan_header()
        self.identity: MessageIdentity = normalize_header(
            header, config=self._config, locator=locator
        )

    def __repr__(self) -> str:
        return f"Message(id={self.id!r}, source={self.source!r}, locator={self.locator!r})"

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self.identity.message_id

    @property
    def date(self) -> datetime:
        return self.identity.date

    @property
    def subject(self) -> str:
        return self.identity.subject

    @property
    def from_address(self) -> Address | None:
        return self.identity.from_address

    @property
    def recipients(self) -> list[Address]:
        return self.identity.recipients

    @property
    def is_list_message(self) -> bool:
        return self.identity.is_list_message

    @property
    def broken(self) -> bool:
        return self.source.is_broken()

    def _scan_header(self) -> dict[str, str]:
        return read_header(io.BytesIO(self.source.load_header(self.locator)))

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    @property
    def labels(self) -> list[str]:
        return list(self._labels)

    @labels.setter
    def labels(self, labels: Iterable[str]) -> None:
        self._labels = list(labels)
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def has_label(self, label: str) -> bool:
        return label in self._labels

    def add_label(self, label: str) -> None:
        if label in self._labels:
            return
        self._labels.append(label)
        self._dirty = True

    def remove_label(self, label: str) -> None:
        if label not in self._labels:
            return
        self._labels.remove(label)
        self._dirty = True

    def save(self, index: MessageIndex) -> None:
        if self.broken:
            return
        if self._dirty:
            index.update_message(self)
            logger.debug("message_saved", message_id=self.id, labels=self._labels)
        self._dirty = False

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    @property
    def snippet(self) -> str:
        if self._snippet is None:
            self.to_chunks()
        return self._snippet or ""

    def to_chunks(self) -> list[Chunk]:
        """Parse (once) and return the body as an ordered list of chunks."""
        if self._chunks is None:
            self._chunks = self._load_chunks()
        return self._chunks

    def reparse(self) -> list[Chunk]:
        """Drop cached content (and any derived snippet) and parse again."""
        self._chunks = None
        if not self._have_snippet:
            self._snippet = None
        return self.to_chunks()

    def _load_chunks(self) -> list[Chunk]:
        if self.source.is_broken():
            return [self._error_chunk(self.source.broken_message())]

        snippet = self._walker.chunker.new_snippet(enabled=not self._have_snippet)
        with message_context(message_id=self.id, locator=self.locator):
            try:
                # Re-read the header: the index does not store everything we show.
                self.identity = normalize_header(
                    self._scan_header(), config=self._config, locator=self.locator
                )
                chunks = self._walker.walk(self.source.load_body(self.locator), snippet)
            except (SourceError, MessageFormatError) as exc:
                self._keep_snippet(snippet.value)
                logger.warning("message_content_unavailable", error=str(exc))
                return [self._error_chunk(str(exc))]
        self._keep_snippet(snippet.value)
        return chunks

    def _keep_snippet(self, derived: str) -> None:
        if not self._have_snippet:
            self._snippet = derived

    def _error_chunk(self, msg: str) -> TextChunk:
        return TextChunk.from_lines(split_lines(self.error_message(msg)), self._config.wrap_width)

    def error_message(self, msg: str) -> str:
        indented = "\n".join(f"  {line}" for line in msg.splitlines() or [""])
        return f"{self._snippet or ''}...\n\n{_ERROR_BANNER}\n\nThe error message was:\n{indented}\n"

    def raw_header(self) -> str:
        try:
            return self.source.raw_header(self.locator).decode("utf-8", errors="replace")
        except SourceError as exc:
            return self.error_message(str(exc))

    def raw_full_message(self) -> str:
        try:
            return self.source.raw_full_message(self.locator).decode("utf-8", errors="replace")
        except SourceError as exc:
            return self.error_message(str(exc))

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def content(self) -> str:
        """Flat text handed to the full-text indexer."""
        ident = self.identity
        parts: list[str] = []
        if ident.from_address is not None:
            parts.append(self._index_name(ident.from_address))
        parts.extend(self._index_name(a) for a in ident.recipients)
        for chunk in self.to_chunks():
            if isinstance(chunk, TextChunk):
                parts.extend(chunk.lines)
        parts.append(normalize_subj(ident.subject))
        return " ".join(parts)

    @staticmethod
    def _index_name(address: Address) -> str:
        return f"{address.name} {address.email}" if address.name else address.email

    def basic_body_lines(self) -> list[str]:
        """Lines of the Text and Quote chunks, in order."""
        lines: list[str] = []
        for chunk in self.to_chunks():
            if isinstance(chunk, (TextChunk, QuoteChunk)):
                lines.extend(chunk.lines)
        return lines

    def basic_header_lines(self) -> list[str]:
        ident = self.identity
        sender = ident.from_address.full_address if ident.from_address else ""
        lines = [f"From: {sender}"]
        for label, addresses in (("To", ident.to), ("Cc", ident.cc), ("Bcc", ident.bcc)):
            if addresses:
                lines.append(f"{label}: " + ", ".join(a.full_address for a in addresses))
        lines.append(f"Date: {email.utils.format_datetime(ident.date)}")
        lines.append(f"Subject: {ident.subject}")
        return lines
