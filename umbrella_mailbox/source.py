"""Interface the engine loads message bytes through, plus an mbox-backed source."""

from __future__ import annotations

import abc
import email
import email.message
import email.policy
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, BinaryIO

from .errors import SourceError
from .mbox import read_raw_header, read_raw_record


class MessageSource(abc.ABC):
    """Abstract source of messages, addressed by an opaque *locator*.

    Implementations signal transport failures by raising
    :class:`SourceError`; they never raise parse errors for content.
    """

    @abc.abstractmethod
    def load_header(self, locator: Any) -> bytes:
        """Return the raw bytes of the record's header block."""
        ...

    @abc.abstractmethod
    def load_body(self, locator: Any) -> email.message.Message:
        """Return the record parsed into a MIME part tree."""
        ...

    @abc.abstractmethod
    def raw_header(self, locator: Any) -> bytes:
        ...

    @abc.abstractmethod
    def raw_full_message(self, locator: Any) -> bytes:
        ...

    def is_broken(self) -> bool:
        """True if the source is known to be permanently unavailable."""
        return False

    def broken_message(self) -> str:
        """Explanation shown in place of content when :meth:`is_broken`."""
        return ""


class MboxSource(MessageSource):
    """Source over a single seekable mbox stream; locators are byte offsets.

    Finding record offsets is the caller's job; this class only reads the
    record that starts at a given offset.
    """

    def __init__(self, stream: BinaryIO, name: str = "mbox") -> None:
        self._stream = stream
        self.name = name

    def __repr__(self) -> str:
        return f"MboxSource({self.name!r})"

    @contextmanager
    def _at(self, offset: int) -> Iterator[BinaryIO]:
        if self._stream.closed:
            raise SourceError(self.broken_message())
        try:
            self._stream.seek(offset)
            yield self._stream
        except OSError as exc:
            raise SourceError(f"{self.name}: cannot read record at offset {offset}: {exc}") from exc

    def load_header(self, locator: int) -> bytes:
        with self._at(locator) as stream:
            return read_raw_header(stream)

    def load_body(self, locator: int) -> email.message.Message:
        with self._at(locator) as stream:
            raw = read_raw_record(stream)
        return email.message_from_bytes(raw, policy=email.policy.default)

    def raw_header(self, locator: int) -> bytes:
        with self._at(locator) as stream:
            return read_raw_header(stream)

    def raw_full_message(self, locator: int) -> bytes:
        with self._at(locator) as stream:
            return read_raw_record(stream)

    def is_broken(self) -> bool:
        return self._stream.closed

    def broken_message(self) -> str:
        return f"mbox source {self.name!r} is closed"
