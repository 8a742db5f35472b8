"""Tolerant reader for a single mbox record.

The header scanner deliberately does *not* use ``email.parser``: it only
recognizes the handful of headers the engine needs, folds continuation
lines itself, and never raises on malformed header content.  The only
errors that escape are I/O errors from the underlying stream.
"""

from __future__ import annotations

import re
from typing import BinaryIO

import structlog

logger = structlog.get_logger()

RawHeaderMap = dict[str, str]

BREAK_RE = re.compile(r"^From \S+")
_BREAK_BYTES_RE = re.compile(rb"^From \S+")
_ESCAPED_FROM_RE = re.compile(rb"^>(>*From )")

# Headers where a later occurrence overwrites an earlier one.
SINGULAR_HEADERS: tuple[str, ...] = (
    "from",
    "to",
    "cc",
    "bcc",
    "subject",
    "date",
    "message-id",
    "references",
    "in-reply-to",
    "reply-to",
    "list-post",
    "status",
)

# Delivery-path headers: may repeat, only the first instance matters.
FIRST_WINS_HEADERS: tuple[str, ...] = (
    "delivered-to",
    "x-original-to",
    "envelope-to",
)

_MESSAGE_ID_RE = re.compile(r"^(message-id):\s+<?(.*?)>?\s*$", re.IGNORECASE)
_SINGULAR_RE = re.compile(
    r"^(" + "|".join(re.escape(h) for h in SINGULAR_HEADERS) + r"):\s+(.*?)\s*$",
    re.IGNORECASE,
)
_FIRST_WINS_RE = re.compile(
    r"^(" + "|".join(re.escape(h) for h in FIRST_WINS_HEADERS) + r"):\s+(.*?)\s*$",
    re.IGNORECASE,
)


def is_record_break(line: str) -> bool:
    """True if *line* is an mbox ``From_`` record separator."""
    return BREAK_RE.match(line) is not None


def _chomp(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n") or line.endswith("\r"):
        return line[:-1]
    return line


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def read_header(stream: BinaryIO) -> RawHeaderMap:
    """Scan one record's headers from *stream* into a lower-cased map.

    Reads up to and including the blank line that ends the header block,
    leaving *stream* positioned at the first body line.  A ``From_``
    separator seen after the first line ends the scan without being
    consumed.
    """
    header: RawHeaderMap = {}
    current: str | None = None
    first = True

    while True:
        pos = stream.tell()
        raw = stream.readline()
        if not raw:
            break
        line = _decode(raw)
        if not first and is_record_break(line):
            stream.seek(pos)
            break
        first = False

        # Order matters: specific headers, then the generic "Name:" shape,
        # then continuation folding.
        match = _MESSAGE_ID_RE.match(line) or _SINGULAR_RE.match(line)
        if match:
            current = match.group(1).lower()
            header[current] = match.group(2)
            continue

        match = _FIRST_WINS_RE.match(line)
        if match:
            name = match.group(1).lower()
            if name in header:
                # Continuations of an ignored repeat must not leak into the first value.
                current = None
            else:
                current = name
                header[name] = match.group(2)
            continue

        text = _chomp(line)
        if text == "":
            break
        if ":" in text:
            current = None
            continue
        if current is not None:
            folded = text.strip()
            if folded:
                header[current] = f"{header[current]} {folded}" if header[current] else folded

    logger.debug("mbox_header_scanned", fields=sorted(header))
    return header


def read_body(stream: BinaryIO) -> list[str]:
    """Read body lines up to (never past) the next ``From_`` separator."""
    body: list[str] = []
    while True:
        pos = stream.tell()
        raw = stream.readline()
        if not raw:
            break
        line = _decode(raw)
        if is_record_break(line):
            stream.seek(pos)
            break
        body.append(_chomp(line))
    return body


def _skip_separator(stream: BinaryIO) -> None:
    pos = stream.tell()
    raw = stream.readline()
    if not _BREAK_BYTES_RE.match(raw):
        stream.seek(pos)


def read_raw_header(stream: BinaryIO) -> bytes:
    """Return the raw header block of the record at the stream position.

    The leading ``From_`` separator is excluded; the terminating blank
    line is included.
    """
    _skip_separator(stream)
    chunks: list[bytes] = []
    while True:
        pos = stream.tell()
        raw = stream.readline()
        if not raw:
            break
        if _BREAK_BYTES_RE.match(raw):
            stream.seek(pos)
            break
        chunks.append(raw)
        if raw in (b"\n", b"\r\n"):
            break
    return b"".join(chunks)


def read_raw_record(stream: BinaryIO) -> bytes:
    """Return the full raw record (header and body) at the stream position.

    The ``From_`` separator is excluded and mboxrd-quoted ``>From `` lines
    are unquoted by one level.
    """
    _skip_separator(stream)
    chunks: list[bytes] = []
    while True:
        pos = stream.tell()
        raw = stream.readline()
        if not raw:
            break
        if _BREAK_BYTES_RE.match(raw):
            stream.seek(pos)
            break
        chunks.append(_ESCAPED_FROM_RE.sub(rb"\1", raw))
    return b"".join(chunks)
