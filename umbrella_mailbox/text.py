"""Small text helpers shared by the header normalizer and body chunker."""

from __future__ import annotations

import email.errors
import email.header
import re
import textwrap

_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(value: str) -> str:
    """Collapse whitespace runs to single spaces and strip both ends."""
    return _WHITESPACE_RE.sub(" ", value).strip()


def normalize_whitespace(text: str) -> str:
    """Expand tabs to four spaces and drop carriage returns."""
    return text.replace("\t", "    ").replace("\r", "")


def split_lines(text: str) -> list[str]:
    """Split *text* on newlines, dropping trailing empty lines."""
    lines = text.split("\n")
    while lines and lines[-1] == "":
        lines.pop()
    return lines


def wrap_line(line: str, width: int) -> list[str]:
    """Soft-wrap a single line at *width* columns.

    Lines that already fit are returned untouched (leading indentation
    and trailing spaces included), so an empty line stays an empty line.
    """
    if len(line) <= width:
        return [line]
    return textwrap.wrap(
        line,
        width=width,
        expand_tabs=False,
        replace_whitespace=False,
        break_on_hyphens=False,
    ) or [""]


def decode_encoded_words(value: str) -> str:
    """Decode RFC 2047 ``=?charset?q?...?=`` words in a header value.

    Values that are not encoded, or that are encoded badly, come back as-is.
    """
    if "=?" not in value:
        return value
    try:
        decoded = str(email.header.make_header(email.header.decode_header(value)))
    except (email.errors.HeaderParseError, LookupError, UnicodeDecodeError):
        return value
    # Lenient base64 can turn garbage into nothing; keep the original then.
    if not decoded.strip() and value.strip():
        return value
    return decoded
