"""Shared test fixtures for the mailbox test suite."""

from __future__ import annotations

import io
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import pytest

from umbrella_mailbox.config import MailboxConfig
from umbrella_mailbox.source import MboxSource


@pytest.fixture
def config() -> MailboxConfig:
    return MailboxConfig(
        snippet_length=80,
        wrap_width=80,
        max_sig_distance=15,
        default_subject="(missing subject)",
        default_charset="utf-8",
    )


# ------------------------------------------------------------------
# Sample message builders
# ------------------------------------------------------------------


def _build_plain_email(
    *,
    subject: str | None = "Test Subject",
    from_addr: str = "Jane Doe <jane@example.com>",
    to_addr: str = "recipient@example.com",
    body: str = "Hello, World!",
    message_id: str | None = "<test-001@example.com>",
    date: str | None = "Sun, 01 Jun 2025 12:00:00 +0000",
    extra_headers: list[tuple[str, str]] | None = None,
) -> bytes:
    """Build a simple plain-text email as raw bytes."""
    msg = MIMEText(body, "plain", "utf-8")
    if subject is not None:
        msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_addr
    if message_id is not None:
        msg["Message-ID"] = message_id
    if date is not None:
        msg["Date"] = date
    for name, value in extra_headers or []:
        msg[name] = value
    return msg.as_bytes()


def _build_multipart_email(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
    attachments: list[tuple[str, str, bytes]] | None = None,
) -> bytes:
    """Build a multipart email with text, HTML, and optional attachments."""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = "Multipart Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = "<multi-001@example.com>"
    msg["Date"] = "Sun, 01 Jun 2025 12:00:00 +0000"

    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(body_text, "plain"))
    alt.attach(MIMEText(body_html, "html"))
    msg.attach(alt)

    for filename, content_type, payload in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    return msg.as_bytes()


def _as_mbox_record(raw: bytes, sender: str = "jane@example.com") -> bytes:
    """Prefix a ``From_`` separator line and terminate with a blank line."""
    separator = f"From {sender} Sun Jun  1 12:00:00 2025\n".encode()
    if not raw.endswith(b"\n"):
        raw += b"\n"
    return separator + raw + b"\n"


def _build_mbox(*records: bytes) -> tuple[bytes, list[int]]:
    """Concatenate raw emails into an mbox; return the bytes and record offsets."""
    data = b""
    offsets: list[int] = []
    for raw in records:
        offsets.append(len(data))
        data += _as_mbox_record(raw)
    return data, offsets


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return _build_plain_email()


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return _build_multipart_email(
        attachments=[
            ("report.pdf", "application/pdf", b"%PDF-1.4 fake pdf content"),
        ],
    )


@pytest.fixture
def mbox_source(plain_eml_bytes: bytes, multipart_eml_bytes: bytes) -> MboxSource:
    data, _ = _build_mbox(plain_eml_bytes, multipart_eml_bytes)
    return MboxSource(io.BytesIO(data), name="test.mbox")


@pytest.fixture
def mbox_offsets(plain_eml_bytes: bytes, multipart_eml_bytes: bytes) -> list[int]:
    _, offsets = _build_mbox(plain_eml_bytes, multipart_eml_bytes)
    return offsets
