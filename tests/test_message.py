"""Tests for umbrella_mailbox.message."""

from __future__ import annotations

import email
import email.policy
import io
import json
from datetime import UTC, datetime

import pytest

from tests.conftest import _build_plain_email

from umbrella_mailbox.chunks import AttachmentChunk, QuoteChunk, SignatureChunk, TextChunk
from umbrella_mailbox.errors import MessageFormatError, SourceError
from umbrella_mailbox.logging import setup_logging
from umbrella_mailbox.message import Message
from umbrella_mailbox.source import MboxSource, MessageSource


class FakeSource(MessageSource):
    """In-memory source keyed by locator, with switchable failures."""

    def __init__(self, records: dict[str, bytes]) -> None:
        self.records = records
        self.broken = False
        self.fail_body: Exception | None = None
        self.header_loads = 0

    def _header_bytes(self, locator: str) -> bytes:
        raw = self.records[locator]
        return raw.split(b"\n\n", 1)[0] + b"\n\n"

    def load_header(self, locator: str) -> bytes:
        self.header_loads += 1
        return self._header_bytes(locator)

    def load_body(self, locator: str) -> email.message.Message:
        if self.fail_body is not None:
            raise self.fail_body
        return email.message_from_bytes(self.records[locator], policy=email.policy.default)

    def raw_header(self, locator: str) -> bytes:
        if self.fail_body is not None:
            raise SourceError("header unavailable")
        return self._header_bytes(locator)

    def raw_full_message(self, locator: str) -> bytes:
        if self.fail_body is not None:
            raise SourceError("message unavailable")
        return self.records[locator]

    def is_broken(self) -> bool:
        return self.broken

    def broken_message(self) -> str:
        return "source went away\nfor good"


class FakeIndex:
    def __init__(self) -> None:
        self.updated: list[Message] = []

    def update_message(self, message: Message) -> None:
        self.updated.append(message)


QUOTED_BODY = "Sounds good.\n\nBob wrote:\n> lunch at noon?\n> or one?\n\nSee you,\n-- \nJane\n"


@pytest.fixture
def source() -> FakeSource:
    return FakeSource(
        {
            "plain": _build_plain_email(),
            "quoted": _build_plain_email(subject="Re: Lunch", body=QUOTED_BODY),
            "no-id": _build_plain_email(message_id=None),
            "bad-date": _build_plain_email(date="sometime soon"),
        }
    )


class TestMessageIdentity:
    def test_identity_from_source(self, source: FakeSource):
        msg = Message(source, "plain")
        assert msg.id == "test-001@example.com"
        assert msg.subject == "Test Subject"
        assert msg.date == datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
        assert msg.from_address is not None
        assert msg.from_address.email == "jane@example.com"
        assert [a.email for a in msg.recipients] == ["recipient@example.com"]
        assert not msg.is_list_message

    def test_supplied_header_skips_source(self, source: FakeSource):
        msg = Message(
            source,
            "plain",
            header={"message-id": "stored@example.com", "date": datetime(2024, 1, 1, tzinfo=UTC)},
        )
        assert source.header_loads == 0
        assert msg.id == "stored@example.com"
        assert msg.subject == "(missing subject)"

    def test_missing_message_id_raises(self, source: FakeSource):
        with pytest.raises(MessageFormatError, match="message-id"):
            Message(source, "no-id")

    def test_bad_date_raises(self, source: FakeSource):
        with pytest.raises(MessageFormatError, match="unparsable date"):
            Message(source, "bad-date")

    def test_requires_source_and_locator(self, source: FakeSource):
        with pytest.raises(ValueError):
            Message(None, "plain")  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            Message(source, None)


class TestMessageContent:
    def test_chunks_are_cached(self, source: FakeSource):
        msg = Message(source, "plain")
        chunks = msg.to_chunks()
        assert chunks == [TextChunk(lines=("Hello, World!",))]
        assert msg.to_chunks() is chunks

    def test_chunked_body(self, source: FakeSource):
        msg = Message(source, "quoted")
        assert msg.to_chunks() == [
            TextChunk(lines=("Sounds good.", "")),
            QuoteChunk(lines=("Bob wrote:", "> lunch at noon?", "> or one?", "")),
            TextChunk(lines=("See you,",)),
            SignatureChunk(lines=("-- ", "Jane")),
        ]

    def test_snippet_computed_on_demand(self, source: FakeSource):
        msg = Message(source, "quoted")
        assert msg.snippet == "Sounds good. See you,"

    def test_supplied_snippet_never_overwritten(self, source: FakeSource):
        msg = Message(source, "quoted", snippet="from the index")
        msg.to_chunks()
        msg.reparse()
        assert msg.snippet == "from the index"

    def test_reparse_is_idempotent(self, source: FakeSource):
        msg = Message(source, "quoted")
        first = msg.to_chunks()
        second = msg.reparse()
        assert first == second
        assert second is not first
        assert msg.snippet == "Sounds good. See you,"

    def test_multipart_from_mbox(self, mbox_source: MboxSource, mbox_offsets: list[int]):
        msg = Message(mbox_source, mbox_offsets[1])
        chunks = msg.to_chunks()
        assert chunks[0] == TextChunk(lines=("Plain body",))
        assert [c.content_type for c in chunks[1:]] == ["text/html", "application/pdf"]
        assert all(isinstance(c, AttachmentChunk) for c in chunks[1:])

    def test_broken_source_gives_explanatory_chunk(self, source: FakeSource):
        msg = Message(source, "plain", snippet="Preview")
        source.broken = True
        (chunk,) = msg.to_chunks()
        assert isinstance(chunk, TextChunk)
        assert chunk.lines[0] == "Preview..."
        assert "  source went away" in chunk.lines
        assert "  for good" in chunk.lines

    def test_transport_error_gives_explanatory_chunk(self, source: FakeSource):
        msg = Message(source, "plain", snippet="Preview")
        source.fail_body = SourceError("connection reset")
        (chunk,) = msg.to_chunks()
        assert isinstance(chunk, TextChunk)
        assert chunk.lines[0] == "Preview..."
        assert "The error message was:" in chunk.lines
        assert "  connection reset" in chunk.lines

    def test_content_failure_logged_with_message_context(self, source: FakeSource):
        out = io.StringIO()
        setup_logging(json=True, level="WARNING", stream=out)
        msg = Message(source, "plain")
        source.fail_body = SourceError("connection reset")
        msg.to_chunks()
        record = json.loads(out.getvalue().strip().splitlines()[-1])
        assert record["event"] == "message_content_unavailable"
        assert record["message_id"] == "test-001@example.com"
        assert record["locator"] == "plain"
        assert record["error"] == "connection reset"

    def test_format_error_in_body_gives_explanatory_chunk(self):
        raw = (
            b"Message-ID: <x@y>\nDate: Sun, 01 Jun 2025 12:00:00 +0000\n"
            b"Content-Type: text/plain; charset=us-ascii\nContent-Transfer-Encoding: 8bit\n\n"
            b"caf\xe9\n"
        )
        msg = Message(FakeSource({"x": raw}), "x")
        (chunk,) = msg.to_chunks()
        assert isinstance(chunk, TextChunk)
        assert any("cannot decode" in line for line in chunk.lines)

    def test_error_message_layout(self, source: FakeSource):
        msg = Message(source, "plain", snippet="Snip")
        text = msg.error_message("boom")
        assert text.startswith("Snip...\n\n*****")
        assert "An error occurred while loading this message." in text
        assert text.endswith("The error message was:\n  boom\n")


class TestMessageRaw:
    def test_raw_header(self, source: FakeSource):
        assert "Subject: Test Subject" in Message(source, "plain").raw_header()

    def test_raw_full_message(self, source: FakeSource):
        assert "SGVsbG8sIFdvcmxkIQ==" in Message(source, "plain").raw_full_message()

    def test_raw_errors_become_text(self, source: FakeSource):
        msg = Message(source, "plain")
        source.fail_body = SourceError("gone")
        assert "  message unavailable" in msg.raw_full_message()
        assert "  header unavailable" in msg.raw_header()


class TestMessageLabels:
    def test_add_and_remove(self, source: FakeSource):
        msg = Message(source, "plain", labels=["inbox"])
        assert not msg.dirty
        msg.add_label("starred")
        assert msg.has_label("starred")
        assert msg.dirty
        msg.remove_label("inbox")
        assert msg.labels == ["starred"]

    def test_noop_changes_stay_clean(self, source: FakeSource):
        msg = Message(source, "plain", labels=["inbox"])
        msg.add_label("inbox")
        msg.remove_label("spam")
        assert not msg.dirty

    def test_labels_setter_marks_dirty(self, source: FakeSource):
        msg = Message(source, "plain")
        msg.labels = ["a", "b"]
        assert msg.labels == ["a", "b"]
        assert msg.dirty

    def test_save_writes_when_dirty(self, source: FakeSource):
        index = FakeIndex()
        msg = Message(source, "plain")
        msg.save(index)
        assert index.updated == []
        msg.add_label("starred")
        msg.save(index)
        assert index.updated == [msg]
        assert not msg.dirty

    def test_save_skips_broken_source(self, source: FakeSource):
        index = FakeIndex()
        msg = Message(source, "plain")
        msg.add_label("starred")
        source.broken = True
        msg.save(index)
        assert index.updated == []


class TestMessageViews:
    def test_content(self, source: FakeSource):
        msg = Message(source, "quoted")
        assert msg.content() == (
            "Jane Doe jane@example.com recipient@example.com "
            "Sounds good.  See you, Lunch"
        )

    def test_basic_body_lines(self, source: FakeSource):
        msg = Message(source, "quoted")
        assert msg.basic_body_lines() == [
            "Sounds good.",
            "",
            "Bob wrote:",
            "> lunch at noon?",
            "> or one?",
            "",
            "See you,",
        ]

    def test_basic_header_lines(self, source: FakeSource):
        msg = Message(source, "plain")
        assert msg.basic_header_lines() == [
            "From: Jane Doe <jane@example.com>",
            "To: recipient@example.com",
            "Date: Sun, 01 Jun 2025 12:00:00 +0000",
            "Subject: Test Subject",
        ]
