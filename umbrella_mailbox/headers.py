"""Header normalizer — raw header map to typed message identity."""

from __future__ import annotations

import email.utils
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from .address import Address
from .config import MailboxConfig
from .errors import MessageFormatError
from .text import collapse_whitespace, decode_encoded_words

RE_PATTERN = re.compile(r"^((re|re[\[(]\d[\])]):\s*)+", re.IGNORECASE)

REQUIRED_FIELDS: tuple[str, ...] = ("message-id", "date")

_ANGLE_TOKEN_RE = re.compile(r"<(.*?)>")


def subj_is_reply(subject: str) -> bool:
    """True if *subject* starts with one or more ``Re:`` / ``Re[2]:`` markers."""
    return RE_PATTERN.match(subject) is not None


def normalize_subj(subject: str) -> str:
    """Strip every leading reply marker: ``"re: Re[2]: Hi"`` -> ``"Hi"``."""
    return RE_PATTERN.sub("", subject, count=1)


def reify_subj(subject: str) -> str:
    """Prefix ``Re: `` unless *subject* is already a reply."""
    return subject if subj_is_reply(subject) else "Re: " + subject


def parse_date(value: str | datetime) -> datetime:
    """Parse a header date permissively into an aware UTC datetime.

    RFC 2822 dates are tried first, then ISO 8601.  Naive values are
    assumed to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        try:
            parsed = email.utils.parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError as exc:
                raise MessageFormatError(f"unparsable date {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class MessageIdentity(BaseModel):
    """Typed projection of a record's headers.

    This is what indexing and threading collaborators consume; the body is
    handled separately by the MIME walker and body chunker.
    """

    model_config = {"frozen": True}

    message_id: str = Field(min_length=1, description="Message-Id without angle brackets")
    date: datetime = Field(description="Date header, converted to UTC")
    subject: str = Field(description="Whitespace-normalized subject")
    from_address: Address | None = Field(default=None, description="Sender")
    to: list[Address] = Field(default_factory=list)
    cc: list[Address] = Field(default_factory=list)
    bcc: list[Address] = Field(default_factory=list)
    reply_to: Address | None = Field(default=None)
    references: list[str] = Field(
        default_factory=list,
        description="Message-ids from the References header, oldest first",
    )
    in_reply_to: list[str] = Field(
        default_factory=list,
        description="Message-ids from the In-Reply-To header",
    )
    list_address: Address | None = Field(
        default=None,
        description="Posting address from List-Post, for mailing-list traffic",
    )
    recipient_email: str | None = Field(
        default=None,
        description="Envelope recipient (Envelope-To, X-Original-To or Delivered-To)",
    )
    source_marked_read: bool = Field(
        default=False,
        description="True when the source's Status header says the message was read",
    )

    @property
    def normalized_subject(self) -> str:
        return normalize_subj(self.subject)

    @property
    def is_reply(self) -> bool:
        return subj_is_reply(self.subject)

    @property
    def is_list_message(self) -> bool:
        return self.list_address is not None

    @property
    def recipients(self) -> list[Address]:
        return [*self.to, *self.cc, *self.bcc]


def normalize_header(
    raw: Mapping[str, Any],
    *,
    config: MailboxConfig | None = None,
    locator: object = None,
) -> MessageIdentity:
    """Convert a raw header map into a :class:`MessageIdentity`.

    Raises :class:`MessageFormatError` when message-id or date is missing,
    empty, or (for date) unparsable.
    """
    config = config or MailboxConfig()
    header = {k.lower(): v for k, v in raw.items()}

    where = f" (locator {locator!r})" if locator is not None else ""
    for name in REQUIRED_FIELDS:
        if name not in header:
            raise MessageFormatError(f"no {name} field in header{where}")
        value = header[name]
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MessageFormatError(f"empty {name} field in header{where}")

    message_id = str(header["message-id"]).strip().strip("<>").strip()
    if not message_id:
        raise MessageFormatError(f"empty message-id field in header{where}")

    try:
        date = parse_date(header["date"])
    except MessageFormatError as exc:
        raise MessageFormatError(f"{exc}{where}") from exc

    if header.get("subject") is not None:
        subject = collapse_whitespace(decode_encoded_words(header["subject"]))
    else:
        subject = config.default_subject

    list_post = header.get("list-post")
    list_address = None
    if list_post:
        list_address = Address.parse(re.sub(r"^<mailto:|>$", "", list_post.strip()))

    recipient_email = (
        header.get("envelope-to") or header.get("x-original-to") or header.get("delivered-to")
    )

    return MessageIdentity(
        message_id=message_id,
        date=date,
        subject=subject,
        from_address=Address.parse(header.get("from")),
        to=Address.parse_list(header.get("to")),
        cc=Address.parse_list(header.get("cc")),
        bcc=Address.parse_list(header.get("bcc")),
        reply_to=Address.parse(header.get("reply-to")),
        references=re.sub(r"[<>]", "", header.get("references") or "").split(),
        in_reply_to=_ANGLE_TOKEN_RE.findall(header.get("in-reply-to") or ""),
        list_address=list_address,
        recipient_email=recipient_email.strip() if recipient_email else None,
        source_marked_read=(header.get("status") or "").strip() == "RO",
    )
