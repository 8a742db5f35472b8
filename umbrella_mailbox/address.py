"""Address value type built from raw ``From``/``To``-style header text."""

from __future__ import annotations

import email.utils
import re

from pydantic import BaseModel, Field

from .text import collapse_whitespace, decode_encoded_words

# RFC 5322 "specials"; a display name containing any of these must be quoted.
_SPECIALS_RE = re.compile(r'[()<>\[\]:;@\\,."]')


class Address(BaseModel):
    """A mailbox: optional display name plus email address."""

    model_config = {"frozen": True}

    name: str | None = Field(default=None, description="Display name, if the header carried one")
    email: str = Field(description="Email address (addr-spec)")

    @classmethod
    def parse(cls, raw: str | None) -> Address | None:
        """Build an Address from a single mailbox string.

        Accepts ``Name <addr>``, ``addr (Name)`` and bare ``addr``.
        Returns ``None`` for a missing or blank value.
        """
        if raw is None or not raw.strip():
            return None
        name, addr = email.utils.parseaddr(raw)
        if not addr:
            # Unparseable: keep the raw text as the address.
            return cls(name=None, email=collapse_whitespace(raw))
        return cls(name=cls._clean_name(name), email=addr)

    @classmethod
    def parse_list(cls, raw: str | None) -> list[Address]:
        """Split an address-list header (``a@b, "Doe, J" <j@d>``) into Addresses."""
        if raw is None or not raw.strip():
            return []
        return [
            cls(name=cls._clean_name(name), email=addr)
            for name, addr in email.utils.getaddresses([raw])
            if addr
        ]

    @staticmethod
    def _clean_name(name: str) -> str | None:
        name = collapse_whitespace(decode_encoded_words(name)).strip('"').strip()
        return name or None

    @property
    def full_address(self) -> str:
        """RFC 5322 ``Name <email>`` form, quoting the name where required."""
        if not self.name:
            return self.email
        if _SPECIALS_RE.search(self.name):
            return f'"{email.utils.quote(self.name)}" <{self.email}>'
        return f"{self.name} <{self.email}>"

    @property
    def short_name(self) -> str:
        if self.name:
            return self.name.split()[0]
        return self.email.split("@", 1)[0]

    @property
    def long_name(self) -> str:
        return self.name or self.email

    def __str__(self) -> str:
        return self.full_address
