"""Mailbox engine configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class MailboxConfig(BaseSettings):
    """Tunables for header normalization and body chunking."""

    model_config = {"env_prefix": "MAILBOX_"}

    snippet_length: int = Field(
        default=80,
        gt=0,
        description="Maximum length of the preview snippet",
    )
    wrap_width: int = Field(
        default=80,
        gt=0,
        description="Column at which text chunk lines are soft-wrapped",
    )
    max_sig_distance: int = Field(
        default=15,
        ge=0,
        description="A signature delimiter must lie within this many lines of the body's end",
    )
    default_subject: str = Field(
        default="(missing subject)",
        description="Subject used when the header has none",
    )
    default_charset: str = Field(
        default="utf-8",
        description="Charset for text parts that do not declare one",
    )
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    log_level: str = Field(default="INFO", description="Root log level name")
