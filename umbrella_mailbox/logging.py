"""Structured logging for the mailbox engine.

The engine only ever calls ``structlog.get_logger()``.  Embedding processes
call :func:`configure_logging` once at start-up to decide where events go;
:func:`message_context` tags everything logged while one message is parsed
with that message's id and locator.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

import structlog

from .config import MailboxConfig

ENGINE_NAME = "umbrella_mailbox"


def _add_engine_name(
    logger: object, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("engine", ENGINE_NAME)
    return event_dict


# Applied to structlog events and, via foreign_pre_chain, to plain stdlib
# records (e.g. from the ``email`` package) so both render alike.
_PRE_CHAIN: tuple[structlog.types.Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    _add_engine_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
)


@contextmanager
def message_context(*, message_id: str, locator: Any) -> Iterator[None]:
    """Bind *message_id* and *locator* to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(message_id=message_id, locator=str(locator)):
        yield


def _handler(renderer: structlog.types.Processor, stream: TextIO | None) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=list(_PRE_CHAIN),
        )
    )
    return handler


def setup_logging(
    *,
    json: bool = True,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Route structlog events through a single stdlib root handler.

    Parameters
    ----------
    json:
        Render JSON lines, or the coloured console format if *False*.
    level:
        Root log level name, case-insensitive.
    stream:
        Where the handler writes; defaults to stdout.
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_handler(renderer, stream))
    root.setLevel(level.upper())


def configure_logging(config: MailboxConfig, stream: TextIO | None = None) -> None:
    """Apply ``log_json`` / ``log_level`` from *config*."""
    setup_logging(json=config.log_json, level=config.log_level, stream=stream)
