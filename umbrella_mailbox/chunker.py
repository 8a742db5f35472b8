"""Body chunker — splits plain-text body lines into Text / Quote / Signature
chunks and derives the preview snippet.

Classification is a small state machine.  The heuristics live in the
:data:`TRANSITIONS` table and are applied by :func:`next_state`, so each
rule can be exercised on its own without running a whole body through
:class:`BodyChunker`.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from .chunks import BlockQuoteChunk, Chunk, QuoteChunk, SignatureChunk, TextChunk
from .config import MailboxConfig
from .text import collapse_whitespace


class ChunkState(str, Enum):
    """Classification state of the line currently being read."""

    TEXT = "text"
    QUOTE = "quote"
    BLOCK_QUOTE = "block_quote"
    SIGNATURE = "signature"


QUOTE_PATTERN = re.compile(r"^\s{0,4}[>|}]")
QUOTE_START_PATTERN = re.compile(
    r"(^\s*Excerpts from)|(^\s*In message )|(^\s*In article )|(^\s*Quoting )"
    r"|((wrote|writes|said|says)\s*:\s*$)"
)
SIG_PATTERN = re.compile(r"(^-- ?$)|(^\s*----------+\s*$)|(^\s*_________+\s*$)")
BLOCK_QUOTE_PATTERN = re.compile(r"^-----\s*Original Message\s*----+$")
BLANK_PATTERN = re.compile(r"^\s*$")
ANY_PATTERN = re.compile(r"")
DECORATIVE_PATTERN = re.compile(r"[=*#_-]{3,}")


@dataclass(frozen=True)
class LineContext:
    """What a transition rule may look at besides the current state."""

    line: str
    next_line: str | None  # next non-blank line, if any
    lines_to_end: int
    max_sig_distance: int


def _always(ctx: LineContext) -> bool:
    return True


def _followed_by_quote(ctx: LineContext) -> bool:
    # A lone "X wrote:" with no quotation after it is just a sentence.
    if ctx.next_line is None:
        return False
    return bool(QUOTE_PATTERN.search(ctx.next_line) or QUOTE_START_PATTERN.search(ctx.next_line))


def _near_end(ctx: LineContext) -> bool:
    return ctx.lines_to_end < ctx.max_sig_distance


@dataclass(frozen=True)
class TransitionRule:
    source: ChunkState
    target: ChunkState
    pattern: re.Pattern[str]
    condition: Callable[[LineContext], bool] = _always

    def applies(self, state: ChunkState, ctx: LineContext) -> bool:
        return (
            self.source is state
            and self.pattern.search(ctx.line) is not None
            and self.condition(ctx)
        )


# First matching rule wins.  BLOCK_QUOTE and SIGNATURE have no outgoing
# rules: once entered they absorb the rest of the body.
TRANSITIONS: tuple[TransitionRule, ...] = (
    TransitionRule(ChunkState.TEXT, ChunkState.QUOTE, QUOTE_PATTERN),
    TransitionRule(ChunkState.TEXT, ChunkState.QUOTE, QUOTE_START_PATTERN, _followed_by_quote),
    TransitionRule(ChunkState.TEXT, ChunkState.SIGNATURE, SIG_PATTERN, _near_end),
    TransitionRule(ChunkState.TEXT, ChunkState.BLOCK_QUOTE, BLOCK_QUOTE_PATTERN),
    TransitionRule(ChunkState.QUOTE, ChunkState.QUOTE, QUOTE_PATTERN),
    TransitionRule(ChunkState.QUOTE, ChunkState.QUOTE, QUOTE_START_PATTERN),
    TransitionRule(ChunkState.QUOTE, ChunkState.QUOTE, BLANK_PATTERN),
    TransitionRule(ChunkState.QUOTE, ChunkState.SIGNATURE, SIG_PATTERN, _near_end),
    TransitionRule(ChunkState.QUOTE, ChunkState.TEXT, ANY_PATTERN),
)


def next_state(state: ChunkState, ctx: LineContext) -> ChunkState:
    """Return the state *ctx.line* belongs to, given the current *state*."""
    for rule in TRANSITIONS:
        if rule.applies(state, ctx):
            return rule.target
    return state


def _following_non_blank(lines: Sequence[str]) -> list[str | None]:
    """For each index, the first non-blank line after it (or None)."""
    following: list[str | None] = [None] * len(lines)
    upcoming: str | None = None
    for i in range(len(lines) - 1, -1, -1):
        following[i] = upcoming
        if not BLANK_PATTERN.match(lines[i]):
            upcoming = lines[i]
    return following


class SnippetBuilder:
    """Accumulates the preview snippet from leading body text.

    A disabled builder (the message already carries a snippet) ignores
    everything it is fed.
    """

    def __init__(self, limit: int = 80, *, enabled: bool = True) -> None:
        self.limit = limit
        self.enabled = enabled
        self.value = ""

    @property
    def full(self) -> bool:
        return len(self.value) >= self.limit

    def feed(self, line: str, state: ChunkState) -> None:
        if not self.enabled or self.full or state is not ChunkState.TEXT:
            return
        if BLANK_PATTERN.match(line) or DECORATIVE_PATTERN.search(line):
            return
        piece = collapse_whitespace(line)
        combined = f"{self.value} {piece}" if self.value else piece
        self.value = combined[: self.limit]


class BodyChunker:
    """Classify the lines of one plain-text body into chunks."""

    def __init__(self, config: MailboxConfig | None = None) -> None:
        self._config = config or MailboxConfig()

    def new_snippet(self, *, enabled: bool = True) -> SnippetBuilder:
        return SnippetBuilder(self._config.snippet_length, enabled=enabled)

    def chunk(self, lines: Sequence[str], snippet: SnippetBuilder | None = None) -> list[Chunk]:
        """Split *lines* into an ordered chunk list.

        If *snippet* is given it is fed every line as it is classified; pass
        the same builder for every text part of a message.
        """
        segments: list[tuple[ChunkState, list[str]]] = []
        state = ChunkState.TEXT
        buffer: list[str] = []
        total = len(lines)
        lookahead = _following_non_blank(lines)

        for i, line in enumerate(lines):
            ctx = LineContext(
                line=line,
                next_line=lookahead[i],
                lines_to_end=total - i,
                max_sig_distance=self._config.max_sig_distance,
            )
            new = next_state(state, ctx)
            if new is state:
                buffer.append(line)
            else:
                self._flush_on_leave(segments, state, buffer)
                buffer = [line]
                state = new

            if snippet is not None:
                snippet.feed(line, state)

        self._emit(segments, state, buffer)
        return [self._build(kind, seg_lines) for kind, seg_lines in segments]

    @staticmethod
    def _emit(segments: list[tuple[ChunkState, list[str]]], kind: ChunkState, lines: list[str]) -> None:
        if not lines:
            return
        # Adjacent text spans (a one-line quote folded back) become one chunk.
        if kind is ChunkState.TEXT and segments and segments[-1][0] is ChunkState.TEXT:
            segments[-1][1].extend(lines)
            return
        segments.append((kind, list(lines)))

    def _flush_on_leave(
        self,
        segments: list[tuple[ChunkState, list[str]]],
        state: ChunkState,
        buffer: list[str],
    ) -> None:
        if state is ChunkState.QUOTE and len(buffer) == 1:
            # One-line quotes read better as body text.
            self._emit(segments, ChunkState.TEXT, buffer)
        else:
            self._emit(segments, state, buffer)

    def _build(self, kind: ChunkState, lines: list[str]) -> Chunk:
        if kind is ChunkState.TEXT:
            return TextChunk.from_lines(lines, self._config.wrap_width)
        if kind is ChunkState.QUOTE:
            return QuoteChunk(lines=tuple(lines))
        if kind is ChunkState.BLOCK_QUOTE:
            return BlockQuoteChunk(lines=tuple(lines))
        return SignatureChunk(lines=tuple(lines))
