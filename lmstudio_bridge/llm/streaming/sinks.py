"""
Destinations for streamed content.

A sink is anything that can report a cursor, insert text at a position and
scroll a range into view. ``SinkAdapter`` applies content fragments to a sink
(or only accumulates them when there is none) and keeps the insertion cursor
pointing right after the last inserted character.
"""

from __future__ import annotations

import sys
from typing import Protocol, TextIO, runtime_checkable

import structlog

from ..exceptions import SinkApplicationError
from .models import CursorPosition, StreamSession

EMPTY_RESPONSE_PLACEHOLDER = (
    "No response received from LM Studio. Check the logs for details."
)
RESPONSE_SEPARATOR = "\n\n"

logger = structlog.get_logger(__name__)


@runtime_checkable
class Sink(Protocol):
    """Editor-like destination addressed by line and column."""

    def get_cursor(self) -> CursorPosition: ...

    def insert_at(self, position: CursorPosition, text: str) -> None: ...

    def reveal_range(self, start: CursorPosition, end: CursorPosition) -> None: ...


def advance_cursor(cursor: CursorPosition, text: str) -> CursorPosition:
    """Return the position immediately after ``text`` inserted at ``cursor``."""
    breaks = text.count("\n")
    if breaks:
        return CursorPosition(cursor.line + breaks, len(text.rsplit("\n", 1)[1]))
    return CursorPosition(cursor.line, cursor.ch + len(text))


class TextDocument:
    """In-memory line/column text buffer implementing the Sink protocol."""

    def __init__(self, text: str = "", cursor: CursorPosition | None = None):
        self.lines: list[str] = text.split("\n")
        self.cursor = cursor or CursorPosition()
        self.revealed: list[tuple[CursorPosition, CursorPosition]] = []

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def get_cursor(self) -> CursorPosition:
        return self.cursor.copy()

    def set_cursor(self, line: int, ch: int) -> None:
        self._validate(CursorPosition(line, ch))
        self.cursor = CursorPosition(line, ch)

    def insert_at(self, position: CursorPosition, text: str) -> None:
        self._validate(position)
        current = self.lines[position.line]
        head, tail = current[:position.ch], current[position.ch:]
        new_lines = (head + text + tail).split("\n")
        self.lines[position.line:position.line + 1] = new_lines

    def reveal_range(self, start: CursorPosition, end: CursorPosition) -> None:
        self.revealed.append((start.copy(), end.copy()))

    def _validate(self, position: CursorPosition) -> None:
        if not 0 <= position.line < len(self.lines):
            raise SinkApplicationError(
                f"Line {position.line} out of range (document has "
                f"{len(self.lines)} lines)"
            )
        if not 0 <= position.ch <= len(self.lines[position.line]):
            raise SinkApplicationError(
                f"Column {position.ch} out of range on line {position.line}"
            )


class ConsoleSink:
    """Append-only sink that writes fragments to a text stream."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout
        self._end = CursorPosition()

    def get_cursor(self) -> CursorPosition:
        return self._end.copy()

    def insert_at(self, position: CursorPosition, text: str) -> None:
        if position != self._end:
            raise SinkApplicationError(
                "Console output is append-only; cannot insert at "
                f"{position.line}:{position.ch}"
            )
        self.stream.write(text)
        self._end = advance_cursor(self._end, text)

    def reveal_range(self, start: CursorPosition, end: CursorPosition) -> None:
        self.stream.flush()


def call_sink(sink: Sink, method: str, *args):
    """Invoke a sink method; foreign failures become ``SinkApplicationError``."""
    try:
        return getattr(sink, method)(*args)
    except SinkApplicationError:
        raise
    except Exception as e:
        raise SinkApplicationError(f"Sink {method} failed: {e}") from e


class SinkAdapter:
    """Applies content fragments to an optional sink for one stream session."""

    def __init__(
        self,
        session: StreamSession,
        sink: Sink | None = None,
        *,
        log_fragments: bool = False,
    ):
        self.session = session
        self.sink = sink
        self.log_fragments = log_fragments

    def apply(self, fragment: str) -> None:
        """Apply one fragment and advance the session cursor."""
        session = self.session
        if self.sink is not None:
            cursor = self._insertion_point()
            call_sink(self.sink, "insert_at", cursor, fragment)
            session.cursor = advance_cursor(cursor, fragment)
            call_sink(self.sink, "reveal_range", session.cursor, session.cursor)

        session.full_text += fragment
        session.fragments_applied += 1
        if self.log_fragments:
            logger.debug("Applied fragment", fragment=fragment)

    def finish(self) -> None:
        """Write the placeholder when a live sink received no content."""
        if self.sink is None or not self.session.is_empty:
            return
        logger.error("Empty response from LM Studio")
        cursor = self._insertion_point()
        call_sink(self.sink, "insert_at", cursor, EMPTY_RESPONSE_PLACEHOLDER)
        self.session.cursor = advance_cursor(cursor, EMPTY_RESPONSE_PLACEHOLDER)
        call_sink(self.sink, "reveal_range", self.session.cursor, self.session.cursor)

    def _insertion_point(self) -> CursorPosition:
        # First use: start from the sink cursor, separated from existing text
        if self.session.cursor is None:
            cursor = call_sink(self.sink, "get_cursor").copy()
            if cursor.ch > 0:
                call_sink(self.sink, "insert_at", cursor, RESPONSE_SEPARATOR)
                cursor = CursorPosition(cursor.line + 2, 0)
            self.session.cursor = cursor
        return self.session.cursor


def write_response(sink: Sink, text: str) -> CursorPosition:
    """Insert a complete reply at the sink cursor and reveal it.

    Returns the position right after the inserted text.
    """
    start = call_sink(sink, "get_cursor").copy()
    call_sink(sink, "insert_at", start, text)
    end = advance_cursor(start, text)
    call_sink(sink, "reveal_range", start, end)
    return end
