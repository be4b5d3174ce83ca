"""
Streaming-specific dataclasses for the SSE response pipeline.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass, field

DONE_SENTINEL = "[DONE]"


@dataclass
class CursorPosition:
    """Insertion point in a line/column addressed text buffer."""
    line: int = 0
    ch: int = 0

    def copy(self) -> CursorPosition:
        return CursorPosition(self.line, self.ch)


@dataclass(frozen=True)
class Frame:
    """One ``data: <payload>`` line with the prefix stripped."""
    payload: str

    @property
    def is_terminal(self) -> bool:
        return self.payload == DONE_SENTINEL


@dataclass(frozen=True)
class DeltaEvent:
    """One parsed step of model output."""
    content: str | None = None
    role: str | None = None
    finish_reason: str | None = None


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass
class StreamSession:
    """Mutable state for a single streaming call."""
    decoder: codecs.IncrementalDecoder = field(default_factory=_utf8_decoder)
    buffer: str = ""
    full_text: str = ""
    cursor: CursorPosition | None = None
    frames_seen: int = 0
    malformed_frames: int = 0
    fragments_applied: int = 0
    terminated_by_sentinel: bool = False

    @property
    def is_empty(self) -> bool:
        return self.fragments_applied == 0
