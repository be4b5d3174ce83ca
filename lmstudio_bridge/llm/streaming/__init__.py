"""
Streaming pipeline for LM Studio chat completions.

This package contains:
- SSE frame decoding across chunk boundaries
- Delta extraction with malformed-frame recovery
- Sink adapters that render fragments live
- The stream driver tying them together
"""

from __future__ import annotations

from .driver import run_stream
from .models import CursorPosition, DeltaEvent, Frame, StreamSession
from .parser import DeltaExtractor, FrameDecoder, decode_frames, extract_delta
from .sinks import (
    EMPTY_RESPONSE_PLACEHOLDER,
    ConsoleSink,
    Sink,
    SinkAdapter,
    TextDocument,
    call_sink,
    write_response,
)

__all__ = [
    "EMPTY_RESPONSE_PLACEHOLDER",
    "ConsoleSink",
    "CursorPosition",
    "DeltaEvent",
    "DeltaExtractor",
    "Frame",
    "FrameDecoder",
    "Sink",
    "SinkAdapter",
    "StreamSession",
    "TextDocument",
    "call_sink",
    "decode_frames",
    "extract_delta",
    "run_stream",
    "write_response",
]
