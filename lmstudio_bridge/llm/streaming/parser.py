"""
SSE frame decoding and delta extraction for streamed chat completions.

Bytes arrive in arbitrary chunks: a ``data:`` line may be split across
chunks, several lines may share a chunk, and a multi-byte UTF-8 character may
straddle a boundary. ``FrameDecoder`` turns that into complete frames and
``DeltaExtractor`` turns each frame payload into a content fragment.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, AsyncIterable, Iterator
from typing import Any

import structlog

from ..exceptions import FrameParseError
from .models import DeltaEvent, Frame, StreamSession

DATA_PREFIX = "data: "

logger = structlog.get_logger(__name__)


class FrameDecoder:
    """Incremental byte-to-frame decoder bound to one stream session."""

    def __init__(self, session: StreamSession | None = None):
        self.session = session or StreamSession()

    def feed(self, chunk: bytes) -> Iterator[Frame]:
        """Decode one transport chunk and yield every frame it completes.

        The trailing, possibly incomplete, line stays buffered for the next
        chunk. The terminal ``[DONE]`` frame is yielded like any other; it is
        up to the caller to stop on it.
        """
        session = self.session
        session.buffer += session.decoder.decode(chunk)
        *lines, session.buffer = session.buffer.split("\n")

        for raw_line in lines:
            frame = self.parse_line(raw_line)
            if frame is not None:
                session.frames_seen += 1
                yield frame

    @staticmethod
    def parse_line(raw_line: str) -> Frame | None:
        """Return a frame for a ``data:`` line, ``None`` for anything else."""
        line = raw_line.strip()
        if not line.startswith(DATA_PREFIX):
            return None
        return Frame(payload=line[len(DATA_PREFIX):].strip())

    def finish(self) -> None:
        """Flush the decoder at end of transport and drop any partial line."""
        session = self.session
        residual = session.buffer + session.decoder.decode(b"", final=True)
        if residual.strip():
            logger.debug(
                "Discarding incomplete trailing line",
                residual_length=len(residual),
            )
        session.buffer = ""


async def decode_frames(
    chunks: AsyncIterable[bytes],
    session: StreamSession | None = None,
) -> AsyncGenerator[Frame]:
    """Yield content frames from a byte stream until exhaustion or ``[DONE]``."""
    decoder = FrameDecoder(session)

    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            if frame.is_terminal:
                decoder.session.terminated_by_sentinel = True
                return
            yield frame

    decoder.finish()


class DeltaExtractor:
    """Parses frame payloads into delta events, skipping malformed frames."""

    def __init__(self, session: StreamSession | None = None):
        self.session = session or StreamSession()

    @staticmethod
    def parse(payload: str) -> DeltaEvent:
        """
        Parse a frame payload into a DeltaEvent.

        Raises:
            FrameParseError: if the payload is not JSON or not shaped like a
                chat-completion chunk.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise FrameParseError(f"JSON decode error: {e}", payload) from e

        if not isinstance(data, dict):
            raise FrameParseError(
                f"Expected JSON object, got {type(data).__name__}", payload
            )

        if error := data.get("error"):
            logger.warning("Server reported an error in stream", error=error)
            return DeltaEvent()

        choices = data.get("choices")
        if not choices:
            return DeltaEvent()
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise FrameParseError("Malformed 'choices' field", payload)

        choice: dict[str, Any] = choices[0]
        delta = choice.get("delta") or {}
        if not isinstance(delta, dict):
            raise FrameParseError("Malformed 'delta' field", payload)

        content = delta.get("content")
        return DeltaEvent(
            content=content if isinstance(content, str) else None,
            role=delta.get("role"),
            finish_reason=choice.get("finish_reason"),
        )

    def extract(self, payload: str) -> str | None:
        """Return the content fragment of a payload, or ``None``.

        Parse failures are logged and counted on the session, never raised.
        """
        try:
            event = self.parse(payload)
        except FrameParseError as e:
            self.session.malformed_frames += 1
            logger.warning(
                "Skipping malformed stream frame",
                error=str(e),
                payload=e.payload[:200],
            )
            return None

        if event.finish_reason:
            logger.debug("Stream finish reason", finish_reason=event.finish_reason)
        return event.content or None


def extract_delta(payload: str) -> str | None:
    """Convenience wrapper around a throwaway ``DeltaExtractor``."""
    return DeltaExtractor().extract(payload)
