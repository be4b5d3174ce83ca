"""
Single-pass driver for a streamed chat-completion body.
"""

from __future__ import annotations

from collections.abc import AsyncIterable

import structlog

from .models import StreamSession
from .parser import DeltaExtractor, decode_frames
from .sinks import Sink, SinkAdapter

logger = structlog.get_logger(__name__)


async def run_stream(
    chunks: AsyncIterable[bytes],
    sink: Sink | None = None,
    *,
    log_fragments: bool = False,
) -> str:
    """
    Consume a byte stream of SSE frames and return the assembled reply.

    Frames are decoded, their content fragments extracted, and each fragment
    applied to ``sink`` (when given) as it arrives. Reading stops when the
    source is exhausted or a ``[DONE]`` frame is seen. Errors from the source
    or the sink propagate; the empty-response placeholder is only written
    after a stream that completed without any content.

    Args:
        chunks: Raw response body chunks, e.g. ``response.aiter_bytes()``
        sink: Optional live destination for the fragments
        log_fragments: Log every applied fragment at debug level

    Returns:
        The full reply text, ``""`` when no content was received.
    """
    session = StreamSession()
    extractor = DeltaExtractor(session)
    adapter = SinkAdapter(session, sink, log_fragments=log_fragments)
    frames = decode_frames(chunks, session)

    try:
        async for frame in frames:
            fragment = extractor.extract(frame.payload)
            if fragment is not None:
                adapter.apply(fragment)
    finally:
        await frames.aclose()
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    adapter.finish()

    logger.debug(
        "Stream finished",
        frames=session.frames_seen,
        fragments=session.fragments_applied,
        malformed_frames=session.malformed_frames,
        terminated_by_sentinel=session.terminated_by_sentinel,
        characters=len(session.full_text),
    )
    return session.full_text
