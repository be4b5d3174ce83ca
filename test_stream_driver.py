"""
End-to-end tests for the stream driver: bytes in, text and sink edits out.

Replaying the same stream against a live sink inserts the content again;
idempotence is not a property of the driver and is not asserted here.
"""

import json

import pytest

from lmstudio_bridge.llm.exceptions import SinkApplicationError, TransportError
from lmstudio_bridge.llm.streaming.driver import run_stream
from lmstudio_bridge.llm.streaming.models import CursorPosition
from lmstudio_bridge.llm.streaming.sinks import EMPTY_RESPONSE_PLACEHOLDER, TextDocument


def frame(content: str) -> bytes:
    chunk = {"choices": [{"delta": {"content": content}, "finish_reason": None}]}
    return f"data: {json.dumps(chunk)}\n\n".encode()


DONE = b"data: [DONE]\n\n"


class TrackedSource:
    """Async byte source that records whether it was closed."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None):
        self._chunks = list(chunks)
        self._error = error
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self._chunks:
            return self._chunks.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


class TestRunStream:
    """Test the full decode/extract/apply pass."""

    @pytest.mark.asyncio
    async def test_accumulate_only(self):
        source = TrackedSource([frame("Hello"), frame(" wor"), frame("ld"), DONE])
        assert await run_stream(source) == "Hello world"
        assert source.closed

    @pytest.mark.asyncio
    async def test_live_sink_hello_world(self):
        """Fragments land after the separator; cursor ends at 2:11."""
        doc = TextDocument("Hello", CursorPosition(0, 5))
        body = frame("Hello") + frame(" wor") + frame("ld") + DONE
        # Deliberately awkward chunking
        chunks = [body[:7], body[7:60], body[60:61], body[61:]]

        text = await run_stream(TrackedSource(chunks), doc)

        assert text == "Hello world"
        assert doc.text == "Hello\n\nHello world"
        assert doc.revealed[-1] == (CursorPosition(2, 11), CursorPosition(2, 11))

    @pytest.mark.asyncio
    async def test_done_only_writes_placeholder_once(self):
        doc = TextDocument()
        text = await run_stream(TrackedSource([DONE]), doc)
        assert text == ""
        assert doc.text.count(EMPTY_RESPONSE_PLACEHOLDER) == 1

    @pytest.mark.asyncio
    async def test_done_only_without_sink(self):
        assert await run_stream(TrackedSource([DONE])) == ""

    @pytest.mark.asyncio
    async def test_malformed_frame_in_the_middle(self):
        """A bad frame is skipped; its neighbours still apply in order."""
        doc = TextDocument()
        chunks = [frame("first"), b"data: {not json\n\n", frame(" second"), DONE]
        text = await run_stream(TrackedSource(chunks), doc)
        assert text == "first second"
        assert doc.text == "first second"

    @pytest.mark.asyncio
    async def test_stops_reading_at_done(self):
        """Content after [DONE] is neither read into output nor applied."""
        source = TrackedSource([frame("kept"), DONE, frame("dropped")])
        assert await run_stream(source) == "kept"
        assert source.closed

    @pytest.mark.asyncio
    async def test_transport_end_without_done(self):
        text = await run_stream(TrackedSource([frame("a"), frame("b")]))
        assert text == "ab"

    @pytest.mark.asyncio
    async def test_transport_error_before_bytes_leaves_sink_untouched(self):
        """No separator, no placeholder, no reveal."""
        doc = TextDocument("existing", CursorPosition(0, 8))
        source = TrackedSource([], error=TransportError("connection reset"))

        with pytest.raises(TransportError):
            await run_stream(source, doc)

        assert doc.text == "existing"
        assert doc.revealed == []
        assert source.closed

    @pytest.mark.asyncio
    async def test_transport_error_mid_stream_keeps_partial_content(self):
        doc = TextDocument()
        source = TrackedSource([frame("partial")], error=TransportError("reset"))
        with pytest.raises(TransportError):
            await run_stream(source, doc)
        assert doc.text == "partial"

    @pytest.mark.asyncio
    async def test_sink_rejection_aborts_stream(self):
        """Earlier fragments stay applied; later frames are not read."""

        class OneShotDocument(TextDocument):
            def insert_at(self, position, text):
                if self.text:
                    raise SinkApplicationError("document is read-only now")
                super().insert_at(position, text)

        doc = OneShotDocument()
        source = TrackedSource([frame("one"), frame("two"), frame("three"), DONE])

        with pytest.raises(SinkApplicationError):
            await run_stream(source, doc)

        assert doc.text == "one"
        assert source.closed

    @pytest.mark.asyncio
    async def test_each_frame_applied_once(self):
        """Frames split across chunks are not double counted."""
        body = frame("x") * 5 + DONE
        chunks = [body[i:i + 3] for i in range(0, len(body), 3)]
        assert await run_stream(TrackedSource(chunks)) == "xxxxx"
