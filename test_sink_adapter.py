"""
Tests for sinks and the sink adapter cursor bookkeeping.
"""

import io

import pytest

from lmstudio_bridge.llm.exceptions import SinkApplicationError
from lmstudio_bridge.llm.streaming.models import CursorPosition, StreamSession
from lmstudio_bridge.llm.streaming.sinks import (
    EMPTY_RESPONSE_PLACEHOLDER,
    ConsoleSink,
    Sink,
    SinkAdapter,
    TextDocument,
    advance_cursor,
    write_response,
)


def make_adapter(text: str = "", line: int = 0, ch: int = 0):
    doc = TextDocument(text, CursorPosition(line, ch))
    session = StreamSession()
    return doc, session, SinkAdapter(session, doc)


class TestTextDocument:
    """Test the in-memory document sink."""

    def test_insert_within_line(self):
        doc = TextDocument("Hello")
        doc.insert_at(CursorPosition(0, 5), " world")
        assert doc.text == "Hello world"

    def test_insert_multiline_splits_lines(self):
        doc = TextDocument("ab")
        doc.insert_at(CursorPosition(0, 1), "1\n2\n3")
        assert doc.lines == ["a1", "2", "3b"]

    def test_invalid_line_rejected(self):
        doc = TextDocument("one line")
        with pytest.raises(SinkApplicationError):
            doc.insert_at(CursorPosition(3, 0), "x")

    def test_invalid_column_rejected(self):
        doc = TextDocument("short")
        with pytest.raises(SinkApplicationError):
            doc.insert_at(CursorPosition(0, 99), "x")

    def test_satisfies_protocol(self):
        assert isinstance(TextDocument(), Sink)
        assert isinstance(ConsoleSink(io.StringIO()), Sink)


class TestAdvanceCursor:
    """Test cursor arithmetic."""

    def test_single_line(self):
        assert advance_cursor(CursorPosition(3, 4), "abc") == CursorPosition(3, 7)

    def test_embedded_break_resets_column(self):
        """Column becomes the length after the last break."""
        assert advance_cursor(CursorPosition(0, 42), "line1\nline2") == CursorPosition(1, 5)

    def test_trailing_break(self):
        assert advance_cursor(CursorPosition(2, 9), "end\n") == CursorPosition(3, 0)


class TestSinkAdapter:
    """Test fragment application against a live sink."""

    def test_hello_world_lands_after_separator(self):
        """A cursor mid-line gets two breaks before the output."""
        doc, session, adapter = make_adapter("Hello", 0, 5)
        for fragment in ["Hello", " wor", "ld"]:
            adapter.apply(fragment)

        assert session.full_text == "Hello world"
        assert session.cursor == CursorPosition(2, 11)
        assert doc.text == "Hello\n\nHello world"

    def test_no_separator_at_line_start(self):
        """Output starts in place when the cursor is at column 0."""
        doc, session, adapter = make_adapter("first\n")
        doc.set_cursor(1, 0)
        adapter.apply("reply")
        assert doc.text == "first\nreply"
        assert session.cursor == CursorPosition(1, 5)

    def test_multiline_fragment(self):
        """Line advances by the break count, column by the tail length."""
        doc, session, adapter = make_adapter()
        adapter.apply("abcdef")
        adapter.apply("line1\nline2")
        assert session.cursor == CursorPosition(1, 5)
        assert doc.text == "abcdefline1\nline2"

    def test_cursor_tracks_interleaved_multiline_fragments(self):
        """Cursor always sits right after the last inserted character."""
        doc, session, adapter = make_adapter("tail", 0, 0)
        for fragment in ["a\n", "b", "\n\nc", "d\ne"]:
            adapter.apply(fragment)
            assert doc.text.startswith(session.full_text)
        assert doc.text == "a\nb\n\ncd\netail"
        assert session.cursor == CursorPosition(4, 1)

    def test_reveals_every_fragment(self):
        doc, session, adapter = make_adapter()
        adapter.apply("x")
        adapter.apply("y")
        assert doc.revealed == [
            (CursorPosition(0, 1), CursorPosition(0, 1)),
            (CursorPosition(0, 2), CursorPosition(0, 2)),
        ]

    def test_accumulate_only(self):
        """Without a sink fragments are only accumulated."""
        session = StreamSession()
        adapter = SinkAdapter(session)
        adapter.apply("a")
        adapter.apply("b")
        adapter.finish()
        assert session.full_text == "ab"
        assert session.cursor is None

    def test_placeholder_on_empty(self):
        """An empty stream writes the placeholder once."""
        doc, session, adapter = make_adapter("note", 0, 4)
        adapter.finish()
        assert doc.text == "note\n\n" + EMPTY_RESPONSE_PLACEHOLDER
        assert session.full_text == ""

    def test_no_placeholder_after_content(self):
        doc, session, adapter = make_adapter()
        adapter.apply("content")
        adapter.finish()
        assert EMPTY_RESPONSE_PLACEHOLDER not in doc.text

    def test_foreign_sink_error_wrapped(self):
        """Arbitrary sink exceptions become SinkApplicationError."""

        class BrokenSink:
            def get_cursor(self):
                return CursorPosition()

            def insert_at(self, position, text):
                raise IndexError("no such position")

            def reveal_range(self, start, end):
                pass

        adapter = SinkAdapter(StreamSession(), BrokenSink())
        with pytest.raises(SinkApplicationError) as exc_info:
            adapter.apply("x")
        assert isinstance(exc_info.value.__cause__, IndexError)

    def test_reveal_error_wrapped(self):
        """A failing scroll is reported as a sink failure."""

        class DetachedView(TextDocument):
            def reveal_range(self, start, end):
                raise RuntimeError("view detached")

        adapter = SinkAdapter(StreamSession(), DetachedView())
        with pytest.raises(SinkApplicationError) as exc_info:
            adapter.apply("x")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_cursor_error_wrapped(self):
        class ClosedDocument(TextDocument):
            def get_cursor(self):
                raise LookupError("document closed")

        adapter = SinkAdapter(StreamSession(), ClosedDocument())
        with pytest.raises(SinkApplicationError):
            adapter.finish()


class TestConsoleSink:
    """Test the terminal sink."""

    def test_writes_through_adapter(self):
        out = io.StringIO()
        session = StreamSession()
        adapter = SinkAdapter(session, ConsoleSink(out))
        adapter.apply("one\n")
        adapter.apply("two")
        assert out.getvalue() == "one\ntwo"
        assert session.cursor == CursorPosition(1, 3)

    def test_rejects_out_of_order_insert(self):
        sink = ConsoleSink(io.StringIO())
        with pytest.raises(SinkApplicationError):
            sink.insert_at(CursorPosition(5, 0), "x")


class TestWriteResponse:
    """Test one-shot rendering of a complete reply."""

    def test_inserts_and_reveals_range(self):
        doc = TextDocument("", CursorPosition(0, 0))
        end = write_response(doc, "a\nbc")
        assert doc.text == "a\nbc"
        assert end == CursorPosition(1, 2)
        assert doc.revealed == [(CursorPosition(0, 0), CursorPosition(1, 2))]

    def test_reveal_error_wrapped(self):
        class DetachedView(TextDocument):
            def reveal_range(self, start, end):
                raise RuntimeError("view detached")

        doc = DetachedView()
        with pytest.raises(SinkApplicationError):
            write_response(doc, "reply")
        assert doc.text == "reply"
