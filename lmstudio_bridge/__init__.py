"""Bridge between a text editor and a local LM Studio inference server."""

from __future__ import annotations

from .config import Configuration, LMStudioSettings, QueryOptions
from .llm.client import LMStudioClient
from .llm.streaming import ConsoleSink, CursorPosition, Sink, TextDocument, run_stream

__version__ = "0.1.0"

__all__ = [
    "Configuration",
    "ConsoleSink",
    "CursorPosition",
    "LMStudioClient",
    "LMStudioSettings",
    "QueryOptions",
    "Sink",
    "TextDocument",
    "run_stream",
]
