"""
LM Studio integration over its OpenAI-compatible HTTP API.

This package provides:
- An httpx-based async client for streaming and single-shot completions
- Request and tagged result dataclasses
- The error taxonomy shared with the streaming pipeline
"""

from __future__ import annotations

from .client import LMStudioClient
from .exceptions import (
    ErrorKind,
    FrameParseError,
    LLMError,
    ResponseFormatError,
    SinkApplicationError,
    TransportError,
)
from .models import (
    ChatCompletionRequest,
    ChatMessage,
    MessageRole,
    QueryFailure,
    QueryResult,
    QuerySuccess,
)

__all__ = [
    "ChatCompletionRequest",
    "ChatMessage",
    # Exceptions
    "ErrorKind",
    "FrameParseError",
    # Client
    "LMStudioClient",
    "LLMError",
    "MessageRole",
    "QueryFailure",
    "QueryResult",
    "QuerySuccess",
    "ResponseFormatError",
    "SinkApplicationError",
    "TransportError",
]
