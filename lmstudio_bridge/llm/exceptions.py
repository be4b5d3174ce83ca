"""
Error taxonomy for LM Studio requests.

This module provides the exceptions raised by the client and the streaming
pipeline:
- Transport failures (HTTP status, network, wrong content type)
- Per-frame parse failures, recovered inside the stream
- Sink rejections while applying streamed content
- Unexpected non-streaming response shapes
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Failure categories surfaced to callers in a ``QueryFailure``."""
    TRANSPORT = "transport"
    SINK_APPLICATION = "sink_application"
    RESPONSE_FORMAT = "response_format"
    UNKNOWN = "unknown"


class LLMError(Exception):
    """Base LM Studio error with request context."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        provider: str = "lmstudio",
        model: str = "unknown",
        status_code: int | None = None,
        response_data: dict | str | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class TransportError(LLMError):
    """Non-success HTTP status or network failure around the stream."""

    kind = ErrorKind.TRANSPORT


class ResponseFormatError(LLMError):
    """Non-streaming response body did not have the expected shape."""

    kind = ErrorKind.RESPONSE_FORMAT


class SinkApplicationError(LLMError):
    """The destination sink rejected an insertion."""

    kind = ErrorKind.SINK_APPLICATION


class FrameParseError(ValueError):
    """A single stream frame could not be parsed.

    Only raised and handled inside the delta extractor; the frame is skipped
    and the stream continues.
    """

    def __init__(self, message: str, payload: str):
        super().__init__(message)
        self.payload = payload
