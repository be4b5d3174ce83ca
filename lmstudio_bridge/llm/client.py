"""
HTTP client for the LM Studio OpenAI-compatible API.

Streaming requests are handed to the streaming pipeline as raw byte chunks;
single-shot requests, model listing and connection checks are plain
request/response calls.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from ..config import LMStudioSettings, QueryOptions
from ..logging_utils import ContextualLogger, ErrorHandler, log_operation
from .exceptions import (
    LLMError,
    ResponseFormatError,
    SinkApplicationError,
    TransportError,
)
from .models import (
    ChatCompletionRequest,
    ChatMessage,
    MessageRole,
    QueryResult,
    QuerySuccess,
)
from .streaming.driver import run_stream
from .streaming.sinks import Sink, call_sink, write_response

HTTP_OK = 200
STREAM_CONTENT_TYPES = ("text/event-stream", "stream")
NO_CHAT_RESPONSE = "No response from model"
NO_RESPONSE_RECEIVED = "No response received"


class LMStudioClient:
    """Async client for chat completions against a local LM Studio server."""

    def __init__(
        self,
        settings: LMStudioSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        log_fragments: bool = False,
    ) -> None:
        self.settings: LMStudioSettings = settings or LMStudioSettings()
        self.log_fragments = log_fragments
        self._owns_client = http_client is None
        self.client: httpx.AsyncClient = http_client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(
                self.settings.http_client.read_timeout,
                connect=self.settings.http_client.connect_timeout,
            ),
        )
        self.log = ContextualLogger({"provider": "lmstudio"})

    def update_settings(self, **changes: Any) -> None:
        """Apply a partial settings update for subsequent requests."""
        self.settings = self.settings.model_copy(update=changes)

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url}{path}"

    # Request building

    def build_request(
        self,
        prompt: str,
        options: QueryOptions | None = None,
    ) -> ChatCompletionRequest:
        """Build the chat request for a single prompt.

        An optional system prompt comes first, followed by the user prompt.
        """
        options = options or QueryOptions()
        messages: list[ChatMessage] = []
        if options.system_prompt:
            messages.append(ChatMessage(MessageRole.SYSTEM, options.system_prompt))
        messages.append(ChatMessage(MessageRole.USER, prompt))
        return self.build_chat_request(messages, options)

    def build_chat_request(
        self,
        messages: list[ChatMessage],
        options: QueryOptions | None = None,
    ) -> ChatCompletionRequest:
        """Build a chat request, filling unset options from settings."""
        options = options or QueryOptions()
        sampling = self.settings.sampling

        def pick(value, default):
            return default if value is None else value

        return ChatCompletionRequest(
            model=options.model or self.settings.default_model,
            messages=list(messages),
            stream=pick(options.stream, sampling.stream),
            max_tokens=pick(options.max_tokens, sampling.max_tokens),
            temperature=pick(options.temperature, sampling.temperature),
            top_p=pick(options.top_p, sampling.top_p),
        )

    # Streaming

    @asynccontextmanager
    async def post_streaming(
        self, request: ChatCompletionRequest
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming completion and yield the live response.

        The response is closed when the block exits by any path. httpx
        failures raised while the block reads the body are re-raised as
        TransportError.

        Raises:
            TransportError: On non-200 status, a non event-stream content
                type, or a network failure.
        """
        request.stream = True
        url = self._url(self.settings.endpoints.chat_completions)
        try:
            async with self.client.stream(
                "POST", url, json=request.to_payload()
            ) as response:
                if response.status_code != HTTP_OK:
                    error_text = (await response.aread()).decode(
                        "utf-8", errors="replace"
                    )
                    raise TransportError(
                        f"Streaming API error {response.status_code}: {error_text}",
                        model=request.model,
                        status_code=response.status_code,
                        response_data=error_text,
                    )

                content_type = response.headers.get("content-type", "")
                if not any(t in content_type for t in STREAM_CONTENT_TYPES):
                    raise TransportError(
                        f"Expected streaming response, got content-type: "
                        f"{content_type}",
                        model=request.model,
                        status_code=response.status_code,
                    )

                yield response
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise TransportError(
                f"HTTP error: {e!s}", model=request.model
            ) from e

    @log_operation("stream_completion")
    async def stream_completion(
        self,
        prompt: str,
        options: QueryOptions | None = None,
        sink: Sink | None = None,
    ) -> str:
        """Stream a completion, applying fragments to ``sink`` as they arrive.

        Returns the full reply text; ``""`` if the server produced no content.
        """
        request = self.build_request(prompt, options)
        async with self.post_streaming(request) as response:
            return await run_stream(
                response.aiter_bytes(), sink, log_fragments=self.log_fragments
            )

    # Single-shot requests

    async def _post_json(self, request: ChatCompletionRequest) -> dict[str, Any]:
        request.stream = False
        url = self._url(self.settings.endpoints.chat_completions)
        try:
            response = await self.client.post(url, json=request.to_payload())
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e!s}", model=request.model) from e

        if response.status_code != HTTP_OK:
            raise TransportError(
                f"API error {response.status_code}: {response.text}",
                model=request.model,
                status_code=response.status_code,
                response_data=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ResponseFormatError(
                f"Response is not valid JSON: {e}", model=request.model
            ) from e
        if not isinstance(data, dict):
            raise ResponseFormatError(
                f"Expected JSON object, got {type(data).__name__}",
                model=request.model,
            )
        return data

    @staticmethod
    def _message_content(data: dict[str, Any]) -> str:
        choices = data.get("choices") or [{}]
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise ResponseFormatError(f"Malformed 'choices' field: {choices!r}")
        message = choices[0].get("message") or {}
        return message.get("content") or ""

    async def complete(
        self, prompt: str, options: QueryOptions | None = None
    ) -> str:
        """Single non-streaming completion; ``""`` if the reply has no content."""
        data = await self._post_json(self.build_request(prompt, options))
        return self._message_content(data)

    async def send_chat(
        self,
        messages: list[ChatMessage],
        options: QueryOptions | None = None,
    ) -> str:
        """Non-streaming multi-message chat."""
        data = await self._post_json(self.build_chat_request(messages, options))
        return self._message_content(data) or NO_CHAT_RESPONSE

    async def write_completion(
        self,
        prompt: str,
        sink: Sink,
        options: QueryOptions | None = None,
    ) -> str:
        """Non-streaming completion rendered into ``sink`` in one insertion.

        On a request failure an error note is written at the sink cursor and
        the request error is re-raised, even when the sink rejects the note.
        """
        try:
            content = await self.complete(prompt, options) or NO_RESPONSE_RECEIVED
        except (TransportError, ResponseFormatError) as e:
            self.log.error("Non-streaming completion failed", error=str(e))
            try:
                cursor = call_sink(sink, "get_cursor")
                call_sink(sink, "insert_at", cursor, f"\n\nError: {e}")
            except SinkApplicationError as note_error:
                self.log.warning("Could not write error note", error=str(note_error))
            raise
        write_response(sink, content)
        return content

    async def query(
        self,
        prompt: str,
        options: QueryOptions | None = None,
        sink: Sink | None = None,
    ) -> QueryResult:
        """
        Run a prompt and return a tagged result instead of raising.

        Streams unless ``options.stream`` (or the configured default) is off.
        """
        options = options or QueryOptions()
        stream = self.settings.sampling.stream if options.stream is None else options.stream
        try:
            if stream:
                text = await self.stream_completion(prompt, options, sink)
            elif sink is not None:
                text = await self.write_completion(prompt, sink, options)
            else:
                text = await self.complete(prompt, options)
        except LLMError as e:
            return ErrorHandler.to_query_failure(
                e,
                "query",
                {"model": options.model or self.settings.default_model},
            )
        return QuerySuccess(text=text)

    # Models

    async def list_models(self) -> list[str]:
        """Ids of the models the server exposes; ``[]`` on any failure."""
        url = self._url(self.settings.endpoints.models)
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.log.error("Failed to fetch models", url=url, error=str(e))
            return []

        entries = data.get("data") if isinstance(data, dict) else None
        return [
            entry["id"]
            for entry in entries or []
            if isinstance(entry, dict) and entry.get("id")
        ]

    async def check_connection(self) -> bool:
        """True when the models endpoint answers with a success status."""
        url = self._url(self.settings.endpoints.models)
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            self.log.warning("Connection test failed", url=url, error=str(e))
            return False
        return response.is_success

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> LMStudioClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
