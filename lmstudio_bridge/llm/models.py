"""
Request and result dataclasses for LM Studio chat completions.

This module provides:
- OpenAI-compatible message structures
- The canonical chat-completion request
- Tagged query results (success payload or a categorized failure)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import ErrorKind


class MessageRole(Enum):
    """OpenAI-compatible message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    """OpenAI-compatible message structure."""
    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatCompletionRequest:
    """Complete chat-completion request body."""
    model: str
    messages: list[ChatMessage] = field(default_factory=list)
    stream: bool = True
    max_tokens: int = 2048
    temperature: float = 0.7
    top_p: float = 0.9

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON body expected by ``/v1/chat/completions``."""
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "stream": self.stream,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
        }


@dataclass(frozen=True)
class QuerySuccess:
    """Query completed; ``text`` is the full reply (may be empty)."""
    text: str


@dataclass(frozen=True)
class QueryFailure:
    """Query failed with one of the error taxonomy kinds."""
    kind: ErrorKind
    message: str
    status_code: int | None = None


QueryResult = QuerySuccess | QueryFailure
