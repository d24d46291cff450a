"""
Core LLM dataclasses for chat-completion requests.

This module provides the foundational dataclasses for LLM interactions:
- Provider configurations
- Message structures
- Request payload construction
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import ConstructionError

# Wire content for a message that only carries an image
IMAGE_PLACEHOLDER = "[User sent an image]"


class ProviderType(Enum):
    """Supported OpenAI-compatible providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GROQ = "groq"

    @classmethod
    def detect(cls, base_url: str) -> ProviderType:
        """Detect provider type from base URL."""
        base_url_lower = base_url.lower()

        if "openrouter.ai" in base_url_lower:
            return cls.OPENROUTER
        if "groq.com" in base_url_lower:
            return cls.GROQ

        return cls.OPENAI


class MessageRole(Enum):
    """OpenAI-compatible message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    """OpenAI-compatible message structure."""
    role: MessageRole
    content: str = ""
    has_image: bool = False

    def to_wire(self) -> dict[str, str]:
        content = self.content
        if not content and self.has_image:
            content = IMAGE_PLACEHOLDER
        return {"role": self.role.value, "content": content}


@dataclass(frozen=True)
class ChatRequest:
    """Streaming chat-completion request. Message order is sent verbatim."""
    messages: tuple[ChatMessage, ...]
    model: str
    temperature: float = 0.7
    stream: bool = field(default=True, init=False)

    @classmethod
    def build(
        cls,
        system_prompt: str,
        history: Iterable[ChatMessage],
        *,
        model: str,
        temperature: float,
    ) -> ChatRequest:
        """Create a request with the system prompt ahead of the history."""
        messages = (ChatMessage(MessageRole.SYSTEM, system_prompt), *history)
        return cls(messages=messages, model=model, temperature=temperature)

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON body for the chat-completions endpoint.

        Raises:
            ConstructionError: If the request has no messages.
        """
        if not self.messages:
            raise ConstructionError(
                "Chat request must contain at least one message", model=self.model
            )

        return {
            "model": self.model,
            "messages": [message.to_wire() for message in self.messages],
            "temperature": self.temperature,
            "stream": self.stream,
        }


@dataclass(frozen=True)
class ProviderConfig:
    """Provider configuration passed explicitly to the client."""
    provider: ProviderType
    base_url: str
    model: str
    api_key: str
    temperature: float = 0.7

    # Connection settings
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    write_timeout: float = 10.0
    pool_timeout: float = 10.0

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"
