"""
LLM integration for streaming chat completions.

This package provides:
- Type-safe dataclass models for requests and provider configuration
- An httpx-based streaming client
- Event-stream parsing decoupled from the transport
- A small error taxonomy
"""

from __future__ import annotations

from .client import StreamHandle, StreamingChatClient
from .exceptions import ConstructionError, DecodeError, LLMError, TransportError
from .models import (
    IMAGE_PLACEHOLDER,
    ChatMessage,
    ChatRequest,
    MessageRole,
    ProviderConfig,
    ProviderType,
)

__all__ = [
    "IMAGE_PLACEHOLDER",
    # Core models
    "ChatMessage",
    "ChatRequest",
    # Exceptions
    "ConstructionError",
    "DecodeError",
    "LLMError",
    "MessageRole",
    "ProviderConfig",
    "ProviderType",
    # Client
    "StreamHandle",
    "StreamingChatClient",
    "TransportError",
]
