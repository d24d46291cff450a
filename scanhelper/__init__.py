"""
scanhelper - streaming chat-completion client for homework help.
"""

from __future__ import annotations

from .chat_service import ChatProfile, ChatService
from .config import Configuration
from .history import Conversation, ConversationMessage
from .llm import (
    ChatMessage,
    ChatRequest,
    ConstructionError,
    DecodeError,
    LLMError,
    MessageRole,
    ProviderConfig,
    ProviderType,
    StreamHandle,
    StreamingChatClient,
    TransportError,
)

__all__ = [
    "ChatMessage",
    "ChatProfile",
    "ChatRequest",
    "ChatService",
    "Configuration",
    "ConstructionError",
    "Conversation",
    "ConversationMessage",
    "DecodeError",
    "LLMError",
    "MessageRole",
    "ProviderConfig",
    "ProviderType",
    "StreamHandle",
    "StreamingChatClient",
    "TransportError",
]
