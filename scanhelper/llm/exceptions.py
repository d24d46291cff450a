"""
Error handling for streaming chat-completion requests.

This module provides the error taxonomy surfaced by the streaming client:
- Construction errors: the request never reached the network
- Transport errors: connection, timeout, HTTP status and mid-stream failures
- Decode errors: a single frame could not be decoded (never surfaced to callers)
"""

from __future__ import annotations


class LLMError(Exception):
    """Base LLM error with request context."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class ConstructionError(LLMError):
    """Request body or endpoint is invalid; no network call was attempted."""
    pass


class TransportError(LLMError):
    """Connection failure, timeout, error status or disconnect before [DONE]."""
    pass


class DecodeError(LLMError):
    """A data frame payload is not a decodable delta."""

    def __init__(self, message: str, payload: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.payload = payload
