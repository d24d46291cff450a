"""
Streaming functionality for chat-completion clients.

This package contains:
- Event-stream line parsing with a carry-over buffer
- Delta decoding
- Per-request session state and callback dispatch
"""

from .models import Delta, FrameType, SessionState, StreamFrame, StreamingStats
from .parser import DATA_PREFIX, DONE_SENTINEL, FrameParser
from .session import (
    StreamingSession,
    inline_dispatcher,
    loop_dispatcher,
)

__all__ = [
    "DATA_PREFIX",
    "DONE_SENTINEL",
    "Delta",
    "FrameParser",
    "FrameType",
    "SessionState",
    "StreamFrame",
    "StreamingSession",
    "StreamingStats",
    "inline_dispatcher",
    "loop_dispatcher",
]
