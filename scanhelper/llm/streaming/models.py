"""
Streaming-specific dataclasses for event-stream parsing.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from enum import Enum

from ..exceptions import DecodeError


class FrameType(Enum):
    """Types of event-stream frames."""
    DATA = "data"
    DONE = "done"


class SessionState(Enum):
    """Streaming session lifecycle. Terminal states are absorbing."""
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (SessionState.IDLE, SessionState.STREAMING)


@dataclass(frozen=True)
class StreamFrame:
    """A single `data: ` line with its prefix stripped."""
    frame_type: FrameType
    payload: str

    @property
    def is_terminator(self) -> bool:
        return self.frame_type is FrameType.DONE


@dataclass(frozen=True)
class Delta:
    """Incremental assistant text carried by one data frame."""
    content: str | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.content)

    @classmethod
    def from_payload(cls, payload: str) -> Delta:
        """
        Decode `{"choices": [{"delta": {"content": ...}}]}`.

        Only `choices[0].delta.content` is read. Missing choices, delta or
        content produce an empty delta (role-only and keep-alive frames).

        Raises:
            DecodeError: If the payload is not JSON or not of this shape.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise DecodeError(f"JSON decode error: {e}", payload=payload) from e

        if not isinstance(data, dict):
            raise DecodeError("Frame payload is not an object", payload=payload)

        choices = data.get("choices")
        if choices is None:
            return cls()
        if not isinstance(choices, list):
            raise DecodeError("choices is not a list", payload=payload)
        if not choices:
            return cls()

        choice = choices[0]
        if not isinstance(choice, dict):
            raise DecodeError("choice is not an object", payload=payload)

        delta = choice.get("delta")
        if delta is None:
            return cls()
        if not isinstance(delta, dict):
            raise DecodeError("delta is not an object", payload=payload)

        content = delta.get("content")
        if content is not None and not isinstance(content, str):
            raise DecodeError("delta.content is not a string", payload=payload)

        return cls(content=content)


@dataclass
class StreamingStats:
    """Mutable per-session counters with timing."""
    bytes_received: int = 0
    lines_seen: int = 0
    lines_ignored: int = 0
    frames_seen: int = 0
    frames_dropped: int = 0
    deltas_delivered: int = 0
    first_chunk_time: float | None = None
    last_chunk_time: float | None = None

    def update_timing(self, timestamp: float | None = None) -> None:
        """Update timing information for latency tracking."""
        timestamp = time.time() if timestamp is None else timestamp
        if self.first_chunk_time is None:
            self.first_chunk_time = timestamp
        self.last_chunk_time = timestamp

    @property
    def streaming_duration(self) -> float:
        """Calculate total streaming duration."""
        if self.first_chunk_time is None or self.last_chunk_time is None:
            return 0.0
        return self.last_chunk_time - self.first_chunk_time

    def as_dict(self) -> dict[str, int | float]:
        return {
            "bytes_received": self.bytes_received,
            "lines_seen": self.lines_seen,
            "lines_ignored": self.lines_ignored,
            "frames_seen": self.frames_seen,
            "frames_dropped": self.frames_dropped,
            "deltas_delivered": self.deltas_delivered,
            "duration_s": round(self.streaming_duration, 3),
        }
