"""
Event-stream frame parser with carry-over buffering.

Bytes arrive in arbitrary chunks. Only complete lines are turned into
frames; the unterminated tail stays in the carry-over buffer until its
newline is observed, however many reads that takes.
"""

from __future__ import annotations

import codecs
from collections.abc import Iterator

from .models import FrameType, StreamFrame, StreamingStats

# Constants
DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class FrameParser:
    """Splits a byte stream into `data: ` frames, one line at a time."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.buffer = ""
        self.stats = StreamingStats()

    def feed(self, data: bytes | str) -> Iterator[StreamFrame]:
        """
        Append a chunk to the carry-over buffer and yield complete frames.

        The buffer is split eagerly, before any frame is yielded, so a caller
        that stops iterating (after a terminator) leaves no stale lines
        behind in the buffer.
        """
        if isinstance(data, bytes):
            self.stats.bytes_received += len(data)
            text = self._decoder.decode(data)
        else:
            self.stats.bytes_received += len(data.encode())
            text = data
        self.stats.update_timing()

        self.buffer += text
        *lines, self.buffer = self.buffer.split("\n")
        return self._frames(lines)

    def _frames(self, lines: list[str]) -> Iterator[StreamFrame]:
        for line in lines:
            frame = self.parse_line(line)
            if frame is not None:
                yield frame

    def parse_line(self, line: str) -> StreamFrame | None:
        """Turn one complete line into a frame, or None for non-data lines."""
        self.stats.lines_seen += 1
        if line.endswith("\r"):
            line = line[:-1]

        # Blank keep-alives, comments and other fields are not frames
        if not line.startswith(DATA_PREFIX):
            self.stats.lines_ignored += 1
            return None

        self.stats.frames_seen += 1
        payload = line[len(DATA_PREFIX):]
        if payload.strip() == DONE_SENTINEL:
            return StreamFrame(frame_type=FrameType.DONE, payload=DONE_SENTINEL)

        return StreamFrame(frame_type=FrameType.DATA, payload=payload)

    def close(self) -> str:
        """Flush the decoder and return the discarded partial line, if any."""
        tail = self.buffer + self._decoder.decode(b"", final=True)
        self.buffer = ""
        return tail

    def get_stats(self) -> dict[str, int | float]:
        """Get streaming statistics for monitoring."""
        return self.stats.as_dict()
