# scanhelper/history/models.py
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from scanhelper.llm.models import ChatMessage, MessageRole

Role = Literal["system", "user", "assistant"]


class ConversationMessage(BaseModel):
    """
    One bubble in a conversation: text, an image, or both.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    text: str | None = None
    image_data: bytes | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_user(self) -> bool:
        return self.role == "user"

    def to_chat_message(self) -> ChatMessage:
        """
        Convert to the wire message; image bytes are never sent here.
        """
        return ChatMessage(
            role=MessageRole(self.role),
            content=self.text or "",
            has_image=self.image_data is not None,
        )
