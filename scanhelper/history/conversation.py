"""
In-memory conversation that receives streamed assistant replies.

The message list is append-only. At most one assistant message is in
flight at a time, and deltas are only ever appended to that message.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from scanhelper.history.models import ConversationMessage
from scanhelper.llm.models import ChatMessage


class Conversation:
    """Ordered chat messages plus the id of the reply being streamed."""

    def __init__(
        self,
        conversation_id: str | None = None,
        messages: Iterable[ConversationMessage] | None = None,
    ) -> None:
        self.conversation_id = conversation_id or str(uuid.uuid4())
        self.messages: list[ConversationMessage] = list(messages or [])
        self._streaming_id: str | None = None

    @property
    def is_streaming(self) -> bool:
        return self._streaming_id is not None

    @property
    def streaming_message(self) -> ConversationMessage | None:
        if self._streaming_id is None:
            return None
        return self._get(self._streaming_id)

    def add_user_text(self, text: str) -> ConversationMessage:
        message = ConversationMessage(role="user", text=text)
        self.messages.append(message)
        return message

    def add_user_image(self, image_data: bytes) -> ConversationMessage:
        message = ConversationMessage(role="user", image_data=image_data)
        self.messages.append(message)
        return message

    def begin_assistant_reply(self) -> ConversationMessage:
        """
        Append an empty assistant message and mark it as the stream target.

        Raises:
            ValueError: If another reply is still streaming.
        """
        if self._streaming_id is not None:
            raise ValueError(
                f"Conversation {self.conversation_id} is already streaming "
                f"reply {self._streaming_id}"
            )
        message = ConversationMessage(role="assistant", text="")
        self.messages.append(message)
        self._streaming_id = message.id
        return message

    def append_delta(self, message_id: str, text: str) -> None:
        message = self._in_flight(message_id)
        message.text = (message.text or "") + text

    def finish_reply(self, message_id: str) -> None:
        self._in_flight(message_id)
        self._streaming_id = None

    def fail_reply(self, message_id: str, text: str) -> None:
        """Replace the in-flight reply with a terminal error description."""
        message = self._in_flight(message_id)
        message.text = text
        self._streaming_id = None

    def history(self) -> list[ChatMessage]:
        """Messages in wire form, in conversation order."""
        return [message.to_chat_message() for message in self.messages]

    def _in_flight(self, message_id: str) -> ConversationMessage:
        if message_id != self._streaming_id:
            raise ValueError(
                f"Message {message_id} is not the reply being streamed"
            )
        return self._get(message_id)

    def _get(self, message_id: str) -> ConversationMessage:
        for message in reversed(self.messages):
            if message.id == message_id:
                return message
        raise KeyError(message_id)
