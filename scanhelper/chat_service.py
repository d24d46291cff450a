"""
Chat Service for scanhelper.

This module holds the two request-construction call sites of the app:
- Tutor chat: the whole conversation history is sent on every turn
- Image chat: a scanned problem is sent as a single user message

Both stream through the same StreamingChatClient and write deltas into the
single in-flight assistant message of a Conversation. A failed session
leaves a terminal assistant message describing the failure.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

from scanhelper.config import Configuration
from scanhelper.history.conversation import Conversation
from scanhelper.llm.client import StreamHandle, StreamingChatClient
from scanhelper.llm.models import ChatMessage, ChatRequest, MessageRole
from scanhelper.llm.streaming.session import Dispatcher
from scanhelper.logging_utils import ErrorHandler

logger = logging.getLogger(__name__)

# User-side placeholder texts added next to an image bubble
IMAGE_CONTEXT_PROMPT = "Use this image for context."
SOLVE_PROMPT = "Help me solve this problem."
IMAGE_ANALYSIS_PROMPT = (
    "This image contains a math problem. "
    "Please analyze and provide a detailed explanation."
)
IMAGE_ENCODE_FAILED = "Could not encode image."


@dataclass(frozen=True)
class ChatProfile:
    """System prompt and sampling settings for one chat screen."""
    system_prompt: str
    model: str
    temperature: float


class ChatService:
    """
    Conversation orchestrator
    1. Appends the user's message (text or image)
    2. Builds the request for the matching chat profile
    3. Opens an assistant reply and streams deltas into it
    """

    def __init__(
        self,
        client: StreamingChatClient,
        tutor: ChatProfile,
        image: ChatProfile,
        *,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self.client = client
        self.tutor = tutor
        self.image = image
        self.dispatcher = dispatcher

    @classmethod
    def from_configuration(
        cls, client: StreamingChatClient, configuration: Configuration
    ) -> ChatService:
        return cls(
            client,
            tutor=ChatProfile(**configuration.get_profile("tutor")),
            image=ChatProfile(**configuration.get_profile("image")),
        )

    def ask(self, conversation: Conversation, text: str) -> StreamHandle:
        """Send a typed question in the tutor chat."""
        text = text.strip()
        if not text:
            raise ValueError("Cannot send an empty message")

        self._ensure_idle(conversation)
        conversation.add_user_text(text)
        return self._reply(conversation, self.tutor, conversation.history())

    def attach_image(
        self, conversation: Conversation, image_data: bytes
    ) -> StreamHandle:
        """Attach a picked or captured image to the tutor chat and ask about it."""
        self._ensure_idle(conversation)
        conversation.add_user_image(image_data)
        conversation.add_user_text(IMAGE_CONTEXT_PROMPT)
        return self._reply(conversation, self.tutor, conversation.history())

    def solve_image(
        self, conversation: Conversation, image_data: bytes
    ) -> StreamHandle | None:
        """
        Ask for a step-by-step solution of a scanned problem.

        Returns None when the image cannot be encoded; the reply then holds
        the failure text and no request is sent.
        """
        self._ensure_idle(conversation)
        conversation.add_user_image(image_data)
        conversation.add_user_text(SOLVE_PROMPT)

        if not image_data:
            reply = conversation.begin_assistant_reply()
            conversation.fail_reply(reply.id, IMAGE_ENCODE_FAILED)
            return None

        encoded = base64.b64encode(image_data).decode("ascii")
        user_message = ChatMessage(
            MessageRole.USER,
            f"{IMAGE_ANALYSIS_PROMPT}\n[IMAGE DATA: {encoded}]",
        )
        return self._reply(conversation, self.image, [user_message])

    def stop(self, conversation: Conversation, handle: StreamHandle) -> None:
        """Cancel a reply; the partial text is kept as the final reply."""
        handle.cancel()
        message = conversation.streaming_message
        if message is not None:
            conversation.finish_reply(message.id)

    @staticmethod
    def _ensure_idle(conversation: Conversation) -> None:
        if conversation.is_streaming:
            raise ValueError(
                f"Conversation {conversation.conversation_id} is already streaming "
                f"reply {conversation.streaming_message.id}"
            )

    def _reply(
        self,
        conversation: Conversation,
        profile: ChatProfile,
        history: list[ChatMessage],
    ) -> StreamHandle:
        request = ChatRequest.build(
            profile.system_prompt,
            history,
            model=profile.model,
            temperature=profile.temperature,
        )
        reply = conversation.begin_assistant_reply()
        logger.info(
            "Streaming reply %s for conversation %s (%d messages)",
            reply.id,
            conversation.conversation_id,
            len(request.messages),
        )

        def on_chunk(text: str) -> None:
            conversation.append_delta(reply.id, text)

        def on_complete() -> None:
            conversation.finish_reply(reply.id)

        def on_error(error: BaseException) -> None:
            conversation.fail_reply(reply.id, ErrorHandler.describe(error))

        return self.client.send(
            request, on_chunk, on_complete, on_error, dispatcher=self.dispatcher
        )
