#!/usr/bin/env python3
"""
Tests for the conversation model and the two chat call sites.
"""

import base64
import json

import httpx
import pytest

from scanhelper.chat_service import (
    IMAGE_ANALYSIS_PROMPT,
    IMAGE_CONTEXT_PROMPT,
    IMAGE_ENCODE_FAILED,
    SOLVE_PROMPT,
    ChatProfile,
    ChatService,
)
from scanhelper.config import Configuration
from scanhelper.history.conversation import Conversation
from scanhelper.llm.client import StreamingChatClient
from scanhelper.llm.models import MessageRole, ProviderConfig, ProviderType

TUTOR = ChatProfile(
    system_prompt="You are a Mathematics tutor. Please explain your solutions step by step.",
    model="gpt-4o",
    temperature=0.7,
)
IMAGE = ChatProfile(
    system_prompt="You are a Mathematics tutor. Provide a detailed, step-by-step solution with explanations.",
    model="gpt-4o",
    temperature=0.2,
)


def frame(content: str) -> bytes:
    return ('data: {"choices":[{"delta":{"content":"%s"}}]}\n' % content).encode()


class FakeAPI:
    """Mock chat-completions endpoint recording request bodies."""

    def __init__(self, chunks=None, status_code=200):
        self.chunks = chunks if chunks is not None else [frame("Step 1"), frame(": add"), b"data: [DONE]\n"]
        self.status_code = status_code
        self.bodies: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="server exploded")
        return httpx.Response(200, content=b"".join(self.chunks))

    def service(self) -> ChatService:
        config = ProviderConfig(
            provider=ProviderType.OPENAI,
            base_url="https://api.openai.com/v1",
            model="gpt-4o",
            api_key="sk-test",
        )
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return ChatService(StreamingChatClient(config, http_client=http_client), TUTOR, IMAGE)


class TestConversation:
    """Test the append-only conversation and its single in-flight reply."""

    def test_deltas_go_to_in_flight_reply(self):
        conversation = Conversation()
        conversation.add_user_text("hi")
        reply = conversation.begin_assistant_reply()

        conversation.append_delta(reply.id, "Hel")
        conversation.append_delta(reply.id, "lo")
        conversation.finish_reply(reply.id)

        assert reply.text == "Hello"
        assert not conversation.is_streaming

    def test_second_reply_while_streaming_is_rejected(self):
        conversation = Conversation()
        conversation.begin_assistant_reply()

        with pytest.raises(ValueError, match="already streaming"):
            conversation.begin_assistant_reply()

    def test_delta_for_finished_reply_is_rejected(self):
        conversation = Conversation()
        reply = conversation.begin_assistant_reply()
        conversation.finish_reply(reply.id)

        with pytest.raises(ValueError):
            conversation.append_delta(reply.id, "late")

    def test_fail_reply_replaces_text(self):
        conversation = Conversation()
        reply = conversation.begin_assistant_reply()
        conversation.append_delta(reply.id, "partial")
        conversation.fail_reply(reply.id, "Connection error")

        assert reply.text == "Connection error"
        assert not conversation.is_streaming

    def test_history_preserves_order_and_images(self):
        conversation = Conversation()
        conversation.add_user_image(b"\xff\xd8jpeg")
        conversation.add_user_text("what is this?")

        history = conversation.history()
        assert [m.role for m in history] == [MessageRole.USER, MessageRole.USER]
        assert history[0].to_wire() == {"role": "user", "content": "[User sent an image]"}
        assert history[1].to_wire() == {"role": "user", "content": "what is this?"}


class TestTutorChat:
    @pytest.mark.asyncio
    async def test_ask_streams_into_reply(self):
        api = FakeAPI()
        service = api.service()
        conversation = Conversation()

        await service.ask(conversation, "  How do I add fractions?  ")

        assert [m.role for m in conversation.messages] == ["user", "assistant"]
        assert conversation.messages[0].text == "How do I add fractions?"
        assert conversation.messages[-1].text == "Step 1: add"
        assert not conversation.is_streaming

        body = api.bodies[0]
        assert body["temperature"] == 0.7
        assert body["messages"] == [
            {"role": "system", "content": TUTOR.system_prompt},
            {"role": "user", "content": "How do I add fractions?"},
        ]

    @pytest.mark.asyncio
    async def test_follow_up_sends_whole_history(self):
        api = FakeAPI()
        service = api.service()
        conversation = Conversation()

        await service.ask(conversation, "first")
        await service.ask(conversation, "second")

        roles = [m["role"] for m in api.bodies[1]["messages"]]
        assert roles == ["system", "user", "assistant", "user"]
        assert api.bodies[1]["messages"][2]["content"] == "Step 1: add"

    @pytest.mark.asyncio
    async def test_attach_image_adds_placeholder(self):
        api = FakeAPI()
        service = api.service()
        conversation = Conversation()

        await service.attach_image(conversation, b"jpeg-bytes")

        messages = api.bodies[0]["messages"]
        assert messages[1] == {"role": "user", "content": "[User sent an image]"}
        assert messages[2] == {"role": "user", "content": IMAGE_CONTEXT_PROMPT}
        assert "jpeg-bytes" not in json.dumps(messages)

    @pytest.mark.asyncio
    async def test_send_while_streaming_leaves_conversation_unchanged(self):
        api = FakeAPI()
        service = api.service()
        conversation = Conversation()

        handle = service.ask(conversation, "first")
        before = [m.text for m in conversation.messages]

        with pytest.raises(ValueError, match="already streaming"):
            service.ask(conversation, "second")
        with pytest.raises(ValueError, match="already streaming"):
            service.attach_image(conversation, b"jpeg-bytes")
        with pytest.raises(ValueError, match="already streaming"):
            service.solve_image(conversation, b"jpeg-bytes")

        assert [m.text for m in conversation.messages] == before
        await handle
        assert conversation.messages[-1].text == "Step 1: add"

        await service.ask(conversation, "third")
        assert [m["content"] for m in api.bodies[-1]["messages"][1:]] == [
            "first",
            "Step 1: add",
            "third",
        ]

    def test_empty_question_is_rejected(self):
        service = FakeAPI().service()
        with pytest.raises(ValueError):
            service.ask(Conversation(), "   ")

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_terminal_message(self):
        api = FakeAPI(status_code=500)
        service = api.service()
        conversation = Conversation()

        await service.ask(conversation, "hello?")

        reply = conversation.messages[-1]
        assert reply.role == "assistant"
        assert reply.text.startswith("Connection error:")
        assert "500" in reply.text
        assert not conversation.is_streaming


class TestImageChat:
    @pytest.mark.asyncio
    async def test_solve_image_sends_single_user_message(self):
        api = FakeAPI()
        service = api.service()
        conversation = Conversation()
        image = b"\x89PNG fake image"

        await service.solve_image(conversation, image)

        body = api.bodies[0]
        assert body["temperature"] == 0.2
        assert len(body["messages"]) == 2
        assert body["messages"][0] == {"role": "system", "content": IMAGE.system_prompt}

        content = body["messages"][1]["content"]
        assert content.startswith(IMAGE_ANALYSIS_PROMPT)
        assert f"[IMAGE DATA: {base64.b64encode(image).decode()}]" in content

        assert [m.text for m in conversation.messages] == [None, SOLVE_PROMPT, "Step 1: add"]

    def test_empty_image_fails_without_request(self):
        api = FakeAPI()
        service = api.service()
        conversation = Conversation()

        assert service.solve_image(conversation, b"") is None
        assert api.bodies == []
        assert conversation.messages[-1].text == IMAGE_ENCODE_FAILED
        assert not conversation.is_streaming


class TestFromConfiguration:
    def test_profiles_loaded_from_packaged_config(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-config")
        configuration = Configuration()
        client = StreamingChatClient(configuration.to_provider_config())

        service = ChatService.from_configuration(client, configuration)

        assert service.tutor.temperature == 0.7
        assert service.image.temperature == 0.2
        assert service.tutor.system_prompt == TUTOR.system_prompt
        assert service.image.system_prompt == IMAGE.system_prompt


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_keeps_partial_reply(self):
        api = FakeAPI()
        service = api.service()
        conversation = Conversation()

        handle = service.ask(conversation, "long question")
        service.stop(conversation, handle)

        assert not conversation.is_streaming
        assert conversation.messages[-1].text == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
