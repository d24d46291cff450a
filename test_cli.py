#!/usr/bin/env python3
"""
Tests for the command-line entry point.
"""

import base64
import json

import httpx
import pytest

import scanhelper.__main__ as cli
from scanhelper.chat_service import IMAGE_ANALYSIS_PROMPT
from scanhelper.config import Configuration
from scanhelper.llm.client import StreamingChatClient


@pytest.fixture
def api(monkeypatch):
    """Route the CLI's client through a mock transport and record bodies."""
    bodies = []
    state = {"status": 200}

    def handler(request):
        bodies.append(json.loads(request.content))
        if state["status"] != 200:
            return httpx.Response(state["status"], text="unavailable")
        return httpx.Response(
            200,
            content=(
                b'data: {"choices":[{"delta":{"content":"x = "}}]}\n'
                b'data: {"choices":[{"delta":{"content":"4"}}]}\n'
                b"data: [DONE]\n"
            ),
        )

    def make_client(config):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return StreamingChatClient(config, http_client=http_client)

    monkeypatch.setenv("OPENAI_API_KEY", "sk-cli")
    monkeypatch.setattr(cli, "StreamingChatClient", make_client)
    return bodies, state


def test_question_is_streamed_to_stdout(api, capsys):
    bodies, _ = api

    assert cli.main(["Solve x + 1 = 5"]) == 0

    assert capsys.readouterr().out == "x = 4\n"
    assert bodies[0]["messages"][-1] == {"role": "user", "content": "Solve x + 1 = 5"}
    assert bodies[0]["stream"] is True


def test_image_uses_image_profile(api, tmp_path, capsys):
    bodies, _ = api
    image = tmp_path / "problem.jpg"
    data = b"\xff\xd8fake"
    image.write_bytes(data)

    assert cli.main(["--image", str(image)]) == 0

    config = Configuration()
    encoded = base64.b64encode(data).decode()
    body = bodies[0]
    assert body["temperature"] == config.get_profile("image")["temperature"]
    assert body["messages"][1]["content"] == (
        f"{IMAGE_ANALYSIS_PROMPT}\n[IMAGE DATA: {encoded}]"
    )


def test_transport_error_exit_status(api, capsys):
    _, state = api
    state["status"] = 503

    assert cli.main(["hello"]) == 1
    assert "503" in capsys.readouterr().err


def test_missing_image_file(api, tmp_path, capsys):
    assert cli.main(["--image", str(tmp_path / "missing.jpg")]) == 1
    assert "Error" in capsys.readouterr().err


def test_question_or_image_required():
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])
    assert exc_info.value.code == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
