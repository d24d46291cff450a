"""
Command-line entry point: stream a tutor answer to stdout.

    python -m scanhelper "What is the derivative of x^2?"
    python -m scanhelper --image problem.jpg
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import sys
from pathlib import Path

from scanhelper.chat_service import IMAGE_ANALYSIS_PROMPT
from scanhelper.config import Configuration
from scanhelper.llm.client import StreamingChatClient
from scanhelper.llm.exceptions import LLMError
from scanhelper.llm.models import ChatMessage, ChatRequest, MessageRole
from scanhelper.logging_utils import configure_logging, log_operation


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run one streamed request."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.question and args.image is None:
        parser.error("a question or --image is required")

    try:
        config = Configuration(str(args.config) if args.config else None)
        configure_logging(config.get_logging_config().get("level", "WARNING"))
        request = _build_request(config, args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return asyncio.run(_stream(config, request))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scanhelper",
        description="Ask the homework tutor and stream the answer.",
    )
    parser.add_argument("question", nargs="?", help="Question to ask")
    parser.add_argument(
        "--image", type=Path, default=None, help="Image of a problem to solve"
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="Path to config.yaml"
    )
    return parser


def _build_request(config: Configuration, args: argparse.Namespace) -> ChatRequest:
    if args.image is not None:
        profile = config.get_profile("image")
        encoded = base64.b64encode(args.image.read_bytes()).decode("ascii")
        history = [
            ChatMessage(
                MessageRole.USER,
                f"{IMAGE_ANALYSIS_PROMPT}\n[IMAGE DATA: {encoded}]",
            )
        ]
    else:
        profile = config.get_profile("tutor")
        history = [ChatMessage(MessageRole.USER, args.question)]

    return ChatRequest.build(
        profile["system_prompt"],
        history,
        model=profile["model"],
        temperature=profile["temperature"],
    )


@log_operation("cli_stream")
async def _stream(config: Configuration, request: ChatRequest) -> int:
    async with StreamingChatClient(config.to_provider_config()) as client:
        try:
            async for text in client.stream(request):
                sys.stdout.write(text)
                sys.stdout.flush()
        except LLMError as e:
            print(f"\nError: {e}", file=sys.stderr)
            return 1

    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
