"""
Model adapter.

The agent loop talks to a ModelClient: one streamed call yields TextDelta
items as text arrives, then exactly one ModelTurn describing the complete
response (its text and any tool requests).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, Union

from anthropic import AsyncAnthropic

from .config import DEFAULT_MODEL, get_client

logger = logging.getLogger(__name__)


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolRequest:
    id: str
    name: str
    arguments: Any = None


@dataclass
class ModelTurn:
    text: str = ""
    tool_requests: list[ToolRequest] = field(default_factory=list)
    stop_reason: str | None = None


StreamItem = Union[TextDelta, ModelTurn]


class ModelClient(Protocol):
    def stream(
        self,
        *,
        system: str,
        messages: list[dict],
        tools: list[dict],
    ) -> AsyncIterator[StreamItem]: ...


def convert_messages(messages: list[dict]) -> tuple[list[str], list[dict]]:
    """Split system messages out and merge consecutive same-role messages.

    Returns:
        (system_parts, anthropic_messages) where system_parts are the
        contents of system-role messages, to append to the system prompt.
    """
    system_parts: list[str] = []
    converted: list[dict] = []

    for msg in messages:
        role = msg.get("role")
        content = msg.get("content")
        if role == "system":
            if content:
                system_parts.append(content if isinstance(content, str) else json.dumps(content))
            continue
        if role not in ("user", "assistant"):
            role = "user"
        converted.append({"role": role, "content": content if content is not None else ""})

    # Anthropic requires alternating roles
    merged: list[dict] = []
    for msg in converted:
        if merged and merged[-1]["role"] == msg["role"]:
            prev = merged[-1]
            prev_content = prev["content"]
            msg_content = msg["content"]
            if isinstance(prev_content, str):
                prev_content = [{"type": "text", "text": prev_content}]
            if isinstance(msg_content, str):
                msg_content = [{"type": "text", "text": msg_content}]
            prev["content"] = list(prev_content) + list(msg_content)
        else:
            merged.append(dict(msg))

    return system_parts, merged


class AnthropicModelClient:
    """Streams completions from the Anthropic Messages API."""

    def __init__(
        self,
        client: AsyncAnthropic | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
    ):
        self.client = client or get_client()
        self.model = model
        self.max_tokens = max_tokens

    async def stream(
        self,
        *,
        system: str,
        messages: list[dict],
        tools: list[dict],
    ) -> AsyncIterator[StreamItem]:
        system_parts, anthropic_messages = convert_messages(messages)
        if system_parts:
            system = system + "\n\n" + "\n".join(system_parts)

        block_types: dict[int, str] = {}
        async with self.client.messages.stream(
            model=self.model,
            system=system,
            messages=anthropic_messages,
            tools=tools or [],
            max_tokens=self.max_tokens,
        ) as stream:
            async for event in stream:
                if event.type == "content_block_start":
                    block_types[event.index] = event.content_block.type
                elif event.type == "content_block_delta":
                    if block_types.get(event.index) == "text" and event.delta.text:
                        yield TextDelta(event.delta.text)

            final_message = await stream.get_final_message()

        text_parts: list[str] = []
        tool_requests: list[ToolRequest] = []
        for block in final_message.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_requests.append(ToolRequest(id=block.id, name=block.name, arguments=block.input))

        logger.debug(
            "Model call finished: stop_reason=%s, %d tool requests",
            final_message.stop_reason,
            len(tool_requests),
        )
        yield ModelTurn(
            text="".join(text_parts),
            tool_requests=tool_requests,
            stop_reason=final_message.stop_reason,
        )
