"""
Streaming tool-use agent loop.

One run drives the model across turns: streamed text is forwarded as chunk
events, tool requests are dispatched through the ToolRegistry one at a time
and their results fed back, until the model answers in plain text (final)
or the run has to stop (error).
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import aclosing
from typing import Any, AsyncGenerator, AsyncIterator, Iterable

from .config import Settings, get_client, get_settings
from .context import ContextAssembler, HistoryLoader, SqlChatHistoryStore
from .context.history import call_store
from .events import AgentEvent, ChunkEvent, ErrorEvent, FinalEvent, ToolCallEvent, ToolResultEvent
from .logging_setup import bind_log_context
from .model_client import AnthropicModelClient, ModelClient, ModelTurn, StreamItem, TextDelta
from .prompts import SYSTEM_PROMPT
from .tools import ToolRegistry, build_tool_registry, truncate_output
from .tools.registry import ToolInvocation, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ITERATIONS = 25
DEFAULT_MODEL_TIMEOUT_SECONDS = 120.0


class ModelCallTimeout(asyncio.TimeoutError):
    pass


class Agent:
    """Streaming agent over a ModelClient and a ToolRegistry.

    ``max_tool_iterations`` bounds the tool-call rounds of one run; a model
    that keeps requesting tools past it gets an error event instead of
    another round. ``model_timeout_seconds`` bounds the time spent waiting
    on one streamed model call.
    """

    def __init__(
        self,
        model_client: ModelClient,
        tool_registry: ToolRegistry,
        *,
        root_path: str,
        context_assembler: ContextAssembler | None = None,
        history_store: Any = None,
        system_prompt: str = SYSTEM_PROMPT,
        skill_names: Iterable[str] | None = None,
        max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
        model_timeout_seconds: float = DEFAULT_MODEL_TIMEOUT_SECONDS,
    ):
        if max_tool_iterations < 0:
            raise ValueError("max_tool_iterations must be >= 0")
        if model_timeout_seconds <= 0:
            raise ValueError("model_timeout_seconds must be positive")
        self.model_client = model_client
        self.tool_registry = tool_registry
        self.root_path = root_path
        self.context_assembler = context_assembler
        self.history_store = history_store
        self.system_prompt = system_prompt
        self.skill_names = list(skill_names) if skill_names is not None else None
        self.max_tool_iterations = max_tool_iterations
        self.model_timeout_seconds = model_timeout_seconds

    async def run(self, message: str, conversation_id: str | None = None) -> AsyncGenerator[AgentEvent, None]:
        """Answer one user message. Yields events; the last one is final or error.

        With a context assembler and a conversation id, the system prompt and
        prior turns come from the assembled context. Context assembly errors
        propagate before any event is yielded.
        """
        if not message or not isinstance(message, str):
            raise ValueError("message must be a non-empty string")

        request_id = uuid.uuid4().hex[:12]
        with bind_log_context(conversation_id=conversation_id, request_id=request_id):
            system, messages = await self._initial_messages(message, conversation_id)
            if conversation_id:
                await self._persist(conversation_id, "user", message)

            async with aclosing(
                self._agentic_loop(
                    system=system,
                    messages=messages,
                    conversation_id=conversation_id,
                    request_id=request_id,
                )
            ) as events:
                async for event in events:
                    yield event

    async def run_messages(
        self,
        messages: list[dict],
        *,
        system: str | None = None,
        conversation_id: str | None = None,
    ) -> AsyncGenerator[AgentEvent, None]:
        """Continue from an explicit message list. Nothing is persisted."""
        request_id = uuid.uuid4().hex[:12]
        with bind_log_context(conversation_id=conversation_id, request_id=request_id):
            async with aclosing(
                self._agentic_loop(
                    system=system if system is not None else self.system_prompt,
                    messages=[dict(m) for m in messages],
                    conversation_id=None,
                    request_id=request_id,
                )
            ) as events:
                async for event in events:
                    yield event

    async def _initial_messages(self, message: str, conversation_id: str | None) -> tuple[str, list[dict]]:
        if self.context_assembler is None or not conversation_id:
            return self.system_prompt, [{"role": "user", "content": message}]

        bundle = await self.context_assembler.build_context(
            conversation_id,
            self.root_path,
            include_skills=True,
            skill_names=self.skill_names,
        )
        return bundle.system_prompt, [*bundle.history_messages, {"role": "user", "content": message}]

    async def _persist(self, conversation_id: str, sender: str, content: str) -> None:
        if self.history_store is None:
            return
        await call_store(self.history_store.insert_turn, conversation_id, sender, content)

    # ─────────────────────────────────────────────────────────────────
    # Agentic loop
    # ─────────────────────────────────────────────────────────────────

    async def _agentic_loop(
        self,
        *,
        system: str,
        messages: list[dict],
        conversation_id: str | None,
        request_id: str,
    ) -> AsyncGenerator[AgentEvent, None]:
        tools = self.tool_registry.schemas()
        text_parts: list[str] = []
        turns = 0
        tool_iterations = 0

        while True:
            turns += 1
            turn: ModelTurn | None = None
            streamed_text = False

            # ── Stream model response ──────────────────────────────
            try:
                async with aclosing(
                    self.model_client.stream(system=system, messages=messages, tools=tools)
                ) as stream, aclosing(self._with_timeout(stream)) as timed:
                    async for item in timed:
                        if isinstance(item, TextDelta):
                            if not item.text:
                                continue
                            streamed_text = True
                            text_parts.append(item.text)
                            yield ChunkEvent(content=item.text)
                        elif isinstance(item, ModelTurn):
                            turn = item
            except ModelCallTimeout:
                logger.warning(
                    "Model call timed out after %ss",
                    self.model_timeout_seconds,
                    extra={"event": "model.timeout"},
                )
                yield ErrorEvent(error=f"Model call timed out after {self.model_timeout_seconds}s", turns=turns)
                return
            except Exception as exc:
                logger.exception("Model call failed", extra={"event": "model.failed"})
                yield ErrorEvent(error=f"Model call failed: {exc}", turns=turns)
                return

            if turn is None:
                yield ErrorEvent(error="Model stream ended without a response", turns=turns)
                return

            # Non-streaming clients only report text on the turn itself
            if turn.text and not streamed_text:
                text_parts.append(turn.text)
                yield ChunkEvent(content=turn.text)

            # ── No tool calls → done ────────────────────────────────
            if not turn.tool_requests:
                content = "".join(text_parts)
                if conversation_id:
                    await self._persist(conversation_id, "agent", content)
                logger.info(
                    "Run finished after %d model turns",
                    turns,
                    extra={"event": "agent.final"},
                )
                yield FinalEvent(content=content, turns=turns)
                return

            if tool_iterations >= self.max_tool_iterations:
                logger.warning(
                    "Tool-call limit of %d iterations reached",
                    self.max_tool_iterations,
                    extra={"event": "agent.iteration_limit"},
                )
                yield ErrorEvent(
                    error=f"Stopped after {self.max_tool_iterations} tool-call iterations without a final answer",
                    turns=turns,
                )
                return
            tool_iterations += 1

            # ── Execute tools, one at a time ────────────────────────
            invocations = [
                self._invocation(request.name, request.arguments, conversation_id, request_id, turns)
                for request in turn.tool_requests
            ]

            assistant_blocks: list[dict] = []
            if turn.text:
                assistant_blocks.append({"type": "text", "text": turn.text})
            for request, invocation in zip(turn.tool_requests, invocations):
                assistant_blocks.append({
                    "type": "tool_use",
                    "id": request.id,
                    "name": request.name,
                    "input": invocation.args if isinstance(invocation, ToolInvocation) else {},
                })
            messages.append({"role": "assistant", "content": assistant_blocks})

            tool_results = []
            for request, invocation in zip(turn.tool_requests, invocations):
                if isinstance(invocation, ToolInvocation):
                    yield ToolCallEvent(
                        call_id=request.id,
                        tool=invocation.tool_name,
                        action=invocation.action_name,
                        args=invocation.args,
                    )
                    result = await self.tool_registry.dispatch(invocation)
                    tool, action = invocation.tool_name, invocation.action_name
                else:
                    # Unparseable request name
                    yield ToolCallEvent(call_id=request.id, tool="", action="", args={})
                    result = ToolResult(success=False, error=invocation)
                    tool, action = "", ""

                yield ToolResultEvent(
                    call_id=request.id,
                    tool=tool,
                    action=action,
                    success=result.success,
                    output=result.output if result.success else None,
                    error=None if result.success else result.error,
                )

                block = {
                    "type": "tool_result",
                    "tool_use_id": request.id,
                    "content": truncate_output(json.dumps(result.to_dict(), default=str)),
                }
                if not result.success:
                    block["is_error"] = True
                tool_results.append(block)

            # Tool results go back as a user message
            messages.append({"role": "user", "content": tool_results})

    def _invocation(
        self,
        name: str,
        arguments: Any,
        conversation_id: str | None,
        request_id: str,
        turn: int,
    ) -> ToolInvocation | str:
        try:
            return self.tool_registry.invocation_for(
                name,
                arguments,
                {"conversation_id": conversation_id, "request_id": request_id, "turn": turn},
            )
        except ValueError as e:
            return str(e)

    async def _with_timeout(self, stream: AsyncIterator[StreamItem]) -> AsyncIterator[StreamItem]:
        """Re-yield ``stream``, failing once waiting on it exceeds the budget.

        Only time spent waiting on the model counts; time the consumer
        holds an item does not.
        """
        loop = asyncio.get_running_loop()
        remaining = self.model_timeout_seconds
        iterator = stream.__aiter__()
        while True:
            if remaining <= 0:
                raise ModelCallTimeout()
            started = loop.time()
            try:
                item = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                return
            except asyncio.TimeoutError as e:
                raise ModelCallTimeout() from e
            remaining -= loop.time() - started
            yield item


def create_agent(settings: Settings | None = None) -> Agent:
    """Wire the production agent from settings."""
    settings = settings or get_settings()
    history_store = SqlChatHistoryStore.from_url(settings.database_url)
    registry = build_tool_registry(
        root=settings.workspace_root,
        skills_dir=settings.skills_dir,
        engine=history_store.engine,
    )
    assembler = ContextAssembler(
        HistoryLoader(history_store),
        skills_dir=settings.skills_dir,
        tree_max_depth=settings.tree_max_depth,
        tree_max_lines=settings.tree_max_lines,
        history_limit=settings.history_limit,
    )
    model_client = AnthropicModelClient(
        client=get_client(),
        model=settings.model_name,
        max_tokens=settings.max_tokens,
    )
    return Agent(
        model_client,
        registry,
        root_path=settings.workspace_root,
        context_assembler=assembler,
        history_store=history_store,
        max_tool_iterations=settings.max_tool_iterations,
        model_timeout_seconds=settings.model_timeout_seconds,
    )
