"""
AG-UI translation of the agent event stream.

Wraps one agent run in RunStarted / RunFinished (or RunError), maps chunk
events onto a single assistant text message and tool events onto
ToolCallStart / Args / End / Result.
"""

import json
import logging
import uuid
from typing import AsyncGenerator, AsyncIterable

from ag_ui.core import events as ev
from ag_ui.core.events import EventType

from .events import AgentEvent, ChunkEvent, ErrorEvent, FinalEvent, ToolCallEvent, ToolResultEvent

logger = logging.getLogger(__name__)


def _dump(value) -> str:
    return value if isinstance(value, str) else json.dumps(value, default=str)


async def to_ag_ui_events(
    agent_events: AsyncIterable[AgentEvent],
    *,
    thread_id: str,
    run_id: str,
) -> AsyncGenerator[ev.BaseEvent, None]:
    yield ev.RunStartedEvent(
        type=EventType.RUN_STARTED,
        thread_id=thread_id,
        run_id=run_id,
    )

    message_id: str | None = None

    def close_text():
        nonlocal message_id
        if message_id is None:
            return None
        event = ev.TextMessageEndEvent(type=EventType.TEXT_MESSAGE_END, message_id=message_id)
        message_id = None
        return event

    try:
        async for event in agent_events:
            if isinstance(event, ChunkEvent):
                if not event.content:
                    continue
                if message_id is None:
                    message_id = f"msg_{uuid.uuid4().hex[:12]}"
                    yield ev.TextMessageStartEvent(
                        type=EventType.TEXT_MESSAGE_START,
                        message_id=message_id,
                        role="assistant",
                    )
                yield ev.TextMessageContentEvent(
                    type=EventType.TEXT_MESSAGE_CONTENT,
                    message_id=message_id,
                    delta=event.content,
                )

            elif isinstance(event, ToolCallEvent):
                end = close_text()
                if end is not None:
                    yield end
                yield ev.ToolCallStartEvent(
                    type=EventType.TOOL_CALL_START,
                    tool_call_id=event.call_id,
                    tool_call_name=f"{event.tool}_{event.action}",
                )
                yield ev.ToolCallArgsEvent(
                    type=EventType.TOOL_CALL_ARGS,
                    tool_call_id=event.call_id,
                    delta=json.dumps(event.args, default=str),
                )
                yield ev.ToolCallEndEvent(
                    type=EventType.TOOL_CALL_END,
                    tool_call_id=event.call_id,
                )

            elif isinstance(event, ToolResultEvent):
                payload = {"success": event.success}
                if event.success:
                    payload["output"] = event.output
                else:
                    payload["error"] = event.error
                yield ev.ToolCallResultEvent(
                    type=EventType.TOOL_CALL_RESULT,
                    tool_call_id=event.call_id,
                    message_id=f"res_{uuid.uuid4().hex[:12]}",
                    content=_dump(payload),
                    role="tool",
                )

            elif isinstance(event, FinalEvent):
                end = close_text()
                if end is not None:
                    yield end
                yield ev.RunFinishedEvent(
                    type=EventType.RUN_FINISHED,
                    thread_id=thread_id,
                    run_id=run_id,
                )
                return

            elif isinstance(event, ErrorEvent):
                end = close_text()
                if end is not None:
                    yield end
                yield ev.RunErrorEvent(type=EventType.RUN_ERROR, message=event.error)
                return

    except Exception as exc:
        # Context assembly failed before the loop produced a terminal event
        logger.exception("Agent run failed", extra={"event": "agent.failed"})
        end = close_text()
        if end is not None:
            yield end
        yield ev.RunErrorEvent(type=EventType.RUN_ERROR, message=str(exc))
        return

    end = close_text()
    if end is not None:
        yield end
    yield ev.RunErrorEvent(type=EventType.RUN_ERROR, message="Agent stopped without a final answer")
