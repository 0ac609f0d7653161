"""
FastAPI entry point for the coding agent.
Serves the agent loop via AG-UI SSE protocol.
"""

import os
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
import uvicorn

from ag_ui.core.types import RunAgentInput
from ag_ui.encoder import EventEncoder

from coding_agent.ag_ui_stream import to_ag_ui_events
from coding_agent.agent import create_agent
from coding_agent.config import get_settings
from coding_agent.events import ErrorEvent
from coding_agent.logging_setup import configure_logging

settings = get_settings()
configure_logging(settings.log_level, settings.log_format)

app = FastAPI(
    title="Coding Agent",
    description="Tool-using coding agent with assembled project context",
    version="2.0.0",
)

_frontend_url = os.getenv("FRONTEND_URL", "")
_allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if _frontend_url and _frontend_url not in _allowed_origins:
    _allowed_origins.append(_frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

agent = create_agent(settings)


def last_user_message(input_data: RunAgentInput) -> str:
    """Text of the most recent user message, or "" when there is none."""
    for msg in reversed(input_data.messages or []):
        if msg.role != "user":
            continue
        content = msg.content
        if isinstance(content, str):
            return content
        # List of InputContent (text, binary, ...)
        return "".join(part.text for part in content or [] if hasattr(part, "text"))
    return ""


async def _no_message():
    yield ErrorEvent(error="Request has no user message", turns=0)


@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "agent": "coding_agent",
            "version": "2.0.0",
            "tools": agent.tool_registry.tool_names,
        }
    )


@app.post("/")
async def agent_endpoint(input_data: RunAgentInput, request: Request):
    """AG-UI streaming endpoint. The thread id is the conversation id."""
    encoder = EventEncoder(accept=request.headers.get("accept"))
    message = last_user_message(input_data)

    async def event_generator():
        if message:
            agent_events = agent.run(message, conversation_id=input_data.thread_id)
        else:
            agent_events = _no_message()
        async for event in to_ag_ui_events(
            agent_events,
            thread_id=input_data.thread_id,
            run_id=input_data.run_id,
        ):
            yield encoder.encode(event)

    return StreamingResponse(
        event_generator(),
        media_type=encoder.get_content_type(),
    )


def main():
    port = int(os.getenv("PORT", "8123"))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)


if __name__ == "__main__":
    main()
