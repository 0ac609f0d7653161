"""
Coding agent: context assembly pipeline and streaming tool-use loop.
"""

from .agent import Agent, create_agent
from .events import AgentEvent, ChunkEvent, ErrorEvent, FinalEvent, ToolCallEvent, ToolResultEvent

__all__ = [
    "Agent",
    "AgentEvent",
    "ChunkEvent",
    "ErrorEvent",
    "FinalEvent",
    "ToolCallEvent",
    "ToolResultEvent",
    "create_agent",
]
