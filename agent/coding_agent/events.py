"""
Events yielded by the agent loop, in order, one stream per request.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Union


@dataclass
class ChunkEvent:
    content: str
    type: Literal["chunk"] = field(default="chunk", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ToolCallEvent:
    call_id: str
    tool: str
    action: str
    args: dict[str, Any]
    type: Literal["tool_call"] = field(default="tool_call", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ToolResultEvent:
    call_id: str
    tool: str
    action: str
    success: bool
    output: Any = None
    error: str | None = None
    type: Literal["tool_result"] = field(default="tool_result", init=False)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": self.type,
            "call_id": self.call_id,
            "tool": self.tool,
            "action": self.action,
            "success": self.success,
        }
        if self.success:
            data["output"] = self.output
        else:
            data["error"] = self.error
        return data


@dataclass
class FinalEvent:
    """Terminal event carrying the complete answer text."""

    content: str
    turns: int
    type: Literal["final"] = field(default="final", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ErrorEvent:
    """Terminal event for a run that could not produce an answer."""

    error: str
    turns: int
    type: Literal["error"] = field(default="error", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


AgentEvent = Union[ChunkEvent, ToolCallEvent, ToolResultEvent, FinalEvent, ErrorEvent]
