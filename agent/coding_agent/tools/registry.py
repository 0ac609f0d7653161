"""
Tool registry: an explicit (tool, action) -> async handler table.

Handlers are validated when registered; dispatch never raises for a failing
tool, it reports the failure in the returned ToolResult.
"""

from __future__ import annotations

import inspect
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..errors import ToolError, ToolRegistrationError, UnknownToolError
from .base import safe_parse_args

logger = logging.getLogger(__name__)

_TOOL_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")
_ACTION_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")

Handler = Callable[..., Awaitable[Any]]


@dataclass
class ToolInvocation:
    tool_name: str
    action_name: str
    args: dict[str, Any]
    safety_context: dict[str, Any] = field(default_factory=dict)

    @property
    def function_name(self) -> str:
        return f"{self.tool_name}_{self.action_name}"


@dataclass
class ToolResult:
    success: bool
    output: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "result": self.output, "error": self.error}


@dataclass
class RegisteredAction:
    tool_name: str
    action_name: str
    handler: Handler
    description: str
    input_schema: dict[str, Any]

    @property
    def function_name(self) -> str:
        return f"{self.tool_name}_{self.action_name}"


def parse_function_call(function_name: str, raw_args: Any = None) -> tuple[str, str, dict]:
    """Split ``<Tool>_<action>`` and parse its arguments."""
    if not function_name:
        raise ValueError("Missing function name in tool call")
    tool, _, action = function_name.partition("_")
    return tool, action, safe_parse_args(raw_args)


class ToolRegistry:
    def __init__(self, root: str | None = None):
        self.root = root
        self._actions: dict[tuple[str, str], RegisteredAction] = {}

    def register(
        self,
        tool_name: str,
        action_name: str,
        handler: Handler,
        *,
        description: str,
        input_schema: dict[str, Any] | None = None,
    ) -> RegisteredAction:
        if not _TOOL_NAME_RE.match(tool_name or ""):
            raise ToolRegistrationError(f"Invalid tool name: {tool_name!r}")
        if not _ACTION_NAME_RE.match(action_name or ""):
            raise ToolRegistrationError(f"Invalid action name: {action_name!r}")
        if not inspect.iscoroutinefunction(handler):
            raise ToolRegistrationError(f"Handler for {tool_name}_{action_name} must be an async function")
        key = (tool_name, action_name)
        if key in self._actions:
            raise ToolRegistrationError(f"{tool_name}_{action_name} is already registered")

        action = RegisteredAction(
            tool_name=tool_name,
            action_name=action_name,
            handler=handler,
            description=description,
            input_schema=input_schema or {"type": "object", "properties": {}, "required": []},
        )
        self._actions[key] = action
        return action

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._actions

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def tool_names(self) -> list[str]:
        return sorted({tool for tool, _ in self._actions})

    def get(self, tool_name: str, action_name: str) -> RegisteredAction:
        try:
            return self._actions[(tool_name, action_name)]
        except KeyError:
            raise UnknownToolError(f'Tool "{tool_name}" action "{action_name}" is not registered') from None

    def schemas(self) -> list[dict[str, Any]]:
        """Anthropic tool format: {name, description, input_schema}."""
        return [
            {
                "name": action.function_name,
                "description": action.description,
                "input_schema": action.input_schema,
            }
            for action in self._actions.values()
        ]

    def invocation_for(self, function_name: str, raw_args: Any, safety_context: dict | None = None) -> ToolInvocation:
        tool, action, args = parse_function_call(function_name, raw_args)
        context = dict(safety_context or {})
        context.setdefault("root", self.root)
        return ToolInvocation(tool, action, args, context)

    async def dispatch(self, invocation: ToolInvocation) -> ToolResult:
        started = time.perf_counter()
        try:
            action = self.get(invocation.tool_name, invocation.action_name)
            _check_arg_names(action, invocation.args)
            output = await action.handler(**invocation.args)
        except (ToolError, ValueError, TypeError) as e:
            logger.info(
                "Tool %s failed: %s",
                invocation.function_name,
                e,
                extra={"event": "tool.failed", "tool": invocation.function_name},
            )
            return ToolResult(success=False, error=str(e))
        except Exception as e:
            logger.exception(
                "Tool %s raised unexpectedly",
                invocation.function_name,
                extra={"event": "tool.crashed", "tool": invocation.function_name},
            )
            return ToolResult(success=False, error=f"{type(e).__name__}: {e}")

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.debug(
            "Tool %s succeeded",
            invocation.function_name,
            extra={"event": "tool.succeeded", "tool": invocation.function_name, "duration_ms": duration_ms},
        )
        return ToolResult(success=True, output=output)


def _check_arg_names(action: RegisteredAction, args: dict[str, Any]) -> None:
    # Only declared properties reach the handler; bound kwargs such as root stay bound.
    allowed = action.input_schema.get("properties") or {}
    unexpected = sorted(set(args) - set(allowed))
    if unexpected:
        raise ValueError(f"Unexpected argument(s) for {action.function_name}: {', '.join(unexpected)}")
