"""
Logging setup: JSON-lines or text output on stderr, with conversation and
request identifiers carried through contextvars.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Iterator

_UNSET = object()

_conversation_id_var: ContextVar[str | None] = ContextVar("log_conversation_id", default=None)
_request_id_var: ContextVar[str | None] = ContextVar("log_request_id", default=None)

_CONTEXT_KEYS = ("conversation_id", "request_id")
_handler: logging.Handler | None = None


def get_log_context() -> dict[str, str | None]:
    return {
        "conversation_id": _conversation_id_var.get(),
        "request_id": _request_id_var.get(),
    }


@contextmanager
def bind_log_context(
    *,
    conversation_id: str | None | object = _UNSET,
    request_id: str | None | object = _UNSET,
) -> Iterator[None]:
    """Bind identifiers for every record logged inside the block."""
    tokens: list[tuple[ContextVar[Any], Token[Any]]] = []
    if conversation_id is not _UNSET:
        tokens.append((_conversation_id_var, _conversation_id_var.set(conversation_id)))
    if request_id is not _UNSET:
        tokens.append((_request_id_var, _request_id_var.set(request_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            try:
                var.reset(token)
            except ValueError:
                # Block exited in another context (async generator closed by a finalizer task)
                var.set(None if token.old_value is Token.MISSING else token.old_value)


class ContextInjectionFilter(logging.Filter):
    """Copy the bound identifiers onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        for key in _CONTEXT_KEYS:
            if getattr(record, key, None) is None:
                setattr(record, key, ctx.get(key))
        return True


class JsonLineFormatter(logging.Formatter):
    def __init__(self, *, service: str) -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        error_text = None
        if record.exc_info:
            error_text = self.formatException(record.exc_info)
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service,
            "module": record.name,
            "event": getattr(record, "event", None),
            "conversation_id": getattr(record, "conversation_id", None),
            "request_id": getattr(record, "request_id", None),
            "tool": getattr(record, "tool", None),
            "duration_ms": getattr(record, "duration_ms", None),
            "message": record.getMessage(),
            "error": error_text,
        }
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install a single stderr handler on the root logger.

    Calling it again replaces the handler installed by the previous call.
    """
    global _handler
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    handler = logging.StreamHandler(stream=sys.stderr)
    if fmt == "text":
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s "
                "[conv=%(conversation_id)s req=%(request_id)s] %(message)s"
            )
        )
    else:
        handler.setFormatter(JsonLineFormatter(service="coding-agent"))
    handler.addFilter(ContextInjectionFilter())

    root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _handler = handler
    return handler
