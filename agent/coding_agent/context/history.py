"""
History loader: the most recent turns of a conversation, oldest first.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


@dataclass(frozen=True)
class ConversationTurn:
    conversation_id: str
    speaker: str
    content: str
    metadata: dict[str, Any] | None
    created_at: datetime


class HistoryStore(Protocol):
    def fetch_recent(self, conversation_id: str, limit: int) -> Any:
        """Rows newest first; may return a list or an awaitable of one."""


def parse_metadata(raw: Any) -> dict[str, Any] | None:
    """Decode stored metadata. Anything that is not a JSON object becomes None."""
    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(raw, str):
        return None
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    raise TypeError(f"Unsupported created_at value: {value!r}")


def _row_value(row: Any, key: str, default: Any = None) -> Any:
    if isinstance(row, dict):
        return row.get(key, default)
    return getattr(row, key, default)


async def call_store(method, *args):
    """Await async store methods; run blocking ones in a worker thread."""
    if inspect.iscoroutinefunction(method):
        return await method(*args)
    result = await asyncio.to_thread(method, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


class HistoryLoader:
    def __init__(self, store: HistoryStore):
        self._store = store

    async def load_recent(self, conversation_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[ConversationTurn]:
        """Return up to ``limit`` most recent turns in chronological order.

        Raises:
            ValueError: missing ``conversation_id`` or non-positive ``limit``.
                Raised before the store is queried.

        Store errors propagate unchanged.
        """
        if not conversation_id:
            raise ValueError("conversation_id is required")
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")

        rows = await call_store(self._store.fetch_recent, conversation_id, limit)

        # The store hands back newest-first; callers want oldest-first.
        rows = list(rows)[:limit]
        rows.reverse()

        turns = [
            ConversationTurn(
                conversation_id=_row_value(row, "conversation_id", conversation_id),
                speaker=str(_row_value(row, "sender", "user")),
                content=str(_row_value(row, "content", "") or ""),
                metadata=parse_metadata(_row_value(row, "metadata")),
                created_at=_as_datetime(_row_value(row, "created_at")),
            )
            for row in rows
        ]
        logger.debug("Loaded %d history turns for %s", len(turns), conversation_id)
        return turns
