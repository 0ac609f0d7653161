"""
Unit tests for HistoryLoader and the SQLAlchemy history store.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from coding_agent.context import HistoryLoader, parse_metadata

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class RecordingStore:
    """In-memory store returning rows newest first."""

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []

    def fetch_recent(self, conversation_id, limit):
        self.calls.append((conversation_id, limit))
        if self.error:
            raise self.error
        return self.rows[:limit]


class AsyncStore(RecordingStore):
    async def fetch_recent(self, conversation_id, limit):
        return super().fetch_recent(conversation_id, limit)


class ThreadRecordingStore(RecordingStore):
    def fetch_recent(self, conversation_id, limit):
        self.thread = threading.current_thread()
        return super().fetch_recent(conversation_id, limit)


def row(i, sender="user", metadata=None):
    return {
        "sender": sender,
        "content": f"message {i}",
        "metadata": metadata,
        "created_at": BASE_TIME + timedelta(minutes=i),
    }


class TestLoadRecent:
    """Ordering, bounds and failure behaviour."""

    @pytest.mark.asyncio
    async def test_turns_returned_oldest_first(self):
        store = RecordingStore([row(3), row(2), row(1)])
        turns = await HistoryLoader(store).load_recent("c1", 3)
        assert [t.content for t in turns] == ["message 1", "message 2", "message 3"]
        assert store.calls == [("c1", 3)]

    @pytest.mark.asyncio
    async def test_missing_conversation_id_fails_before_query(self):
        store = RecordingStore()
        with pytest.raises(ValueError, match="conversation_id"):
            await HistoryLoader(store).load_recent("")
        assert store.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -1])
    async def test_non_positive_limit_rejected(self, limit):
        store = RecordingStore()
        with pytest.raises(ValueError, match="limit"):
            await HistoryLoader(store).load_recent("c1", limit)
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates_unchanged(self):
        error = ConnectionError("database unreachable")
        with pytest.raises(ConnectionError) as excinfo:
            await HistoryLoader(RecordingStore(error=error)).load_recent("c1")
        assert excinfo.value is error

    @pytest.mark.asyncio
    async def test_async_store_supported(self):
        turns = await HistoryLoader(AsyncStore([row(2, "agent"), row(1)])).load_recent("c1")
        assert [t.speaker for t in turns] == ["user", "agent"]

    @pytest.mark.asyncio
    async def test_blocking_store_runs_off_the_event_loop_thread(self):
        store = ThreadRecordingStore([row(1)])
        turns = await HistoryLoader(store).load_recent("c1")
        assert [t.content for t in turns] == ["message 1"]
        assert store.thread is not threading.current_thread()

    @pytest.mark.asyncio
    async def test_malformed_metadata_degrades_to_none(self):
        store = RecordingStore([row(2, metadata="{not json"), row(1, metadata='{"k": 1}')])
        turns = await HistoryLoader(store).load_recent("c1")
        assert turns[0].metadata == {"k": 1}
        assert turns[1].metadata is None


class TestParseMetadata:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, None),
            ({"a": 1}, {"a": 1}),
            ('{"a": 1}', {"a": 1}),
            (b'{"a": 1}', {"a": 1}),
            ("[1, 2]", None),
            ("42", None),
            ("", None),
            (3.5, None),
        ],
    )
    def test_parse_metadata(self, raw, expected):
        assert parse_metadata(raw) == expected


class TestSqlChatHistoryStore:
    """The SQLAlchemy adapter used in production."""

    def test_fetch_recent_newest_first(self, history_store):
        for i in range(5):
            history_store.insert_turn("c1", "user", f"m{i}", created_at=BASE_TIME + timedelta(seconds=i))
        history_store.insert_turn("other", "user", "elsewhere")
        rows = history_store.fetch_recent("c1", 3)
        assert [r["content"] for r in rows] == ["m4", "m3", "m2"]

    def test_invalid_sender_rejected(self, history_store):
        with pytest.raises(ValueError, match="Invalid sender"):
            history_store.insert_turn("c1", "robot", "hi")

    def test_metadata_dict_stored_as_json(self, history_store):
        history_store.insert_turn("c1", "agent", "hi", metadata={"tool": "x"})
        assert history_store.fetch_recent("c1", 1)[0]["metadata"] == '{"tool": "x"}'

    @pytest.mark.asyncio
    async def test_loader_over_sql_store(self, history_store):
        history_store.insert_turn("c1", "user", "first", created_at=BASE_TIME)
        history_store.insert_turn("c1", "agent", "second", created_at=BASE_TIME + timedelta(seconds=1))
        turns = await HistoryLoader(history_store).load_recent("c1", 20)
        assert [(t.speaker, t.content) for t in turns] == [("user", "first"), ("agent", "second")]
        assert turns[0].created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_loader_returns_last_n_turns_ascending(self, history_store):
        for i in range(8):
            sender = "user" if i % 2 == 0 else "agent"
            history_store.insert_turn("c1", sender, f"turn {i}", created_at=BASE_TIME + timedelta(seconds=i))
        history_store.insert_turn("c2", "user", "other conversation", created_at=BASE_TIME + timedelta(seconds=99))

        turns = await HistoryLoader(history_store).load_recent("c1", 3)

        assert [t.content for t in turns] == ["turn 5", "turn 6", "turn 7"]
        assert [t.speaker for t in turns] == ["agent", "user", "agent"]
        assert [t.created_at for t in turns] == sorted(t.created_at for t in turns)
        assert turns[-1].created_at == BASE_TIME + timedelta(seconds=7)
        assert all(t.conversation_id == "c1" for t in turns)

    @pytest.mark.asyncio
    async def test_loader_empty_conversation(self, history_store):
        history_store.insert_turn("c1", "user", "hello", created_at=BASE_TIME)
        assert await HistoryLoader(history_store).load_recent("never-used", 5) == []

    @pytest.mark.asyncio
    async def test_loader_limit_larger_than_conversation(self, history_store):
        history_store.insert_turn("c1", "user", "only", created_at=BASE_TIME)
        turns = await HistoryLoader(history_store).load_recent("c1", 50)
        assert [t.content for t in turns] == ["only"]
