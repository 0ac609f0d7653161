"""
SQLAlchemy-backed chat history store.

Only two capabilities are needed by the agent: append a turn and fetch the
most recent turns of a conversation, newest first.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

VALID_SENDERS = ("user", "agent", "system")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ChatMessageORM(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(String(128), index=True)
    sender: Mapped[str] = mapped_column(String(32))
    content: Mapped[str] = mapped_column(Text())
    # Stored as raw text: rows written by other clients may hold malformed JSON.
    metadata_json: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    engine: Engine = create_engine(database_url, pool_pre_ping=True, future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)


class SqlChatHistoryStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SqlChatHistoryStore":
        return cls(create_session_factory(database_url))

    @property
    def engine(self) -> Engine:
        return self._session_factory.kw["bind"]

    def insert_turn(
        self,
        conversation_id: str,
        sender: str,
        content: str,
        metadata: Any = None,
        created_at: datetime | None = None,
    ) -> dict[str, Any]:
        if sender not in VALID_SENDERS:
            raise ValueError(f"Invalid sender: {sender}. Must be one of {', '.join(VALID_SENDERS)}")
        if not conversation_id:
            raise ValueError("conversation_id is required")

        if metadata is None or isinstance(metadata, str):
            metadata_json = metadata
        else:
            metadata_json = json.dumps(metadata, ensure_ascii=False, default=str)

        with self._session_factory.begin() as db:
            row = ChatMessageORM(
                conversation_id=conversation_id,
                sender=sender,
                content=content,
                metadata_json=metadata_json,
                created_at=created_at or utcnow(),
            )
            db.add(row)
            db.flush()
            return self._row_to_dict(row)

    def fetch_recent(self, conversation_id: str, limit: int) -> list[dict[str, Any]]:
        """Most recent ``limit`` turns, newest first."""
        with self._session_factory() as db:
            stmt = (
                select(ChatMessageORM)
                .where(ChatMessageORM.conversation_id == conversation_id)
                .order_by(ChatMessageORM.created_at.desc(), ChatMessageORM.id.desc())
                .limit(limit)
            )
            return [self._row_to_dict(row) for row in db.execute(stmt).scalars().all()]

    @staticmethod
    def _row_to_dict(row: ChatMessageORM) -> dict[str, Any]:
        return {
            "conversation_id": row.conversation_id,
            "sender": row.sender,
            "content": row.content,
            "metadata": row.metadata_json,
            "created_at": row.created_at,
        }
