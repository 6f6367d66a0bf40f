"""Chat history repository."""

from typing import List
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models.chat_history import ChatHistoryEntry


class ChatHistoryRepository:
    """Repository for chat messages keyed by session id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, session_id: str, message: dict) -> ChatHistoryEntry:
        entry = ChatHistoryEntry(session_id=session_id, message=message)
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_by_session(self, session_id: str, limit: int = 200) -> List[ChatHistoryEntry]:
        """Messages of a session in insertion order."""
        result = await self.db.execute(
            select(ChatHistoryEntry)
            .where(ChatHistoryEntry.session_id == session_id)
            .order_by(ChatHistoryEntry.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def delete_by_session(self, session_id: str) -> int:
        result = await self.db.execute(delete(ChatHistoryEntry).where(ChatHistoryEntry.session_id == session_id))
        await self.db.flush()
        return result.rowcount
