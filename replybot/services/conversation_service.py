"""Service for conversation memory (what we last said to whom, where)."""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from ..filters import MemoryEntry
from ..orm.base import as_utc
from ..orm.conversation_memory import ConversationMemory

MEMORY_TEXT_LIMIT = 200


class ConversationService:
    """Service for managing per-author conversation memory."""

    async def get_memories(
        self, session: AsyncSession, pairs: Iterable[tuple[str, str]]
    ) -> dict[tuple[str, str], MemoryEntry]:
        """Memory entries keyed by (author_id, conversation_id)."""
        keys = list(set(pairs))
        if not keys:
            return {}
        result = await session.execute(
            select(ConversationMemory).where(
                tuple_(ConversationMemory.author_id, ConversationMemory.conversation_id).in_(keys),
            )
        )
        return {
            (entry.author_id, entry.conversation_id): MemoryEntry(
                last_reply=entry.last_reply,
                last_mention=entry.last_mention,
                last_reply_at=as_utc(entry.last_reply_at),
                reply_count=entry.reply_count,
            )
            for entry in result.scalars().all()
        }

    async def remember_reply(
        self,
        session: AsyncSession,
        author_id: str,
        conversation_id: str,
        reply_text: str,
        mention_text: str,
        when: Optional[datetime] = None,
    ) -> MemoryEntry:
        """Store the latest exchange for the pair."""
        when = when or datetime.now(timezone.utc)
        result = await session.execute(
            select(ConversationMemory).where(
                ConversationMemory.author_id == author_id,
                ConversationMemory.conversation_id == conversation_id,
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            entry = ConversationMemory(
                author_id=author_id,
                conversation_id=conversation_id,
                reply_count=0,
            )
            session.add(entry)

        entry.last_reply = reply_text[:MEMORY_TEXT_LIMIT]
        entry.last_mention = mention_text[:MEMORY_TEXT_LIMIT]
        entry.last_reply_at = when
        entry.reply_count = (entry.reply_count or 0) + 1

        return MemoryEntry(
            last_reply=entry.last_reply,
            last_mention=entry.last_mention,
            last_reply_at=when,
            reply_count=entry.reply_count,
        )

    async def cleanup_old_memory(self, session: AsyncSession, days: int) -> int:
        """Delete memory entries older than N days."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await session.execute(
            delete(ConversationMemory).where(ConversationMemory.last_reply_at < cutoff)
        )
        return result.rowcount or 0
