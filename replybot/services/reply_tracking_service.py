"""Service for per-(conversation, author) reply counts."""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from ..orm.reply_tracking import ReplyTracking


class ReplyTrackingService:
    """Reply counts keyed by (conversation_id, author_id)."""

    async def get_counts(
        self, session: AsyncSession, pairs: Iterable[tuple[str, str]]
    ) -> dict[tuple[str, str], int]:
        """Reply counts for the given pairs; pairs never replied to are omitted."""
        keys = list(set(pairs))
        if not keys:
            return {}
        result = await session.execute(
            select(ReplyTracking).where(
                tuple_(ReplyTracking.conversation_id, ReplyTracking.author_id).in_(keys),
            )
        )
        return {
            (entry.conversation_id, entry.author_id): entry.reply_count
            for entry in result.scalars().all()
        }

    async def increment(
        self,
        session: AsyncSession,
        conversation_id: str,
        author_id: str,
        when: Optional[datetime] = None,
    ) -> int:
        """Record one more reply for the pair and return the new count."""
        when = when or datetime.now(timezone.utc)
        result = await session.execute(
            select(ReplyTracking).where(
                ReplyTracking.conversation_id == conversation_id,
                ReplyTracking.author_id == author_id,
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            entry = ReplyTracking(
                conversation_id=conversation_id,
                author_id=author_id,
                reply_count=0,
                last_reply_at=when,
            )
            session.add(entry)

        entry.reply_count += 1
        entry.last_reply_at = when
        return entry.reply_count

    async def cleanup_old_entries(self, session: AsyncSession, days: int) -> int:
        """Delete pairs whose last reply is older than N days."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await session.execute(
            delete(ReplyTracking).where(ReplyTracking.last_reply_at < cutoff)
        )
        return result.rowcount or 0
