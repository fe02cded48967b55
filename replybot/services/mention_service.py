"""Service for the set of mentions that already received a reply."""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..mentions import Mention
from ..orm.replied_mention import RepliedMention


class MentionService:
    """Queries and writes for replied mentions."""

    async def replied_among(self, session: AsyncSession, mention_ids: Iterable[str]) -> set[str]:
        """Return the subset of ``mention_ids`` that were already replied to."""
        ids = list(mention_ids)
        if not ids:
            return set()
        result = await session.execute(
            select(RepliedMention.mention_id).where(
                RepliedMention.mention_id.in_(ids),
            )
        )
        return set(result.scalars().all())

    async def mark_replied(
        self,
        session: AsyncSession,
        mention: Mention,
        reply_text: str,
        reply_id: Optional[str] = None,
    ) -> RepliedMention:
        """Add a mention to the replied set."""
        replied = RepliedMention(
            mention_id=mention.id,
            author_id=mention.author_id,
            author_handle=mention.author_handle or None,
            conversation_id=mention.conversation_id,
            mention_text=mention.text,
            reply_id=reply_id,
            reply_text=reply_text,
        )
        session.add(replied)
        return replied

    async def recent_replies(self, session: AsyncSession, hours: int = 24) -> list[RepliedMention]:
        """Replies posted within the last ``hours``, newest first."""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        result = await session.execute(
            select(RepliedMention)
            .where(RepliedMention.created_at > cutoff)
            .order_by(RepliedMention.created_at.desc())
        )
        return list(result.scalars().all())

    async def stats(self, session: AsyncSession) -> dict:
        """Totals across every reply ever recorded."""
        result = await session.execute(
            select(
                func.count(RepliedMention.id),
                func.count(func.distinct(RepliedMention.author_id)),
                func.max(RepliedMention.created_at),
            )
        )
        total, unique_authors, last_reply = result.one()
        return {
            "total_replies": total or 0,
            "unique_authors": unique_authors or 0,
            "last_reply": last_reply.isoformat() if last_reply else None,
        }

    async def cleanup_old_mentions(self, session: AsyncSession, days: int) -> int:
        """Delete replied mentions older than N days."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await session.execute(
            delete(RepliedMention).where(RepliedMention.created_at < cutoff)
        )
        return result.rowcount or 0
