"""Durable reply tracking behind a small get/record/flush interface."""

import logging
from typing import Optional, Sequence

from sqlalchemy import select

from ..filters import TrackingState
from ..mentions import Mention
from ..orm.bot_state import BotState
from .conversation_service import ConversationService
from .database import DatabaseService
from .mention_service import MentionService
from .reply_tracking_service import ReplyTrackingService

logger = logging.getLogger(__name__)

CURSOR_KEY = "poll_cursor"


class TrackingStore:
    """Facade over the tracking tables used by the orchestrator.

    Reads happen once per cycle through :meth:`snapshot`; writes happen only
    after a successful publish through :meth:`record_reply`, which commits the
    replied mention, the pair count and the conversation memory together.
    """

    def __init__(self, db: DatabaseService) -> None:
        self.db = db
        self.mentions = MentionService()
        self.reply_tracking = ReplyTrackingService()
        self.conversations = ConversationService()

    async def snapshot(self, mentions: Sequence[Mention]) -> TrackingState:
        """Load the tracking state relevant to a batch of mentions."""
        async with self.db.session() as session:
            replied = await self.mentions.replied_among(session, (m.id for m in mentions))
            counts = await self.reply_tracking.get_counts(session, (m.pair_key for m in mentions))
            memories = await self.conversations.get_memories(
                session, ((m.author_id, m.conversation_id) for m in mentions)
            )

        return TrackingState(
            replied_mention_ids=replied,
            pair_counts=counts,
            memories=memories,
        )

    async def record_reply(
        self, mention: Mention, reply_text: str, reply_id: Optional[str]
    ) -> int:
        """Persist a published reply; returns the new pair count."""
        async with self.db.session() as session:
            await self.mentions.mark_replied(session, mention, reply_text, reply_id)
            count = await self.reply_tracking.increment(
                session, mention.conversation_id, mention.author_id
            )
            await self.conversations.remember_reply(
                session,
                author_id=mention.author_id,
                conversation_id=mention.conversation_id,
                reply_text=reply_text,
                mention_text=mention.text,
            )
        return count

    async def get_cursor(self) -> Optional[str]:
        async with self.db.session() as session:
            result = await session.execute(select(BotState).where(BotState.key == CURSOR_KEY))
            state = result.scalar_one_or_none()
            return state.value if state else None

    async def set_cursor(self, value: str) -> None:
        async with self.db.session() as session:
            state = await session.get(BotState, CURSOR_KEY)
            if state is None:
                session.add(BotState(key=CURSOR_KEY, value=value))
            else:
                state.value = value

    async def stats(self) -> dict:
        async with self.db.session() as session:
            return await self.mentions.stats(session)

    async def recent_replies(self, hours: int = 24) -> list[dict]:
        async with self.db.session() as session:
            replies = await self.mentions.recent_replies(session, hours)
            return [
                {
                    "mention_id": r.mention_id,
                    "author_id": r.author_id,
                    "reply_id": r.reply_id,
                    "reply": r.reply_text[:100],
                    "timestamp": r.created_at.isoformat() if r.created_at else None,
                }
                for r in replies
            ]

    async def apply_retention(self, days: int) -> dict[str, int]:
        """Evict tracking rows older than ``days``."""
        async with self.db.session() as session:
            removed = {
                "replied_mentions": await self.mentions.cleanup_old_mentions(session, days),
                "reply_tracking": await self.reply_tracking.cleanup_old_entries(session, days),
                "conversation_memory": await self.conversations.cleanup_old_memory(session, days),
            }
        logger.info("Retention pass (%d days) removed %s", days, removed)
        return removed
