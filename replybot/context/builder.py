"""Assemble ContextKnowledge for a mention: origin, topics, research, memory."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from ..config import ContextConfig
from ..filters import MemoryEntry
from ..mentions import Mention
from ..orm.base import as_utc, utc_now
from ..platforms.base import PlatformClient, PlatformError, run_blocking
from .classifiers import PurposeClassifier, SentimentClassifier, TextClassifier
from .knowledge import ContextKnowledge, FollowUp
from .research import TopicResearcher
from .thread_origin import find_thread_origin, summarize_thread
from .topics import extract_topics

logger = logging.getLogger(__name__)

FOLLOW_UP_COMPARE_CHARS = 100


def detect_follow_up(
    memory: Optional[MemoryEntry],
    mention: Mention,
    window_seconds: int,
    now: Optional[datetime] = None,
) -> Optional[FollowUp]:
    """Return the previous exchange when this mention continues it.

    A follow-up needs a recorded reply to the same author in the same
    conversation, inside the window, with different opening text.
    """
    if memory is None:
        return None

    now = now or utc_now()
    if now - as_utc(memory.last_reply_at) > timedelta(seconds=window_seconds):
        return None

    if mention.text[:FOLLOW_UP_COMPARE_CHARS] == memory.last_mention[:FOLLOW_UP_COMPARE_CHARS]:
        return None

    return FollowUp(
        previous_reply=memory.last_reply,
        previous_mention=memory.last_mention,
        reply_count=memory.reply_count,
    )


class ContextBuilder:
    """Best-effort enrichment; any failure degrades to the bare mention."""

    def __init__(
        self,
        config: ContextConfig,
        platform: PlatformClient,
        web_search=None,
        follow_up_window: int = 300,
        purpose_classifier: Optional[TextClassifier] = None,
        sentiment_classifier: Optional[TextClassifier] = None,
    ) -> None:
        self.config = config
        self.platform = platform
        self.follow_up_window = follow_up_window
        self.purpose_classifier = purpose_classifier or PurposeClassifier()
        self.researcher = TopicResearcher(
            sentiment=sentiment_classifier or SentimentClassifier(),
            web_search=web_search,
            platform=platform if config.platform_search else None,
            snippets_per_topic=config.snippets_per_topic,
            delay=config.delay_seconds,
            timeout=config.timeout_seconds,
        )

    async def build(self, mention: Mention, memory: Optional[MemoryEntry] = None) -> ContextKnowledge:
        """Build context for ``mention``. Never raises."""
        follow_up = detect_follow_up(memory, mention, self.follow_up_window)
        if follow_up:
            logger.info("Mention %s is a follow-up (%d previous replies)", mention.id, follow_up.reply_count)

        if not self.config.enabled:
            return ContextKnowledge.from_mention(mention.text, follow_up)

        try:
            return await self._build(mention, follow_up)
        except Exception as e:
            logger.error("Context building failed for %s, using mention only: %s", mention.id, e, exc_info=True)
            return ContextKnowledge.from_mention(mention.text, follow_up)

    async def _build(self, mention: Mention, follow_up: Optional[FollowUp]) -> ContextKnowledge:
        posts = await self._fetch_conversation(mention)

        origin = find_thread_origin(posts, mention, self.purpose_classifier)

        texts = [post.text for post in posts]
        if not any(post.id == mention.id for post in posts):
            texts.append(mention.text)

        topics = extract_topics(
            texts,
            exclude_handles=[self.platform.handle],
            max_topics=self.config.max_topics,
        )
        logger.info("Identified %d topics for mention %s", len(topics), mention.id)

        research = []
        if topics and self.config.topics_to_research:
            research = await self.researcher.research(topics, self.config.topics_to_research)

        summary = summarize_thread(posts, self.platform.handle) or mention.text
        return ContextKnowledge(
            mention_text=mention.text,
            conversation_summary=summary,
            origin=origin,
            topics=topics,
            research=research,
            follow_up=follow_up,
        )

    async def _fetch_conversation(self, mention: Mention):
        try:
            return await run_blocking(
                self.platform.fetch_conversation,
                mention,
                self.config.thread_page_size,
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Fetching conversation %s timed out", mention.conversation_id)
        except PlatformError as e:
            logger.warning("Failed to fetch conversation %s: %s", mention.conversation_id, e)
        except Exception as e:
            logger.warning(
                "Unexpected error fetching conversation %s: %s", mention.conversation_id, e, exc_info=True
            )
        return []
