"""Stage 3: look up what the web and the platform say about each topic."""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Sequence

from ..platforms.base import PlatformClient, PlatformError, run_blocking
from .classifiers import TextClassifier
from .knowledge import TOPIC_PRIORITY, Topic, TopicKind, TopicResearch

if TYPE_CHECKING:
    from ..tools.web_search import SearchProvider

logger = logging.getLogger(__name__)

POST_SNIPPET_CHARS = 150
WEB_SNIPPET_CHARS = 300

# Only these kinds are worth searching recent platform chatter for
PLATFORM_SEARCH_KINDS = {TopicKind.TICKER, TopicKind.PROJECT}


def prioritize(topics: Sequence[Topic], limit: int) -> list[Topic]:
    """Tickers and projects first, then companies, then concepts.

    Order within a priority tier is preserved (most mentioned first).
    """
    ranked = sorted(enumerate(topics), key=lambda item: (TOPIC_PRIORITY[item[1].kind], item[0]))
    return [topic for _, topic in ranked[:limit]]


def search_query(topic: Topic) -> str:
    if " " in topic.name:
        return f'"{topic.name}"'
    return topic.name


class TopicResearcher:
    """Gather a handful of snippets per topic, tolerating lookup failures.

    Each lookup is bounded by ``timeout`` and followed by ``delay`` seconds
    of sleep so upstream APIs are not hammered.
    """

    def __init__(
        self,
        sentiment: TextClassifier,
        web_search: Optional["SearchProvider"] = None,
        platform: Optional[PlatformClient] = None,
        snippets_per_topic: int = 5,
        delay: float = 0.5,
        timeout: float = 10.0,
    ) -> None:
        self.sentiment = sentiment
        self.web_search = web_search
        self.platform = platform
        self.snippets_per_topic = snippets_per_topic
        self.delay = delay
        self.timeout = timeout

    async def research(self, topics: Sequence[Topic], limit: int) -> list[TopicResearch]:
        """Research up to ``limit`` topics; topics with no results are omitted."""
        results = []
        for index, topic in enumerate(prioritize(topics, limit)):
            if index and self.delay:
                await asyncio.sleep(self.delay)

            item = await self.research_topic(topic)
            if item:
                results.append(item)

        logger.info("Researched %d/%d topics", len(results), min(len(topics), limit))
        return results

    async def research_topic(self, topic: Topic) -> Optional[TopicResearch]:
        snippets = await self._web_snippets(topic)

        if self.platform and topic.kind in PLATFORM_SEARCH_KINDS:
            if self.web_search and self.delay:
                await asyncio.sleep(self.delay)
            snippets.extend(await self._platform_snippets(topic))

        snippets = snippets[: self.snippets_per_topic]
        if not snippets:
            logger.debug("No research found for %s", topic.name)
            return None

        sentiment = self.sentiment.classify("\n".join(snippets))
        return TopicResearch(topic=topic, snippets=snippets, sentiment=sentiment)

    async def _web_snippets(self, topic: Topic) -> list[str]:
        if not self.web_search:
            return []
        try:
            hits = await asyncio.wait_for(
                self.web_search.search(search_query(topic), self.snippets_per_topic),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Web search for %s timed out", topic.name)
            return []
        except Exception as e:
            logger.warning("Web search for %s failed: %s", topic.name, e)
            return []

        return [
            f"{hit.title}: {hit.snippet}"[:WEB_SNIPPET_CHARS] if hit.title else hit.snippet[:WEB_SNIPPET_CHARS]
            for hit in hits
        ]

    async def _platform_snippets(self, topic: Topic) -> list[str]:
        try:
            posts = await run_blocking(
                self.platform.search_recent,
                search_query(topic),
                self.snippets_per_topic,
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Platform search for %s timed out", topic.name)
            return []
        except PlatformError as e:
            logger.warning("Platform search for %s failed: %s", topic.name, e)
            return []
        except Exception as e:
            logger.warning("Platform search for %s failed unexpectedly: %s", topic.name, e, exc_info=True)
            return []

        return [post.text[:POST_SNIPPET_CHARS] for post in posts if post.text]
