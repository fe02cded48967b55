"""Web search providers used to research conversation topics."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..config import ContextConfig
from ..context.knowledge import SearchResult

logger = logging.getLogger(__name__)


class SearchProvider(ABC):
    """Ranked web results for a query."""

    name: str = "search"

    @abstractmethod
    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        """Top ``limit`` results for ``query``.

        Raises:
            httpx.HTTPError or provider-specific errors on failure; callers
            decide whether a failed lookup matters.
        """


class DuckDuckGoSearchProvider(SearchProvider):
    """Keyless search through LangChain's DuckDuckGo wrapper."""

    name = "duckduckgo"

    def __init__(self) -> None:
        from langchain_community.utilities import DuckDuckGoSearchAPIWrapper

        self._wrapper = DuckDuckGoSearchAPIWrapper()

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        rows = await asyncio.to_thread(self._wrapper.results, query, limit)
        results = [
            SearchResult(
                title=row.get("title", ""),
                snippet=row.get("snippet", ""),
                url=row.get("link", ""),
            )
            for row in rows
            if row.get("snippet")
        ]
        logger.info("Web search completed for query: %s (%d results)", query, len(results))
        return results


class BraveSearchProvider(SearchProvider):
    """Brave Search API (requires a subscription token)."""

    name = "brave"
    API_URL = "https://api.search.brave.com/res/v1/web/search"

    def __init__(self, api_key: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.timeout = timeout

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        headers = {
            "Accept": "application/json",
            "X-Subscription-Token": self.api_key,
        }
        params = {"q": query, "count": max(limit, 1)}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(self.API_URL, headers=headers, params=params)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                logger.error(
                    "Brave search failed (HTTP %d) for query: %s", e.response.status_code, query
                )
                raise

        rows = (data.get("web") or {}).get("results") or []
        results = [
            SearchResult(
                title=row.get("title", ""),
                snippet=row.get("description", ""),
                url=row.get("url", ""),
            )
            for row in rows[:limit]
            if row.get("description")
        ]
        logger.info("Web search completed for query: %s (%d results)", query, len(results))
        return results


def create_search_provider(config: ContextConfig) -> Optional[SearchProvider]:
    """Provider for the configured backend, or None when web search is off."""
    if config.search_provider == "duckduckgo":
        return DuckDuckGoSearchProvider()
    elif config.search_provider == "brave":
        return BraveSearchProvider(
            config.brave_api_key.get_secret_value(), timeout=config.timeout_seconds
        )
    return None
