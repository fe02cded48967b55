"""External lookups used while building reply context."""

from .web_search import (
    BraveSearchProvider,
    DuckDuckGoSearchProvider,
    SearchProvider,
    create_search_provider,
)

__all__ = [
    "BraveSearchProvider",
    "DuckDuckGoSearchProvider",
    "SearchProvider",
    "create_search_provider",
]
