"""Platform client interface shared by the Twitter and Bluesky backends."""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from ..mentions import Mention, ThreadPost

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlatformError(Exception):
    """Any failure talking to the social platform."""


class RateLimitedError(PlatformError):
    """The platform asked us to slow down."""


@dataclass
class MentionBatch:
    """Mentions returned by one fetch, oldest first."""

    mentions: list[Mention] = field(default_factory=list)
    newest_cursor: Optional[str] = None


async def run_blocking(func: Callable[..., T], *args: Any, timeout: float, **kwargs: Any) -> T:
    """Run a blocking client call off the event loop with a hard timeout.

    Raises:
        asyncio.TimeoutError: If the call does not finish in time.
    """
    call = functools.partial(func, *args, **kwargs)
    return await asyncio.wait_for(asyncio.to_thread(call), timeout=timeout)


class PlatformClient(ABC):
    """Read/write operations the bot needs from a social platform.

    Implementations are synchronous; the orchestrator wraps every call with
    :func:`run_blocking` so one slow request cannot stall a cycle forever.
    """

    handle: str

    @abstractmethod
    def login(self) -> None:
        """Authenticate (idempotent)."""

    @abstractmethod
    def fetch_mentions(self, since: Optional[str] = None) -> MentionBatch:
        """Mentions newer than the ``since`` cursor, oldest first.

        Raises:
            RateLimitedError: If the platform rate-limits the request.
            PlatformError: On any other API failure.
        """

    @abstractmethod
    def cursor_for(self, mention: Mention) -> str:
        """Cursor value that marks ``mention`` as seen."""

    @abstractmethod
    def fetch_conversation(self, mention: Mention, limit: int = 100) -> list[ThreadPost]:
        """Posts of the mention's conversation (any order)."""

    @abstractmethod
    def search_recent(self, query: str, limit: int = 5) -> list[ThreadPost]:
        """Recent public posts matching ``query``."""

    @abstractmethod
    def post_reply(self, mention: Mention, text: str) -> str:
        """Reply to ``mention`` and return the new post's identifier."""
