"""Posting replies to the platform."""

import asyncio
import logging
from typing import Optional

from .mentions import Mention
from .platforms.base import PlatformClient, PlatformError, RateLimitedError, run_blocking

logger = logging.getLogger(__name__)


class Publisher:
    """Sends a reply and reports the new post id, or None on any failure.

    Failures are logged and swallowed so tracking stays untouched and a later
    cycle may try again.
    """

    def __init__(self, platform: PlatformClient, timeout: float = 30.0) -> None:
        self.platform = platform
        self.timeout = timeout

    async def post(self, mention: Mention, text: str) -> Optional[str]:
        try:
            reply_id = await run_blocking(self.platform.post_reply, mention, text, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Posting reply to %s timed out after %.0fs", mention.id, self.timeout)
            return None
        except RateLimitedError as e:
            logger.warning("Rate limited while replying to %s: %s", mention.id, e)
            return None
        except PlatformError as e:
            logger.error("Failed to post reply to %s: %s", mention.id, e)
            return None
        except Exception as e:
            logger.error("Unexpected error posting reply to %s: %s", mention.id, e, exc_info=True)
            return None

        if not reply_id:
            logger.error("Platform returned no id for reply to %s", mention.id)
            return None

        logger.info("Posted reply %s to mention %s (%d chars)", reply_id, mention.id, len(text))
        return reply_id
