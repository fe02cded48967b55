"""Cycle orchestrator: fetch, filter, build context, generate, publish, persist."""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .config import Config
from .context import ContextBuilder
from .filters import DenyReason, EligibilityFilter, FilterSettings, MemoryEntry, TrackingState
from .llm_handler import LLMHandler
from .mentions import Mention
from .orm.base import as_utc, utc_now
from .platforms import PlatformClient, PlatformError, RateLimitedError, create_platform_client, run_blocking
from .publisher import Publisher
from .services import TrackingStore
from .tools import create_search_provider

logger = logging.getLogger(__name__)

MAX_PUBLISH_ATTEMPTS = 3
RETENTION_INTERVAL = 24 * 60 * 60


class CycleStage(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FILTERING = "filtering"
    RESEARCHING = "researching"
    GENERATING = "generating"
    PUBLISHING = "publishing"
    PERSISTING = "persisting"


@dataclass
class BotStats:
    """Counters reported by the health endpoint."""

    cycles: int = 0
    mentions_seen: int = 0
    replies_posted: int = 0
    skipped: int = 0
    rejected: int = 0
    publish_failures: int = 0
    persistence_failures: int = 0
    rate_limited: int = 0


@dataclass
class BatchResult:
    """What happened to each mention of a batch."""

    replied: list[Mention] = field(default_factory=list)
    # Mentions that should be looked at again next cycle
    deferred: set[str] = field(default_factory=set)


class Bot:
    """Runs reply cycles for pull ticks and push deliveries.

    Cycles never overlap: polling and webhook deliveries share one lock, and
    asyncio.Lock hands it out in arrival order.
    """

    def __init__(
        self,
        config: Config,
        store: TrackingStore,
        platform: Optional[PlatformClient] = None,
        generator: Optional[LLMHandler] = None,
        context_builder: Optional[ContextBuilder] = None,
        publisher: Optional[Publisher] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.platform = platform or create_platform_client(config.platform)
        self.filter = EligibilityFilter(FilterSettings.from_config(self.platform.handle, config.bot))
        self.generator = generator or LLMHandler(config.llm, config.bot, self.platform.handle)
        self.context_builder = context_builder or ContextBuilder(
            config.context,
            self.platform,
            web_search=create_search_provider(config.context) if config.context.enabled else None,
            follow_up_window=config.bot.follow_up_window,
        )
        self.publisher = publisher or Publisher(self.platform, timeout=config.bot.publish_timeout_seconds)

        self.stats = BotStats()
        self.stage = CycleStage.IDLE
        self.cursor: Optional[str] = None
        self.cooldown_until: Optional[float] = None
        self.started_at = time.monotonic()

        # Replies posted by this process; overlays the store in case a write failed
        self.local_state = TrackingState()
        self._publish_attempts: dict[str, int] = {}
        self._last_retention: Optional[float] = None
        self._lock = asyncio.Lock()

    # -- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Log in and restore the poll cursor."""
        await run_blocking(self.platform.login, timeout=self.config.bot.fetch_timeout_seconds)
        self.cursor = await self.store.get_cursor()
        logger.info("Starting bot for @%s (cursor: %s)", self.platform.handle, self.cursor or "none")

    async def run(self) -> None:
        """Run the bot in a continuous polling loop."""
        logger.info("Poll interval: %d seconds", self.config.bot.poll_interval)
        await self.start()

        try:
            while True:
                await self.run_once()
                await self.maybe_apply_retention()
                await asyncio.sleep(self.config.bot.poll_interval)

        except KeyboardInterrupt:
            logger.info("Received shutdown signal, exiting...")
        except Exception as e:
            logger.error("Unexpected error in main loop: %s", e, exc_info=True)
            raise

    # -- cooldown --------------------------------------------------------

    def cooldown_remaining(self) -> float:
        if self.cooldown_until is None:
            return 0.0
        return max(0.0, self.cooldown_until - time.monotonic())

    def start_cooldown(self) -> None:
        seconds = self.config.bot.rate_limit_cooldown
        self.cooldown_until = time.monotonic() + seconds
        self.stats.rate_limited += 1
        logger.warning("Rate limited, pausing fetches for %d seconds", seconds)

    # -- cycles ----------------------------------------------------------

    async def run_once(self) -> int:
        """Run a single polling cycle.

        Returns:
            Number of replies posted.
        """
        async with self._lock:
            self.stats.cycles += 1

            if self.cooldown_remaining() > 0:
                logger.info("In rate-limit cooldown (%.0fs left), skipping fetch", self.cooldown_remaining())
                return 0

            self.stage = CycleStage.FETCHING
            try:
                batch = await run_blocking(
                    self.platform.fetch_mentions,
                    self.cursor,
                    timeout=self.config.bot.fetch_timeout_seconds,
                )
            except RateLimitedError:
                self.start_cooldown()
                return 0
            except asyncio.TimeoutError:
                logger.error("Fetching mentions timed out")
                return 0
            except PlatformError as e:
                logger.error("Error fetching mentions: %s", e)
                return 0
            except Exception as e:
                logger.error("Unexpected error fetching mentions: %s", e, exc_info=True)
                return 0
            finally:
                self.stage = CycleStage.IDLE

            if not batch.mentions:
                logger.debug("No new mentions")
                if batch.newest_cursor:
                    await self._save_cursor(batch.newest_cursor)
                return 0

            logger.info("Found %d new mention(s)", len(batch.mentions))
            try:
                result = await self._process_batch(batch.mentions)
            except Exception as e:
                logger.error("Error in polling cycle: %s", e, exc_info=True)
                return 0
            await self._advance_cursor(batch.mentions, result, batch.newest_cursor)
            return len(result.replied)

    async def handle_webhook_mentions(self, mentions: Iterable[Mention]) -> int:
        """Process mentions delivered by the webhook. Returns replies posted."""
        mentions = list(mentions)
        if not mentions:
            return 0

        async with self._lock:
            self.stats.cycles += 1
            logger.info("Processing %d pushed mention(s)", len(mentions))
            try:
                result = await self._process_batch(mentions)
            except Exception as e:
                logger.error("Error processing pushed mentions: %s", e, exc_info=True)
                return 0
            return len(result.replied)

    async def _process_batch(self, mentions: list[Mention]) -> BatchResult:
        result = BatchResult()
        ordered = sorted(mentions, key=lambda m: m.created_at)
        self.stats.mentions_seen += len(ordered)

        try:
            self.stage = CycleStage.FILTERING
            state = await self._snapshot(ordered)

            for mention in ordered:
                if mention.author_handle.lower() == self.platform.handle.lower():
                    continue

                decision = self.filter.decide(mention, state)
                if not decision.allow:
                    self.stats.skipped += 1
                    logger.debug("[SKIP] %s: %s", mention.id, decision.reason)
                    if decision.reason == DenyReason.CYCLE_LIMIT.value:
                        result.deferred.add(mention.id)
                    continue

                logger.info("[MENTION] @%s: %s", mention.author_handle or mention.author_id, mention.preview())

                self.stage = CycleStage.RESEARCHING
                context = await self.context_builder.build(mention, state.memory_for(mention))

                self.stage = CycleStage.GENERATING
                reply = await self.generator.generate(mention, context)
                if reply is None:
                    self.stats.rejected += 1
                    logger.info("[FILTER] Rejected reply for %s (contains question)", mention.id)
                    continue

                self.stage = CycleStage.PUBLISHING
                reply_id = await self.publisher.post(mention, reply)
                if reply_id is None:
                    self.stats.publish_failures += 1
                    if self._note_publish_failure(mention):
                        result.deferred.add(mention.id)
                    continue

                self.stage = CycleStage.PERSISTING
                count = await self._record(mention, reply, reply_id, state)
                self.stats.replies_posted += 1
                result.replied.append(mention)
                logger.info(
                    "[POSTED] Reply %d/%d to %s in conversation %s (%d chars)",
                    count,
                    self.config.bot.max_replies_per_pair,
                    mention.author_id,
                    mention.conversation_id,
                    len(reply),
                )
        finally:
            self.stage = CycleStage.IDLE

        return result

    def _note_publish_failure(self, mention: Mention) -> bool:
        """Count a failed post; True while the mention is still worth retrying."""
        attempts = self._publish_attempts.get(mention.id, 0) + 1
        self._publish_attempts[mention.id] = attempts
        if attempts >= MAX_PUBLISH_ATTEMPTS:
            logger.warning("Giving up on mention %s after %d failed posts", mention.id, attempts)
            return False
        return True

    # -- tracking state --------------------------------------------------

    async def _snapshot(self, mentions: list[Mention]) -> TrackingState:
        """Store snapshot merged with what this process already did."""
        try:
            state = await self.store.snapshot(mentions)
        except Exception as e:
            logger.error("Failed to load tracking state, using in-memory state: %s", e, exc_info=True)
            state = TrackingState()

        local = self.local_state
        state.replied_mention_ids |= local.replied_mention_ids
        for key, count in local.pair_counts.items():
            state.pair_counts[key] = max(state.pair_counts.get(key, 0), count)
        for key, memory in local.memories.items():
            stored = state.memories.get(key)
            if stored is None or as_utc(stored.last_reply_at) < as_utc(memory.last_reply_at):
                state.memories[key] = memory
        return state

    async def _record(self, mention: Mention, reply: str, reply_id: str, state: TrackingState) -> int:
        """Update the cycle snapshot, the process overlay and the store."""
        count = state.pair_count(mention) + 1
        now = utc_now()
        previous = state.memory_for(mention)
        memory = MemoryEntry(
            last_reply=reply[:200],
            last_mention=mention.text[:200],
            last_reply_at=now,
            reply_count=(previous.reply_count if previous else 0) + 1,
        )
        memory_key = (mention.author_id, mention.conversation_id)

        for target in (state, self.local_state):
            target.replied_mention_ids.add(mention.id)
            target.pair_counts[mention.pair_key] = count
            target.memories[memory_key] = memory
        state.replies_this_cycle += 1
        self._publish_attempts.pop(mention.id, None)

        try:
            count = await self.store.record_reply(mention, reply, reply_id)
        except Exception as e:
            self.stats.persistence_failures += 1
            logger.error("Failed to persist reply to %s: %s", mention.id, e, exc_info=True)
        return count

    async def _advance_cursor(
        self, mentions: list[Mention], result: BatchResult, newest_cursor: Optional[str]
    ) -> None:
        """Move the cursor past every settled mention, stopping at the first deferred one."""
        ordered = sorted(mentions, key=lambda m: m.created_at)
        settled: Optional[Mention] = None
        for mention in ordered:
            if mention.id in result.deferred:
                break
            settled = mention
        else:
            if newest_cursor:
                await self._save_cursor(newest_cursor)
                return

        if settled is not None:
            await self._save_cursor(self.platform.cursor_for(settled))

    async def _save_cursor(self, value: str) -> None:
        if value == self.cursor:
            return
        self.cursor = value
        try:
            await self.store.set_cursor(value)
        except Exception as e:
            logger.error("Failed to persist cursor %s: %s", value, e, exc_info=True)

    # -- maintenance -----------------------------------------------------

    async def maybe_apply_retention(self) -> Optional[dict[str, int]]:
        """Run the retention pass at most once a day when retention is enabled."""
        days = self.config.bot.retention_days
        if not days:
            return None

        now = time.monotonic()
        if self._last_retention is not None and now - self._last_retention < RETENTION_INTERVAL:
            return None
        self._last_retention = now

        async with self._lock:
            try:
                return await self.store.apply_retention(days)
            except Exception as e:
                logger.error("Retention pass failed: %s", e, exc_info=True)
                return None

    def health(self) -> dict:
        return {
            "status": "ok",
            "stage": self.stage.value,
            "platform": self.config.platform.kind,
            "handle": self.platform.handle,
            "uptime_seconds": int(time.monotonic() - self.started_at),
            "cooldown_seconds": int(self.cooldown_remaining()),
            "cursor": self.cursor,
            "counters": asdict(self.stats),
        }
