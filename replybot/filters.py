"""Eligibility filter deciding whether a mention gets a reply."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .config import BotConfig
from .mentions import Mention

REPOST_PREFIX = "RT @"


class DenyReason(str, Enum):
    """Why a mention was skipped."""

    UNTRUSTED_AUTHOR = "author does not meet the trust requirements"
    NOT_ADDRESSED = "mention does not reference the bot handle"
    REPOST = "mention is a repost"
    REPLY_TO_OTHERS = "mention is a reply to someone else"
    ALREADY_REPLIED = "already replied to this mention"
    PAIR_LIMIT = "reply limit reached for this author in this conversation"
    CYCLE_LIMIT = "reply limit reached for this cycle"


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of the eligibility check."""

    allow: bool
    reason: str

    @classmethod
    def allowed(cls) -> "FilterDecision":
        return cls(allow=True, reason="eligible")

    @classmethod
    def denied(cls, reason: DenyReason) -> "FilterDecision":
        return cls(allow=False, reason=reason.value)


@dataclass
class MemoryEntry:
    """Snapshot of what the bot last said to an author in a conversation."""

    last_reply: str
    last_mention: str
    last_reply_at: datetime
    reply_count: int


@dataclass
class TrackingState:
    """Orchestrator-owned view of reply history for one cycle."""

    replied_mention_ids: set[str] = field(default_factory=set)
    pair_counts: dict[tuple[str, str], int] = field(default_factory=dict)
    memories: dict[tuple[str, str], MemoryEntry] = field(default_factory=dict)
    replies_this_cycle: int = 0

    def pair_count(self, mention: Mention) -> int:
        return self.pair_counts.get(mention.pair_key, 0)

    def memory_for(self, mention: Mention) -> Optional[MemoryEntry]:
        return self.memories.get((mention.author_id, mention.conversation_id))


@dataclass(frozen=True)
class FilterSettings:
    """Tunables for the eligibility checks."""

    bot_handle: str
    require_verified: bool = True
    min_follower_count: int = 0
    require_fresh_mention: bool = True
    max_replies_per_pair: int = 3
    max_replies_per_cycle: int = 1

    @classmethod
    def from_config(cls, bot_handle: str, config: BotConfig) -> "FilterSettings":
        return cls(
            bot_handle=bot_handle,
            require_verified=config.require_verified,
            min_follower_count=config.min_follower_count,
            require_fresh_mention=config.require_fresh_mention,
            max_replies_per_pair=config.max_replies_per_pair,
            max_replies_per_cycle=config.max_replies_per_cycle,
        )


class EligibilityFilter:
    """Pure decision function over (mention, tracking state).

    Checks run in a fixed order and the first failure wins, so the reason
    always names the most fundamental problem with a mention.
    """

    def __init__(self, settings: FilterSettings) -> None:
        self.settings = settings
        handle = settings.bot_handle.lstrip("@")
        self._handle_pattern = re.compile(rf"@{re.escape(handle)}(?![\w.-]*\w)", re.IGNORECASE)
        self._short_handle = handle.split(".")[0].lower()

    def decide(self, mention: Mention, state: TrackingState) -> FilterDecision:
        settings = self.settings

        if settings.require_verified and not mention.author_verified:
            return FilterDecision.denied(DenyReason.UNTRUSTED_AUTHOR)
        if mention.author_follower_count < settings.min_follower_count:
            return FilterDecision.denied(DenyReason.UNTRUSTED_AUTHOR)

        if not self._handle_pattern.search(mention.text):
            return FilterDecision.denied(DenyReason.NOT_ADDRESSED)
        if mention.text.startswith(REPOST_PREFIX):
            return FilterDecision.denied(DenyReason.REPOST)

        if settings.require_fresh_mention and not self._is_fresh(mention):
            return FilterDecision.denied(DenyReason.REPLY_TO_OTHERS)

        if mention.id in state.replied_mention_ids:
            return FilterDecision.denied(DenyReason.ALREADY_REPLIED)

        if state.pair_count(mention) >= settings.max_replies_per_pair:
            return FilterDecision.denied(DenyReason.PAIR_LIMIT)

        if state.replies_this_cycle >= settings.max_replies_per_cycle:
            return FilterDecision.denied(DenyReason.CYCLE_LIMIT)

        return FilterDecision.allowed()

    def _is_fresh(self, mention: Mention) -> bool:
        target = mention.in_reply_to_handle
        if not target:
            return True
        target = target.lstrip("@").lower()
        handle = self.settings.bot_handle.lstrip("@").lower()
        return target in (handle, self._short_handle)
