"""Test doubles shared by the test modules."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from replybot.config import BotConfig, Config, ContextConfig, LLMConfig, PlatformConfig
from replybot.context.knowledge import SearchResult
from replybot.mentions import Mention, ThreadPost
from replybot.platforms.base import MentionBatch, PlatformClient

BOT_HANDLE = "replybot"
BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_mention(
    id: str = "1",
    author_id: str = "100",
    conversation_id: str = "c1",
    text: str = "@replybot what a launch for this protocol",
    minutes: int = 0,
    verified: bool = True,
    followers: int = 50,
    handle: str = "alice",
    in_reply_to: Optional[str] = None,
) -> Mention:
    return Mention(
        id=id,
        author_id=author_id,
        conversation_id=conversation_id,
        text=text,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        author_verified=verified,
        author_follower_count=followers,
        author_handle=handle,
        in_reply_to_handle=in_reply_to,
    )


def make_post(id: str, text: str, minutes: int = 0, handle: str = "alice") -> ThreadPost:
    return ThreadPost(
        id=id,
        author_id=f"id-{handle}",
        author_handle=handle,
        text=text,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def make_config(context: Optional[dict] = None, **bot) -> Config:
    bot_settings = {"require_verified": False, "require_fresh_mention": False}
    bot_settings.update(bot)
    return Config(
        platform=PlatformConfig(
            kind="twitter",
            handle=BOT_HANDLE,
            bearer_token="bearer",
            consumer_key="ck",
            consumer_secret="cs",
            access_token="at",
            access_token_secret="ats",
        ),
        llm=LLMConfig(api_key="test-key"),
        context=ContextConfig(**(context or {"enabled": False})),
        bot=BotConfig(**bot_settings),
    )


class FakePlatform(PlatformClient):
    """In-memory platform; queue batches (or exceptions) for fetch_mentions."""

    def __init__(self, batches=None, conversation=None, search_posts=None) -> None:
        self.handle = BOT_HANDLE
        self.batches = list(batches or [])
        self.conversation = conversation or []
        self.search_posts = search_posts or []
        self.post_error: Optional[Exception] = None
        self.search_error: Optional[Exception] = None
        self.logged_in = False
        self.fetch_calls: list[Optional[str]] = []
        self.search_calls: list[str] = []
        self.posted: list[tuple[str, str]] = []

    def login(self) -> None:
        self.logged_in = True

    def fetch_mentions(self, since: Optional[str] = None) -> MentionBatch:
        self.fetch_calls.append(since)
        if not self.batches:
            return MentionBatch()
        item = self.batches.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, MentionBatch):
            return item
        return MentionBatch(mentions=list(item), newest_cursor=item[-1].id if item else None)

    def cursor_for(self, mention: Mention) -> str:
        return mention.id

    def fetch_conversation(self, mention: Mention, limit: int = 100) -> list[ThreadPost]:
        if isinstance(self.conversation, Exception):
            raise self.conversation
        return list(self.conversation)

    def search_recent(self, query: str, limit: int = 5) -> list[ThreadPost]:
        self.search_calls.append(query)
        if self.search_error is not None:
            raise self.search_error
        return list(self.search_posts)[:limit]

    def post_reply(self, mention: Mention, text: str) -> str:
        if self.post_error is not None:
            raise self.post_error
        self.posted.append((mention.id, text))
        return f"reply-{len(self.posted)}"


class FakeGenerator:
    """Returns canned replies; None entries simulate a rejected reply."""

    def __init__(self, replies=None, delay: float = 0.0) -> None:
        self.replies = list(replies) if replies is not None else None
        self.delay = delay
        self.calls: list[Mention] = []
        self.active = 0
        self.max_active = 0

    async def generate(self, mention, context):
        self.calls.append(mention)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if self.replies is None:
            return f"Sharp take on {mention.id}."
        return self.replies.pop(0)


class FakeSearch:
    """Search provider returning fixed results (or raising)."""

    name = "fake"

    def __init__(self, results=None, error: Optional[Exception] = None) -> None:
        self.results = results if results is not None else [
            SearchResult(title="Acme", snippet="Acme ships a bullish upgrade", url="https://example.com")
        ]
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str, limit: int = 5):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.results[:limit]
