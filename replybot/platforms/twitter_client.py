"""Twitter / X API v2 client built on tweepy."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import requests
import tweepy

from ..config import PlatformConfig
from ..mentions import Mention, ThreadPost, parse_timestamp
from .base import MentionBatch, PlatformClient, PlatformError, RateLimitedError

logger = logging.getLogger(__name__)

TWEET_FIELDS = ["created_at", "conversation_id", "author_id", "in_reply_to_user_id"]
USER_FIELDS = ["username", "verified", "public_metrics"]
SEARCH_MIN_RESULTS = 10
SEARCH_MAX_RESULTS = 100


def _secret(value) -> Optional[str]:
    return value.get_secret_value() if value is not None else None


class TwitterClient(PlatformClient):
    """Wrapper around tweepy.Client for the bot's read and reply calls."""

    def __init__(self, config: PlatformConfig, client: Optional[tweepy.Client] = None) -> None:
        self.config = config
        self.handle = config.handle.lstrip("@")
        self.client = client or tweepy.Client(
            bearer_token=_secret(config.bearer_token),
            consumer_key=_secret(config.consumer_key),
            consumer_secret=_secret(config.consumer_secret),
            access_token=_secret(config.access_token),
            access_token_secret=_secret(config.access_token_secret),
            wait_on_rate_limit=False,  # rate limits are handled by the orchestrator's cooldown
        )
        self.user_id: Optional[str] = None

    def login(self) -> None:
        """Resolve the bot's own user id (used to skip our own posts)."""
        if self.user_id:
            return

        logger.info("Resolving account for @%s", self.handle)
        try:
            me = self.client.get_me(user_auth=True)
        except tweepy.errors.TooManyRequests as e:
            raise RateLimitedError(str(e)) from e
        except tweepy.errors.TweepyException as e:
            raise PlatformError(f"Twitter login failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PlatformError(f"Twitter login failed: {e}") from e

        self.user_id = str(me.data.id)
        logger.info("Authenticated as @%s (%s)", me.data.username, self.user_id)

    def _search(self, **params: Any) -> tweepy.Response:
        try:
            return self.client.search_recent_tweets(user_auth=False, **params)
        except tweepy.errors.TooManyRequests as e:
            raise RateLimitedError(str(e)) from e
        except tweepy.errors.BadRequest as e:
            # since_id must fall inside the 7-day search window
            if params.get("since_id") and "since_id" in str(e):
                logger.warning("since_id %s is outside the search window, resetting", params["since_id"])
                params = {k: v for k, v in params.items() if k != "since_id"}
                return self._search(**params)
            raise PlatformError(f"Twitter search failed: {e}") from e
        except tweepy.errors.TweepyException as e:
            raise PlatformError(f"Twitter search failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PlatformError(f"Twitter search failed: {e}") from e

    @staticmethod
    def _users_by_id(response: tweepy.Response) -> dict[str, Any]:
        includes = getattr(response, "includes", None) or {}
        return {str(u.id): u for u in includes.get("users", [])}

    def fetch_mentions(self, since: Optional[str] = None) -> MentionBatch:
        """Search recent posts addressed to the bot, excluding reposts."""
        self.login()

        params: dict[str, Any] = {
            "query": f"@{self.handle} -is:retweet",
            "max_results": SEARCH_MAX_RESULTS,
            "tweet_fields": TWEET_FIELDS,
            "expansions": ["author_id", "in_reply_to_user_id"],
            "user_fields": USER_FIELDS,
        }
        if since:
            params["since_id"] = since

        response = self._search(**params)
        users = self._users_by_id(response)

        mentions: list[Mention] = []
        for tweet in response.data or []:
            author_id = str(tweet.author_id)
            if author_id == self.user_id:
                continue

            author = users.get(author_id)
            metrics = getattr(author, "public_metrics", None) or {}
            reply_target = users.get(str(tweet.in_reply_to_user_id)) if tweet.in_reply_to_user_id else None

            mentions.append(
                Mention(
                    id=str(tweet.id),
                    author_id=author_id,
                    conversation_id=str(tweet.conversation_id or tweet.id),
                    text=tweet.text,
                    created_at=parse_timestamp(tweet.created_at),
                    author_verified=bool(getattr(author, "verified", False)),
                    author_follower_count=int(metrics.get("followers_count", 0)),
                    author_handle=getattr(author, "username", "") or "",
                    in_reply_to_handle=getattr(reply_target, "username", None),
                )
            )

        mentions.sort(key=lambda m: (m.created_at, int(m.id) if m.id.isdigit() else 0))
        meta = getattr(response, "meta", None) or {}
        newest = meta.get("newest_id") or (mentions[-1].id if mentions else None)

        logger.debug("Fetched %d mention(s) since %s", len(mentions), since)
        return MentionBatch(mentions=mentions, newest_cursor=newest)

    def cursor_for(self, mention: Mention) -> str:
        return mention.id

    def fetch_conversation(self, mention: Mention, limit: int = 100) -> list[ThreadPost]:
        """Every post in the mention's conversation visible to recent search."""
        response = self._search(
            query=f"conversation_id:{mention.conversation_id}",
            max_results=max(SEARCH_MIN_RESULTS, min(limit, SEARCH_MAX_RESULTS)),
            tweet_fields=["created_at", "author_id"],
            expansions=["author_id"],
            user_fields=["username"],
        )
        return self._to_posts(response)

    def search_recent(self, query: str, limit: int = 5) -> list[ThreadPost]:
        response = self._search(
            query=f"{query} -is:retweet",
            max_results=max(SEARCH_MIN_RESULTS, min(limit, SEARCH_MAX_RESULTS)),
            tweet_fields=["created_at", "author_id"],
            expansions=["author_id"],
            user_fields=["username"],
        )
        return self._to_posts(response)[:limit]

    def _to_posts(self, response: tweepy.Response) -> list[ThreadPost]:
        users = self._users_by_id(response)
        posts = []
        for tweet in response.data or []:
            author = users.get(str(tweet.author_id))
            posts.append(
                ThreadPost(
                    id=str(tweet.id),
                    author_id=str(tweet.author_id),
                    author_handle=getattr(author, "username", "") or "",
                    text=tweet.text,
                    created_at=parse_timestamp(tweet.created_at or datetime.now(timezone.utc)),
                )
            )
        return posts

    def post_reply(self, mention: Mention, text: str) -> str:
        """Post ``text`` as a reply to the mention.

        Raises:
            RateLimitedError: If posting is rate limited.
            PlatformError: On auth or validation failures.
        """
        try:
            response = self.client.create_tweet(
                text=text, in_reply_to_tweet_id=mention.id, user_auth=True
            )
        except tweepy.errors.TooManyRequests as e:
            raise RateLimitedError(str(e)) from e
        except tweepy.errors.TweepyException as e:
            raise PlatformError(f"Twitter post failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PlatformError(f"Twitter post failed: {e}") from e

        data = getattr(response, "data", None) or {}
        reply_id = data.get("id")
        if not reply_id:
            raise PlatformError("Twitter accepted the post but returned no id")

        logger.info("Posted reply %s to %s", reply_id, mention.id)
        return str(reply_id)
