"""Normalized mention and thread records shared by every platform."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

TWITTER_WEBHOOK_TIME_FORMAT = "%a %b %d %H:%M:%S %z %Y"


@dataclass(frozen=True)
class Mention:
    """An inbound post that references the bot's handle."""

    id: str
    author_id: str
    conversation_id: str
    text: str
    created_at: datetime
    author_verified: bool = False
    author_follower_count: int = 0
    author_handle: str = ""
    in_reply_to_handle: Optional[str] = None
    cid: Optional[str] = None

    @property
    def pair_key(self) -> tuple[str, str]:
        """(conversation_id, author_id) key used for reply throttling."""
        return (self.conversation_id, self.author_id)

    def preview(self, length: int = 50) -> str:
        if len(self.text) > length:
            return self.text[:length] + "..."
        return self.text


@dataclass(frozen=True)
class ThreadPost:
    """A single post in a conversation."""

    id: str
    author_id: str
    author_handle: str
    text: str
    created_at: datetime

    def __str__(self) -> str:
        return f"@{self.author_handle}: {self.text}"


def parse_timestamp(value: Any) -> datetime:
    """Parse the timestamp formats the platforms hand back into aware datetimes."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        return datetime.now(timezone.utc)

    text = str(value)
    try:
        return datetime.strptime(text, TWITTER_WEBHOOK_TIME_FORMAT)
    except ValueError:
        pass
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def mention_from_webhook_event(event: dict) -> Mention:
    """Build a Mention from one Account Activity ``tweet_create_events`` item.

    Raises:
        KeyError: If the event lacks an id, text or author.
    """
    user = event["user"]
    tweet_id = str(event.get("id_str") or event["id"])
    text = event.get("extended_tweet", {}).get("full_text") or event["text"]

    conversation_id = (
        event.get("conversation_id_str") or event.get("conversation_id") or tweet_id
    )

    return Mention(
        id=tweet_id,
        author_id=str(user.get("id_str") or user["id"]),
        conversation_id=str(conversation_id),
        text=text,
        created_at=parse_timestamp(event.get("created_at")),
        author_verified=bool(user.get("verified") or user.get("is_blue_verified")),
        author_follower_count=int(user.get("followers_count") or 0),
        author_handle=user.get("screen_name", ""),
        in_reply_to_handle=event.get("in_reply_to_screen_name"),
    )


def mentions_from_webhook_payload(payload: dict) -> list[Mention]:
    """Extract mentions from a webhook envelope, skipping the bot's own posts."""
    events = payload.get("tweet_create_events") or []
    bot_user_id = str(payload.get("for_user_id", ""))

    mentions: list[Mention] = []
    for event in events:
        try:
            mention = mention_from_webhook_event(event)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed tweet_create_event: %s", e)
            continue

        if bot_user_id and mention.author_id == bot_user_id:
            logger.debug("Skipping own post %s", mention.id)
            continue
        mentions.append(mention)

    return mentions
