"""ATproto client wrapper for Bluesky interactions."""

import logging
from datetime import datetime
from typing import Optional

from atproto import Client, models

from ..config import PlatformConfig
from ..mentions import Mention, ThreadPost, parse_timestamp
from .base import MentionBatch, PlatformClient, PlatformError, RateLimitedError

logger = logging.getLogger(__name__)

NOTIFICATION_PAGE_SIZE = 50
MAX_NOTIFICATION_PAGES = 5


def _did_from_uri(uri: str) -> str:
    # at://did:plc:xxx/app.bsky.feed.post/rkey
    return uri.removeprefix("at://").split("/", 1)[0]


def _wrap_error(e: Exception, action: str) -> PlatformError:
    status = getattr(getattr(e, "response", None), "status_code", None)
    if status == 429:
        return RateLimitedError(f"Bluesky rate limited while trying to {action}")
    return PlatformError(f"Bluesky failed to {action}: {e}")


class ATProtoClient(PlatformClient):
    """Wrapper around the ATproto client for bot operations."""

    def __init__(self, config: PlatformConfig, client: Optional[Client] = None) -> None:
        self.config = config
        self.handle = config.handle.lstrip("@")
        self.client = client or Client()
        self._logged_in = False
        self._follower_cache: dict[str, int] = {}

    def login(self) -> None:
        """Authenticate with Bluesky."""
        if self._logged_in:
            return

        logger.info("Logging in as %s", self.handle)
        try:
            self.client.login(self.handle, self.config.app_password.get_secret_value())
        except Exception as e:
            raise _wrap_error(e, "log in") from e
        self._logged_in = True
        logger.info("Successfully logged in")

    @property
    def did(self) -> Optional[str]:
        me = getattr(self.client, "me", None)
        return getattr(me, "did", None)

    def _follower_count(self, did: str) -> int:
        if did not in self._follower_cache:
            try:
                profile = self.client.get_profile(actor=did)
                self._follower_cache[did] = int(profile.followers_count or 0)
            except Exception as e:
                logger.debug("Could not load profile for %s: %s", did, e)
                self._follower_cache[did] = 0
        return self._follower_cache[did]

    def fetch_mentions(self, since: Optional[str] = None) -> MentionBatch:
        """Fetch mention notifications indexed after the ``since`` timestamp."""
        self.login()
        since_at = parse_timestamp(since) if since else None

        mentions: list[Mention] = []
        cursor = None
        for _ in range(MAX_NOTIFICATION_PAGES):
            try:
                response = self.client.app.bsky.notification.list_notifications(
                    params={"limit": NOTIFICATION_PAGE_SIZE, "cursor": cursor}
                )
            except Exception as e:
                raise _wrap_error(e, "list notifications") from e

            reached_seen = False
            for notif in response.notifications:
                indexed_at = parse_timestamp(notif.indexed_at)
                if since_at and indexed_at <= since_at:
                    reached_seen = True
                    continue

                # Only process mentions
                if notif.reason != "mention":
                    continue
                if notif.author.did == self.did:
                    continue

                mentions.append(self._to_mention(notif, indexed_at))

            cursor = response.cursor
            if reached_seen or not cursor:
                break

        mentions.sort(key=lambda m: m.created_at)
        newest = mentions[-1].created_at.isoformat() if mentions else None
        return MentionBatch(mentions=mentions, newest_cursor=newest)

    def _to_mention(self, notif, indexed_at: datetime) -> Mention:
        # Extract root and parent for thread context
        root_uri = None
        parent_did = None
        if hasattr(notif.record, "reply") and notif.record.reply:
            root_uri = notif.record.reply.root.uri
            parent_did = _did_from_uri(notif.record.reply.parent.uri)

        in_reply_to = None
        if parent_did:
            in_reply_to = self.handle if parent_did == self.did else parent_did

        verification = getattr(notif.author, "verification", None)
        verified = getattr(verification, "verified_status", None) == "valid"

        return Mention(
            id=notif.uri,
            cid=notif.cid,
            author_id=notif.author.did,
            author_handle=notif.author.handle,
            conversation_id=root_uri or notif.uri,
            text=notif.record.text,
            created_at=indexed_at,
            author_verified=verified,
            author_follower_count=self._follower_count(notif.author.did),
            in_reply_to_handle=in_reply_to,
        )

    def cursor_for(self, mention: Mention) -> str:
        return mention.created_at.isoformat()

    def fetch_conversation(self, mention: Mention, limit: int = 100) -> list[ThreadPost]:
        """Fetch the thread rooted at the mention's conversation."""
        self.login()
        depth = min(limit, 100)
        try:
            response = self.client.app.bsky.feed.get_post_thread(
                params={"uri": mention.conversation_id, "depth": depth, "parentHeight": depth}
            )
        except Exception as e:
            raise _wrap_error(e, "fetch thread") from e

        posts: list[ThreadPost] = []
        self._collect_thread_posts(response.thread, posts, limit)
        return posts

    def _collect_thread_posts(self, thread, posts: list[ThreadPost], limit: int) -> None:
        """Recursively collect posts from thread structure."""
        # Skip blocked or not found posts
        if isinstance(
            thread,
            (models.AppBskyFeedDefs.NotFoundPost, models.AppBskyFeedDefs.BlockedPost),
        ):
            return
        if len(posts) >= limit:
            return

        post = thread.post
        thread_post = ThreadPost(
            id=post.uri,
            author_id=post.author.did,
            author_handle=post.author.handle,
            text=post.record.text,
            created_at=parse_timestamp(post.record.created_at),
        )

        # Avoid duplicates
        if not any(p.id == thread_post.id for p in posts):
            posts.append(thread_post)

        if getattr(thread, "parent", None):
            self._collect_thread_posts(thread.parent, posts, limit)
        for reply in getattr(thread, "replies", None) or []:
            self._collect_thread_posts(reply, posts, limit)

    def search_recent(self, query: str, limit: int = 5) -> list[ThreadPost]:
        self.login()
        try:
            response = self.client.app.bsky.feed.search_posts(
                params={"q": query, "limit": limit, "sort": "latest"}
            )
        except Exception as e:
            raise _wrap_error(e, "search posts") from e

        return [
            ThreadPost(
                id=post.uri,
                author_id=post.author.did,
                author_handle=post.author.handle,
                text=post.record.text,
                created_at=parse_timestamp(post.record.created_at),
            )
            for post in response.posts[:limit]
        ]

    def post_reply(self, mention: Mention, text: str) -> str:
        """Post a reply threaded under the mention's root.

        Returns:
            URI of the created post.
        """
        self.login()

        root_uri = mention.conversation_id
        root_cid = mention.cid
        try:
            if root_uri != mention.id:
                # Fetch root post to get its CID
                response = self.client.app.bsky.feed.get_posts(params={"uris": [root_uri]})
                if not response.posts:
                    raise PlatformError(f"Root post not found: {root_uri}")
                root_cid = response.posts[0].cid

            reply_ref = models.AppBskyFeedPost.ReplyRef(
                root=models.ComAtprotoRepoStrongRef.Main(uri=root_uri, cid=root_cid),
                parent=models.ComAtprotoRepoStrongRef.Main(uri=mention.id, cid=mention.cid),
            )
            response = self.client.send_post(text=text, reply_to=reply_ref)
        except PlatformError:
            raise
        except Exception as e:
            raise _wrap_error(e, "post reply") from e

        logger.info("Posted reply: %s", response.uri)
        return response.uri
