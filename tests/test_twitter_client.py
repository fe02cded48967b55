"""Tests for the tweepy-backed platform client."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
import tweepy

from replybot.platforms.base import PlatformError
from replybot.platforms.twitter_client import TwitterClient

from fakes import make_config, make_mention

WHEN = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)


def tweet(id, author_id, text, minutes=0, conversation_id="c1", in_reply_to_user_id=None):
    return SimpleNamespace(
        id=id,
        author_id=author_id,
        text=text,
        conversation_id=conversation_id,
        created_at=WHEN.replace(minute=minutes),
        in_reply_to_user_id=in_reply_to_user_id,
    )


def user(id, username, verified=False, followers=0):
    return SimpleNamespace(
        id=id, username=username, verified=verified, public_metrics={"followers_count": followers}
    )


@pytest.fixture
def api():
    client = MagicMock()
    client.get_me.return_value = SimpleNamespace(data=SimpleNamespace(id=999, username="replybot"))
    return client


@pytest.fixture
def twitter(api):
    return TwitterClient(make_config().platform, client=api)


class TestTwitterClient:
    def test_fetch_mentions_oldest_first_without_own_posts(self, twitter, api):
        api.search_recent_tweets.return_value = SimpleNamespace(
            data=[
                tweet(12, 100, "@replybot second", minutes=5, in_reply_to_user_id=200),
                tweet(11, 100, "@replybot first", minutes=1),
                tweet(13, 999, "@replybot talking to myself", minutes=6),
            ],
            includes={"users": [user(100, "alice", verified=True, followers=42), user(200, "bob")]},
            meta={"newest_id": "13"},
        )

        batch = twitter.fetch_mentions(since="10")

        assert [m.id for m in batch.mentions] == ["11", "12"]
        assert batch.newest_cursor == "13"
        first, second = batch.mentions
        assert first.author_handle == "alice"
        assert first.author_verified is True
        assert first.author_follower_count == 42
        assert second.in_reply_to_handle == "bob"
        params = api.search_recent_tweets.call_args.kwargs
        assert params["query"] == "@replybot -is:retweet"
        assert params["since_id"] == "10"

    def test_login_resolves_user_once(self, twitter, api):
        twitter.login()
        twitter.login()

        assert twitter.user_id == "999"
        api.get_me.assert_called_once()

    def test_search_errors_become_platform_errors(self, twitter, api):
        api.search_recent_tweets.side_effect = tweepy.errors.TweepyException("boom")

        with pytest.raises(PlatformError):
            twitter.fetch_conversation(make_mention())

    def test_network_errors_become_platform_errors(self, twitter, api):
        api.search_recent_tweets.side_effect = requests.exceptions.ConnectionError("reset")
        api.create_tweet.side_effect = requests.exceptions.ReadTimeout("slow")

        with pytest.raises(PlatformError):
            twitter.fetch_mentions()
        with pytest.raises(PlatformError):
            twitter.post_reply(make_mention(), "Sharp.")

    def test_fetch_conversation(self, twitter, api):
        api.search_recent_tweets.return_value = SimpleNamespace(
            data=[tweet(1, 100, "root post")], includes={"users": [user(100, "alice")]}, meta={}
        )

        posts = twitter.fetch_conversation(make_mention(conversation_id="c9"), limit=5)

        assert [str(p) for p in posts] == ["@alice: root post"]
        params = api.search_recent_tweets.call_args.kwargs
        assert params["query"] == "conversation_id:c9"
        assert params["max_results"] == 10

    def test_post_reply(self, twitter, api):
        api.create_tweet.return_value = SimpleNamespace(data={"id": "555", "text": "Sharp."})

        assert twitter.post_reply(make_mention(id="7"), "Sharp.") == "555"
        api.create_tweet.assert_called_once_with(text="Sharp.", in_reply_to_tweet_id="7", user_auth=True)

    def test_post_without_id_is_an_error(self, twitter, api):
        api.create_tweet.return_value = SimpleNamespace(data=None)

        with pytest.raises(PlatformError):
            twitter.post_reply(make_mention(), "Sharp.")
