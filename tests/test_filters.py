"""Tests for the eligibility filter."""

from replybot.config import BotConfig
from replybot.filters import (
    DenyReason,
    EligibilityFilter,
    FilterSettings,
    TrackingState,
)

from fakes import BOT_HANDLE, make_mention


def make_filter(**overrides) -> EligibilityFilter:
    settings = {"require_verified": True, "require_fresh_mention": True}
    settings.update(overrides)
    return EligibilityFilter(FilterSettings(bot_handle=BOT_HANDLE, **settings))


class TestEligibilityFilter:
    """Check order and reasons of the eligibility decision."""

    def setup_method(self):
        self.filter = make_filter()
        self.state = TrackingState()

    def test_allows_eligible_mention(self):
        decision = self.filter.decide(make_mention(), self.state)

        assert decision.allow
        assert decision.reason == "eligible"

    def test_rejects_unverified_author(self):
        decision = self.filter.decide(make_mention(verified=False), self.state)

        assert not decision.allow
        assert decision.reason == DenyReason.UNTRUSTED_AUTHOR.value

    def test_verification_toggle(self):
        decision = make_filter(require_verified=False).decide(make_mention(verified=False), self.state)

        assert decision.allow

    def test_min_follower_count(self):
        strict = make_filter(min_follower_count=100)

        assert not strict.decide(make_mention(followers=99), self.state).allow
        assert strict.decide(make_mention(followers=100), self.state).allow

    def test_requires_handle_in_text(self):
        decision = self.filter.decide(make_mention(text="talking about bots"), self.state)

        assert decision.reason == DenyReason.NOT_ADDRESSED.value

    def test_handle_match_is_case_insensitive(self):
        decision = self.filter.decide(make_mention(text="hey @ReplyBot, thoughts"), self.state)

        assert decision.allow

    def test_longer_handle_does_not_count(self):
        decision = self.filter.decide(make_mention(text="@replybotfan said this"), self.state)

        assert decision.reason == DenyReason.NOT_ADDRESSED.value

    def test_rejects_repost(self):
        decision = self.filter.decide(make_mention(text="RT @replybot great thread"), self.state)

        assert decision.reason == DenyReason.REPOST.value

    def test_fresh_mention_rejects_reply_to_someone_else(self):
        decision = self.filter.decide(make_mention(in_reply_to="bob"), self.state)

        assert decision.reason == DenyReason.REPLY_TO_OTHERS.value

    def test_fresh_mention_allows_reply_to_bot(self):
        decision = self.filter.decide(make_mention(in_reply_to="ReplyBot"), self.state)

        assert decision.allow

    def test_fresh_toggle_off_allows_reply_to_others(self):
        decision = make_filter(require_fresh_mention=False).decide(
            make_mention(in_reply_to="bob"), self.state
        )

        assert decision.allow

    def test_already_replied(self):
        self.state.replied_mention_ids.add("1")

        decision = self.filter.decide(make_mention(id="1"), self.state)

        assert not decision.allow
        assert decision.reason == "already replied to this mention"

    def test_pair_limit(self):
        mention = make_mention()
        self.state.pair_counts[mention.pair_key] = 3

        decision = self.filter.decide(mention, self.state)

        assert decision.reason == DenyReason.PAIR_LIMIT.value

    def test_pair_limit_is_per_conversation(self):
        self.state.pair_counts[("other-conversation", "100")] = 3

        assert self.filter.decide(make_mention(), self.state).allow

    def test_cycle_limit(self):
        self.state.replies_this_cycle = 1

        decision = self.filter.decide(make_mention(), self.state)

        assert decision.reason == DenyReason.CYCLE_LIMIT.value

    def test_first_failing_check_wins(self):
        self.state.replied_mention_ids.add("1")
        self.state.replies_this_cycle = 5

        decision = self.filter.decide(make_mention(id="1", verified=False), self.state)

        assert decision.reason == DenyReason.UNTRUSTED_AUTHOR.value

    def test_decision_is_deterministic(self):
        mention = make_mention()

        assert self.filter.decide(mention, self.state) == self.filter.decide(mention, self.state)


class TestFilterSettings:
    """Settings come from the bot config."""

    def test_from_config(self):
        config = BotConfig(max_replies_per_pair=2, require_verified=False, min_follower_count=10)

        settings = FilterSettings.from_config(BOT_HANDLE, config)

        assert settings.bot_handle == BOT_HANDLE
        assert settings.max_replies_per_pair == 2
        assert settings.require_verified is False
        assert settings.min_follower_count == 10
        assert settings.max_replies_per_cycle == 1
