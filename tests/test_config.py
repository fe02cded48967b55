"""Tests for configuration loading, profiles and validation."""

import pytest
from pydantic import ValidationError

from replybot.config import (
    Config,
    ContextConfig,
    LLMConfig,
    PlatformConfig,
    apply_profile,
    load_config,
)

BASE_YAML = """
platform:
  kind: twitter
  handle: replybot
  bearer_token: ${TEST_BEARER}
  consumer_key: ck
  consumer_secret: cs
  access_token: at
  access_token_secret: ats
llm:
  api_key: ${TEST_LLM_KEY}
"""


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("TEST_BEARER", "bearer-from-env")
    monkeypatch.setenv("TEST_LLM_KEY", "llm-from-env")


def write_config(tmp_path, extra=""):
    path = tmp_path / "config.yaml"
    path.write_text(BASE_YAML + extra)
    return path


class TestLoadConfig:
    def test_expands_environment_variables(self, tmp_path, env):
        config = load_config(write_config(tmp_path))

        assert config.platform.bearer_token.get_secret_value() == "bearer-from-env"
        assert config.llm.api_key.get_secret_value() == "llm-from-env"

    def test_defaults(self, tmp_path, env):
        config = load_config(write_config(tmp_path))

        assert config.bot.mode == "polling"
        assert config.bot.require_verified is True
        assert config.bot.max_replies_per_pair == 3
        assert config.bot.max_replies_per_cycle == 1
        assert config.bot.max_reply_length == 240
        assert config.bot.question_policy == "reject"
        assert config.context.search_provider == "duckduckgo"
        assert config.webhook.path == "/webhooks/twitter"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unset_environment_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TEST_BEARER", raising=False)
        monkeypatch.setenv("TEST_LLM_KEY", "k")

        with pytest.raises(ValueError, match="TEST_BEARER"):
            load_config(write_config(tmp_path))

    def test_profile_sets_bot_behaviour(self, tmp_path, env):
        config = load_config(write_config(tmp_path, "profile: strict\n"))

        assert config.bot.max_replies_per_pair == 1
        assert config.bot.require_verified is True
        assert config.context.enabled is False

    def test_file_values_override_profile(self, tmp_path, env):
        extra = "profile: research\nbot:\n  max_replies_per_pair: 5\n"

        config = load_config(write_config(tmp_path, extra))

        assert config.bot.max_replies_per_pair == 5
        assert config.bot.question_policy == "rewrite"
        assert config.bot.prompt_template == "researcher"

    def test_unknown_profile(self, tmp_path, env):
        with pytest.raises(ValueError, match="Unknown profile"):
            load_config(write_config(tmp_path, "profile: chaotic\n"))


class TestValidation:
    def test_twitter_requires_credentials(self):
        with pytest.raises(ValidationError, match="bearer_token"):
            PlatformConfig(kind="twitter", handle="bot", consumer_key="ck")

    def test_bluesky_requires_app_password(self):
        with pytest.raises(ValidationError, match="app_password"):
            PlatformConfig(kind="bluesky", handle="bot.bsky.social")

    def test_webhook_mode_needs_twitter(self):
        with pytest.raises(ValidationError, match="twitter"):
            Config(
                platform=PlatformConfig(kind="bluesky", handle="bot.bsky.social", app_password="pw"),
                llm=LLMConfig(api_key="k"),
                bot={"mode": "webhook"},
            )

    def test_brave_requires_key(self):
        with pytest.raises(ValidationError, match="brave_api_key"):
            ContextConfig(search_provider="brave")

    def test_reply_length_bounds(self):
        with pytest.raises(ValidationError):
            Config(
                platform=PlatformConfig(kind="bluesky", handle="bot", app_password="pw"),
                llm=LLMConfig(api_key="k"),
                bot={"max_reply_length": 1000},
            )


class TestApplyProfile:
    def test_without_profile_is_unchanged(self):
        raw = {"bot": {"poll_interval": 10}}

        assert apply_profile(raw) is raw

    def test_nested_merge_keeps_profile_keys(self):
        merged = apply_profile({"profile": "conversational", "context": {"max_topics": 3}})

        assert merged["context"] == {"enabled": True, "topics_to_research": 0, "max_topics": 3}
        assert merged["bot"]["prompt_template"] == "sharp"
