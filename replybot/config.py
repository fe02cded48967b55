"""Configuration management for the reply bot."""

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, model_validator


class PlatformConfig(BaseModel):
    """Social platform connection settings."""

    kind: Literal["twitter", "bluesky"] = "twitter"
    handle: str = Field(..., description="Bot's handle without the leading @")

    # Twitter / X API credentials
    bearer_token: Optional[SecretStr] = None
    consumer_key: Optional[SecretStr] = None
    consumer_secret: Optional[SecretStr] = None
    access_token: Optional[SecretStr] = None
    access_token_secret: Optional[SecretStr] = None

    # Bluesky credentials
    app_password: Optional[SecretStr] = None

    @model_validator(mode="after")
    def check_credentials(self) -> "PlatformConfig":
        if self.kind == "twitter":
            required = {
                "bearer_token": self.bearer_token,
                "consumer_key": self.consumer_key,
                "consumer_secret": self.consumer_secret,
                "access_token": self.access_token,
                "access_token_secret": self.access_token_secret,
            }
        else:
            required = {"app_password": self.app_password}

        missing = [name for name, value in required.items() if value is None]
        if missing:
            raise ValueError(
                f"Missing {self.kind} credentials: {', '.join(sorted(missing))}"
            )
        return self


class LLMConfig(BaseModel):
    """LLM provider settings."""

    provider: Literal["anthropic", "openai"] = "anthropic"
    api_key: SecretStr = Field(..., description="API key for LLM provider")
    model: str = "claude-haiku-4-5-20251001"
    max_tokens: int = Field(default=90, ge=1, le=4096)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=30.0, gt=0)


class ContextConfig(BaseModel):
    """Context builder settings (thread origin, topics, research)."""

    enabled: bool = True
    thread_page_size: int = Field(default=100, ge=10, le=100)
    max_topics: int = Field(default=8, ge=1, le=20)
    topics_to_research: int = Field(default=5, ge=0, le=10)
    snippets_per_topic: int = Field(default=5, ge=1, le=10)
    delay_seconds: float = Field(default=0.5, ge=0.0, description="Pause between external lookups")
    timeout_seconds: float = Field(default=10.0, gt=0)
    search_provider: Literal["duckduckgo", "brave", "none"] = "duckduckgo"
    brave_api_key: Optional[SecretStr] = None
    platform_search: bool = Field(
        default=True, description="Also search recent platform posts for each topic"
    )

    @model_validator(mode="after")
    def check_provider(self) -> "ContextConfig":
        if self.search_provider == "brave" and self.brave_api_key is None:
            raise ValueError("search_provider 'brave' requires brave_api_key")
        return self


class BotConfig(BaseModel):
    """Bot behavior settings."""

    mode: Literal["polling", "webhook", "combined"] = "polling"
    poll_interval: int = Field(default=30, ge=5, description="Seconds between mention checks")

    # Eligibility filter
    require_verified: bool = True
    min_follower_count: int = Field(default=0, ge=0)
    require_fresh_mention: bool = True
    max_replies_per_pair: int = Field(default=3, ge=1, le=10)
    max_replies_per_cycle: int = Field(default=1, ge=1)

    # Reply generation
    prompt_template: str = "analyst"
    max_reply_length: int = Field(default=240, ge=20, le=300)
    truncation_slack: int = Field(default=40, ge=0)
    question_policy: Literal["reject", "rewrite"] = "reject"
    follow_up_window: int = Field(default=300, ge=0, description="Seconds a thread counts as a follow-up")

    # Upstream limits
    rate_limit_cooldown: int = Field(default=60, ge=1)
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    publish_timeout_seconds: float = Field(default=30.0, gt=0)

    # Database settings
    database_path: str = Field(
        default="~/.replybot/replybot.db", description="Path to SQLite database file"
    )
    retention_days: Optional[int] = Field(
        default=None, ge=1, description="Delete tracking rows older than N days (off when unset)"
    )


class WebhookConfig(BaseModel):
    """Webhook receiver settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    path: str = "/webhooks/twitter"


class Config(BaseModel):
    """Root configuration model."""

    profile: Optional[str] = None
    platform: PlatformConfig
    llm: LLMConfig
    context: ContextConfig = ContextConfig()
    bot: BotConfig = BotConfig()
    webhook: WebhookConfig = WebhookConfig()

    @model_validator(mode="after")
    def check_mode(self) -> "Config":
        if self.bot.mode != "polling" and self.platform.kind != "twitter":
            raise ValueError("Webhook delivery is only available for the twitter platform")
        return self


# Named presets that replace the old per-variant entry points.
PROFILES: dict[str, dict[str, Any]] = {
    "strict": {
        "bot": {
            "require_verified": True,
            "require_fresh_mention": True,
            "max_replies_per_pair": 1,
            "question_policy": "reject",
            "prompt_template": "analyst",
        },
        "context": {"enabled": False},
    },
    "conversational": {
        "bot": {
            "require_verified": False,
            "require_fresh_mention": False,
            "max_replies_per_pair": 3,
            "question_policy": "reject",
            "prompt_template": "sharp",
        },
        "context": {"enabled": True, "topics_to_research": 0},
    },
    "research": {
        "bot": {
            "require_verified": False,
            "require_fresh_mention": False,
            "max_replies_per_pair": 2,
            "question_policy": "rewrite",
            "prompt_template": "researcher",
        },
        "context": {"enabled": True},
    },
}


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_profile(raw_config: dict) -> dict:
    """Layer the raw config over its named profile, if any.

    Raises:
        ValueError: If the profile name is unknown.
    """
    name = raw_config.get("profile")
    if not name:
        return raw_config
    if name not in PROFILES:
        raise ValueError(f"Unknown profile '{name}' (choose from {', '.join(sorted(PROFILES))})")
    return _merge(PROFILES[name], raw_config)


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    # Expand environment variables in the format ${VAR_NAME}
    def expand_env_vars(obj):
        if isinstance(obj, dict):
            return {k: expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env_vars(item) for item in obj]
        elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            value = os.getenv(env_var)
            if value is None:
                raise ValueError(f"Environment variable '{env_var}' is not set")
            return value
        return obj

    raw_config = expand_env_vars(raw_config)
    raw_config = apply_profile(raw_config)

    return Config(**raw_config)
