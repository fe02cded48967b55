"""Social platform backends."""

from ..config import PlatformConfig
from .base import (
    MentionBatch,
    PlatformClient,
    PlatformError,
    RateLimitedError,
    run_blocking,
)


def create_platform_client(config: PlatformConfig) -> PlatformClient:
    """Build the client for the configured platform."""
    if config.kind == "twitter":
        from .twitter_client import TwitterClient

        return TwitterClient(config)
    elif config.kind == "bluesky":
        from .atproto_client import ATProtoClient

        return ATProtoClient(config)
    else:
        raise ValueError(f"Unsupported platform: {config.kind}")


__all__ = [
    "MentionBatch",
    "PlatformClient",
    "PlatformError",
    "RateLimitedError",
    "create_platform_client",
    "run_blocking",
]
