"""FastAPI server for Twitter Account Activity webhooks, health and stats."""

import base64
import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import Config
from .mentions import mentions_from_webhook_payload

if TYPE_CHECKING:
    from .bot import Bot

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-twitter-webhooks-signature"


def compute_signature(secret: str, message: bytes) -> str:
    """``sha256=`` + base64 HMAC-SHA256, the format Twitter signs with."""
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    return "sha256=" + base64.b64encode(digest).decode("ascii")


def crc_response(crc_token: str, secret: str) -> dict[str, str]:
    """Answer for the CRC challenge Twitter sends when registering a webhook."""
    return {"response_token": compute_signature(secret, crc_token.encode("utf-8"))}


def verify_twitter_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify a webhook delivery signature.

    Args:
        payload: Raw request body bytes
        signature: x-twitter-webhooks-signature header value (format: "sha256=...")
        secret: Consumer secret of the app

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature.startswith("sha256="):
        logger.warning("Invalid signature format (missing sha256= prefix)")
        return False

    expected = compute_signature(secret, payload)

    # Timing-safe comparison
    is_valid = hmac.compare_digest(expected, signature)
    if not is_valid:
        logger.warning("Signature verification failed")
    return is_valid


def create_webhook_app(config: Config, bot: "Bot") -> FastAPI:
    """Create and configure the FastAPI webhook application.

    Args:
        config: Application configuration
        bot: Orchestrator that processes delivered mentions

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="replybot",
        description="Mention webhook receiver and health endpoints",
        version="1.0.0",
    )
    webhook_path = config.webhook.path

    def consumer_secret() -> str:
        if config.platform.consumer_secret is None:
            logger.error("Consumer secret not configured")
            raise HTTPException(status_code=500, detail="Webhook secret not configured")
        return config.platform.consumer_secret.get_secret_value()

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return bot.health()

    @app.get("/stats")
    async def stats(hours: int = 24) -> dict:
        """Reply totals plus the replies posted in the last ``hours``."""
        totals = await bot.store.stats()
        totals["recent_replies"] = await bot.store.recent_replies(hours)
        return totals

    @app.get(webhook_path)
    async def crc_check(crc_token: str) -> dict[str, str]:
        """Respond to the CRC challenge."""
        logger.info("Answering CRC challenge")
        return crc_response(crc_token, consumer_secret())

    @app.post(webhook_path)
    async def twitter_webhook(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
        """Handle incoming Account Activity deliveries.

        Security:
        - Verifies HMAC signature before processing
        - Returns 401 for invalid signatures
        - Processes mentions in background to return quickly

        Returns:
            200 once the signature is valid, whatever happens to the mentions
        """
        body = await request.body()
        signature = request.headers.get(SIGNATURE_HEADER, "")

        if not verify_twitter_signature(body, signature, consumer_secret()):
            raise HTTPException(status_code=401, detail="Invalid signature")

        # Parse payload (signature verified, safe to parse)
        try:
            payload = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("Failed to parse webhook payload: %s", e)
            return JSONResponse({"status": "ignored", "mentions": 0}, status_code=200)

        mentions = mentions_from_webhook_payload(payload) if isinstance(payload, dict) else []
        if mentions:
            background_tasks.add_task(bot.handle_webhook_mentions, mentions)

        logger.info("Accepted webhook delivery with %d mention(s)", len(mentions))
        return JSONResponse({"status": "accepted", "mentions": len(mentions)}, status_code=200)

    return app
