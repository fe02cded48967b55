"""Main entry point for the reply bot."""

import argparse
import asyncio
import logging
import sys

from .bot import Bot
from .config import Config, load_config
from .services import TrackingStore, open_database
from .webhook_server import create_webhook_app


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("tweepy").setLevel(logging.WARNING)
    logging.getLogger("primp").setLevel(logging.WARNING)


async def run_webhook_server(args, logger, config: Config, bot: Bot) -> None:
    """Run webhook server."""
    import uvicorn

    port = args.webhook_port or config.webhook.port
    logger.info("Starting webhook server on %s:%d%s", config.webhook.host, port, config.webhook.path)

    app = create_webhook_app(config, bot)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.webhook.host,
        port=port,
        log_level="info" if args.verbose else "warning",
    )
    server = uvicorn.Server(uvicorn_config)
    await server.serve()


async def run_combined(args, logger, config: Config, bot: Bot) -> None:
    """Run both polling bot and webhook server concurrently."""
    logger.info("Starting combined mode (polling + webhook)")

    polling_task = asyncio.create_task(bot.run())
    webhook_task = asyncio.create_task(run_webhook_server(args, logger, config, bot))

    # Wait for either task to complete (or fail)
    done, pending = await asyncio.wait(
        [polling_task, webhook_task],
        return_when=asyncio.FIRST_COMPLETED,
    )

    for task in pending:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    for task in done:
        task.result()


async def async_main(args, logger) -> int:
    """Load config, open the database and run the selected mode."""
    db = None
    try:
        logger.info("Loading configuration from %s", args.config)
        config = load_config(args.config)

        mode = args.mode or config.bot.mode
        if mode != "polling" and config.platform.kind != "twitter":
            logger.error("Mode '%s' requires the twitter platform", mode)
            return 1

        logger.info("Initializing database at %s", config.bot.database_path)
        db = await open_database(config.bot.database_path)
        logger.info("Database initialized successfully")

        bot = Bot(config, TrackingStore(db))

        if args.once:
            logger.info("Running single poll cycle...")
            await bot.start()
            replied = await bot.run_once()
            logger.info("Posted %d reply(ies)", replied)
        elif mode == "webhook":
            await bot.start()
            await bot.maybe_apply_retention()
            await run_webhook_server(args, logger, config, bot)
        elif mode == "combined":
            await run_combined(args, logger, config, bot)
        else:
            await bot.run()

        return 0

    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1
    finally:
        if db is not None:
            await db.close()
            logger.info("Database connection closed")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Auto-reply bot for Twitter/X and Bluesky mentions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run with default config.yaml
  %(prog)s -c myconfig.yaml             # Run with custom config
  %(prog)s -v                           # Run with verbose logging
  %(prog)s --once                       # Poll once and exit (useful for testing)
  %(prog)s --mode webhook               # Run webhook server only
  %(prog)s --mode combined              # Run both polling + webhook
  %(prog)s --mode combined --webhook-port 8080  # Combined mode with custom port
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one poll cycle and exit",
    )
    parser.add_argument(
        "--mode",
        choices=["polling", "webhook", "combined"],
        default=None,
        help="Run mode (default: bot.mode from the config file)",
    )
    parser.add_argument(
        "--webhook-port",
        type=int,
        default=None,
        help="Port for webhook server (default: webhook.port from the config file)",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    return asyncio.run(async_main(args, logger))


if __name__ == "__main__":
    sys.exit(main())
