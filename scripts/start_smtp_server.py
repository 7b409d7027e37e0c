#!/usr/bin/env python3
"""SMTP Server Startup Script for tmpmail.

Starts only the mail listener and the store sweeper, without the HTTP
query API. Messages received here live in this process's memory and are
not visible to a separately started API.

Usage:
    python scripts/start_smtp_server.py

Environment Variables:
    SMTP_HOST: Bind address (default: 0.0.0.0)
    SMTP_PORT: Listen port (default: 2525)
    SMTP_BANNER: Greeting banner (default: Simple SMTP Server)
    SMTP_IDLE_TIMEOUT: Idle connection timeout in seconds (default: none)
    SMTP_MAX_DATA_BYTES: Max message size in bytes (default: none)
    SMTP_MAX_RECIPIENTS: Max recipients per message (default: none)
    MAIL_TTL_SECONDS: Message lifetime (default: 1200)
"""

import asyncio
import logging
import sys

from tmpmail.config import get_settings
from tmpmail.observability.logging_config import configure_logging
from tmpmail.smtp.listener import ListenerStartupError, SMTPListener
from tmpmail.store.expiring_store import ExpiringStore

logger = logging.getLogger(__name__)


async def main():
    """Start SMTP listener with an in-memory store."""
    settings = get_settings()

    logger.info("=== tmpmail SMTP Server Starting ===")
    logger.info(f"SMTP Bind: {settings.SMTP_HOST}:{settings.SMTP_PORT}")
    logger.info(f"Message TTL: {settings.MAIL_TTL_SECONDS}s")
    logger.info(f"Max Message Size: {settings.SMTP_MAX_DATA_BYTES or 'unlimited'}")
    logger.info(f"Max Recipients: {settings.SMTP_MAX_RECIPIENTS or 'unlimited'}")
    logger.info(f"Idle Timeout: {settings.SMTP_IDLE_TIMEOUT or 'none'}")

    store = ExpiringStore(ttl_seconds=settings.MAIL_TTL_SECONDS)
    listener = SMTPListener.from_settings(store, settings)

    await listener.start()
    logger.info("Press Ctrl+C to stop")

    sweeper = asyncio.create_task(
        store.run_sweeper(settings.STORE_SWEEP_INTERVAL_SECONDS)
    )
    try:
        await listener.serve_forever()
    finally:
        sweeper.cancel()


if __name__ == '__main__':
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, exiting")
        sys.exit(0)
    except ListenerStartupError as e:
        logger.error(f"SMTP server failed to start: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"SMTP server failed: {e}", exc_info=True)
        sys.exit(1)
