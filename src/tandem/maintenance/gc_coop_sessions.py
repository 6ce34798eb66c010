"""
Abandon stale Element Soup co-op sessions.

Waiting sessions nobody joined and active sessions with no recent activity
are marked ``abandoned``. Meant to run from cron.

Usage:
    python -m tandem.maintenance.gc_coop_sessions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import timedelta

from tandem.config import get_settings
from tandem.coop.service import gc_stale_sessions
from tandem.database import close_db, get_session_factory, init_db
from tandem.maintenance import EXIT_OK, EXIT_PRECONDITION
from tandem.middleware.logging import setup_logging

logger = logging.getLogger(__name__)


async def run(waiting_minutes: int, idle_hours: int) -> int:
    settings = get_settings()
    setup_logging(settings)
    if not settings.database_url:
        logger.error("TANDEM_DATABASE_URL is not set")
        return EXIT_PRECONDITION

    await init_db(settings.database_url)
    try:
        async with get_session_factory()() as db:
            collected = await gc_stale_sessions(
                db,
                waiting_ttl=timedelta(minutes=waiting_minutes),
                idle_ttl=timedelta(hours=idle_hours),
            )
    finally:
        await close_db()

    print(json.dumps({"abandoned": collected}))
    return EXIT_OK


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Abandon stale co-op sessions.")
    parser.add_argument("--waiting-minutes", type=int, default=settings.coop_waiting_ttl_minutes)
    parser.add_argument("--idle-hours", type=int, default=settings.coop_idle_ttl_hours)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    sys.exit(asyncio.run(run(args.waiting_minutes, args.idle_hours)))


if __name__ == "__main__":
    main()
