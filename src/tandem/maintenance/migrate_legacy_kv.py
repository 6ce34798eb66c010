"""
Import Tandem puzzles from the legacy Redis KV.

Keys are ``puzzle:YYYY-MM-DD`` holding the puzzle as JSON, in either the
current ``puzzles[{emoji, answer}]`` shape or the legacy
``{emojiPairs, words | correctAnswers}`` shape. Each entry is normalised and
upserted; writes are committed in batches.

Usage:
    python -m tandem.maintenance.migrate_legacy_kv
    python -m tandem.maintenance.migrate_legacy_kv --dry-run --batch-size 20
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
import sys
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tandem.config import get_settings
from tandem.database import close_db, get_session_factory, init_db
from tandem.errors import ValidationFailed
from tandem.maintenance import EXIT_OK, EXIT_PARTIAL, EXIT_PRECONDITION
from tandem.middleware.logging import setup_logging
from tandem.puzzles.catalog_service import upsert_puzzle
from tandem.puzzles.payloads import is_legacy_tandem
from tandem.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)

KEY_PATTERN = "puzzle:*"
_KEY_RE = re.compile(r"^puzzle:(\d{4}-\d{2}-\d{2})$")
DEFAULT_BATCH_SIZE = 50


@dataclass
class MigrationResult:
    found: int = 0
    created: int = 0
    updated: int = 0
    legacy_converted: int = 0
    dry_run: bool = False
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return EXIT_PARTIAL if self.errors else EXIT_OK


async def _dated_keys(redis: Redis) -> list[tuple[date, str]]:
    keys = []
    async for key in redis.scan_iter(match=KEY_PATTERN, count=500):
        match = _KEY_RE.match(key)
        if match is None:
            continue
        try:
            keys.append((date.fromisoformat(match.group(1)), key))
        except ValueError:
            logger.warning("Skipping key with impossible date: %s", key)
    return sorted(keys)


def _decode(raw: str | None) -> dict[str, Any]:
    if raw is None:
        raise ValueError("key vanished during migration")
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError("stored value is not a JSON object")
    return value


async def migrate(
    redis: Redis,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    dry_run: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> MigrationResult:
    result = MigrationResult(dry_run=dry_run)
    keys = await _dated_keys(redis)
    result.found = len(keys)
    logger.info("Found %d legacy puzzle keys", result.found)

    for start in range(0, len(keys), batch_size):
        batch = keys[start : start + batch_size]
        values = await redis.mget([key for _, key in batch])
        async with session_factory() as db:
            for (puzzle_date, key), raw in zip(batch, values):
                try:
                    payload = _decode(raw)
                    if is_legacy_tandem(payload):
                        result.legacy_converted += 1
                    _, created = await upsert_puzzle(
                        db, "tandem", puzzle_date, payload, created_by=payload.get("createdBy") or "legacy-kv"
                    )
                except ValidationFailed as exc:
                    result.errors.append({"key": key, "error": exc.message, "details": exc.details})
                    continue
                except ValueError as exc:
                    result.errors.append({"key": key, "error": str(exc)})
                    continue
                if created:
                    result.created += 1
                else:
                    result.updated += 1
            if dry_run:
                await db.rollback()
            else:
                await db.commit()
        logger.info("Processed batch %d-%d of %d", start + 1, start + len(batch), len(keys))
    return result


async def run(dry_run: bool, batch_size: int) -> int:
    settings = get_settings()
    setup_logging(settings)
    if not settings.redis_url:
        logger.error("TANDEM_REDIS_URL is not set; nothing to migrate from")
        return EXIT_PRECONDITION

    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    try:
        result = await migrate(get_redis(), get_session_factory(), dry_run=dry_run, batch_size=batch_size)
    finally:
        await close_redis()
        await close_db()

    print(json.dumps(asdict(result), indent=2, default=str))
    if result.found == 0:
        logger.error("No puzzle:YYYY-MM-DD keys found")
        return EXIT_PRECONDITION
    return result.exit_code


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import Tandem puzzles from the legacy Redis KV.")
    parser.add_argument("--dry-run", action="store_true", help="validate and report without writing")
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    sys.exit(asyncio.run(run(args.dry_run, max(1, args.batch_size))))


if __name__ == "__main__":
    main()
