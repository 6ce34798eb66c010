"""Puzzle numbers and the ET calendar.

``puzzle_number(date) = days_since(EPOCH, date) + 1``. Delivery dates are
chosen by the client's own local calendar; ET is only the fallback and the
look-ahead ceiling.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from tandem.config import get_settings

EASTERN = ZoneInfo("America/New_York")


def epoch_for(game: str) -> date:
    settings = get_settings()
    return {
        "tandem": settings.tandem_epoch,
        "cryptic": settings.cryptic_epoch,
        "mini": settings.mini_epoch,
        "reel": settings.reel_epoch,
        "soup": settings.soup_epoch,
    }[game]


def puzzle_number(puzzle_date: date, epoch: date) -> int:
    return (puzzle_date - epoch).days + 1


def date_for_number(number: int, epoch: date) -> date:
    return epoch + timedelta(days=number - 1)


def et_today(now: datetime | None = None) -> date:
    """Civil date in America/New_York."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(EASTERN).date()


def utc_today(now: datetime | None = None) -> date:
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date()


def display_date(puzzle_date: date) -> str:
    """``Aug 16, 2025``."""
    return f"{puzzle_date:%b} {puzzle_date.day}, {puzzle_date.year}"
