"""Streak and aggregate-stats algebra.

Everything here is a pure function over plain values so the rules can be
tested without a database:

- a completion for the day after ``last_played_date`` extends the streak,
  a later day restarts it at 1, and an earlier or equal day (backfill) leaves
  it alone;
- ``last_played_date`` only moves forward and ``longest_streak`` never drops
  below ``current_streak``;
- merging two snapshots takes maxima for counters, unions the completion
  maps (later ``completedAt`` wins), and takes the streak from whichever side
  played most recently, the incoming side on a tie.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from typing import Any

_EPOCH_UTC = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    last_played_date: date | None = None


def apply_completion(state: StreakState, completed_on: date) -> StreakState:
    """Streak state after completing the puzzle for ``completed_on``."""
    last = state.last_played_date
    if last is None:
        current = 1
    elif completed_on <= last:
        return state
    elif completed_on == last + timedelta(days=1):
        current = state.current_streak + 1
    else:
        current = 1
    return StreakState(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_played_date=completed_on,
    )


@dataclass(frozen=True)
class StatsSnapshot:
    """One side of a stats reconciliation (server row or a device's copy)."""

    played: int = 0
    total_completed: int = 0
    perfect_solves: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_played_date: date | None = None
    best_time: int | None = None
    average_time: float | None = None
    completed_puzzles: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def streak(self) -> StreakState:
        return StreakState(self.current_streak, self.longest_streak, self.last_played_date)


def _completed_at(record: dict[str, Any]) -> datetime:
    raw = record.get("completedAt")
    if not raw:
        return _EPOCH_UTC
    try:
        parsed = datetime.fromisoformat(str(raw))
    except ValueError:
        return _EPOCH_UTC
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def merge_completion_maps(
    server: dict[str, dict[str, Any]],
    incoming: dict[str, dict[str, Any]],
) -> dict[str, dict[str, Any]]:
    """Union keyed by date; on a duplicate date the later ``completedAt`` wins."""
    merged = dict(server)
    for day, record in incoming.items():
        existing = merged.get(day)
        if existing is None or _completed_at(record) >= _completed_at(existing):
            merged[day] = record
    return dict(sorted(merged.items()))


def _times(completed: dict[str, dict[str, Any]]) -> list[int]:
    times = []
    for record in completed.values():
        value = record.get("timeTaken")
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            times.append(int(value))
    return times


def average_time(completed: dict[str, dict[str, Any]]) -> float | None:
    times = _times(completed)
    if not times:
        return None
    return round(sum(times) / len(times), 2)


def _min_time(*values: int | None) -> int | None:
    present = [v for v in values if v is not None]
    return min(present) if present else None


def merge_stats(server: StatsSnapshot, incoming: StatsSnapshot) -> StatsSnapshot:
    """Reconcile a device's stats with the server copy.

    Idempotent: ``merge_stats(merge_stats(s, x), x) == merge_stats(s, x)``.
    """
    completed = merge_completion_maps(server.completed_puzzles, incoming.completed_puzzles)

    if server.last_played_date is not None and (
        incoming.last_played_date is None or server.last_played_date > incoming.last_played_date
    ):
        recent = server
    else:
        recent = incoming

    current = recent.current_streak
    return StatsSnapshot(
        played=max(server.played, incoming.played),
        total_completed=max(server.total_completed, incoming.total_completed, len(completed)),
        perfect_solves=max(server.perfect_solves, incoming.perfect_solves),
        current_streak=current,
        longest_streak=max(server.longest_streak, incoming.longest_streak, current),
        last_played_date=recent.last_played_date,
        best_time=_min_time(server.best_time, incoming.best_time, *_times(completed)),
        average_time=average_time(completed) if completed else (server.average_time or incoming.average_time),
        completed_puzzles=completed,
    )


def record_completion(
    snapshot: StatsSnapshot,
    completed_on: date,
    *,
    time_taken: int | None,
    perfect: bool,
    completed_at: datetime,
    extra: dict[str, Any] | None = None,
) -> StatsSnapshot:
    """Snapshot after a brand-new completion of ``completed_on``."""
    streak = apply_completion(snapshot.streak, completed_on)
    record: dict[str, Any] = {"completedAt": completed_at.isoformat(), "timeTaken": time_taken}
    if extra:
        record.update(extra)
    completed = dict(snapshot.completed_puzzles)
    completed[completed_on.isoformat()] = record
    completed = dict(sorted(completed.items()))
    return replace(
        snapshot,
        played=snapshot.played + 1,
        total_completed=snapshot.total_completed + 1,
        perfect_solves=snapshot.perfect_solves + (1 if perfect else 0),
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_played_date=streak.last_played_date,
        best_time=_min_time(snapshot.best_time, time_taken),
        average_time=average_time(completed),
        completed_puzzles=completed,
    )
