"""Integration tests for leaderboard submission and ranking."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.database import get_session_factory
from tandem.db.models import LeaderboardEntry
from tandem.errors import Forbidden, RateLimited
from tandem.leaderboard import service
from tandem.leaderboard.service import BEST_STREAK, DAILY_SPEED
from tests.conftest import days_ago, make_user, user_headers

DAY = date(2025, 11, 5)
T0 = datetime(2025, 11, 5, 12, 0, tzinfo=timezone.utc)


async def _stored_score(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(LeaderboardEntry.score).where(LeaderboardEntry.user_id == user_id, LeaderboardEntry.game == "cryptic")
    )
    return result.scalar_one()


@pytest.mark.asyncio
class TestSubmitScore:
    async def test_only_improvements_stick(self, db_session: AsyncSession):
        await make_user(db_session, "u1")

        first = await service.submit_score(db_session, "u1", "cryptic", DAILY_SPEED, 120, puzzle_date=DAY, now=T0)
        assert first["rank"] == 1
        better = await service.submit_score(
            db_session, "u1", "cryptic", DAILY_SPEED, 100, puzzle_date=DAY, now=T0 + timedelta(seconds=10)
        )
        assert better["score"] == 100
        worse = await service.submit_score(
            db_session, "u1", "cryptic", DAILY_SPEED, 150, puzzle_date=DAY, now=T0 + timedelta(seconds=20)
        )
        assert worse["entryId"] is None
        assert worse["message"] == "Score not improved"
        assert await _stored_score(db_session, "u1") == 100

    async def test_streak_board_higher_is_better(self, db_session: AsyncSession):
        await make_user(db_session, "u1")
        await service.submit_score(db_session, "u1", "tandem", BEST_STREAK, 7, now=T0)
        lower = await service.submit_score(db_session, "u1", "tandem", BEST_STREAK, 3, now=T0 + timedelta(minutes=1))
        assert lower["entryId"] is None
        higher = await service.submit_score(db_session, "u1", "tandem", BEST_STREAK, 9, now=T0 + timedelta(minutes=2))
        assert higher["score"] == 9

    async def test_cooldown(self, db_session: AsyncSession):
        await make_user(db_session, "u1")
        await service.submit_score(db_session, "u1", "cryptic", DAILY_SPEED, 120, puzzle_date=DAY, now=T0)
        with pytest.raises(RateLimited) as exc_info:
            await service.submit_score(
                db_session, "u1", "cryptic", DAILY_SPEED, 90, puzzle_date=DAY, now=T0 + timedelta(seconds=2)
            )
        assert exc_info.value.retry_after == 3

    async def test_opted_out_user_rejected(self, db_session: AsyncSession):
        await make_user(db_session, "u1")
        await service.set_preferences(db_session, "u1", enabled=False, show_on_global=None)
        with pytest.raises(Forbidden):
            await service.submit_score(db_session, "u1", "cryptic", DAILY_SPEED, 60, puzzle_date=DAY, now=T0)

    async def test_concurrent_first_submissions_keep_one_entry(self, db_session: AsyncSession):
        await make_user(db_session, "u1")
        factory = get_session_factory()

        async with factory() as first, factory() as second:
            results = await asyncio.gather(
                service.submit_score(first, "u1", "cryptic", DAILY_SPEED, 120, puzzle_date=DAY, cooldown_seconds=0),
                service.submit_score(second, "u1", "cryptic", DAILY_SPEED, 100, puzzle_date=DAY, cooldown_seconds=0),
            )

        assert all(result["success"] for result in results)
        assert await _stored_score(db_session, "u1") == 100

    async def test_lost_insert_race_competes_on_score(self, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch):
        await make_user(db_session, "u1")
        await service.submit_score(db_session, "u1", "cryptic", DAILY_SPEED, 120, puzzle_date=DAY, now=T0)

        real_lookup = service._own_entry
        lookups = []

        async def first_lookup_misses(*args):
            lookups.append(args)
            if len(lookups) == 1:
                return None
            return await real_lookup(*args)

        monkeypatch.setattr(service, "_own_entry", first_lookup_misses)
        result = await service.submit_score(
            db_session, "u1", "cryptic", DAILY_SPEED, 100, puzzle_date=DAY, now=T0 + timedelta(seconds=10)
        )

        assert len(lookups) == 2
        assert result["score"] == 100
        assert await _stored_score(db_session, "u1") == 100


@pytest.mark.asyncio
class TestBoards:
    async def test_ranking_and_profiles(self, db_session: AsyncSession):
        await make_user(db_session, "fast", username="fast", avatar_path="/avatars/fox.png")
        await make_user(db_session, "tied", username="tied")
        await make_user(db_session, "slow", username="slow")
        for user_id, score in (("slow", 200), ("fast", 60), ("tied", 60)):
            await service.submit_score(db_session, user_id, "cryptic", DAILY_SPEED, score, puzzle_date=DAY, now=T0)

        board = await service.get_board(db_session, "cryptic", DAILY_SPEED, puzzle_date=DAY, viewer_id="slow")
        entries = board["entries"]
        assert [e["rank"] for e in entries] == [1, 1, 3]
        assert entries[2]["userId"] == "slow"
        fast = next(e for e in entries if e["userId"] == "fast")
        assert fast["avatarImagePath"] == "/avatars/fox.png"
        assert fast["countryFlag"] == "🇺🇸"
        assert all("avatar_url" not in e for e in entries)
        assert board["userEntry"] == {"rank": 3, "score": 200}

    async def test_hidden_from_global_streak_board(self, db_session: AsyncSession):
        await make_user(db_session, "shy")
        await make_user(db_session, "loud")
        await service.submit_score(db_session, "shy", "tandem", BEST_STREAK, 12, now=T0)
        await service.submit_score(db_session, "loud", "tandem", BEST_STREAK, 4, now=T0)
        await service.set_preferences(db_session, "shy", enabled=None, show_on_global=False)

        board = await service.get_board(db_session, "tandem", BEST_STREAK)
        assert [e["userId"] for e in board["entries"]] == ["loud"]


@pytest.mark.asyncio
class TestLeaderboardApi:
    async def test_second_post_within_cooldown_is_429(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1")
        body = {"game": "cryptic", "puzzleDate": days_ago(2).isoformat(), "score": 120}
        first = await client.post("/api/leaderboard/daily", json=body, headers=user_headers("u1"))
        assert first.status_code == 200
        second = await client.post(
            "/api/leaderboard/daily", json={**body, "score": 100}, headers=user_headers("u1")
        )
        assert second.status_code == 429
        assert "Retry-After" in second.headers

    async def test_daily_board_read(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1", username="solver")
        day = days_ago(2)
        await service.submit_score(db_session, "u1", "cryptic", DAILY_SPEED, 75, puzzle_date=day)

        response = await client.get("/api/leaderboard/daily", params={"game": "cryptic", "date": day.isoformat()})
        assert response.status_code == 200
        assert response.json()["entries"][0]["username"] == "solver"

    async def test_future_daily_rejected(self, client: AsyncClient):
        body = {"game": "cryptic", "puzzleDate": (date.today() + timedelta(days=3)).isoformat(), "score": 50}
        response = await client.post("/api/leaderboard/daily", json=body, headers=user_headers("u1"))
        assert response.status_code == 404

    async def test_preferences_round_trip(self, client: AsyncClient):
        headers = user_headers("u1")
        response = await client.post("/api/leaderboard/preferences", json={"showOnGlobal": False}, headers=headers)
        assert response.status_code == 200
        prefs = (await client.get("/api/leaderboard/preferences", headers=headers)).json()["preferences"]
        assert prefs == {"enabled": True, "showOnGlobal": False}
