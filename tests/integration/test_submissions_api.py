"""Integration tests for user puzzle submissions and their review."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import days_ago, make_user, reel_groups, user_headers


def _submission(name: str = "Movie Buff", **extra):
    return {"displayName": name, "groups": reel_groups(), **extra}


@pytest.mark.asyncio
class TestSubmit:
    """POST /api/puzzles/submit"""

    async def test_requires_subscription(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "free")
        response = await client.post("/api/puzzles/submit", json=_submission(), headers=user_headers("free"))
        assert response.status_code == 403

    async def test_daily_limit(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "sub", subscribed=True)
        headers = user_headers("sub")

        first = await client.post("/api/puzzles/submit", json=_submission(), headers=headers)
        assert first.status_code == 201
        submission = first.json()["submission"]
        assert submission["status"] == "pending"
        assert [g["order"] for g in submission["groups"]] == [0, 1, 2, 3]
        assert [g["difficulty"] for g in submission["groups"]] == ["easy", "medium", "hard", "hardest"]

        assert (await client.post("/api/puzzles/submit", json=_submission(), headers=headers)).status_code == 201
        third = await client.post("/api/puzzles/submit", json=_submission(), headers=headers)
        assert third.status_code == 429
        assert int(third.headers["Retry-After"]) >= 1

    async def test_duplicate_movie_rejected(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "sub", subscribed=True)
        groups = reel_groups()
        groups[1]["movies"][0] = dict(groups[0]["movies"][0])
        response = await client.post(
            "/api/puzzles/submit", json={"displayName": "x", "groups": groups}, headers=user_headers("sub")
        )
        assert response.status_code == 400


@pytest.mark.asyncio
class TestReview:
    async def _pending_ids(self, client: AsyncClient, db: AsyncSession) -> list[int]:
        await make_user(db, "sub", subscribed=True)
        ids = []
        for name in ("Alice", "Bob"):
            response = await client.post(
                "/api/puzzles/submit", json=_submission(name, isAnonymous=name == "Bob"), headers=user_headers("sub")
            )
            ids.append(response.json()["submission"]["id"])
        return ids

    async def test_approve_promotes_to_catalog(self, admin_client: AsyncClient, db_session: AsyncSession):
        first, _ = await self._pending_ids(admin_client, db_session)
        listed = await admin_client.get("/api/admin/submissions", params={"status": "pending"})
        assert len(listed.json()["submissions"]) == 2

        day = days_ago(2)
        approved = await admin_client.post(
            f"/api/admin/submissions/{first}/approve", json={"date": day.isoformat(), "adminNotes": "great"}
        )
        assert approved.status_code == 200
        assert approved.json()["submission"]["status"] == "approved"
        assert approved.json()["submission"]["promotedPuzzleId"] is not None

        delivered = await admin_client.get("/api/reel/puzzle", params={"date": day.isoformat()})
        assert delivered.status_code == 200
        puzzle = delivered.json()["puzzle"]
        assert puzzle["creatorName"] == "Alice"
        assert puzzle["isUserSubmitted"] is True

        again = await admin_client.post(f"/api/admin/submissions/{first}/approve", json={"date": day.isoformat()})
        assert again.status_code == 409

    async def test_approve_onto_taken_date_is_409(self, admin_client: AsyncClient, db_session: AsyncSession):
        first, second = await self._pending_ids(admin_client, db_session)
        day = days_ago(3)
        await admin_client.post(f"/api/admin/submissions/{first}/approve", json={"date": day.isoformat()})
        clash = await admin_client.post(f"/api/admin/submissions/{second}/approve", json={"date": day.isoformat()})
        assert clash.status_code == 409

    async def test_reject(self, admin_client: AsyncClient, db_session: AsyncSession):
        _, second = await self._pending_ids(admin_client, db_session)
        rejected = await admin_client.post(f"/api/admin/submissions/{second}/reject", json={"adminNotes": "dupe"})
        assert rejected.json()["submission"]["status"] == "rejected"
        assert rejected.json()["submission"]["adminNotes"] == "dupe"

    async def test_unknown_submission(self, admin_client: AsyncClient):
        response = await admin_client.post("/api/admin/submissions/999/reject", json={})
        assert response.status_code == 404
