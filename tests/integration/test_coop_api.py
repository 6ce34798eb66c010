"""Integration tests for Element Soup co-op sessions and creative saves."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.coop import service
from tandem.db.models import CoopSession
from tandem.errors import NotFound
from tests.conftest import make_user, user_headers

BASE = "/api/daily-alchemy"


async def _host_session(client: AsyncClient, db: AsyncSession) -> dict:
    await make_user(db, "host", username="host", avatar_path="/avatars/owl.png")
    await make_user(db, "p1", username="first")
    await make_user(db, "p2", username="second")
    response = await client.post(f"{BASE}/coop/create", json={}, headers=user_headers("host"))
    assert response.status_code == 201
    return response.json()["session"]


@pytest.mark.asyncio
class TestCoopLifecycle:
    async def test_create(self, client: AsyncClient, db_session: AsyncSession):
        session = await _host_session(client, db_session)
        assert session["status"] == "waiting"
        assert len(session["inviteCode"]) == 6
        assert session["host"]["avatarImagePath"] == "/avatars/owl.png"
        assert session["partner"] is None
        assert {e["name"] for e in session["elementBank"]} >= {"Water", "Fire", "Earth", "Wind"}

    async def test_racing_joiners_one_wins(self, client: AsyncClient, db_session: AsyncSession):
        session = await _host_session(client, db_session)
        code = session["inviteCode"]

        responses = await asyncio.gather(
            client.post(f"{BASE}/coop/join", json={"inviteCode": code}, headers=user_headers("p1")),
            client.post(f"{BASE}/coop/join", json={"inviteCode": code}, headers=user_headers("p2")),
        )

        assert sorted(r.status_code for r in responses) == [200, 409]
        winner = next(r for r in responses if r.status_code == 200).json()["session"]
        assert winner["status"] == "active"
        row = (
            await db_session.execute(
                select(CoopSession).where(CoopSession.id == session["id"]).execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert row.partner_user_id == winner["partner"]["userId"]

    async def test_claimed_code_is_409(self, client: AsyncClient, db_session: AsyncSession):
        session = await _host_session(client, db_session)
        code = session["inviteCode"].lower()

        winner = await client.post(f"{BASE}/coop/join", json={"inviteCode": code}, headers=user_headers("p1"))
        loser = await client.post(f"{BASE}/coop/join", json={"inviteCode": code}, headers=user_headers("p2"))

        assert winner.status_code == 200
        assert winner.json()["session"]["status"] == "active"
        assert winner.json()["session"]["partner"]["userId"] == "p1"
        assert loser.status_code == 409

        row = (
            await db_session.execute(
                select(CoopSession).where(CoopSession.id == session["id"]).execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert row.partner_user_id == "p1"

    async def test_join_errors(self, client: AsyncClient, db_session: AsyncSession):
        session = await _host_session(client, db_session)
        own = await client.post(
            f"{BASE}/coop/join", json={"inviteCode": session["inviteCode"]}, headers=user_headers("host")
        )
        assert own.status_code == 400
        malformed = await client.post(f"{BASE}/coop/join", json={"inviteCode": "AB1"}, headers=user_headers("p1"))
        assert malformed.status_code == 400

    async def test_unknown_code_is_404(self, db_session: AsyncSession):
        await make_user(db_session, "p1")
        with pytest.raises(NotFound):
            await service.join_session(db_session, "p1", "ZZZZZZ")

    async def test_progress_merges_and_outsiders_blocked(self, client: AsyncClient, db_session: AsyncSession):
        session = await _host_session(client, db_session)
        await client.post(f"{BASE}/coop/join", json={"inviteCode": session["inviteCode"]}, headers=user_headers("p1"))

        update = await client.post(
            f"{BASE}/coop/session",
            json={
                "sessionId": session["id"],
                "elementBank": [{"name": "Steam", "emoji": "♨️"}],
                "totalMoves": 4,
                "firstDiscoveryElements": ["Steam"],
            },
            headers=user_headers("p1"),
        )
        assert update.status_code == 200
        merged = update.json()["session"]
        assert "Steam" in {e["name"] for e in merged["elementBank"]}
        assert merged["totalMoves"] == 4

        stale = await client.post(
            f"{BASE}/coop/session", json={"sessionId": session["id"], "totalMoves": 1}, headers=user_headers("host")
        )
        assert stale.json()["session"]["totalMoves"] == 4

        outsider = await client.get(f"{BASE}/coop/session", params={"id": session["id"]}, headers=user_headers("p2"))
        assert outsider.status_code == 403

    async def test_end_session(self, client: AsyncClient, db_session: AsyncSession):
        session = await _host_session(client, db_session)
        await client.post(f"{BASE}/coop/join", json={"inviteCode": session["inviteCode"]}, headers=user_headers("p1"))
        ended = await client.post(
            f"{BASE}/coop/session", json={"sessionId": session["id"], "end": "completed"}, headers=user_headers("host")
        )
        assert ended.json()["session"]["status"] == "completed"
        again = await client.post(
            f"{BASE}/coop/session", json={"sessionId": session["id"], "totalMoves": 9}, headers=user_headers("p1")
        )
        assert again.status_code == 409


@pytest.mark.asyncio
class TestCreativeSaves:
    async def test_save_and_seed_session(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1")
        headers = user_headers("u1")
        saved = await client.post(
            f"{BASE}/creative/save",
            params={"slot": 2},
            json={"elementBank": [{"name": "Mud", "emoji": "🟫"}], "totalMoves": 12, "totalDiscoveries": 3},
            headers=headers,
        )
        assert saved.status_code == 200

        loaded = (await client.get(f"{BASE}/creative/save", params={"slot": 2}, headers=headers)).json()["save"]
        assert loaded["totalMoves"] == 12
        assert [e["name"] for e in loaded["elementBank"]] == ["Mud"]

        created = await client.post(f"{BASE}/coop/create", json={"seedSlot": 2}, headers=headers)
        session = created.json()["session"]
        assert "Mud" in {e["name"] for e in session["elementBank"]}
        assert session["totalMoves"] == 12

    async def test_seed_from_empty_slot_is_404(self, client: AsyncClient):
        response = await client.post(f"{BASE}/coop/create", json={"seedSlot": 3}, headers=user_headers("u1"))
        assert response.status_code == 404


@pytest.mark.asyncio
class TestGarbageCollection:
    async def test_stale_sessions_abandoned(self, db_session: AsyncSession):
        await make_user(db_session, "host")
        await make_user(db_session, "other")
        t0 = datetime(2025, 12, 20, 9, 0, tzinfo=timezone.utc)
        await service.create_session(db_session, "host", now=t0)
        await service.create_session(db_session, "other", now=t0 + timedelta(minutes=90))

        collected = await service.gc_stale_sessions(
            db_session,
            waiting_ttl=timedelta(minutes=60),
            idle_ttl=timedelta(hours=24),
            now=t0 + timedelta(minutes=100),
        )
        assert collected == 1
        statuses = dict(
            (await db_session.execute(select(CoopSession.host_user_id, CoopSession.status))).all()
        )
        assert statuses == {"host": "abandoned", "other": "waiting"}

    async def test_new_session_abandons_previous_waiting(self, db_session: AsyncSession):
        await make_user(db_session, "host")
        first = await service.create_session(db_session, "host")
        await service.create_session(db_session, "host")
        status = (
            await db_session.execute(select(CoopSession.status).where(CoopSession.id == first.id))
        ).scalar_one()
        assert status == "abandoned"
