"""Integration tests for account deletion and profile fields."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.account.apple import RevokeResult, get_apple_revoker
from tandem.coop import service as coop_service
from tandem.db.models import Avatar, CoopSession, Subscription, User
from tandem.leaderboard import service as leaderboard_service
from tests.conftest import days_ago, make_user, user_headers

NATIVE_UA = "Mozilla/5.0 (iPhone) Capacitor"


class RecordingRevoker:
    def __init__(self, success: bool = True) -> None:
        self.success = success
        self.tokens: list[str] = []

    async def revoke(self, token: str, token_type_hint: str = "authorization_code") -> RevokeResult:
        self.tokens.append(token)
        return RevokeResult(self.success, None if self.success else "boom")


async def _count(db: AsyncSession, model, *where) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*where))).scalar_one()


@pytest.mark.asyncio
class TestAccountDeletion:
    async def test_preview(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1", subscribed=True)
        response = await client.get("/api/account/delete", headers=user_headers("u1"))
        assert response.status_code == 200
        body = response.json()
        assert body["accountInfo"]["hasActiveSubscription"] is True
        assert body["deletionInfo"]["irreversible"] is True
        assert body["subscriptionInfo"]["status"] == "active"

    async def test_web_requires_confirmation(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1")
        response = await client.request("DELETE", "/api/account/delete", json={}, headers=user_headers("u1"))
        assert response.status_code == 400
        assert response.json()["error"] == "Please type DELETE to confirm account deletion"
        assert await _count(db_session, User, User.id == "u1") == 1

    async def test_delete_removes_owned_rows(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1", subscribed=True)
        await make_user(db_session, "host")
        await leaderboard_service.submit_score(
            db_session, "u1", "cryptic", leaderboard_service.DAILY_SPEED, 80, puzzle_date=days_ago(2)
        )
        session = await coop_service.create_session(db_session, "host")
        await coop_service.join_session(db_session, "u1", session.invite_code)

        response = await client.request(
            "DELETE", "/api/account/delete", json={"confirmationText": "DELETE"}, headers=user_headers("u1")
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert set(body["dataRetention"]) == {"authAccount", "subscriptionRecords", "gameStats", "localData"}
        assert "warning" in body["subscription"]

        assert await _count(db_session, User, User.id == "u1") == 0
        assert await _count(db_session, Subscription, Subscription.user_id == "u1") == 0
        assert await _count(db_session, CoopSession, CoopSession.partner_user_id == "u1") == 0
        assert await _count(db_session, CoopSession, CoopSession.host_user_id == "host") == 1

    async def test_native_client_revokes_apple_token(
        self, app: FastAPI, client: AsyncClient, db_session: AsyncSession
    ):
        await make_user(db_session, "u1")
        revoker = RecordingRevoker(success=False)
        app.dependency_overrides[get_apple_revoker] = lambda: revoker

        response = await client.request(
            "DELETE",
            "/api/account/delete",
            json={"appleRefreshToken": "apple-code"},
            headers={**user_headers("u1"), "User-Agent": NATIVE_UA},
        )
        assert response.status_code == 200
        assert revoker.tokens == ["apple-code"]
        assert "subscription" not in response.json()
        assert await _count(db_session, User, User.id == "u1") == 0


@pytest.mark.asyncio
class TestUsername:
    async def test_set_then_read(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1")
        response = await client.post("/api/account/username", json={"username": " puzzler_1 "}, headers=user_headers("u1"))
        assert response.status_code == 200
        assert response.json() == {"success": True, "username": "puzzler_1"}

        response = await client.get("/api/account/username", headers=user_headers("u1"))
        assert response.json()["username"] == "puzzler_1"
        stored = await db_session.execute(select(User.username).where(User.id == "u1"))
        assert stored.scalar_one() == "puzzler_1"

    @pytest.mark.parametrize(
        "username, error",
        [
            ("ab", "Username must be at least 3 characters long"),
            ("a" * 21, "Username must be 20 characters or less"),
            ("bad name!", "Username can only contain letters, numbers, and underscores"),
            ("Admin", "This username is reserved. Please choose a different one."),
        ],
    )
    async def test_invalid_is_400(self, client: AsyncClient, db_session: AsyncSession, username: str, error: str):
        await make_user(db_session, "u1")
        response = await client.post("/api/account/username", json={"username": username}, headers=user_headers("u1"))
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": error}

    async def test_taken_ignoring_case_is_409(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1", username="WordNerd")
        await make_user(db_session, "u2")
        response = await client.post("/api/account/username", json={"username": "wordnerd"}, headers=user_headers("u2"))
        assert response.status_code == 409
        assert response.json()["error"] == "This username is already taken. Please choose another one."

    async def test_keeping_own_name_in_new_case(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1", username="WordNerd")
        response = await client.post("/api/account/username", json={"username": "wordnerd"}, headers=user_headers("u1"))
        assert response.status_code == 200

    async def test_anonymous_is_401(self, client: AsyncClient):
        response = await client.post("/api/account/username", json={"username": "someone"})
        assert response.status_code == 401


@pytest.mark.asyncio
class TestAvatar:
    async def test_select_active_avatar(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1")
        db_session.add(Avatar(id="fox", display_name="Fox", image_path="/avatars/fox.png", sort_order=1))
        db_session.add(Avatar(id="owl", display_name="Owl", image_path="/avatars/owl.png", is_active=False))
        await db_session.commit()

        listed = await client.get("/api/account/avatars")
        assert [a["id"] for a in listed.json()["avatars"]] == ["fox"]

        response = await client.post("/api/account/avatar", json={"avatarId": "fox"}, headers=user_headers("u1"))
        assert response.status_code == 200
        assert response.json()["avatar"]["imagePath"] == "/avatars/fox.png"
        stored = await db_session.execute(select(User.selected_avatar_id).where(User.id == "u1"))
        assert stored.scalar_one() == "fox"

    async def test_inactive_or_unknown_avatar_is_404(self, client: AsyncClient, db_session: AsyncSession):
        await make_user(db_session, "u1")
        db_session.add(Avatar(id="owl", display_name="Owl", image_path="/avatars/owl.png", is_active=False))
        await db_session.commit()
        for avatar_id in ("owl", "nope"):
            response = await client.post("/api/account/avatar", json={"avatarId": avatar_id}, headers=user_headers("u1"))
            assert response.status_code == 404
