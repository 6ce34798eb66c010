"""Integration tests for admin login, CSRF enforcement, and the catalog."""

from __future__ import annotations

import jwt
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.auth.service import login_admin
from tandem.config import get_settings
from tandem.errors import RateLimited, Unauthorized
from tandem.middleware.rate_limit import RateLimitStore
from tandem.puzzles.catalog_service import create_puzzle
from tests.conftest import ADMIN_PASSWORD, ADMIN_SECRET, admin_headers, days_ago, tandem_payload, user_headers

MINI_ROWS = [["A", "#", "#", "#", "#"], ["R", "#", "#", "#", "#"], ["#"] * 5, ["#"] * 5]


def _mini(first_row):
    return {
        "grid": [first_row, *MINI_ROWS],
        "clues": {
            "across": [{"number": 1, "row": 0, "col": 0, "length": 4, "clue": "Pets", "answer": "CATS"}],
            "down": [{"number": 1, "row": 0, "col": 0, "length": 3, "clue": "Auto", "answer": "CAR"}],
        },
    }


@pytest.mark.asyncio
class TestAdminLogin:
    """POST/GET /api/admin/auth"""

    async def test_login_sets_csrf_cookie(self, client: AsyncClient):
        response = await client.post("/api/admin/auth", json={"username": "admin", "password": ADMIN_PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["csrfToken"]) == 64
        assert response.cookies.get(get_settings().csrf_cookie_full_name) == body["csrfToken"]

        verify = await client.get("/api/admin/auth", headers={"Authorization": f"Bearer {body['token']}"})
        assert verify.status_code == 200
        assert verify.json()["user"]["username"] == "admin"

    async def test_wrong_password(self, client: AsyncClient):
        response = await client.post("/api/admin/auth", json={"username": "admin", "password": "nope"})
        assert response.status_code == 401

    async def test_verify_rejects_user_token(self, client: AsyncClient):
        response = await client.get("/api/admin/auth", headers=user_headers("u1"))
        assert response.status_code == 401

    async def test_verify_rejects_admin_token_without_expiry(self, client: AsyncClient):
        token = jwt.encode({"sub": "admin", "username": "admin", "role": "admin"}, ADMIN_SECRET, algorithm="HS256")
        response = await client.get("/api/admin/auth", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


@pytest.mark.asyncio
class TestAdminLockout:
    async def test_locked_after_repeated_failures(self):
        settings = get_settings().model_copy(update={"admin_max_failed_attempts": 3})
        store = RateLimitStore()
        for _ in range(3):
            with pytest.raises(Unauthorized):
                await login_admin(store, settings, client="c1", username="admin", password="bad")
        with pytest.raises(RateLimited):
            await login_admin(store, settings, client="c1", username="admin", password=ADMIN_PASSWORD)

        token, csrf = await login_admin(store, settings, client="c2", username="admin", password=ADMIN_PASSWORD)
        assert token and csrf

    async def test_success_resets_failures(self):
        settings = get_settings().model_copy(update={"admin_max_failed_attempts": 2})
        store = RateLimitStore()
        with pytest.raises(Unauthorized):
            await login_admin(store, settings, client="c1", username="admin", password="bad")
        await login_admin(store, settings, client="c1", username="admin", password=ADMIN_PASSWORD)
        with pytest.raises(Unauthorized):
            await login_admin(store, settings, client="c1", username="admin", password="bad")
        await login_admin(store, settings, client="c1", username="admin", password=ADMIN_PASSWORD)


@pytest.mark.asyncio
class TestAdminAuthorization:
    async def test_anonymous_is_401(self, client: AsyncClient):
        response = await client.get("/api/admin/tandem/puzzles")
        assert response.status_code == 401

    async def test_user_is_403(self, client: AsyncClient):
        response = await client.get("/api/admin/tandem/puzzles", headers=user_headers("u1"))
        assert response.status_code == 403

    async def test_put_without_csrf_is_403_and_writes_nothing(self, client: AsyncClient, db_session: AsyncSession):
        day = days_ago(2)
        puzzle = await create_puzzle(db_session, "tandem", day, tandem_payload("Original"))
        await db_session.commit()

        client.headers.update(admin_headers(csrf=None))
        response = await client.put(
            f"/api/admin/tandem/puzzles/{puzzle.id}", json={"puzzle": tandem_payload("Changed")}
        )
        assert response.status_code == 403

        current = await client.get(f"/api/admin/tandem/puzzles/{puzzle.id}")
        assert current.status_code == 200
        assert current.json()["puzzle"]["theme"] == "Original"

    async def test_csrf_mismatch_is_403(self, admin_client: AsyncClient):
        response = await admin_client.post(
            "/api/admin/tandem/puzzles",
            json={"date": days_ago(2).isoformat(), "puzzle": tandem_payload()},
            headers={"X-CSRF-Token": "b" * 64},
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestCatalog:
    async def test_duplicate_date_is_409(self, admin_client: AsyncClient):
        body = {"date": days_ago(2).isoformat(), "puzzle": tandem_payload()}
        assert (await admin_client.post("/api/admin/tandem/puzzles", json=body)).status_code == 201
        assert (await admin_client.post("/api/admin/tandem/puzzles", json=body)).status_code == 409

    async def test_invalid_payload_is_400(self, admin_client: AsyncClient):
        payload = tandem_payload()
        payload["puzzles"] = payload["puzzles"][:2]
        response = await admin_client.post(
            "/api/admin/tandem/puzzles", json={"date": days_ago(2).isoformat(), "puzzle": payload}
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_mini_block_mid_word_is_400(self, admin_client: AsyncClient):
        response = await admin_client.post(
            "/api/admin/mini/puzzles",
            json={"date": days_ago(2).isoformat(), "puzzle": _mini(["C", "A", "T", "#", "S"])},
        )
        assert response.status_code == 400

    async def test_mini_valid(self, admin_client: AsyncClient):
        response = await admin_client.post(
            "/api/admin/mini/puzzles",
            json={"date": days_ago(2).isoformat(), "puzzle": _mini(["C", "A", "T", "S", "#"])},
        )
        assert response.status_code == 201

    async def test_update_moves_date_and_delete(self, admin_client: AsyncClient):
        created = await admin_client.post(
            "/api/admin/tandem/puzzles", json={"date": days_ago(2).isoformat(), "puzzle": tandem_payload()}
        )
        puzzle_id = created.json()["puzzle"]["id"]

        moved = await admin_client.put(
            f"/api/admin/tandem/puzzles/{puzzle_id}", json={"date": days_ago(6).isoformat()}
        )
        assert moved.status_code == 200
        assert moved.json()["puzzle"]["date"] == days_ago(6).isoformat()

        deleted = await admin_client.delete(f"/api/admin/tandem/puzzles/{puzzle_id}")
        assert deleted.status_code == 200
        missing = await admin_client.get(f"/api/admin/tandem/puzzles/{puzzle_id}")
        assert missing.status_code == 404

    async def test_list_range(self, admin_client: AsyncClient):
        for n in (2, 3, 4):
            await admin_client.post(
                "/api/admin/tandem/puzzles", json={"date": days_ago(n).isoformat(), "puzzle": tandem_payload()}
            )
        response = await admin_client.get(
            "/api/admin/tandem/puzzles", params={"from": days_ago(3).isoformat(), "to": days_ago(2).isoformat()}
        )
        assert response.json()["count"] == 2

    async def test_bulk_import_skips_existing(self, admin_client: AsyncClient):
        await admin_client.post(
            "/api/admin/tandem/puzzles", json={"date": days_ago(2).isoformat(), "puzzle": tandem_payload()}
        )
        response = await admin_client.post(
            "/api/admin/bulk-import",
            json={
                "game": "tandem",
                "puzzles": [
                    {"date": days_ago(2).isoformat(), "puzzle": tandem_payload()},
                    {"date": days_ago(3).isoformat(), "puzzle": tandem_payload()},
                ],
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["created"] == [days_ago(3).isoformat()]
        assert [s["date"] for s in body["skipped"]] == [days_ago(2).isoformat()]
