"""Admin login with failure lockout."""

from __future__ import annotations

import logging
import secrets

from tandem.auth.csrf import generate_csrf_token
from tandem.auth.password import verify_password
from tandem.auth.tokens import create_admin_token
from tandem.config import Settings
from tandem.errors import RateLimited, Unauthorized
from tandem.middleware.rate_limit import RateLimitStore

logger = logging.getLogger(__name__)


def _failures_key(client: str) -> str:
    return f"admin_login_failures:{client}"


def _lockout_key(client: str) -> str:
    return f"admin_login_lockout:{client}"


async def login_admin(
    store: RateLimitStore,
    settings: Settings,
    *,
    client: str,
    username: str,
    password: str,
) -> tuple[str, str]:
    """
    Verify admin credentials and issue a token plus a fresh CSRF token.

    After ``admin_max_failed_attempts`` consecutive failures from one client
    the client is locked out for ``admin_lockout_minutes``.

    Raises:
        RateLimited: While the client is locked out.
        Unauthorized: On bad credentials.
    """
    lockout_seconds = settings.admin_lockout_minutes * 60
    if await store.get(_lockout_key(client)):
        raise RateLimited(
            "Too many failed login attempts. Try again later.",
            retry_after=lockout_seconds,
        )

    username_ok = secrets.compare_digest(username.encode(), settings.admin_username.encode())
    password_ok = verify_password(password, settings.admin_password_hash)
    if not (username_ok and password_ok):
        failures = await store.incr(_failures_key(client), lockout_seconds)
        if failures >= settings.admin_max_failed_attempts:
            await store.incr(_lockout_key(client), lockout_seconds)
            await store.delete(_failures_key(client))
            logger.warning("Admin login locked out after %d failures", failures)
        raise Unauthorized("Invalid credentials")

    await store.delete(_failures_key(client))
    logger.info("Admin login succeeded for %s", username)
    return create_admin_token(username), generate_csrf_token()
