"""
Sign in with Apple token revocation.

Account deletion must revoke the user's Apple grant. The client secret is an
ES256 JWT signed with the team's private key (base64-encoded PEM in
settings). Revocation failures are reported, never raised: the deletion
itself must still go through.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass

import httpx
import jwt
import structlog

from tandem.config import Settings, get_settings

logger = structlog.get_logger()

APPLE_AUDIENCE = "https://appleid.apple.com"
TOKEN_URL = "https://appleid.apple.com/auth/token"
REVOKE_URL = "https://appleid.apple.com/auth/revoke"
CLIENT_SECRET_TTL = 86400 * 180
_TIMEOUT = httpx.Timeout(10.0)


class AppleCredentialsMissing(RuntimeError):
    """Team id, key id or private key not configured."""


@dataclass(frozen=True)
class RevokeResult:
    success: bool
    error: str | None = None


def generate_client_secret(settings: Settings | None = None, *, now: int | None = None) -> str:
    settings = settings or get_settings()
    if not (settings.apple_team_id and settings.apple_key_id and settings.apple_private_key):
        raise AppleCredentialsMissing("Missing required Apple Sign In credentials")
    private_key = base64.b64decode(settings.apple_private_key).decode("utf-8")
    issued = now if now is not None else int(time.time())
    payload = {
        "iss": settings.apple_team_id,
        "iat": issued,
        "exp": issued + CLIENT_SECRET_TTL,
        "aud": APPLE_AUDIENCE,
        "sub": settings.apple_client_id,
    }
    return jwt.encode(payload, private_key, algorithm="ES256", headers={"kid": settings.apple_key_id})


class AppleRevoker:
    """Revoke Apple tokens through the REST API."""

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings or get_settings()
        self.transport = transport

    async def _exchange_code(self, client: httpx.AsyncClient, secret: str, code: str) -> str | None:
        response = await client.post(
            TOKEN_URL,
            data={
                "client_id": self.settings.apple_client_id,
                "client_secret": secret,
                "code": code,
                "grant_type": "authorization_code",
            },
        )
        if response.status_code != 200:
            logger.warning("apple_code_exchange_failed", status=response.status_code)
            return None
        return response.json().get("refresh_token")

    async def revoke(self, token: str, token_type_hint: str = "authorization_code") -> RevokeResult:
        """
        Revoke ``token``. An authorization code is first exchanged for a
        refresh token; if the exchange fails the code is revoked as an access
        token instead.
        """
        if not token:
            return RevokeResult(False, "No token provided")
        try:
            secret = generate_client_secret(self.settings)
        except (AppleCredentialsMissing, ValueError, jwt.PyJWTError) as exc:
            logger.warning("apple_client_secret_unavailable", error=str(exc))
            return RevokeResult(False, str(exc))

        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT, transport=self.transport) as client:
                hint = token_type_hint
                if hint == "authorization_code":
                    refresh = await self._exchange_code(client, secret, token)
                    if refresh:
                        token, hint = refresh, "refresh_token"
                    else:
                        hint = "access_token"
                response = await client.post(
                    REVOKE_URL,
                    data={
                        "client_id": self.settings.apple_client_id,
                        "client_secret": secret,
                        "token": token,
                        "token_type_hint": hint,
                    },
                )
        except httpx.HTTPError as exc:
            logger.exception("apple_revoke_failed")
            return RevokeResult(False, str(exc) or "Token revocation failed")

        # 200 covers already-revoked tokens as well.
        if response.status_code == 200:
            logger.info("apple_token_revoked")
            return RevokeResult(True)
        logger.warning("apple_revoke_rejected", status=response.status_code)
        return RevokeResult(False, f"Failed to revoke Apple token: {response.status_code}")


def get_apple_revoker() -> AppleRevoker:
    return AppleRevoker()
