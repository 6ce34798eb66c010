"""CORS configuration.

Public routes get permissive CORS without credentials. Admin routes only
answer allowlisted origins and allow credentials (the CSRF cookie).
Preflight requests are answered with 204.
"""

from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tandem.config import Settings
from tandem.middleware.security_headers import ADMIN_PREFIX

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
_EXPOSE = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After", "ETag"]


def _is_preflight(scope: Scope) -> bool:
    if scope["method"] != "OPTIONS":
        return False
    names = {name for name, _ in scope["headers"]}
    return b"origin" in names and b"access-control-request-method" in names


class SplitCORSMiddleware:
    """Route each request to the public or the admin CORS policy by path."""

    def __init__(
        self,
        app: ASGIApp,
        public_origins: list[str],
        admin_origins: list[str],
    ) -> None:
        self.public = CORSMiddleware(
            app,
            allow_origins=public_origins,
            allow_credentials=False,
            allow_methods=_METHODS,
            allow_headers=["*"],
            expose_headers=_EXPOSE,
        )
        self.admin = CORSMiddleware(
            app,
            allow_origins=admin_origins,
            allow_credentials=True,
            allow_methods=_METHODS,
            allow_headers=["Authorization", "Content-Type", "X-CSRF-Token", "X-Request-Id"],
            expose_headers=_EXPOSE,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.public(scope, receive, send)
            return

        policy = self.admin if scope["path"].startswith(ADMIN_PREFIX) else self.public
        if not _is_preflight(scope):
            await policy(scope, receive, send)
            return

        async def send_no_content(message: Message) -> None:
            if message["type"] == "http.response.start" and message["status"] == 200:
                headers: list[Any] = [
                    (k, v) for k, v in message.get("headers", []) if k.lower() not in (b"content-length", b"content-type")
                ]
                message = {**message, "status": 204, "headers": headers}
            elif message["type"] == "http.response.body":
                message = {**message, "body": b""}
            await send(message)

        await policy(scope, receive, send_no_content)


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS for public and admin origins."""
    app.add_middleware(
        SplitCORSMiddleware,
        public_origins=settings.cors_origins,
        admin_origins=settings.admin_cors_origins,
    )
