"""
Operator notifications via a Discord webhook.

Optional: with no webhook URL configured every call is a no-op. Delivery
failures are logged and reported as ``False``; they never fail the request
that triggered them.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from tandem.config import get_settings

logger = structlog.get_logger()

_TIMEOUT = httpx.Timeout(5.0)
_COLOR_PENDING = 0xF5A623


class DiscordNotifier:
    """Post embeds to a Discord webhook."""

    def __init__(self, webhook_url: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.webhook_url = webhook_url
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, content: str, embeds: list[dict[str, Any]] | None = None) -> bool:
        if not self.enabled:
            return False
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json={"content": content, "embeds": embeds or []})
            if response.status_code >= 400:
                logger.warning("discord_webhook_rejected", status=response.status_code)
                return False
            logger.info("discord_notification_sent")
            return True
        except httpx.HTTPError:
            logger.exception("discord_webhook_failed")
            return False

    async def puzzle_submitted(self, submission_id: int, display_name: str, connections: list[str]) -> bool:
        embed = {
            "title": "New Reel Connections submission",
            "color": _COLOR_PENDING,
            "fields": [
                {"name": "Submission", "value": f"#{submission_id}", "inline": True},
                {"name": "Creator", "value": display_name, "inline": True},
                {"name": "Connections", "value": "\n".join(connections)[:1000] or "-"},
            ],
        }
        return await self.send("A puzzle is waiting for review", [embed])


def get_notifier() -> DiscordNotifier:
    return DiscordNotifier(get_settings().discord_webhook_url)
