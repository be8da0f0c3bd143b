"""
Discord webhook notifier.

Posts plain-text alerts to a Discord channel webhook. Routing and labelling
is the caller's job; the webhook only sees the message body.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

from rpl_stake_watcher.errors import DeliveryError

logger = logging.getLogger(__name__)

# Discord rejects message content longer than this
DISCORD_MAX_CONTENT = 2000


class NotificationSink(Protocol):
    """Anything that can deliver a text message, raising DeliveryError on failure."""

    async def send(self, message: str) -> None:
        ...


class DiscordNotifier:
    """
    Sends messages to a Discord webhook.

    Usage:
        notifier = DiscordNotifier(webhook_url="https://discord.com/api/webhooks/...")
        await notifier.send("Alert: ...")
    """

    def __init__(
        self,
        webhook_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ) -> None:
        """
        Initialize the notifier.

        Args:
            webhook_url: Discord webhook URL
            session: Shared aiohttp session (created lazily if not provided)
            timeout: Request timeout in seconds
        """
        self._webhook_url = webhook_url
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def close(self) -> None:
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def send(self, message: str) -> None:
        """
        Post a message to the webhook.

        Raises:
            DeliveryError: On a non-2xx response, timeout or transport error
        """
        if not self._webhook_url:
            raise DeliveryError("Discord webhook URL not configured")

        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        content = _truncate(message)

        try:
            async with self._session.post(
                self._webhook_url,
                json={"content": content},
                timeout=self._timeout,
            ) as response:
                # Discord answers 204 No Content on success
                if response.status >= 300:
                    text = await response.text()
                    raise DeliveryError(
                        f"Discord webhook returned {response.status}: {text[:200]}",
                        status_code=response.status,
                    )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            raise DeliveryError("Discord webhook request timed out")
        except aiohttp.ClientError as e:
            raise DeliveryError(f"Discord webhook request failed: {e}")

        logger.debug(f"Posted Discord message: {content[:50]}...")


def _truncate(message: str) -> str:
    if len(message) <= DISCORD_MAX_CONTENT:
        return message
    return message[: DISCORD_MAX_CONTENT - 3] + "..."
