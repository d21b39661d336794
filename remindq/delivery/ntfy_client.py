"""
Push notifications via ntfy.sh.

The ntfy topic plays the role of the chat channel; cc targets are appended
to the message body since ntfy has no mentions.
"""

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from remindq.delivery.notifier import Notifier
from remindq.errors import NotificationFailed

logger = logging.getLogger(__name__)


class NtfyClient(Notifier):
    """Async HTTP client for ntfy push notifications."""

    # Valid ntfy priority values
    PRIORITIES = {"min", "low", "default", "high", "max"}

    def __init__(
        self,
        server_url: str,
        topic: str,
        token: str = "",
        default_priority: str = "high",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.topic = topic
        self.channel = topic
        self.default_priority = default_priority if default_priority in self.PRIORITIES else "default"
        self._transport = transport

        headers: Dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._headers = headers

    async def publish(
        self,
        title: str,
        message: str,
        priority: Optional[str] = None,
        tags: Optional[str] = None,
        click_url: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Publish a notification to the configured ntfy topic.

        Args:
            title: Notification title.
            message: Notification body (truncated to 2000 chars).
            priority: ntfy priority (min/low/default/high/max).
            tags: Comma-separated emoji tags (e.g. "alarm_clock").
            click_url: URL opened when the notification is tapped.

        Returns:
            The ntfy API response dict on success, or None on failure.
        """
        url = f"{self.server_url}/{self.topic}"

        headers = dict(self._headers)
        headers["Title"] = title[:256]
        headers["Priority"] = priority if priority in self.PRIORITIES else self.default_priority
        if tags:
            headers["Tags"] = tags
        if click_url:
            headers["Click"] = click_url

        body = message[:2000] if message else "(no content)"

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                resp = await client.post(url, content=body.encode("utf-8"), headers=headers)
                if resp.status_code == 200:
                    logger.info(f"ntfy notification sent: {title[:60]}")
                    return resp.json()
                logger.warning(
                    "ntfy publish returned %d: %s",
                    resp.status_code, resp.text[:200],
                )
                return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"ntfy publish failed: {e}")
            return None

    async def send(
        self, text: str, cc_targets: Sequence[str] = (), link: Optional[str] = None
    ) -> None:
        targets = [t.strip() for t in cc_targets if t.strip()]
        body = f"{text}\ncc: {', '.join(targets)}" if targets else text
        result = await self.publish(title="Reminder", message=body, tags="alarm_clock", click_url=link)
        if result is None:
            raise NotificationFailed(f"ntfy publish to topic '{self.topic}' failed")
