"""
Slack notifier posting reminder notices with ``chat.postMessage``.
"""

import logging
import re
from typing import List, Optional, Sequence

import httpx

from remindq.delivery.notifier import Notifier
from remindq.errors import NotificationFailed

logger = logging.getLogger(__name__)

SLACK_API_BASE = "https://slack.com/api"

# Slack member ids: U.../W... followed by uppercase alphanumerics
_MEMBER_ID = re.compile(r"^[UW][A-Z0-9]{6,}$")


def format_mention(target: str) -> str:
    """Render a cc target as a Slack mention."""
    target = target.strip()
    if target.startswith("<") and target.endswith(">"):
        return target
    if _MEMBER_ID.match(target):
        return f"<@{target}>"
    if target.startswith("@"):
        return target
    return f"@{target}"


class SlackNotifier(Notifier):
    """Posts to one channel with a bot token."""

    def __init__(
        self,
        token: str,
        channel: str,
        api_base: str = SLACK_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.channel = channel
        self.api_base = api_base.rstrip("/")
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json; charset=utf-8",
        }

    def compose(self, text: str, cc_targets: Sequence[str]) -> str:
        mentions: List[str] = [format_mention(t) for t in cc_targets if t.strip()]
        if mentions:
            return f"{text}\ncc: {' '.join(mentions)}"
        return text

    async def send(
        self, text: str, cc_targets: Sequence[str] = (), link: Optional[str] = None
    ) -> None:
        body = {"channel": self.channel, "text": self.compose(text, cc_targets)}
        url = f"{self.api_base}/chat.postMessage"
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                resp = await client.post(url, json=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise NotificationFailed(f"Slack request failed: {e}") from e

        if resp.status_code != 200:
            raise NotificationFailed(f"Slack returned {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()
        except ValueError:
            raise NotificationFailed(f"Slack returned a non-JSON body: {resp.text[:200]}") from None
        if not data.get("ok"):
            raise NotificationFailed(f"Slack rejected the message: {data.get('error', 'unknown error')}")
        logger.info(f"Slack notification posted to {self.channel}")
