"""
Notification transport interface and factory.

Providers are chosen by ``notifications.provider`` (``slack``, ``ntfy`` or
``none``). Settings resolve from explicit arguments, then the
``notifications`` config section, then REMINDQ_NOTIFY_* environment variables.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import httpx

from remindq.errors import ConfigError

logger = logging.getLogger(__name__)

PROVIDERS = ("none", "slack", "ntfy")


class Notifier(ABC):
    """Sends a text to a chat channel, mentioning *cc_targets*."""

    channel: str

    @abstractmethod
    async def send(
        self, text: str, cc_targets: Sequence[str] = (), link: Optional[str] = None
    ) -> None:
        """Deliver *text*. Raises ``NotificationFailed`` on any failure.

        *link* points at the agent session; providers that support a
        click-through target use it.
        """


def _get_config() -> dict:
    """Pull notification settings from config, then env."""
    from remindq.config.config_loader import get_config_loader

    cfg = get_config_loader().get_notifications_config()
    return {
        "provider": cfg.get("provider") or os.environ.get("REMINDQ_NOTIFY_PROVIDER") or "none",
        "channel": cfg.get("channel") or os.environ.get("REMINDQ_NOTIFY_CHANNEL") or "",
        "token": cfg.get("token") or os.environ.get("REMINDQ_NOTIFY_TOKEN") or "",
        "url": cfg.get("url") or os.environ.get("REMINDQ_NOTIFY_URL") or "",
    }


def create_notifier(
    provider: Optional[str] = None,
    channel: Optional[str] = None,
    token: Optional[str] = None,
    url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Notifier]:
    """Build the configured notifier, or ``None`` when notifications are off.

    A channel given without a provider selects Slack.
    """
    cfg = _get_config()
    if provider is None:
        provider = cfg["provider"]
        if provider == "none" and channel:
            provider = "slack"
    channel = channel or cfg["channel"]
    token = token or cfg["token"]
    url = url or cfg["url"]

    if provider not in PROVIDERS:
        raise ConfigError(f"notifications.provider must be one of {', '.join(PROVIDERS)}, got '{provider}'")
    if provider == "none":
        logger.debug("Chat notifications disabled")
        return None
    if not channel:
        raise ConfigError(f"{provider} notifications need a channel (notifications.channel)")

    if provider == "slack":
        from remindq.delivery.slack_client import SLACK_API_BASE, SlackNotifier

        if not token:
            raise ConfigError("Slack notifications need a bot token (notifications.token)")
        return SlackNotifier(token=token, channel=channel, api_base=url or SLACK_API_BASE, transport=transport)

    from remindq.delivery.ntfy_client import NtfyClient

    return NtfyClient(server_url=url or "https://ntfy.sh", topic=channel, token=token, transport=transport)
