"""
HTTP client that pings an agent session with a reminder message.

Reads config from the ``agent`` section first, then falls back to
REMINDQ_AGENT_API_BASE / REMINDQ_AGENT_TOKEN environment variables.
"""

import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import quote, urlparse

import httpx

from remindq.errors import AgentPingFailed, ConfigError

logger = logging.getLogger(__name__)


def _get_config() -> dict:
    """Pull agent API settings from config, then env."""
    from remindq.config.config_loader import get_config_loader

    cfg = get_config_loader().get_agent_config()
    return {
        "api_base": cfg.get("api_base") or os.environ.get("REMINDQ_AGENT_API_BASE") or "",
        "token": cfg.get("token") or os.environ.get("REMINDQ_AGENT_TOKEN") or "",
        "timeout": float(cfg.get("timeout_seconds") or 15.0),
    }


def session_id_from_ref(session_ref: str) -> str:
    """Extract the session id from a session URL (its last path segment).

    A bare id (no scheme) is returned unchanged.
    """
    ref = session_ref.strip()
    parsed = urlparse(ref)
    if parsed.scheme and parsed.netloc:
        segments = [s for s in parsed.path.split("/") if s]
        if not segments:
            raise AgentPingFailed(f"Session URL has no session id: {session_ref}")
        return segments[-1]
    return ref.strip("/")


class AgentClient:
    """Async client for the agent sessions API."""

    def __init__(
        self,
        api_base: str,
        token: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def message_url(self, session_ref: str) -> str:
        session_id = session_id_from_ref(session_ref)
        return f"{self.api_base}/sessions/{quote(session_id, safe='')}/message"

    async def ping(self, session_ref: str, message: str) -> Dict[str, Any]:
        """Send *message* to the session behind *session_ref*.

        Returns:
            The decoded JSON response (empty dict when the body is not JSON).

        Raises:
            AgentPingFailed: transport error or non-2xx response.
        """
        url = self.message_url(session_ref)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json={"message": message}, headers=self._headers)
        except httpx.HTTPError as e:
            logger.error(f"Agent ping to {url} failed: {e}")
            raise AgentPingFailed(f"Agent ping transport error: {e}") from e

        if not resp.is_success:
            logger.warning("Agent ping returned %d: %s", resp.status_code, resp.text[:200])
            raise AgentPingFailed(
                f"Agent ping returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        logger.info(f"Agent session pinged: {url}")
        try:
            return resp.json()
        except ValueError:
            return {}


def create_agent_client(
    token: Optional[str] = None,
    api_base: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AgentClient:
    """Build an ``AgentClient``; explicit arguments win over config and env.

    Raises:
        ConfigError: no API base URL or no credential is available.
    """
    cfg = _get_config()
    api_base = api_base or cfg["api_base"]
    token = token or cfg["token"]
    if not api_base:
        raise ConfigError(
            "Agent API base URL not configured -- set agent.api_base in config "
            "or REMINDQ_AGENT_API_BASE env var"
        )
    if not token:
        raise ConfigError(
            "Agent credential not configured -- pass --credential, set agent.token "
            "in config or REMINDQ_AGENT_TOKEN env var"
        )
    return AgentClient(api_base=api_base, token=token, timeout=cfg["timeout"], transport=transport)
