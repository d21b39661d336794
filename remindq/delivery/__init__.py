"""
Delivery of due reminders: agent pings and chat notifications.
"""

from .agent_client import AgentClient, create_agent_client, session_id_from_ref
from .dispatcher import DeliveryDispatcher, DeliveryStatus, DispatchOutcome
from .notifier import Notifier, create_notifier
from .ntfy_client import NtfyClient
from .slack_client import SlackNotifier

__all__ = [
    "AgentClient",
    "DeliveryDispatcher",
    "DeliveryStatus",
    "DispatchOutcome",
    "Notifier",
    "NtfyClient",
    "SlackNotifier",
    "create_agent_client",
    "create_notifier",
    "session_id_from_ref",
]
