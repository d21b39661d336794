"""
Delivery dispatcher: fires one due reminder.

The agent ping is the primary effect and alone decides success. The chat
notification is best-effort: a failure is logged and recorded on the outcome
but never turns a delivered reminder into a failed one.
"""

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from remindq.core.clock import render, resolve_timezone
from remindq.core.models import ReminderRecord, normalize_targets
from remindq.delivery.agent_client import AgentClient
from remindq.delivery.notifier import Notifier
from remindq.errors import AgentPingFailed, NotificationFailed, truncate_error

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    AGENT_PING_FAILED = "agent_ping_failed"
    DELIVERED_NOTIFICATION_FAILED = "delivered_notification_failed"


@dataclass
class DispatchOutcome:
    """Result of firing one reminder.

    ``notification_ok`` is ``None`` when no notification was attempted.
    """

    guid: str
    ping_ok: bool
    notification_ok: Optional[bool] = None
    error: Optional[str] = None

    @property
    def status(self) -> DeliveryStatus:
        if not self.ping_ok:
            return DeliveryStatus.AGENT_PING_FAILED
        if self.notification_ok is False:
            return DeliveryStatus.DELIVERED_NOTIFICATION_FAILED
        return DeliveryStatus.DELIVERED

    @property
    def delivered(self) -> bool:
        return self.ping_ok

    def to_dict(self) -> Dict[str, Any]:
        return {"guid": self.guid, "status": self.status.value, "error": self.error}


def merge_targets(*groups: Iterable[str]) -> List[str]:
    """Concatenate target groups, dropping duplicates and blanks."""
    return normalize_targets(itertools.chain(*groups))


class DeliveryDispatcher:
    """Pings the agent for a record, then notifies the chat channel."""

    def __init__(
        self,
        agent: AgentClient,
        notifier: Optional[Notifier] = None,
        display_timezone: str = "UTC",
        default_cc: Sequence[str] = (),
    ):
        self.agent = agent
        self.notifier = notifier
        self.tz = resolve_timezone(display_timezone)
        self.default_cc = list(default_cc)

    def notification_text(self, record: ReminderRecord) -> str:
        return (
            f":alarm_clock: Reminder delivered to {record.session_ref}\n"
            f"> {record.message}\n"
            f"Scheduled for {render(record.remind_at, self.tz)}"
        )

    async def dispatch(self, record: ReminderRecord) -> DispatchOutcome:
        """Fire *record* once. Nothing is retried here."""
        try:
            await self.agent.ping(record.session_ref, record.message)
        except AgentPingFailed as e:
            logger.warning(f"Reminder {record.guid} not delivered: {e}")
            return DispatchOutcome(guid=record.guid, ping_ok=False, error=truncate_error(str(e)))

        outcome = DispatchOutcome(guid=record.guid, ping_ok=True)
        if self.notifier is None:
            return outcome

        try:
            await self.notifier.send(
                self.notification_text(record),
                merge_targets(record.cc_targets, self.default_cc),
                link=record.session_ref,
            )
            outcome.notification_ok = True
        except NotificationFailed as e:
            logger.warning(f"Notification for reminder {record.guid} failed (non-fatal): {e}")
            outcome.notification_ok = False
            outcome.error = truncate_error(str(e))
        return outcome

    async def dispatch_all(self, records: Iterable[ReminderRecord]) -> List[DispatchOutcome]:
        """Fire *records* sequentially, returning outcomes in the same order."""
        outcomes = []
        for record in records:
            outcomes.append(await self.dispatch(record))
        return outcomes
