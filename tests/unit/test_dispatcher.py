"""Tests for the delivery dispatcher."""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx

from remindq.core.models import ReminderRecord
from remindq.delivery.dispatcher import DeliveryDispatcher, DeliveryStatus, DispatchOutcome, merge_targets
from remindq.errors import NotificationFailed

NOW = datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


def _record(guid="r1", cc=None):
    return ReminderRecord(
        guid=guid,
        remind_at=NOW,
        message=f"follow up {guid}",
        session_ref=f"https://app.agent.test/sessions/{guid}",
        cc_targets=cc or [],
    )


def _ok(request):
    return httpx.Response(200, json={"status": "ok"})


def _fail(request):
    return httpx.Response(503, text="unavailable")


class TestDispatchOutcome:
    def test_status_values(self):
        assert DispatchOutcome("a", ping_ok=True).status is DeliveryStatus.DELIVERED
        assert DispatchOutcome("a", ping_ok=True, notification_ok=True).status is DeliveryStatus.DELIVERED
        assert (
            DispatchOutcome("a", ping_ok=True, notification_ok=False).status
            is DeliveryStatus.DELIVERED_NOTIFICATION_FAILED
        )
        assert DispatchOutcome("a", ping_ok=False).status is DeliveryStatus.AGENT_PING_FAILED

    def test_to_dict(self):
        outcome = DispatchOutcome("a", ping_ok=False, error="boom")
        assert outcome.to_dict() == {"guid": "a", "status": "agent_ping_failed", "error": "boom"}


class TestMergeTargets:
    def test_keeps_first_occurrence_order(self):
        assert merge_targets(["bob", "alice"], ["alice", " ", "carol"]) == ["bob", "alice", "carol"]


class TestDispatch:
    def test_delivered_without_notifier(self, make_agent):
        seen = []

        def handler(request):
            seen.append(request)
            return _ok(request)

        dispatcher = DeliveryDispatcher(agent=make_agent(handler))
        outcome = asyncio.run(dispatcher.dispatch(_record()))

        assert outcome.status is DeliveryStatus.DELIVERED
        assert outcome.notification_ok is None
        assert json.loads(seen[0].content) == {"message": "follow up r1"}

    def test_ping_failure_skips_notification(self, make_agent):
        notifier = AsyncMock()
        dispatcher = DeliveryDispatcher(agent=make_agent(_fail), notifier=notifier)

        outcome = asyncio.run(dispatcher.dispatch(_record()))

        assert outcome.status is DeliveryStatus.AGENT_PING_FAILED
        assert not outcome.delivered
        assert "503" in outcome.error
        notifier.send.assert_not_called()

    def test_notification_failure_is_still_delivered(self, make_agent):
        notifier = AsyncMock()
        notifier.send.side_effect = NotificationFailed("channel_not_found")
        dispatcher = DeliveryDispatcher(agent=make_agent(_ok), notifier=notifier)

        outcome = asyncio.run(dispatcher.dispatch(_record()))

        assert outcome.delivered
        assert outcome.status is DeliveryStatus.DELIVERED_NOTIFICATION_FAILED
        assert "channel_not_found" in outcome.error

    def test_notification_merges_cc_and_links_session(self, make_agent):
        notifier = AsyncMock()
        dispatcher = DeliveryDispatcher(
            agent=make_agent(_ok),
            notifier=notifier,
            display_timezone="America/Los_Angeles",
            default_cc=["oncall", "alice"],
        )

        outcome = asyncio.run(dispatcher.dispatch(_record(cc=["alice"])))

        assert outcome.notification_ok is True
        args, kwargs = notifier.send.call_args
        text, targets = args
        assert "follow up r1" in text
        assert "https://app.agent.test/sessions/r1" in text
        assert "2025-01-15 01:00 PST" in text
        assert targets == ["alice", "oncall"]
        assert kwargs["link"] == "https://app.agent.test/sessions/r1"

    def test_dispatch_all_keeps_order_and_isolates_failures(self, make_agent):
        def handler(request):
            if request.url.path.endswith("/sessions/bad/message"):
                return _fail(request)
            return _ok(request)

        dispatcher = DeliveryDispatcher(agent=make_agent(handler))
        outcomes = asyncio.run(dispatcher.dispatch_all([_record("a"), _record("bad"), _record("c")]))

        assert [o.guid for o in outcomes] == ["a", "bad", "c"]
        assert [o.delivered for o in outcomes] == [True, False, True]
