"""
Queue engine: ``put``, ``list`` and ``cron`` against the shared reminder list.

Every invocation walks ``IDLE -> LOCKING -> LOADED -> MUTATED -> PERSISTING
-> DONE`` (``FAILED`` from anywhere). The critical section spans ``load``
through ``save`` and is guarded by the mutex lease according to the lock mode.
"""

import logging
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, AsyncGenerator, Generator, Iterable, List, Optional

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from remindq.config.settings import Settings
from remindq.core.clock import Clock, check_window, parse_timestamp, resolve_timezone, utcnow
from remindq.core.models import ReminderList, ReminderRecord
from remindq.delivery.dispatcher import DeliveryDispatcher, DispatchOutcome
from remindq.errors import ConfigError, StoreUnavailable, ValidationError
from remindq.lease.base import Lease, LeaseHandle
from remindq.store.base import ReminderStore

logger = logging.getLogger(__name__)


class InvocationState(str, Enum):
    IDLE = "idle"
    LOCKING = "locking"
    LOADED = "loaded"
    MUTATED = "mutated"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class _Invocation:
    """Tracks the state of one engine operation."""

    def __init__(self, operation: str):
        self.operation = operation
        self.state = InvocationState.IDLE

    def advance(self, state: InvocationState) -> None:
        logger.debug(f"{self.operation}: {self.state.value} -> {state.value}")
        self.state = state

    def fail(self, error: BaseException) -> None:
        logger.error(f"{self.operation} failed in state {self.state.value}: {error}")
        self.state = InvocationState.FAILED


@dataclass
class PutResult:
    record: ReminderRecord
    total_count: int

    @property
    def item_guid(self) -> str:
        return self.record.guid


@dataclass
class ListResult:
    reminders: ReminderList
    due: List[ReminderRecord]
    now: datetime

    @property
    def total_count(self) -> int:
        return len(self.reminders)

    @property
    def due_count(self) -> int:
        return len(self.due)

    @property
    def due_guids(self) -> List[str]:
        return [r.guid for r in self.due]


@dataclass
class CronResult:
    due: List[ReminderRecord]
    outcomes: List[DispatchOutcome]
    remaining: ReminderList
    now: datetime
    saved: bool = False

    @property
    def due_count(self) -> int:
        return len(self.due)

    @property
    def popped_guids(self) -> List[str]:
        return [o.guid for o in self.outcomes if o.delivered]

    @property
    def popped_count(self) -> int:
        return len(self.popped_guids)

    @property
    def failed_guids(self) -> List[str]:
        return [o.guid for o in self.outcomes if not o.delivered]

    @property
    def remaining_count(self) -> int:
        return len(self.remaining)


@dataclass
class _PutRequest:
    remind_at: datetime
    message: str
    session_ref: str
    cc_targets: List[str] = field(default_factory=list)


class QueueEngine:
    """Orchestrates store, lease and dispatcher for one reminder list."""

    def __init__(
        self,
        store: ReminderStore,
        settings: Settings,
        lease: Optional[Lease] = None,
        dispatcher: Optional[DeliveryDispatcher] = None,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.settings = settings
        self.lease = lease
        self.dispatcher = dispatcher
        self.clock = clock
        self.last_state = InvocationState.IDLE

    # -- helpers --

    @contextmanager
    def _locked(self, inv: _Invocation, mutating: bool) -> Generator[Optional[LeaseHandle], None, None]:
        inv.advance(InvocationState.LOCKING)
        if self.lease is None or not self.settings.lock_mode.applies_to(mutating):
            yield None
            return
        with self.lease.hold(self.settings.lock_name) as handle:
            yield handle

    @asynccontextmanager
    async def _locked_async(self, inv: _Invocation, mutating: bool) -> AsyncGenerator[Optional[LeaseHandle], None]:
        inv.advance(InvocationState.LOCKING)
        if self.lease is None or not self.settings.lock_mode.applies_to(mutating):
            yield None
            return
        async with self.lease.hold_async(self.settings.lock_name) as handle:
            yield handle

    @contextmanager
    def _tracked(self, operation: str) -> Generator[_Invocation, None, None]:
        inv = _Invocation(operation)
        try:
            yield inv
        except BaseException as e:
            inv.fail(e)
            raise
        finally:
            self.last_state = inv.state

    def _retrying(self) -> Retrying:
        return Retrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self.settings.store_retry_attempts)),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            retry=retry_if_exception_type(StoreUnavailable),
            before_sleep=lambda retry_state: logger.warning(
                f"Store unavailable, retrying (attempt {retry_state.attempt_number}): "
                f"{retry_state.outcome.exception()}"
            ),
        )

    def _load(self, inv: _Invocation) -> ReminderList:
        reminders = self._retrying()(self.store.load)
        inv.advance(InvocationState.LOADED)
        return reminders

    def _save(self, inv: _Invocation, reminders: ReminderList) -> None:
        inv.advance(InvocationState.PERSISTING)
        self._retrying()(self.store.save, reminders)

    def _validate_put(
        self,
        message: str,
        session_ref: str,
        remind_at: Any,
        delay_minutes: Optional[float],
        cc_targets: Optional[Iterable[str]],
    ) -> _PutRequest:
        if not message or not message.strip():
            raise ValidationError("A reminder message is required.")
        if not session_ref or not session_ref.strip():
            raise ValidationError("A session reference is required.")

        now = self.clock()
        if delay_minutes is not None and remind_at:
            raise ValidationError("Provide either remind_at or delay_minutes, not both.")
        if delay_minutes is not None:
            if delay_minutes <= 0:
                raise ValidationError("delay_minutes must be greater than zero.")
            when = now + timedelta(minutes=delay_minutes)
        elif remind_at:
            when = parse_timestamp(remind_at)
        else:
            raise ValidationError("You must provide either remind_at (ISO datetime) or delay_minutes.")

        check_window(when, now, self.settings.max_ahead)
        resolve_timezone(self.settings.display_timezone)
        return _PutRequest(
            remind_at=when,
            message=message,
            session_ref=session_ref.strip(),
            cc_targets=list(cc_targets or []),
        )

    # -- operations --

    def put(
        self,
        message: str,
        session_ref: str,
        remind_at: Any = None,
        delay_minutes: Optional[float] = None,
        cc_targets: Optional[Iterable[str]] = None,
    ) -> PutResult:
        """Schedule a reminder.

        Args:
            message: Text delivered verbatim to the agent session.
            session_ref: URL of the agent session to ping.
            remind_at: ISO 8601 timestamp with offset (or an aware datetime).
            delay_minutes: Alternative to *remind_at*: minutes from now.
            cc_targets: Users or tags mentioned in the chat notification.

        Raises:
            ValidationError: bad input; nothing was locked or loaded.
            LockTimeout: the lease was not granted; the store is unchanged.
            StoreUnavailable: the store failed; nothing was saved.
        """
        with self._tracked("put") as inv:
            request = self._validate_put(message, session_ref, remind_at, delay_minutes, cc_targets)
            with self._locked(inv, mutating=True):
                reminders = self._load(inv)
                record = ReminderRecord.new(
                    remind_at=request.remind_at,
                    message=request.message,
                    session_ref=request.session_ref,
                    cc_targets=request.cc_targets,
                    now=self.clock(),
                )
                reminders.append(record)
                inv.advance(InvocationState.MUTATED)
                self._save(inv, reminders)
            inv.advance(InvocationState.DONE)
            logger.info(f"Scheduled reminder {record.guid} for {record.remind_at.isoformat()}")
            return PutResult(record=record, total_count=len(reminders))

    def list(self) -> ListResult:
        """Snapshot of the list and its due subset. Never saves."""
        with self._tracked("list") as inv:
            with self._locked(inv, mutating=False):
                reminders = self._load(inv)
            now = self.clock()
            due, _ = reminders.partition_due(now)
            inv.advance(InvocationState.DONE)
            logger.info(f"{len(reminders)} reminders, {len(due)} due")
            return ListResult(reminders=reminders, due=due, now=now)

    async def cron(self, dispatcher: Optional[DeliveryDispatcher] = None) -> CronResult:
        """Fire every due reminder and retire the ones the agent acknowledged.

        Reminders whose ping failed stay in the list for the next tick.
        """
        dispatcher = dispatcher or self.dispatcher
        with self._tracked("cron") as inv:
            if dispatcher is None:
                raise ConfigError("cron needs a delivery dispatcher")
            async with self._locked_async(inv, mutating=True):
                reminders = self._load(inv)
                now = self.clock()
                due, _ = reminders.partition_due(now)
                outcomes = await dispatcher.dispatch_all(due)
                popped = [o.guid for o in outcomes if o.delivered]
                remaining = reminders.without(popped)
                inv.advance(InvocationState.MUTATED)
                saved = False
                if popped:
                    self._save(inv, remaining)
                    saved = True
            inv.advance(InvocationState.DONE)
            result = CronResult(due=due, outcomes=outcomes, remaining=remaining, now=now, saved=saved)
            logger.info(
                f"cron: {result.due_count} due, {result.popped_count} popped, "
                f"{result.remaining_count} remaining"
            )
            if result.failed_guids:
                logger.warning(f"cron: delivery failed for {', '.join(result.failed_guids)}")
            return result
