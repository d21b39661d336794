"""
Mutex lease: cooperative exclusive access to the shared reminder list.

A lease is acquired by polling a backend-specific ``_try_acquire`` until it
succeeds or the timeout elapses. ``hold()`` releases on every exit path,
including ``KeyboardInterrupt`` and ``SystemExit``. ``hold_async()`` is the
same for coroutines; it waits between attempts without blocking the event loop.
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncGenerator, Dict, Generator, Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
    wait_random,
)

from remindq.errors import LockTimeout

logger = logging.getLogger(__name__)


class LockMode(str, Enum):
    """Which operations take the lease."""

    AUTO = "auto"
    NONE = "none"
    ALWAYS = "always"

    def applies_to(self, mutating: bool) -> bool:
        if self is LockMode.NONE:
            return False
        if self is LockMode.ALWAYS:
            return True
        return mutating


@dataclass
class LeaseHandle:
    """Proof of holding a lease on *resource*."""

    resource: str
    token: str
    acquired_at: float = field(default_factory=time.monotonic)
    state: Any = None
    released: bool = False

    @property
    def held_for(self) -> float:
        return time.monotonic() - self.acquired_at


class Lease(ABC):
    """Base class for lease backends."""

    def __init__(self, timeout: float = 60.0, poll_interval: float = 2.0):
        self.timeout = timeout
        self.poll_interval = poll_interval

    @abstractmethod
    def _try_acquire(self, resource: str, token: str) -> Optional[Any]:
        """Try once. Return backend state on success, ``None`` if held elsewhere."""

    @abstractmethod
    def _release(self, handle: LeaseHandle) -> None:
        """Give the lease back."""

    def acquire(self, resource: str) -> LeaseHandle:
        """Block until the lease on *resource* is granted.

        Raises:
            LockTimeout: the lease was not granted within ``self.timeout``.
        """
        token = uuid.uuid4().hex
        started = time.monotonic()
        try:
            state = Retrying(**self._poll_policy(resource))(self._try_acquire, resource, token)
        except RetryError:
            raise self._timed_out(resource, started) from None
        return self._granted(resource, token, state)

    async def acquire_async(self, resource: str) -> LeaseHandle:
        """Like ``acquire``, but sleeps between attempts with ``asyncio.sleep``."""
        token = uuid.uuid4().hex
        started = time.monotonic()

        async def attempt() -> Optional[Any]:
            return self._try_acquire(resource, token)

        try:
            state = await AsyncRetrying(**self._poll_policy(resource))(attempt)
        except RetryError:
            raise self._timed_out(resource, started) from None
        return self._granted(resource, token, state)

    def _poll_policy(self, resource: str) -> Dict[str, Any]:
        return dict(
            stop=stop_after_delay(self.timeout),
            wait=wait_fixed(self.poll_interval) + wait_random(0, self.poll_interval / 2),
            retry=retry_if_result(lambda state: state is None),
            before_sleep=lambda retry_state: logger.info(
                f"Lock '{resource}' is held elsewhere, retrying "
                f"(attempt {retry_state.attempt_number})"
            ),
        )

    def _timed_out(self, resource: str, started: float) -> LockTimeout:
        waited = time.monotonic() - started
        logger.error(f"Gave up waiting for lock '{resource}' after {waited:.1f}s")
        return LockTimeout(resource, waited)

    def _granted(self, resource: str, token: str, state: Any) -> LeaseHandle:
        logger.info(f"Acquired lock '{resource}' ({token[:8]})")
        return LeaseHandle(resource=resource, token=token, state=state)

    def release(self, handle: LeaseHandle) -> None:
        """Release *handle*. Releasing twice is a no-op."""
        if handle.released:
            return
        try:
            self._release(handle)
        finally:
            handle.released = True
        logger.info(f"Released lock '{handle.resource}' after {handle.held_for:.2f}s")

    @contextmanager
    def hold(self, resource: str) -> Generator[LeaseHandle, None, None]:
        """Scoped acquisition with guaranteed release."""
        handle = self.acquire(resource)
        try:
            yield handle
        finally:
            self.release(handle)

    @asynccontextmanager
    async def hold_async(self, resource: str) -> AsyncGenerator[LeaseHandle, None]:
        handle = await self.acquire_async(resource)
        try:
            yield handle
        finally:
            self.release(handle)
