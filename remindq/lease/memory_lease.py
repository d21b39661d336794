"""
Process-local lease for the in-memory store and for tests.
"""

import threading
from typing import Any, Dict, Optional

from remindq.lease.base import Lease, LeaseHandle

_locks: Dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


def _lock_for(resource: str) -> threading.Lock:
    with _registry_lock:
        if resource not in _locks:
            _locks[resource] = threading.Lock()
        return _locks[resource]


class MemoryLease(Lease):
    """Lease shared by every ``MemoryLease`` in the current process."""

    def _try_acquire(self, resource: str, token: str) -> Optional[Any]:
        lock = _lock_for(resource)
        if lock.acquire(blocking=False):
            return lock
        return None

    def _release(self, handle: LeaseHandle) -> None:
        handle.state.release()
