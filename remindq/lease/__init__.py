"""
Mutex lease backends.

Every backend shares the acquire/poll/timeout logic in ``Lease`` and differs
only in how a single acquisition attempt is made.
"""

from pathlib import Path
from typing import TYPE_CHECKING

from .base import Lease, LeaseHandle, LockMode
from .file_lease import FileLease
from .memory_lease import MemoryLease
from .postgres_lease import PostgresLease

if TYPE_CHECKING:
    from remindq.config.settings import Settings

__all__ = [
    "Lease",
    "LeaseHandle",
    "LockMode",
    "FileLease",
    "MemoryLease",
    "PostgresLease",
    "create_lease",
]


def create_lease(settings: "Settings") -> Lease:
    """Build the lease backend selected by *settings*."""
    backend = settings.effective_lock_backend
    timing = {"timeout": settings.lock_timeout, "poll_interval": settings.lock_poll_interval}
    if backend == "file":
        return FileLease(Path(settings.store_path) / "locks", ttl=settings.lock_ttl, **timing)
    if backend == "postgres":
        return PostgresLease(**timing)
    if backend == "memory":
        return MemoryLease(**timing)
    raise ValueError(f"Unknown lock backend: {backend}")
