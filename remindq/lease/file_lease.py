"""
Lease backed by an exclusive lock file.

The lock file is created with ``O_CREAT | O_EXCL`` and records its owner and
expiry. A lock past its expiry is treated as abandoned (its holder crashed or
hung) and may be broken by the next caller. Breaking is serialised through a
``<lock>.breaking`` sentinel, also created with ``O_EXCL``, so two waiters
never both break and re-take the same lock.
"""

import json
import logging
import os
import re
import socket
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

from remindq.errors import StoreUnavailable
from remindq.lease.base import Lease, LeaseHandle

logger = logging.getLogger(__name__)

# Seconds after which a leftover breaker sentinel is considered abandoned
BREAKER_TTL = 30.0


class FileLease(Lease):
    """Cross-process lease using lock files in *directory*."""

    def __init__(
        self,
        directory: Union[str, Path],
        ttl: float = 600.0,
        timeout: float = 60.0,
        poll_interval: float = 2.0,
    ):
        super().__init__(timeout=timeout, poll_interval=poll_interval)
        self.directory = Path(directory)
        self.ttl = ttl

    def path_for(self, resource: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]", "_", resource)
        return self.directory / safe

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            return json.loads(path.read_text())
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            # Half-written by a holder that died mid-write; judge by mtime.
            try:
                return {"expires_at": path.stat().st_mtime + self.ttl}
            except FileNotFoundError:
                return None

    def _is_stale(self, info: Optional[Dict[str, Any]]) -> bool:
        return info is not None and float(info.get("expires_at", 0)) <= time.time()

    def _take_breaker(self, path: Path) -> Optional[Path]:
        """Claim the right to break *path*; ``None`` if another caller holds it."""
        breaker = path.with_name(f"{path.name}.breaking")
        for _ in range(2):
            try:
                os.close(os.open(breaker, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644))
                return breaker
            except FileExistsError:
                # A breaker that crashed mid-break leaves its sentinel behind.
                try:
                    if breaker.stat().st_mtime + BREAKER_TTL > time.time():
                        return None
                    breaker.unlink()
                except FileNotFoundError:
                    pass
        return None

    def _break_if_stale(self, path: Path, token: str) -> None:
        if not self._is_stale(self._read(path)):
            return
        breaker = self._take_breaker(path)
        if breaker is None:
            return
        try:
            # Judge again: another breaker may have replaced the lock meanwhile.
            info = self._read(path)
            if not self._is_stale(info):
                return
            logger.warning(
                f"Breaking stale lock {path.name} held by {str(info.get('owner', '?'))[:8]} "
                f"(pid {info.get('pid', '?')} on {info.get('host', '?')})"
            )
            graveyard = path.with_name(f"{path.name}.stale-{token}")
            try:
                os.replace(path, graveyard)
            except FileNotFoundError:
                return
            moved = self._read(graveyard)
            if moved != info:
                # The holder released and someone else locked in between.
                logger.warning(f"Lock {path.name} changed while breaking it; restoring")
                try:
                    os.link(graveyard, path)
                except FileExistsError:
                    logger.error(f"Could not restore lock {path.name}; a newer holder exists")
            graveyard.unlink()
        finally:
            try:
                breaker.unlink()
            except FileNotFoundError:
                pass

    def _try_acquire(self, resource: str, token: str) -> Optional[Any]:
        path = self.path_for(resource)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailable(f"Cannot create lock directory {self.directory}: {e}") from e

        payload = json.dumps(
            {
                "owner": token,
                "pid": os.getpid(),
                "host": socket.gethostname(),
                "expires_at": time.time() + self.ttl,
            }
        )
        for _ in range(2):
            try:
                fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                self._break_if_stale(path, token)
                continue
            except OSError as e:
                raise StoreUnavailable(f"Cannot create lock file {path}: {e}") from e
            with os.fdopen(fd, "w") as f:
                f.write(payload)
            return path
        return None

    def _release(self, handle: LeaseHandle) -> None:
        path: Path = handle.state
        info = self._read(path)
        if info is None or info.get("owner") != handle.token:
            logger.warning(
                f"Lock {path.name} is no longer ours (expired and taken over); leaving it"
            )
            return
        try:
            path.unlink()
        except FileNotFoundError:
            pass
