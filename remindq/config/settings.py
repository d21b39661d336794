"""
Resolved runtime settings for the queue engine.

Values come from (highest precedence first): explicit overrides (CLI flags),
the YAML config, ``REMINDQ_*`` environment variables, then defaults.
Transport credentials are not part of ``Settings``; each client resolves its
own (see ``remindq.delivery``).
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from remindq.config.config_loader import ConfigLoader, get_config_loader
from remindq.core.clock import DEFAULT_MAX_AHEAD
from remindq.errors import ConfigError
from remindq.lease.base import LockMode

logger = logging.getLogger(__name__)

BACKENDS = ("file", "postgres", "memory")


@dataclass(frozen=True)
class Settings:
    """Engine settings for one invocation."""

    store_backend: str = "file"
    store_name: str = "reminders"
    store_path: str = ".remindq"
    store_retry_attempts: int = 3
    lock_mode: LockMode = LockMode.AUTO
    lock_backend: Optional[str] = None
    lock_timeout: float = 60.0
    lock_poll_interval: float = 2.0
    lock_ttl: float = 600.0
    max_ahead: timedelta = DEFAULT_MAX_AHEAD
    display_timezone: str = "UTC"
    default_cc: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def effective_lock_backend(self) -> str:
        return self.lock_backend or self.store_backend

    @property
    def lock_name(self) -> str:
        return f"{self.store_name}.lock"


def _pick(*values: Any) -> Any:
    """First value that is neither None nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _as_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be a number, got {value!r}") from None


def load_settings(loader: Optional[ConfigLoader] = None, **overrides: Any) -> Settings:
    """Build ``Settings`` from config, environment and *overrides*.

    Args:
        loader: Config loader to read from (defaults to the singleton).
        **overrides: Field values that win over everything else. ``None``
            values are ignored so CLI flags can be passed through unconditionally.
    """
    loader = loader or get_config_loader()
    store = loader.get_store_config()
    lock = loader.get_lock_config()
    reminders = loader.get_reminders_config()
    given: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}

    store_backend = _pick(
        given.get("store_backend"), store.get("backend"), os.getenv("REMINDQ_STORE_BACKEND"), "file"
    )
    lock_backend = _pick(given.get("lock_backend"), lock.get("backend"), os.getenv("REMINDQ_LOCK_BACKEND"))
    for label, backend in (("store.backend", store_backend), ("lock.backend", lock_backend)):
        if backend is not None and backend not in BACKENDS:
            raise ConfigError(f"{label} must be one of {', '.join(BACKENDS)}, got '{backend}'")

    mode_value = _pick(given.get("lock_mode"), lock.get("mode"), os.getenv("REMINDQ_LOCK_MODE"), "auto")
    try:
        lock_mode = LockMode(mode_value)
    except ValueError:
        raise ConfigError(f"lock mode must be one of auto, none, always, got '{mode_value}'") from None

    max_ahead = given.get("max_ahead")
    if max_ahead is None:
        hours = _as_float("reminders.max_ahead_hours", _pick(reminders.get("max_ahead_hours"), 72))
        max_ahead = timedelta(hours=hours)
    if not timedelta(0) < max_ahead <= DEFAULT_MAX_AHEAD:
        raise ConfigError(
            f"reminders.max_ahead_hours must be above 0 and at most "
            f"{DEFAULT_MAX_AHEAD.total_seconds() // 3600:.0f}, got {max_ahead.total_seconds() / 3600:g}"
        )

    default_cc = given.get("default_cc")
    if default_cc is None:
        env_cc = os.getenv("REMINDQ_DEFAULT_CC", "")
        default_cc = reminders.get("default_cc") or [c for c in env_cc.split(",") if c.strip()]

    settings = Settings(
        store_backend=store_backend,
        store_name=_pick(given.get("store_name"), store.get("name"), os.getenv("REMINDQ_STORE_NAME"), "reminders"),
        store_path=_pick(given.get("store_path"), store.get("path"), os.getenv("REMINDQ_STORE_PATH"), ".remindq"),
        store_retry_attempts=int(_as_float("store.retry_attempts", _pick(store.get("retry_attempts"), 3))),
        lock_mode=lock_mode,
        lock_backend=lock_backend,
        lock_timeout=_as_float("lock.timeout_seconds", _pick(given.get("lock_timeout"), lock.get("timeout_seconds"), 60)),
        lock_poll_interval=_as_float(
            "lock.poll_interval_seconds", _pick(given.get("lock_poll_interval"), lock.get("poll_interval_seconds"), 2)
        ),
        lock_ttl=_as_float("lock.ttl_seconds", _pick(given.get("lock_ttl"), lock.get("ttl_seconds"), 600)),
        max_ahead=max_ahead,
        display_timezone=_pick(
            given.get("display_timezone"), reminders.get("display_timezone"), os.getenv("REMINDQ_TIMEZONE"), "UTC"
        ),
        default_cc=tuple(c.strip() for c in default_cc),
    )
    logger.debug(f"Resolved settings: {settings}")
    return settings
