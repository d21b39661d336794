"""
Logging setup for the remindq command line.

Only ``remindq.cli.main`` calls ``setup_logging()``; library modules just use
``logging.getLogger(__name__)``. Everything goes to stderr because stdout
carries the invocation outputs that CI steps parse.

Overlapping CI jobs often share one log sink, so JSON lines carry the
command and pid of the invocation that wrote them.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

HANDLER_NAME = "remindq"
TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Chatty per-request / per-job INFO lines
_QUIET_LOGGERS = ("httpx", "apscheduler")


class _JSONFormatter(logging.Formatter):
    def __init__(self, command: Optional[str] = None):
        super().__init__()
        self.command = command

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "pid": record.process,
            "msg": record.getMessage(),
        }
        if self.command:
            entry["command"] = self.command
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    *, level: Optional[str] = None, fmt: Optional[str] = None, command: Optional[str] = None
) -> None:
    """Send root logging to stderr, replacing the handler from any earlier call.

    *level* falls back to ``LOG_LEVEL``, then ``INFO``. *fmt* is ``json``
    (default, or ``REMINDQ_LOG_FORMAT``) or ``text``.
    """
    fmt = fmt or os.getenv("REMINDQ_LOG_FORMAT") or "json"
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(TEXT_FORMAT) if fmt == "text" else _JSONFormatter(command))

    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if h.get_name() != HANDLER_NAME] + [handler]
    root.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
