"""
Invocation outputs.

Results are printed as one JSON object on stdout. When an output file is
configured they are also appended in the ``key<<DELIMITER`` multi-line format
that CI runners read step outputs from.
"""

import json
import logging
import uuid
from typing import Any, Dict, Optional, TextIO

from remindq.core.clock import render, resolve_timezone
from remindq.engine import CronResult, ListResult, PutResult

logger = logging.getLogger(__name__)


def put_outputs(result: PutResult, display_timezone: str = "UTC") -> Dict[str, Any]:
    record = result.record
    return {
        "item-guid": result.item_guid,
        "total-count": result.total_count,
        "remind-at": record.remind_at.isoformat(),
        "remind-at-text": render(record.remind_at, resolve_timezone(display_timezone)),
    }


def list_outputs(result: ListResult, display_timezone: str = "UTC") -> Dict[str, Any]:
    tz = resolve_timezone(display_timezone)
    due = set(result.due_guids)
    lines = [
        f"{r.guid}  {render(r.remind_at, tz)}  {'DUE' if r.guid in due else '   '}  {r.message}"
        for r in result.reminders
    ]
    return {
        "list-json": result.reminders.to_data(),
        "due-json": [r.to_dict() for r in result.due],
        "due-count": result.due_count,
        "due-guids": "\n".join(result.due_guids),
        "total-count": result.total_count,
        "list-text": "\n".join(lines),
    }


def cron_outputs(result: CronResult) -> Dict[str, Any]:
    return {
        "due-json": [r.to_dict() for r in result.due],
        "due-count": result.due_count,
        "due-guids": "\n".join(r.guid for r in result.due),
        "popped-count": result.popped_count,
        "remaining-count": result.remaining_count,
        "total-count": result.remaining_count,
        "list-json": result.remaining.to_data(),
        "failed-guids": "\n".join(result.failed_guids),
        "outcomes": [o.to_dict() for o in result.outcomes],
    }


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def write_output_file(outputs: Dict[str, Any], path: str) -> None:
    """Append *outputs* to *path* as ``key<<DELIM`` blocks."""
    with open(path, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            text = _as_text(value)
            delimiter = f"remindq_{uuid.uuid4().hex}"
            f.write(f"{key}<<{delimiter}\n{text}\n{delimiter}\n")
    logger.debug(f"Wrote {len(outputs)} outputs to {path}")


def emit(outputs: Dict[str, Any], stream: TextIO, output_file: Optional[str] = None) -> None:
    stream.write(json.dumps(outputs, indent=2, ensure_ascii=False) + "\n")
    stream.flush()
    if output_file:
        write_output_file(outputs, output_file)
