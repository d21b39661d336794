"""Tests for invocation output rendering."""

import io
import json
import re
from datetime import datetime, timedelta, timezone

from remindq.core.models import ReminderList, ReminderRecord
from remindq.delivery.dispatcher import DispatchOutcome
from remindq.engine import CronResult, ListResult, PutResult
from remindq.outputs import cron_outputs, emit, list_outputs, put_outputs, write_output_file

NOW = datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


def _record(guid, minutes, message="hello"):
    return ReminderRecord(
        guid=guid,
        remind_at=NOW + timedelta(minutes=minutes),
        message=message,
        session_ref=f"https://app.agent.test/sessions/{guid}",
    )


def _parse_output_file(text):
    """Parse key<<DELIM blocks back into a dict."""
    outputs = {}
    lines = iter(text.splitlines())
    for line in lines:
        key, delimiter = line.split("<<", 1)
        body = []
        for inner in lines:
            if inner == delimiter:
                break
            body.append(inner)
        outputs[key] = "\n".join(body)
    return outputs


class TestPutOutputs:
    def test_keys(self):
        record = _record("abc", 30)
        outputs = put_outputs(PutResult(record=record, total_count=4), "Europe/Amsterdam")
        assert outputs == {
            "item-guid": "abc",
            "total-count": 4,
            "remind-at": "2025-01-15T09:30:00+00:00",
            "remind-at-text": "2025-01-15 10:30 CET",
        }


class TestListOutputs:
    def test_due_and_text(self):
        due = _record("a", -5, "stand-up")
        later = _record("b", 90, "deploy")
        result = ListResult(reminders=ReminderList([due, later]), due=[due], now=NOW)

        outputs = list_outputs(result, "UTC")

        assert outputs["total-count"] == 2
        assert outputs["due-count"] == 1
        assert outputs["due-guids"] == "a"
        assert [r["guid"] for r in outputs["list-json"]] == ["a", "b"]
        assert outputs["due-json"][0]["message"] == "stand-up"
        lines = outputs["list-text"].splitlines()
        assert lines[0] == "a  2025-01-15 08:55 UTC  DUE  stand-up"
        assert lines[1] == "b  2025-01-15 10:30 UTC       deploy"

    def test_empty_list(self):
        outputs = list_outputs(ListResult(reminders=ReminderList(), due=[], now=NOW))
        assert outputs["list-json"] == []
        assert outputs["due-guids"] == ""
        assert outputs["list-text"] == ""


class TestCronOutputs:
    def test_counts_and_failures(self):
        a, b, c = _record("a", -1), _record("b", -1), _record("c", 60)
        result = CronResult(
            due=[a, b],
            outcomes=[DispatchOutcome("a", ping_ok=True), DispatchOutcome("b", ping_ok=False, error="503")],
            remaining=ReminderList([b, c]),
            now=NOW,
            saved=True,
        )

        outputs = cron_outputs(result)

        assert outputs["due-count"] == 2
        assert outputs["due-guids"] == "a\nb"
        assert outputs["popped-count"] == 1
        assert outputs["remaining-count"] == 2
        assert outputs["total-count"] == 2
        assert outputs["failed-guids"] == "b"
        assert [o["status"] for o in outputs["outcomes"]] == ["delivered", "agent_ping_failed"]


class TestEmit:
    def test_stdout_is_json(self):
        stream = io.StringIO()
        emit({"item-guid": "abc", "total-count": 1}, stream)
        assert json.loads(stream.getvalue()) == {"item-guid": "abc", "total-count": 1}

    def test_output_file_blocks(self, tmp_path):
        path = tmp_path / "outputs"
        emit({"due-guids": "a\nb", "due-json": [{"guid": "a"}], "total-count": 3}, io.StringIO(), str(path))

        text = path.read_text()
        assert re.match(r"^due-guids<<remindq_[0-9a-f]{32}\n", text)
        parsed = _parse_output_file(text)
        assert parsed["due-guids"] == "a\nb"
        assert json.loads(parsed["due-json"]) == [{"guid": "a"}]
        assert parsed["total-count"] == "3"

    def test_output_file_appends(self, tmp_path):
        path = tmp_path / "outputs"
        path.write_text("existing<<EOF\nx\nEOF\n")
        write_output_file({"item-guid": "abc"}, str(path))
        parsed = _parse_output_file(path.read_text())
        assert parsed == {"existing": "x", "item-guid": "abc"}
