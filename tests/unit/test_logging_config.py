"""Tests for log setup."""

import json
import logging

import pytest

from remindq.logging_config import HANDLER_NAME, setup_logging


@pytest.fixture(autouse=True)
def _restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _ours():
    return [h for h in logging.getLogger().handlers if h.get_name() == HANDLER_NAME]


class TestSetupLogging:
    def test_json_lines_on_stderr_tagged_with_command(self, capsys):
        setup_logging(level="info", command="cron")

        logging.getLogger("remindq.engine").info("cron: 1 due")

        captured = capsys.readouterr()
        assert captured.out == ""
        entry = json.loads(captured.err.strip().splitlines()[-1])
        assert entry["msg"] == "cron: 1 due"
        assert entry["command"] == "cron"
        assert entry["logger"] == "remindq.engine"
        assert isinstance(entry["pid"], int)

    def test_text_format_from_env(self, capsys, monkeypatch):
        monkeypatch.setenv("REMINDQ_LOG_FORMAT", "text")
        setup_logging(level="WARNING")

        logging.getLogger("remindq.lease").warning("lock held elsewhere")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        assert line.endswith("WARNING remindq.lease: lock held elsewhere")

    def test_repeated_setup_replaces_handler(self):
        setup_logging(level="INFO")
        setup_logging(level="DEBUG", command="list")

        assert len(_ours()) == 1
        assert logging.getLogger().level == logging.DEBUG

    def test_request_logs_quieted(self):
        setup_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
