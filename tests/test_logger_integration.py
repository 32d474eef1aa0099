"""
Integration tests for monitor/logger.py -- structured logging.
"""

import json
import logging
import os
import sys

from monitor.logger import JSONFormatter, ConsoleFormatter, setup_logging


def _make_log_record(name="scanner.detector", level=logging.INFO, msg="Hello %s", args=("world",), exc_info=None):
    return logging.LogRecord(
        name=name, level=level, pathname="detector.py",
        lineno=1, msg=msg, args=args, exc_info=exc_info,
    )


class TestJSONFormatter:
    def test_format_basic_message(self):
        parsed = json.loads(JSONFormatter().format(_make_log_record()))
        assert parsed["level"] == "INFO"
        assert parsed["msg"] == "Hello world"
        assert parsed["logger"] == "scanner.detector"
        assert "ts" in parsed
        assert "exception" not in parsed

    def test_format_with_exception(self):
        try:
            raise ValueError("test error")
        except ValueError:
            record = _make_log_record(level=logging.ERROR, msg="Failed", args=(), exc_info=sys.exc_info())
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["level"] == "ERROR"
        assert parsed["exception"] == "ValueError: test error"


class TestConsoleFormatter:
    def test_format_basic_message(self):
        output = ConsoleFormatter(use_color=False).format(_make_log_record())
        assert "INF" in output
        assert "scanner" in output
        assert "Hello world" in output
        assert "\033[" not in output

    def test_format_critical(self):
        output = ConsoleFormatter(use_color=False).format(
            _make_log_record(name="executor.safety", level=logging.CRITICAL, msg="Breaker open", args=())
        )
        assert "CRT" in output
        assert "executor" in output


def _cleanup_handlers():
    """Close and remove the handlers setup_logging attached to the root logger."""
    root = logging.getLogger()
    for h in root.handlers[:]:
        if isinstance(h, logging.FileHandler) or isinstance(h.formatter, ConsoleFormatter):
            h.close()
            root.removeHandler(h)


class TestSetupLogging:
    def teardown_method(self):
        _cleanup_handlers()

    def test_root_always_debug(self, tmp_path):
        setup_logging("WARNING", log_dir=str(tmp_path))
        # Root must be DEBUG so the verbose file handler captures everything
        assert logging.getLogger().level == logging.DEBUG

    def test_console_handler_respects_level(self, tmp_path):
        setup_logging("WARNING", log_dir=str(tmp_path))
        console_handlers = [
            h for h in logging.getLogger().handlers
            if isinstance(h.formatter, ConsoleFormatter)
        ]
        assert len(console_handlers) == 1
        assert console_handlers[0].level == logging.WARNING

    def test_returns_log_path_under_log_dir(self, tmp_path):
        log_dir = tmp_path / "nested" / "logs"
        log_path = setup_logging("INFO", log_dir=str(log_dir))
        assert log_path.startswith(str(log_dir))
        assert os.path.basename(log_path).startswith("run_")
        assert os.path.exists(log_path)

    def test_verbose_file_captures_debug(self, tmp_path):
        log_path = setup_logging("INFO", log_dir=str(tmp_path))
        logging.getLogger("scanner.scorer").debug("scored %s", "arb_1")
        for h in logging.getLogger().handlers:
            h.flush()
        with open(log_path) as f:
            assert "scored arb_1" in f.read()

    def test_json_handler_attached_when_file_specified(self, tmp_path):
        json_path = tmp_path / "json" / "run.ndjson"
        setup_logging("INFO", json_log_file=str(json_path), log_dir=str(tmp_path))
        logging.getLogger("pipeline.loop").info("tick %d", 1)
        for h in logging.getLogger().handlers:
            h.flush()
        lines = json_path.read_text().strip().splitlines()
        assert json.loads(lines[-1])["msg"] == "tick 1"

    def test_no_json_handler_without_file(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path))
        assert not any(
            isinstance(h.formatter, JSONFormatter)
            for h in logging.getLogger().handlers
        )

    def test_repeat_calls_do_not_stack_handlers(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path))
        setup_logging("INFO", log_dir=str(tmp_path))
        consoles = [h for h in logging.getLogger().handlers if isinstance(h.formatter, ConsoleFormatter)]
        assert len(consoles) == 1

    def test_quiets_server_loggers(self, tmp_path):
        setup_logging("DEBUG", log_dir=str(tmp_path))
        assert logging.getLogger("uvicorn").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
