"""Tests for structured logging."""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import threading
from pathlib import Path

import pytest

from azdo_mcp.logging import redact_arguments, setup_logging


def _last_record(path: Path) -> dict:
    return json.loads(path.read_text().strip().split("\n")[-1])


class TestSetupLogging:
    def test_creates_log_file(self, tmp_path: Path) -> None:
        log_path = tmp_path / "azdo-mcp.log"
        logger = setup_logging(log_path)
        logger.info("test_message", extra={"tool": "list_builds", "args_data": {"project": "Alpha"}})
        for handler in logger.handlers:
            handler.flush()
        assert log_path.exists()
        record = _last_record(log_path)
        assert record["msg"] == "test_message"
        assert record["tool"] == "list_builds"
        assert record["args"]["project"] == "Alpha"

    def test_json_format(self, tmp_path: Path) -> None:
        log_path = tmp_path / "azdo-mcp.log"
        logger = setup_logging(log_path)
        logger.warning("tool_error", extra={"tool": "get_build", "duration_ms": 42.5, "error_kind": "BackendError"})
        for handler in logger.handlers:
            handler.flush()
        record = _last_record(log_path)
        assert record["duration_ms"] == 42.5
        assert record["error_kind"] == "BackendError"
        assert record["level"] == "WARNING"

    def test_secrets_redacted(self, tmp_path: Path) -> None:
        log_path = tmp_path / "azdo-mcp.log"
        logger = setup_logging(log_path)
        logger.info(
            "tool_call",
            extra={"tool": "connect_azure_devops", "args_data": {"orgUrl": "https://x", "token": "hunter2"}},
        )
        for handler in logger.handlers:
            handler.flush()
        assert "hunter2" not in log_path.read_text()
        assert _last_record(log_path)["args"]["token"] == "***"

    def test_child_loggers_propagate(self, tmp_path: Path) -> None:
        log_path = tmp_path / "azdo-mcp.log"
        logger = setup_logging(log_path)
        logging.getLogger("azdo_mcp.dispatch").info("from_child")
        for handler in logger.handlers:
            handler.flush()
        assert _last_record(log_path)["msg"] == "from_child"

    def test_idempotent_setup(self, tmp_path: Path) -> None:
        logger1 = setup_logging(tmp_path / "azdo-mcp.log")
        logger2 = setup_logging(tmp_path / "azdo-mcp.log")
        assert logger1 is logger2
        assert len(logger1.handlers) == 1

    def test_stderr_by_default(self) -> None:
        logger = setup_logging()
        setup_logging()
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)
        assert not isinstance(logger.handlers[0], logging.FileHandler)

    def test_new_target_replaces_handler(self, tmp_path: Path) -> None:
        logger = setup_logging()
        setup_logging(tmp_path / "azdo-mcp.log")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.handlers.RotatingFileHandler)

    def test_no_duplicate_handlers_under_concurrency(self, tmp_path: Path) -> None:
        """Concurrent setup_logging calls must not produce duplicate handlers."""
        log_path = tmp_path / "azdo-mcp.log"
        results: list[logging.Logger] = []
        barrier = threading.Barrier(4)

        def call_setup() -> None:
            barrier.wait()
            results.append(setup_logging(log_path))

        threads = [threading.Thread(target=call_setup) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 4
        assert all(r is results[0] for r in results)
        file_handlers = [
            h
            for h in logging.getLogger("azdo_mcp").handlers
            if isinstance(h, logging.handlers.RotatingFileHandler) and h.baseFilename == os.path.abspath(str(log_path))
        ]
        assert len(file_handlers) == 1

    def teardown_method(self) -> None:
        """Clean up the azdo_mcp logger handlers between tests."""
        logger = logging.getLogger("azdo_mcp")
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)


class TestRedactArguments:
    @pytest.mark.parametrize("key", ["token", "secretToken", "secret_token", "pat"])
    def test_secret_keys(self, key: str) -> None:
        assert redact_arguments({key: "s3cret", "project": "Alpha"}) == {key: "***", "project": "Alpha"}

    def test_non_mapping_passthrough(self) -> None:
        assert redact_arguments(["a"]) == ["a"]
        assert redact_arguments(None) is None
