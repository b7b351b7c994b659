"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import pytest
from rich.logging import RichHandler

import intakeflow.observability.logging as log_module
from intakeflow.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
    session_context,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


def _read_entries(path: Path) -> list[dict[str, Any]]:
    with path.open() as f:
        return [json.loads(line) for line in f if line.strip()]


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    close_file_logging()
    configure_logging(verbosity=0)


class TestConsoleLevels:
    def test_default_is_warning(self) -> None:
        configure_logging(verbosity=0)
        assert logging.getLogger().level == logging.WARNING

    @pytest.mark.parametrize("verbosity", [1, 2, 3])
    def test_verbose_opens_root_to_debug(self, verbosity: int) -> None:
        """Console handler filters; the root stays open for the file handler."""
        configure_logging(verbosity=verbosity)
        assert logging.getLogger().level == logging.DEBUG

    def test_console_handler_level_follows_verbosity(self) -> None:
        configure_logging(verbosity=1)
        handlers = [h for h in logging.getLogger().handlers if isinstance(h, RichHandler)]
        assert [h.level for h in handlers] == [logging.INFO]


class TestGetLogger:
    def test_returns_bound_logger(self) -> None:
        logger = get_logger(__name__)
        assert hasattr(logger, "info")
        assert hasattr(logger, "exception")

    def test_auto_configures(self) -> None:
        log_module._configured = False
        get_logger("test")
        assert log_module._configured is True


class TestFileLogging:
    def test_creates_logs_dir(self, tmp_path: Path) -> None:
        configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)
        assert (tmp_path / "logs").is_dir()
        assert get_logs_dir() == tmp_path / "logs"

    def test_disabled_by_default(self, tmp_path: Path) -> None:
        configure_logging(verbosity=0, log_to_file=False, project_path=tmp_path)
        assert not (tmp_path / "logs").exists()

    def test_requires_project_path(self) -> None:
        with pytest.raises(ValueError, match="project_path is required"):
            configure_logging(verbosity=0, log_to_file=True, project_path=None)

    def test_reconfiguring_closes_previous_handler(self, tmp_path: Path) -> None:
        configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)
        first = log_module._file_handler
        configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)

        assert first is not None
        assert first.stream is None or first.stream.closed
        assert log_module._file_handler is not None

    def test_close_clears_handler(self, tmp_path: Path) -> None:
        configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)
        close_file_logging()
        assert log_module._file_handler is None

    def test_structlog_context_written_as_jsonl(self, tmp_path: Path) -> None:
        configure_logging(verbosity=2, log_to_file=True, project_path=tmp_path)
        get_logger("test.context").info("test_event", section_id="intro", rules=3)
        close_file_logging()

        entries = _read_entries(tmp_path / "logs" / "debug.jsonl")
        entry = next(e for e in entries if e.get("message") == "test_event")
        assert entry["section_id"] == "intro"
        assert entry["rules"] == 3
        assert entry["level"] == "INFO"
        assert entry["logger"] == "test.context"

    def test_session_context_binds_session_id(self, tmp_path: Path) -> None:
        configure_logging(verbosity=1, log_to_file=True, project_path=tmp_path)
        logger = get_logger("test.session")
        with session_context("abc123", flow="intake"):
            logger.info("inside")
        logger.info("outside")
        close_file_logging()

        entries = {e["message"]: e for e in _read_entries(tmp_path / "logs" / "debug.jsonl")}
        assert entries["inside"]["session_id"] == "abc123"
        assert entries["inside"]["flow"] == "intake"
        assert "session_id" not in entries["outside"]
