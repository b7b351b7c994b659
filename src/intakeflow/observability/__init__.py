"""Observability module for intakeflow.

Provides structured logging for validation runs and respondent sessions.
"""

from intakeflow.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
    session_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
    "session_context",
]
