"""Respondent runtime: sessions, navigation and completion delivery."""

from intakeflow.runtime.navigator import (
    Navigator,
    NavigatorView,
    advance,
    blocking_interactions,
    resolve_next_index,
    retreat,
    start,
)
from intakeflow.runtime.session import WELCOME_INDEX, Position, Session
from intakeflow.runtime.submission import (
    JSONLSubmissionSink,
    MemorySubmissionSink,
    SubmissionRecord,
    SubmissionSink,
)

__all__ = [
    "WELCOME_INDEX",
    "JSONLSubmissionSink",
    "MemorySubmissionSink",
    "Navigator",
    "NavigatorView",
    "Position",
    "Session",
    "SubmissionRecord",
    "SubmissionSink",
    "advance",
    "blocking_interactions",
    "resolve_next_index",
    "retreat",
    "start",
]
