"""Respondent session state.

A Session is owned by exactly one respondent and only ever mutated by the
navigator's transitions. It is never persisted as part of the flow graph.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

WELCOME_INDEX = -1


class Position(StrEnum):
    """Where a session currently is, from a rendering layer's point of view."""

    WELCOME = "welcome"
    INTRO = "intro"
    SECTION = "section"
    COMPLETE = "complete"


@dataclass
class Session:
    """Tracks one respondent's walk through a flow.

    ``current_index`` is ``-1`` on the welcome screen, ``0..N-1`` inside a
    section and ``N`` once the flow is complete (N = number of sections).
    ``show_intro`` is the current section's intro sub-screen flag; it is
    deliberately separate from ``history`` so dismissing an intro never
    touches the back stack.

    Attributes:
        session_id: Opaque identifier used to make delivery idempotent.
        current_index: Position in the flow's section order.
        answers: Block id to captured value.
        history: Previously visited section ids, oldest first.
        show_intro: True while the current section's intro is displayed.
        submitted: Set once the completion record has been delivered.
        started_at: When the respondent left the welcome screen.
        completed_at: When the session reached the terminal state.
    """

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    current_index: int = WELCOME_INDEX
    answers: dict[str, Any] = field(default_factory=dict)
    history: list[str] = field(default_factory=list)
    show_intro: bool = False
    submitted: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def at_welcome(self) -> bool:
        return self.current_index == WELCOME_INDEX

    def is_complete(self, total_sections: int) -> bool:
        """True once the session has reached the terminal state."""
        return self.completed_at is not None or (
            total_sections > 0 and self.current_index >= total_sections
        )

    def mark_started(self) -> None:
        if self.started_at is None:
            self.started_at = datetime.now(UTC)

    def mark_completed(self) -> datetime:
        if self.completed_at is None:
            self.completed_at = datetime.now(UTC)
        return self.completed_at
