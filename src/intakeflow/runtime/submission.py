"""Completion records and their delivery to storage.

When a session reaches the terminal state the navigator hands a
SubmissionRecord (answers plus visited-section history as an audit trail)
to a sink. The navigator guards delivery with the session's ``submitted``
flag; sinks are additionally idempotent on ``session_id`` so re-renders or
retries never store a respondent twice.
"""

from __future__ import annotations

import json
from datetime import datetime  # noqa: TC003 - pydantic field type
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from intakeflow.observability.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger(__name__)


class SubmissionRecord(BaseModel):
    """Opaque JSON record stored for a finished session."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    session_id: str = Field(min_length=1)
    answers: dict[str, Any] = Field(default_factory=dict)
    history: list[str] = Field(default_factory=list)
    completed_at: datetime

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class SubmissionSink(Protocol):
    """Persistence collaborator receiving completion records."""

    def deliver(self, record: SubmissionRecord) -> None: ...


class MemorySubmissionSink:
    """Keeps delivered records in a list, once per session."""

    def __init__(self) -> None:
        self.records: list[SubmissionRecord] = []

    def deliver(self, record: SubmissionRecord) -> None:
        if any(r.session_id == record.session_id for r in self.records):
            log.debug("submission_duplicate_ignored", session_id=record.session_id)
            return
        self.records.append(record)


class JSONLSubmissionSink:
    """Appends one JSON line per session to a file.

    Session ids already present in the file are skipped, so delivering the
    same record twice (even across processes) stores it once.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._seen: set[str] | None = None

    def _load_seen(self) -> set[str]:
        if self._seen is None:
            self._seen = set()
            if self.path.exists():
                with self.path.open("r", encoding="utf-8") as f:
                    for line_no, line in enumerate(f, start=1):
                        line = line.strip()
                        if not line:
                            continue
                        try:
                            session_id = json.loads(line).get("sessionId")
                        except json.JSONDecodeError:
                            log.warning(
                                "submission_line_unreadable", path=str(self.path), line=line_no
                            )
                            continue
                        if session_id:
                            self._seen.add(session_id)
        return self._seen

    def deliver(self, record: SubmissionRecord) -> None:
        seen = self._load_seen()
        if record.session_id in seen:
            log.debug("submission_duplicate_ignored", session_id=record.session_id)
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(record.to_json() + "\n")
        seen.add(record.session_id)
        log.info("submission_stored", session_id=record.session_id, path=str(self.path))

    def read_all(self) -> list[SubmissionRecord]:
        """Read every stored record, skipping unreadable lines."""
        if not self.path.exists():
            return []
        records = []
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(SubmissionRecord.model_validate_json(line))
                except ValueError:
                    log.warning("submission_record_invalid", path=str(self.path))
        return records
