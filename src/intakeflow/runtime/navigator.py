"""Runtime navigation through a flow.

A small state machine over a Session, driven by two caller-invoked
transitions:

- ``advance`` resolves where the respondent goes next. Candidates are
  tried in strict priority order: the first matching ``equals`` rule in
  declared order, the section's ``any`` fallback, a legacy rule with no
  operator, and finally linear progression to the next section (or to
  completion after the last one).
- ``retreat`` goes back: first by dismissing the current section's intro
  sub-screen, then by popping the history stack.

The navigator never raises on authoring defects. A rule pointing at a
missing section counts as "no match" and resolution moves on down the
chain. A rule pointing back at the current section or anywhere already in
history is discarded in favour of linear progression, so every advance
makes forward progress even on a flow the validator reports as looping.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from intakeflow.graph.validator import CachedValidator
from intakeflow.models.blocks import requires_interaction
from intakeflow.observability.logging import get_logger
from intakeflow.runtime.session import WELCOME_INDEX, Position, Session
from intakeflow.runtime.submission import SubmissionRecord

if TYPE_CHECKING:
    from intakeflow.graph.validation_types import FlowValidationReport
    from intakeflow.models.flow import FlowGraph, RoutingRule, Section
    from intakeflow.runtime.submission import SubmissionSink

log = get_logger(__name__)

SubmitCallback = Callable[[SubmissionRecord], None]


def _answer_matches(answer: Any, value: str | None) -> bool:
    """Equality, or membership when the answer is a multi-choice list."""
    if value is None or answer is None:
        return False
    if isinstance(answer, (list, tuple, set, frozenset)):
        return value in answer
    return bool(answer == value)


def _candidate_rules(section: Section, answers: Mapping[str, Any]) -> list[RoutingRule]:
    """Rules that apply to the current answers, in priority order."""
    matched = [
        rule
        for rule in section.routing
        if rule.is_conditional
        and rule.from_block_id is not None
        and _answer_matches(answers.get(rule.from_block_id), rule.value)
    ]
    fallbacks = [rule for rule in section.routing if rule.is_fallback]
    legacy = [rule for rule in section.routing if rule.operator is None]
    return [*matched, *fallbacks, *legacy]


def resolve_next_index(
    graph: FlowGraph,
    current_index: int,
    answers: Mapping[str, Any],
    history: list[str],
) -> int:
    """Compute the index the respondent moves to from ``current_index``.

    Returns ``len(graph.sections)`` for completion.
    """
    section = graph.sections[current_index]
    linear = current_index + 1

    for rule in _candidate_rules(section, answers):
        target = graph.section_index(rule.next_section_id)
        if target is None:
            log.info(
                "rule_target_discarded",
                section_id=section.id,
                rule_id=rule.id,
                target=rule.next_section_id,
                reason="dangling",
            )
            continue
        if target == current_index or rule.next_section_id in history:
            log.info(
                "rule_target_discarded",
                section_id=section.id,
                rule_id=rule.id,
                target=rule.next_section_id,
                reason="cycle_guard",
            )
            return linear
        return target

    return linear


def _enter(session: Session, graph: FlowGraph, index: int) -> None:
    """Move to ``index`` and set the intro flag for the target section."""
    session.current_index = index
    if index < len(graph.sections):
        session.show_intro = graph.sections[index].has_intro
    else:
        session.show_intro = False


def _deliver(session: Session, on_submit: SubmitCallback | None) -> None:
    """Hand the completion record over at most once per session."""
    if session.submitted or on_submit is None:
        return
    record = SubmissionRecord(
        session_id=session.session_id,
        answers=dict(session.answers),
        history=list(session.history),
        completed_at=session.mark_completed(),
    )
    try:
        on_submit(record)
    except Exception:
        # submitted stays False so a later advance retries delivery
        log.exception("submission_delivery_failed", session_id=session.session_id)
        return
    session.submitted = True
    log.info("submission_delivered", session_id=session.session_id)


def _complete(session: Session, on_submit: SubmitCallback | None) -> None:
    session.mark_completed()
    log.info("session_completed", session_id=session.session_id, visited=len(session.history))
    _deliver(session, on_submit)


def start(
    session: Session,
    graph: FlowGraph,
    *,
    on_submit: SubmitCallback | None = None,
) -> bool:
    """Leave the welcome screen for the entry section (the first section).

    Returns:
        True if the session moved.
    """
    if not session.at_welcome:
        return False

    session.history.clear()
    session.mark_started()
    _enter(session, graph, 0)
    if not graph.sections:
        _complete(session, on_submit)
    log.debug("session_started", session_id=session.session_id)
    return True


def blocking_interactions(section: Section, answers: Mapping[str, Any]) -> list[str]:
    """Ids of must-interact blocks in ``section`` not yet recorded in ``answers``."""
    return [
        block.id
        for block in section.blocks
        if requires_interaction(block) and not answers.get(block.id)
    ]


def advance(
    session: Session,
    graph: FlowGraph,
    answers: Mapping[str, Any] | None = None,
    *,
    on_submit: SubmitCallback | None = None,
) -> bool:
    """Move the session forward one step.

    ``answers`` are merged into the session before routing. From the
    welcome screen this starts the flow; while the intro sub-screen is
    showing it reveals the section's blocks. A required interaction that
    has not happened yet leaves the session entirely unchanged, answers
    included (a UI retry, not an error). On a terminal session this only
    retries an undelivered submission.

    Args:
        session: The respondent's session, mutated in place.
        graph: The flow snapshot.
        answers: New answers to record before routing.
        on_submit: Receives the completion record, at most once.

    Returns:
        True if the session's position changed.
    """
    total = len(graph.sections)
    if session.is_complete(total):
        _deliver(session, on_submit)
        return False

    if session.current_index <= WELCOME_INDEX:
        session.answers.update(answers or {})
        session.current_index = WELCOME_INDEX
        return start(session, graph, on_submit=on_submit)

    if session.show_intro:
        session.answers.update(answers or {})
        session.show_intro = False
        return True

    current = graph.sections[session.current_index]
    merged = {**session.answers, **(answers or {})}
    blocked = blocking_interactions(current, merged)
    if blocked:
        log.debug("advance_gate_blocked", section_id=current.id, blocks=blocked)
        return False
    session.answers.update(answers or {})

    target = resolve_next_index(graph, session.current_index, session.answers, session.history)
    session.history.append(current.id)
    _enter(session, graph, target)
    log.debug(
        "section_advanced",
        session_id=session.session_id,
        from_section=current.id,
        to_index=target,
    )

    if target >= total:
        _complete(session, on_submit)
    return True


def retreat(session: Session, graph: FlowGraph) -> bool:
    """Move the session back one step.

    Two levels: a showing intro sub-screen is dismissed first without
    touching history; otherwise the last history entry is popped and
    becomes the current section. With empty history the session returns
    to the welcome screen. History entries for sections no longer in the
    flow are skipped.

    Returns:
        True if the session's position changed.
    """
    if session.at_welcome or session.is_complete(len(graph.sections)):
        return False

    if session.show_intro:
        session.show_intro = False
        return True

    while session.history:
        previous_id = session.history.pop()
        previous = graph.section_index(previous_id)
        if previous is not None:
            session.current_index = previous
            session.show_intro = False
            return True
        log.info("history_entry_skipped", section_id=previous_id)

    session.current_index = WELCOME_INDEX
    session.show_intro = False
    return True


@dataclass(frozen=True)
class NavigatorView:
    """What a rendering layer needs to draw the current screen.

    Attributes:
        position: Welcome, intro, section or complete.
        section: The current section, or None on welcome/complete.
        step: 1-based section number, 0 on welcome.
        total: Number of sections.
        progress: Completed fraction, ``(index + 1) / total``.
        can_go_back: Whether ``retreat`` would move the session.
    """

    position: Position
    section: Section | None
    step: int
    total: int
    progress: float
    can_go_back: bool


class Navigator:
    """Facade binding a flow snapshot to respondent sessions.

    One navigator can serve any number of sessions; it holds no
    per-respondent state itself.
    """

    def __init__(
        self,
        graph: FlowGraph,
        sink: SubmissionSink | None = None,
        *,
        validator: CachedValidator | None = None,
    ) -> None:
        self.graph = graph
        self.sink = sink
        self.validator = validator or CachedValidator()

    @property
    def total(self) -> int:
        return len(self.graph.sections)

    def _on_submit(self) -> SubmitCallback | None:
        return self.sink.deliver if self.sink is not None else None

    def new_session(self) -> Session:
        return Session()

    def start(self, session: Session) -> bool:
        return start(session, self.graph, on_submit=self._on_submit())

    def advance(self, session: Session, answers: Mapping[str, Any] | None = None) -> bool:
        return advance(session, self.graph, answers, on_submit=self._on_submit())

    def retreat(self, session: Session) -> bool:
        return retreat(session, self.graph)

    def dismiss_intro(self, session: Session) -> bool:
        """Leave the intro sub-screen for the section's blocks."""
        if not session.show_intro:
            return False
        session.show_intro = False
        return True

    def record_answer(self, session: Session, block_id: str, value: Any) -> bool:
        """Store an answer; ignored once the session is complete."""
        if session.is_complete(self.total):
            return False
        session.answers[block_id] = value
        return True

    def current_section(self, session: Session) -> Section | None:
        if 0 <= session.current_index < self.total:
            return self.graph.sections[session.current_index]
        return None

    def position(self, session: Session) -> Position:
        if session.is_complete(self.total):
            return Position.COMPLETE
        if session.current_index <= WELCOME_INDEX:
            return Position.WELCOME
        if session.show_intro:
            return Position.INTRO
        return Position.SECTION

    def progress(self, session: Session) -> float:
        """Fraction of the flow reached, clamped to [0, 1]."""
        if session.is_complete(self.total):
            return 1.0
        if self.total == 0 or session.current_index < 0:
            return 0.0
        return min(1.0, (session.current_index + 1) / self.total)

    def view(self, session: Session) -> NavigatorView:
        position = self.position(session)
        in_flow = position in (Position.INTRO, Position.SECTION)
        return NavigatorView(
            position=position,
            section=self.current_section(session) if in_flow else None,
            step=session.current_index + 1 if in_flow else 0,
            total=self.total,
            progress=self.progress(session),
            can_go_back=in_flow,
        )

    def report(self) -> FlowValidationReport:
        """Validator report for the bound flow (for publish gating)."""
        return self.validator.validate(self.graph)
