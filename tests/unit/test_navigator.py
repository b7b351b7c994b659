"""Tests for runtime navigation: routing priority, gates, intros and history."""

from __future__ import annotations

import pytest

from intakeflow.models import FlowGraph
from intakeflow.runtime import (
    WELCOME_INDEX,
    MemorySubmissionSink,
    Navigator,
    Position,
    Session,
    SubmissionRecord,
    advance,
    blocking_interactions,
    resolve_next_index,
    retreat,
    start,
)
from tests.fixtures.flow_fixtures import (
    book_call_block,
    make_flow,
    make_loop_flow,
    rule,
    select_block,
    when,
)


class FlakySink:
    """Fails the first ``failures`` deliveries, then stores records."""

    def __init__(self, failures: int = 1) -> None:
        self.failures = failures
        self.calls = 0
        self.records: list[SubmissionRecord] = []

    def deliver(self, record: SubmissionRecord) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("storage unavailable")
        self.records.append(record)


def _walk(navigator: Navigator, session: Session, *answer_sets: dict[str, object]) -> None:
    for answers in answer_sets:
        assert navigator.advance(session, answers)


class TestResolveNextIndex:
    """Priority: first matching equals, then any, then legacy, then linear."""

    def test_first_matching_equals_wins(self, branching_flow: FlowGraph) -> None:
        assert resolve_next_index(branching_flow, 0, {"kind": "Y"}, []) == 2

    def test_no_match_uses_fallback(self, branching_flow: FlowGraph) -> None:
        assert resolve_next_index(branching_flow, 0, {"kind": "Z"}, []) == 3

    def test_no_rules_is_linear(self, branching_flow: FlowGraph) -> None:
        assert resolve_next_index(branching_flow, 3, {}, []) == 4

    def test_no_match_and_no_fallback_is_linear(self) -> None:
        graph = make_flow(
            {"id": "a", "blocks": [select_block("q", "A", "B")], "routing": [when("q", "A", "c")]},
            {"id": "b"},
            {"id": "c"},
        )
        assert resolve_next_index(graph, 0, {"q": "B"}, []) == 1
        assert resolve_next_index(graph, 0, {}, []) == 1
        assert resolve_next_index(graph, 0, {"q": "A"}, []) == 2

    def test_declared_order_breaks_ties(self) -> None:
        graph = make_flow(
            {
                "id": "a",
                "blocks": [select_block("q", "A", "B", multi=True)],
                "routing": [when("q", "B", "c"), when("q", "A", "b")],
            },
            {"id": "b"},
            {"id": "c"},
        )
        assert resolve_next_index(graph, 0, {"q": ["A", "B"]}, []) == 2

    def test_multi_choice_matches_membership(self) -> None:
        graph = make_flow(
            {
                "id": "a",
                "blocks": [select_block("q", "A", "B", multi=True)],
                "routing": [when("q", "B", "c")],
            },
            {"id": "b"},
            {"id": "c"},
        )
        assert resolve_next_index(graph, 0, {"q": ["A", "B"]}, []) == 2
        assert resolve_next_index(graph, 0, {"q": ["A"]}, []) == 1

    def test_any_beats_legacy(self) -> None:
        graph = make_flow(
            {"id": "a", "routing": [rule("legacy", "c", operator=None), rule("any", "b")]},
            {"id": "b"},
            {"id": "c"},
        )
        assert resolve_next_index(graph, 0, {}, []) == 1

    def test_legacy_rule_used_when_alone(self) -> None:
        graph = make_flow(
            {"id": "a", "routing": [rule("legacy", "c", operator=None)]},
            {"id": "b"},
            {"id": "c"},
        )
        assert resolve_next_index(graph, 0, {}, []) == 2

    def test_dangling_target_falls_through(self) -> None:
        graph = make_flow(
            {
                "id": "a",
                "blocks": [select_block("q", "A", "B")],
                "routing": [when("q", "A", "ghost"), rule("any", "c")],
            },
            {"id": "b"},
            {"id": "c"},
        )
        assert resolve_next_index(graph, 0, {"q": "A"}, []) == 2

    def test_self_target_goes_linear(self) -> None:
        graph = make_flow({"id": "a", "routing": [rule("aa", "a")]}, {"id": "b"})
        assert resolve_next_index(graph, 0, {}, []) == 1

    def test_visited_target_goes_linear(self) -> None:
        graph = make_loop_flow()
        assert resolve_next_index(graph, 1, {}, ["a"]) == 2


class TestStart:
    def test_welcome_to_first_section(self, branching_flow: FlowGraph) -> None:
        session = Session()
        assert session.current_index == WELCOME_INDEX
        assert start(session, branching_flow)
        assert session.current_index == 0
        assert session.history == []
        assert session.started_at is not None

    def test_start_only_from_welcome(self, branching_flow: FlowGraph) -> None:
        session = Session(current_index=2)
        assert not start(session, branching_flow)
        assert session.current_index == 2

    def test_empty_flow_completes_immediately(self) -> None:
        sink = MemorySubmissionSink()
        navigator = Navigator(FlowGraph(), sink)
        session = navigator.new_session()
        assert navigator.advance(session)
        assert navigator.position(session) is Position.COMPLETE
        assert len(sink.records) == 1


class TestAdvance:
    def test_branch_walk(self, branching_flow: FlowGraph) -> None:
        sink = MemorySubmissionSink()
        navigator = Navigator(branching_flow, sink)
        session = navigator.new_session()
        _walk(navigator, session, {}, {"kind": "X"}, {}, {})

        assert session.history == ["start", "x", "end"]
        assert navigator.position(session) is Position.COMPLETE
        assert [r.history for r in sink.records] == [["start", "x", "end"]]
        assert sink.records[0].answers == {"kind": "X"}

    def test_fallback_skips_branches(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        session = navigator.new_session()
        _walk(navigator, session, {}, {"kind": "Z"})
        assert navigator.current_section(session).id == "end"  # type: ignore[union-attr]

    def test_cycle_guard_makes_progress(self) -> None:
        """a -> b -> a is discarded at b; the respondent moves on to c."""
        navigator = Navigator(make_loop_flow())
        session = navigator.new_session()
        _walk(navigator, session, {}, {}, {}, {})
        assert session.history == ["a", "b", "c"]
        assert navigator.position(session) is Position.COMPLETE

    def test_history_has_no_duplicates(self) -> None:
        graph = make_flow(
            {"id": "a", "routing": [rule("ab", "b")]},
            {"id": "b", "routing": [rule("ba", "a")]},
            {"id": "c", "routing": [rule("ca", "a")]},
            {"id": "d"},
        )
        navigator = Navigator(graph)
        session = navigator.new_session()
        while navigator.position(session) is not Position.COMPLETE:
            assert navigator.advance(session)
        assert len(session.history) == len(set(session.history))

    def test_answers_merge(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        session = navigator.new_session()
        navigator.advance(session, {"name": "Ada"})
        navigator.advance(session, {"kind": "Y"})
        assert session.answers == {"name": "Ada", "kind": "Y"}

    def test_record_answer_then_advance(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        session = navigator.new_session()
        navigator.advance(session)
        navigator.record_answer(session, "kind", "Y")
        navigator.advance(session)
        assert navigator.current_section(session).id == "y"  # type: ignore[union-attr]


class TestGate:
    @pytest.fixture
    def gated_flow(self) -> FlowGraph:
        return make_flow(
            {"id": "call", "blocks": [book_call_block("book", required=True)]},
            {"id": "done"},
        )

    def test_blocked_advance_is_noop(self, gated_flow: FlowGraph) -> None:
        session = Session()
        advance(session, gated_flow)
        assert not advance(session, gated_flow, {"note": "hi"})
        assert session.current_index == 0
        assert session.history == []
        assert "note" not in session.answers

    def test_interaction_unblocks(self, gated_flow: FlowGraph) -> None:
        session = Session()
        advance(session, gated_flow)
        assert advance(session, gated_flow, {"book": True})
        assert session.current_index == 1

    def test_blocking_interactions(self, gated_flow: FlowGraph) -> None:
        section = gated_flow.sections[0]
        assert blocking_interactions(section, {}) == ["book"]
        assert blocking_interactions(section, {"book": False}) == ["book"]
        assert blocking_interactions(section, {"book": True}) == []

    def test_optional_call_does_not_gate(self) -> None:
        graph = make_flow({"id": "call", "blocks": [book_call_block("book")]}, {"id": "done"})
        session = Session()
        advance(session, graph)
        assert advance(session, graph)


class TestIntro:
    @pytest.fixture
    def intro_flow(self) -> FlowGraph:
        return make_flow(
            {"id": "a", "title": "A", "routing": [rule("ab", "b")]},
            {"id": "b", "title": "B", "description": "Before we start..."},
        )

    def test_entering_section_with_description_shows_intro(self, intro_flow: FlowGraph) -> None:
        navigator = Navigator(intro_flow)
        session = navigator.new_session()
        _walk(navigator, session, {}, {})
        assert session.show_intro
        assert navigator.position(session) is Position.INTRO

    def test_advance_dismisses_intro_in_place(self, intro_flow: FlowGraph) -> None:
        navigator = Navigator(intro_flow)
        session = navigator.new_session()
        _walk(navigator, session, {}, {}, {})
        assert not session.show_intro
        assert session.current_index == 1
        assert session.history == ["a"]

    def test_retreat_dismisses_intro_without_popping(self, intro_flow: FlowGraph) -> None:
        navigator = Navigator(intro_flow)
        session = navigator.new_session()
        _walk(navigator, session, {}, {})
        assert navigator.retreat(session)
        assert session.current_index == 1
        assert session.history == ["a"]
        assert not session.show_intro

    def test_dismiss_intro(self, intro_flow: FlowGraph) -> None:
        navigator = Navigator(intro_flow)
        session = navigator.new_session()
        _walk(navigator, session, {}, {})
        assert navigator.dismiss_intro(session)
        assert not navigator.dismiss_intro(session)


class TestRetreat:
    def test_pops_history(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        session = navigator.new_session()
        _walk(navigator, session, {}, {"kind": "X"})
        assert navigator.retreat(session)
        assert session.current_index == 0
        assert session.history == []

    def test_empty_history_returns_to_welcome(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        session = navigator.new_session()
        navigator.advance(session)
        assert navigator.retreat(session)
        assert navigator.position(session) is Position.WELCOME
        assert not navigator.retreat(session)

    def test_answers_survive_retreat(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        session = navigator.new_session()
        _walk(navigator, session, {}, {"kind": "X"})
        navigator.retreat(session)
        assert session.answers["kind"] == "X"

    def test_removed_sections_skipped(self, branching_flow: FlowGraph) -> None:
        session = Session(current_index=1, history=["start", "gone"])
        assert retreat(session, branching_flow)
        assert session.current_index == 0
        assert session.history == []

    def test_no_retreat_after_completion(self, linear_flow: FlowGraph) -> None:
        navigator = Navigator(linear_flow)
        session = navigator.new_session()
        while navigator.advance(session):
            pass
        assert navigator.position(session) is Position.COMPLETE
        assert not navigator.retreat(session)


class TestSubmission:
    def test_delivered_once(self, linear_flow: FlowGraph) -> None:
        sink = MemorySubmissionSink()
        navigator = Navigator(linear_flow, sink)
        session = navigator.new_session()
        while navigator.advance(session):
            pass
        assert not navigator.advance(session)
        assert not navigator.advance(session)
        assert len(sink.records) == 1
        assert session.submitted
        assert sink.records[0].session_id == session.session_id

    def test_failed_delivery_is_retried(self, linear_flow: FlowGraph) -> None:
        sink = FlakySink(failures=1)
        navigator = Navigator(linear_flow, sink)
        session = navigator.new_session()
        # welcome -> a -> b -> c -> complete
        _walk(navigator, session, {}, {}, {}, {})
        assert navigator.position(session) is Position.COMPLETE
        assert not session.submitted
        assert sink.records == []

        navigator.advance(session)
        assert session.submitted
        assert len(sink.records) == 1
        navigator.advance(session)
        assert sink.calls == 2

    def test_answers_frozen_after_completion(self, linear_flow: FlowGraph) -> None:
        navigator = Navigator(linear_flow)
        session = navigator.new_session()
        while navigator.advance(session):
            pass
        assert not navigator.record_answer(session, "late", "value")
        assert "late" not in session.answers

    def test_completed_at_set(self, linear_flow: FlowGraph) -> None:
        sink = MemorySubmissionSink()
        navigator = Navigator(linear_flow, sink)
        session = navigator.new_session()
        while navigator.advance(session):
            pass
        assert session.completed_at is not None
        assert sink.records[0].completed_at == session.completed_at


class TestView:
    def test_welcome(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        view = navigator.view(navigator.new_session())
        assert view.position is Position.WELCOME
        assert view.section is None
        assert view.step == 0
        assert view.progress == 0.0
        assert not view.can_go_back

    def test_in_section(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        session = navigator.new_session()
        navigator.advance(session)
        view = navigator.view(session)
        assert view.position is Position.SECTION
        assert view.section is not None and view.section.id == "start"
        assert view.step == 1
        assert view.total == 4
        assert view.progress == pytest.approx(0.25)
        assert view.can_go_back

    def test_complete(self, linear_flow: FlowGraph) -> None:
        navigator = Navigator(linear_flow)
        session = navigator.new_session()
        while navigator.advance(session):
            pass
        view = navigator.view(session)
        assert view.position is Position.COMPLETE
        assert view.progress == 1.0
        assert view.section is None

    def test_report_uses_validator(self, branching_flow: FlowGraph) -> None:
        navigator = Navigator(branching_flow)
        assert navigator.report() is navigator.report()
        assert navigator.validator.hits == 1
