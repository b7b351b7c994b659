"""Tests for the answer schema derived from a flow."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from intakeflow.models import FlowGraph, build_answer_model, check_answers
from tests.fixtures.flow_fixtures import book_call_block, make_flow, select_block, text_block


@pytest.fixture
def answer_flow() -> FlowGraph:
    return make_flow(
        {
            "id": "about",
            "blocks": [
                {"id": "intro", "type": "context", "text": "Hello"},
                text_block("company-name", required=True),
                select_block("tags", "A", "B", multi=True),
            ],
        },
        {
            "id": "budget",
            "blocks": [
                {"id": "amount", "type": "question", "inputType": "slider", "required": True},
                book_call_block("call", required=True),
            ],
        },
    )


class TestBuildAnswerModel:
    def test_fields_aliased_by_block_id(self, answer_flow: FlowGraph) -> None:
        model = build_answer_model(answer_flow)
        aliases = {field.alias for field in model.model_fields.values()}
        assert aliases == {"company-name", "tags", "amount", "call"}

    def test_presentational_blocks_have_no_field(self, answer_flow: FlowGraph) -> None:
        model = build_answer_model(answer_flow)
        assert "intro" not in {field.alias for field in model.model_fields.values()}

    def test_valid_answers(self, answer_flow: FlowGraph) -> None:
        model = build_answer_model(answer_flow)
        parsed = model.model_validate(
            {"company-name": "Acme", "tags": ["A"], "amount": 5000, "call": True}
        )
        assert parsed.model_dump(by_alias=True)["company-name"] == "Acme"

    def test_required_text_rejects_empty(self, answer_flow: FlowGraph) -> None:
        model = build_answer_model(answer_flow)
        with pytest.raises(ValidationError):
            model.model_validate({"company-name": "", "amount": 1, "call": True})


class TestCheckAnswers:
    def test_missing_required(self, answer_flow: FlowGraph) -> None:
        problems = check_answers(answer_flow, {"tags": ["A"]})
        located = {problem.split(":")[0] for problem in problems}
        assert located == {"company-name", "amount", "call"}

    def test_unvisited_sections_not_required(self, answer_flow: FlowGraph) -> None:
        problems = check_answers(answer_flow, {"company-name": "Acme"}, visited=["about"])
        assert problems == []

    def test_wrong_type(self, answer_flow: FlowGraph) -> None:
        problems = check_answers(
            answer_flow,
            {"company-name": "Acme", "tags": "A", "amount": 1, "call": True},
        )
        assert [p.split(":")[0] for p in problems] == ["tags"]

    def test_unknown_keys_ignored(self, answer_flow: FlowGraph) -> None:
        answers = {"company-name": "Acme", "amount": 2, "call": True, "stray": 1}
        assert check_answers(answer_flow, answers) == []
