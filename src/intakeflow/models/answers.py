"""Answer schema derived from a flow.

Builds a pydantic model with one field per answerable block so a finished
session's answers can be checked before they are handed to storage. Fields
are keyed by block id. Presentational blocks (context, heading, divider,
images, video, quote, moodboard boards) contribute no field.

Missing answers for blocks that sit on branches the respondent never
visited are expected, so callers pass ``visited`` to restrict required
checks to sections that were actually shown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from intakeflow.models.blocks import (
    BookCallBlock,
    ImageChoiceBlock,
    LinkPreviewBlock,
    QuestionBlock,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from intakeflow.models.blocks import Block
    from intakeflow.models.flow import FlowGraph


class AnswerSet(BaseModel):
    """Base for generated answer models; unknown block ids are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _answer_type(block: Block) -> tuple[Any, bool] | None:
    """Return ``(annotation, required)`` for an answerable block, else None."""
    if isinstance(block, QuestionBlock):
        if block.input_type == "multi":
            return list[str], block.required
        if block.input_type == "slider":
            return float, block.required
        return str, block.required
    if isinstance(block, ImageChoiceBlock):
        return (list[str] if block.multi else str), block.required
    if isinstance(block, LinkPreviewBlock):
        return list[Any], block.required
    if isinstance(block, BookCallBlock):
        return bool, block.required_to_continue
    return None


def build_answer_model(
    graph: FlowGraph,
    *,
    visited: Iterable[str] | None = None,
) -> type[AnswerSet]:
    """Create a pydantic model describing valid answers for ``graph``.

    Block ids are not always valid identifiers, so each field gets a
    positional name and the block id as its alias.

    Args:
        graph: The flow snapshot.
        visited: Section ids the respondent actually saw. Required-ness is
            only enforced for blocks in these sections. ``None`` enforces it
            everywhere.

    Returns:
        A model class whose field aliases are the answerable block ids.
    """
    seen = set(visited) if visited is not None else None
    fields: dict[str, Any] = {}
    for section in graph.sections:
        enforce = seen is None or section.id in seen
        for block in section.blocks:
            answer_type = _answer_type(block)
            if answer_type is None:
                continue
            annotation, required = answer_type
            name = f"block_{len(fields)}"
            if required and enforce:
                if annotation is bool:
                    fields[name] = (bool, Field(alias=block.id))
                elif annotation is float:
                    fields[name] = (float, Field(alias=block.id))
                else:
                    fields[name] = (annotation, Field(alias=block.id, min_length=1))
            else:
                fields[name] = (annotation | None, Field(default=None, alias=block.id))

    return create_model("Answers", __base__=AnswerSet, **fields)


def check_answers(
    graph: FlowGraph,
    answers: Mapping[str, Any],
    *,
    visited: Iterable[str] | None = None,
) -> list[str]:
    """Check captured answers against the flow's answer schema.

    Returns:
        Human-readable problems, one per offending block. Empty when the
        answers are acceptable.
    """
    model = build_answer_model(graph, visited=visited)
    try:
        model.model_validate(dict(answers))
    except ValidationError as e:
        problems = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            problems.append(f"{location}: {error['msg']}")
        return problems
    return []
