"""Structural validation for intake flows.

Proves a flow is well-formed before publish. Pure and deterministic: a
FlowGraph snapshot goes in, a FlowValidationReport comes out, nothing is
mutated and nothing is raised.

Findings have two severities:
- errors block publishing (empty flow, duplicate ids, dangling targets,
  broken conditions, duplicate fallbacks, malformed option sets, bad
  booking URLs, no start section)
- warnings are advisory (multiple starts, no end, unreachable sections,
  loops, degenerate block settings)

All graph checks reason over explicit routing rules only. The navigator's
linear fallback can still carry a respondent into a section reported as
unreachable here; that fallback is a last resort and is not counted.
Loops are warnings because the navigator's cycle guard never revisits a
section.
"""

from __future__ import annotations

import hashlib
from collections import OrderedDict
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from intakeflow.graph.algorithms import (
    build_adjacency,
    find_back_edge,
    find_end_sections,
    find_start_sections,
    reachable_from,
)
from intakeflow.graph.validation_types import (
    FlowValidationReport,
    ValidationIssue,
    ValidationStats,
)
from intakeflow.models.blocks import (
    SELECTOR_INPUT_TYPES,
    BookCallBlock,
    ImageChoiceBlock,
    LinkPreviewBlock,
    QuestionBlock,
    is_selector,
    option_values,
)
from intakeflow.models.flow import find_block
from intakeflow.observability.logging import get_logger

if TYPE_CHECKING:
    from intakeflow.models.blocks import Block
    from intakeflow.models.flow import FlowGraph, Section

log = get_logger(__name__)

DEFAULT_CACHE_SIZE = 64
MIN_CHOICE_OPTIONS = 2

__all__ = [
    "DEFAULT_CACHE_SIZE",
    "CachedValidator",
    "check_blocks",
    "check_options",
    "check_rules",
    "check_unique_ids",
    "is_valid_booking_url",
    "structural_hash",
    "validate_flow",
]


def is_valid_booking_url(url: str | None) -> bool:
    """True for an absolute ``http``/``https`` URL with a host."""
    if not url or url != url.strip():
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def _label(section: Section) -> str:
    return section.title or "Untitled Section"


def check_unique_ids(graph: FlowGraph) -> list[ValidationIssue]:
    """Section ids, and block ids across the whole flow, must each appear once.

    Every repeat is reported at its own location; the first occurrence is
    the one rules and answers resolve to.
    """
    errors: list[ValidationIssue] = []
    seen_sections: set[str] = set()
    seen_blocks: set[str] = set()

    for section in graph.sections:
        if section.id in seen_sections:
            errors.append(
                ValidationIssue(
                    "error",
                    "duplicate_section_id",
                    f"Section id '{section.id}' is used more than once.",
                    section_id=section.id,
                )
            )
        seen_sections.add(section.id)

        for block in section.blocks:
            if block.id in seen_blocks:
                errors.append(
                    ValidationIssue(
                        "error",
                        "duplicate_block_id",
                        f"Block id '{block.id}' is used more than once.",
                        section_id=section.id,
                        block_id=block.id,
                    )
                )
            seen_blocks.add(block.id)
    return errors


def check_rules(section: Section, section_ids: set[str]) -> list[ValidationIssue]:
    """Referential and conditional integrity of one section's rules."""
    errors: list[ValidationIssue] = []
    fallback_count = 0

    for rule in section.routing:
        if rule.next_section_id not in section_ids:
            errors.append(
                ValidationIssue(
                    "error",
                    "dangling_target",
                    f"Routing rule '{rule.id}' points to a missing section "
                    f"'{rule.next_section_id}'.",
                    section_id=section.id,
                )
            )

        if rule.is_fallback:
            fallback_count += 1
            continue
        if not rule.is_conditional:
            continue

        block = find_block(section, rule.from_block_id)
        if block is None:
            errors.append(
                ValidationIssue(
                    "error",
                    "missing_block",
                    "Routing rule references a missing question.",
                    section_id=section.id,
                    block_id=rule.from_block_id,
                )
            )
        elif not is_selector(block):
            errors.append(
                ValidationIssue(
                    "error",
                    "non_selector_condition",
                    "Routing rule references a non-select block.",
                    section_id=section.id,
                    block_id=block.id,
                )
            )
        elif rule.value is None or rule.value not in option_values(block):
            errors.append(
                ValidationIssue(
                    "error",
                    "value_not_in_options",
                    f"Routing condition value '{rule.value}' does not exist in options.",
                    section_id=section.id,
                    block_id=block.id,
                )
            )

    if fallback_count > 1:
        errors.append(
            ValidationIssue(
                "error",
                "duplicate_fallback",
                f"Section has {fallback_count} fallback ('any') routes. Only one is allowed.",
                section_id=section.id,
            )
        )
    return errors


def check_options(section: Section, block: Block) -> list[ValidationIssue]:
    """Option-set shape: choices need at least two options, other inputs none."""
    if isinstance(block, ImageChoiceBlock):
        count = len(block.options)
    elif isinstance(block, QuestionBlock) and block.input_type in SELECTOR_INPUT_TYPES:
        count = len(block.options or ())
    elif isinstance(block, QuestionBlock) and block.input_type != "slider" and block.options:
        return [
            ValidationIssue(
                "error",
                "unexpected_options",
                f"Question '{block.id}' has input type '{block.input_type}', "
                "which does not take options.",
                section_id=section.id,
                block_id=block.id,
            )
        ]
    else:
        return []

    if count >= MIN_CHOICE_OPTIONS:
        return []
    return [
        ValidationIssue(
            "error",
            "too_few_options",
            f"Choice block '{block.id}' needs at least {MIN_CHOICE_OPTIONS} options "
            f"(has {count}).",
            section_id=section.id,
            block_id=block.id,
        )
    ]


def check_blocks(section: Section) -> list[ValidationIssue]:
    """Kind-specific block checks that do not depend on edges."""
    issues: list[ValidationIssue] = []
    label = _label(section)

    for block in section.blocks:
        issues.extend(check_options(section, block))
        if isinstance(block, BookCallBlock):
            if not block.booking_url:
                issues.append(
                    ValidationIssue(
                        "error",
                        "missing_booking_url",
                        f'"Book a Call" block in "{label}" is missing a booking URL.',
                        section_id=section.id,
                        block_id=block.id,
                    )
                )
            elif not is_valid_booking_url(block.booking_url):
                issues.append(
                    ValidationIssue(
                        "error",
                        "invalid_booking_url",
                        f'"Book a Call" block in "{label}" has an invalid URL. '
                        "Must be http:// or https://.",
                        section_id=section.id,
                        block_id=block.id,
                    )
                )
        elif isinstance(block, LinkPreviewBlock):
            if block.max_items is not None and block.max_items <= 0:
                issues.append(
                    ValidationIssue(
                        "warning",
                        "non_positive_max_items",
                        f'"Link Preview" block in "{label}" has max links set to '
                        f"{block.max_items}.",
                        section_id=section.id,
                        block_id=block.id,
                    )
                )
    return issues


def validate_flow(graph: FlowGraph) -> FlowValidationReport:
    """Validate a flow snapshot.

    Args:
        graph: The flow to check.

    Returns:
        Report with blocking errors, advisory warnings and structural stats.
        ``is_valid`` is true iff there are no errors.
    """
    if not graph.sections:
        return FlowValidationReport(
            errors=(
                ValidationIssue("error", "empty_flow", "Flow must have at least one section."),
            ),
        )

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    section_ids = set(graph.section_ids)
    adjacency = build_adjacency(graph)

    errors.extend(check_unique_ids(graph))
    for section in graph.sections:
        errors.extend(check_rules(section, section_ids))
    for section in graph.sections:
        for issue in check_blocks(section):
            (errors if issue.severity == "error" else warnings).append(issue)

    start_sections = find_start_sections(graph, adjacency)
    if not start_sections:
        errors.append(
            ValidationIssue(
                "error",
                "no_start",
                "Flow has no clear start section (infinite loop likely).",
            )
        )
    elif len(start_sections) > 1:
        warnings.append(
            ValidationIssue(
                "warning",
                "multiple_starts",
                f"Multiple start sections detected ({len(start_sections)}). "
                "Only the first one will be shown initially.",
                section_id=start_sections[0],
            )
        )

    end_sections = find_end_sections(graph, adjacency)
    if not end_sections:
        warnings.append(
            ValidationIssue(
                "warning",
                "no_end",
                "No end sections defined (flow might loop forever).",
            )
        )

    # The entry node is the first authored section, by convention
    entry = graph.sections[0].id
    reachable = reachable_from(entry, adjacency)
    unreachable = [sid for sid in graph.section_ids if sid not in reachable]
    if unreachable:
        warnings.append(
            ValidationIssue(
                "warning",
                "unreachable_sections",
                f"{len(unreachable)} section(s) are unreachable from the start.",
                section_id=unreachable[0],
            )
        )

    back_edge = find_back_edge(entry, adjacency)
    if back_edge is not None:
        warnings.append(
            ValidationIssue(
                "warning",
                "cycle",
                "This flow contains a loop.",
                section_id=back_edge[0],
            )
        )

    report = FlowValidationReport(
        errors=tuple(errors),
        warnings=tuple(warnings),
        stats=ValidationStats(
            start_sections=tuple(start_sections),
            end_sections=tuple(end_sections),
            unreachable_sections=tuple(unreachable),
            total_sections=len(graph.sections),
            total_rules=sum(len(s.routing) for s in graph.sections),
            has_cycle=back_edge is not None,
        ),
    )
    log.debug(
        "flow_validated",
        sections=len(graph.sections),
        errors=len(report.errors),
        warnings=len(report.warnings),
    )
    return report


def structural_hash(graph: FlowGraph) -> str:
    """SHA-256 of the flow's canonical JSON dump.

    Equal for any two snapshots with the same sections, blocks, rules and
    metadata in the same order.
    """
    payload = graph.model_dump_json(by_alias=True, exclude_none=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CachedValidator:
    """validate_flow memoized on the flow's structural hash.

    Editors re-validate on every change; identical snapshots (undo, no-op
    edits, re-renders) reuse the previous report. Bounded LRU.
    """

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self.maxsize = maxsize
        self.hits = 0
        self.misses = 0
        self._reports: OrderedDict[str, FlowValidationReport] = OrderedDict()

    def __len__(self) -> int:
        return len(self._reports)

    def validate(self, graph: FlowGraph) -> FlowValidationReport:
        key = structural_hash(graph)
        cached = self._reports.get(key)
        if cached is not None:
            self._reports.move_to_end(key)
            self.hits += 1
            return cached

        self.misses += 1
        report = validate_flow(graph)
        self._reports[key] = report
        if len(self._reports) > self.maxsize:
            self._reports.popitem(last=False)
        return report

    def clear(self) -> None:
        self._reports.clear()
        self.hits = 0
        self.misses = 0
