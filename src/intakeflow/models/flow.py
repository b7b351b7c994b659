"""Flow graph models.

A flow is an ordered sequence of sections. Each section owns its blocks and
its routing rules (the graph's edges). Section order is both the authoring
order and the runtime's implicit "next" fallback, and the first section is
always the entry node; there is no separately configurable entry point.

Models are frozen: a FlowGraph is an immutable snapshot that the validator
and navigator only read.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, Field, model_validator

from intakeflow.models.blocks import Block, FlowModel

RuleOperator = Literal["equals", "any"]


class RoutingRule(FlowModel):
    """A directed, optionally conditional edge to ``next_section_id``.

    ``equals`` rules fire when the answer to ``from_block_id`` equals
    ``value``. ``any`` is the section's unconditional fallback. A rule with
    no operator is a legacy unconditioned default, treated like ``any``.
    """

    id: str = Field(min_length=1)
    operator: RuleOperator | None = None
    from_block_id: str | None = None
    value: str | None = None
    next_section_id: str = ""

    @property
    def is_conditional(self) -> bool:
        return self.operator == "equals"

    @property
    def is_fallback(self) -> bool:
        return self.operator == "any"


class Section(FlowModel):
    """One step of the flow.

    ``description`` doubles as the section's introductory screen: when it is
    set, the navigator shows an intro before the section's blocks.
    """

    id: str = Field(min_length=1)
    title: str = ""
    description: str | None = None
    blocks: tuple[Block, ...] = ()
    routing: tuple[RoutingRule, ...] = Field(
        default=(),
        validation_alias=AliasChoices("routing", "routingRules", "routing_rules"),
        serialization_alias="routing",
    )
    style: dict[str, Any] | None = None

    @property
    def has_intro(self) -> bool:
        return bool(self.description)

    @model_validator(mode="before")
    @classmethod
    def _null_routing_is_empty(cls, data: Any) -> Any:
        """Editors save ``routing: null`` for sections without rules."""
        if isinstance(data, dict):
            for key in ("routing", "routingRules", "routing_rules"):
                if key in data and data[key] is None:
                    data = {**data, key: []}
        return data


class IntakeMetadata(FlowModel):
    """Author-facing flow metadata. Irrelevant to routing."""

    title: str = ""
    description: str | None = None
    estimated_time: str | None = None
    completion_text: str | None = None
    completion_next_steps: str | None = None
    completion_button_label: str | None = None
    completion_button_url: str | None = None
    slug: str | None = None
    mode: Literal["guided", "document"] = "guided"


class FlowGraph(FlowModel):
    """An ordered sequence of sections plus the rules they own."""

    sections: tuple[Section, ...] = ()
    metadata: IntakeMetadata = Field(default_factory=IntakeMetadata)

    @property
    def entry_section(self) -> Section | None:
        """The first authored section, or None for an empty flow."""
        return self.sections[0] if self.sections else None

    @property
    def section_ids(self) -> list[str]:
        return [s.id for s in self.sections]

    def section_index(self, section_id: str) -> int | None:
        """Position of a section in authoring order, or None if absent."""
        for index, section in enumerate(self.sections):
            if section.id == section_id:
                return index
        return None

    def has_section(self, section_id: str) -> bool:
        return self.section_index(section_id) is not None

    def get_section(self, section_id: str) -> Section:
        """Look up a section by id.

        Raises:
            SectionNotFoundError: If no section has this id.
        """
        # Import here to avoid circular dependency
        from intakeflow.graph.errors import SectionNotFoundError

        index = self.section_index(section_id)
        if index is None:
            raise SectionNotFoundError(section_id, available=self.section_ids)
        return self.sections[index]

    def to_json(self, *, indent: int | None = 2) -> str:
        """Serialize with camelCase keys, preserving section/block/rule order."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


def outgoing_rules(section: Section) -> tuple[RoutingRule, ...]:
    """A section's routing rules in declared (priority) order."""
    return section.routing


def find_block(section: Section, block_id: str | None) -> Block | None:
    """Resolve a block id within a single section."""
    if block_id is None:
        return None
    for block in section.blocks:
        if block.id == block_id:
            return block
    return None
