"""Pydantic models for intake flows.

A flow is an ordered list of sections; each section owns blocks (tagged on
``type``) and routing rules. These are the records an editor saves and the
validator and navigator read. All models are frozen snapshots.
"""

from intakeflow.models.answers import build_answer_model, check_answers
from intakeflow.models.blocks import (
    Block,
    BlockType,
    BookCallBlock,
    ContextBlock,
    DividerBlock,
    HeadingBlock,
    ImageChoiceBlock,
    ImageChoiceOption,
    ImageDisplayBlock,
    ImageItem,
    ImageMoodboardBlock,
    InputType,
    LinkPreviewBlock,
    QuestionBlock,
    QuoteBlock,
    ThisNotThisBlock,
    VideoEmbedBlock,
    is_multi_select,
    is_selector,
    option_values,
    requires_interaction,
)
from intakeflow.models.flow import (
    FlowGraph,
    IntakeMetadata,
    RoutingRule,
    RuleOperator,
    Section,
    find_block,
    outgoing_rules,
)

__all__ = [
    "Block",
    "BlockType",
    "BookCallBlock",
    "ContextBlock",
    "DividerBlock",
    "FlowGraph",
    "HeadingBlock",
    "ImageChoiceBlock",
    "ImageChoiceOption",
    "ImageDisplayBlock",
    "ImageItem",
    "ImageMoodboardBlock",
    "InputType",
    "IntakeMetadata",
    "LinkPreviewBlock",
    "QuestionBlock",
    "QuoteBlock",
    "RoutingRule",
    "RuleOperator",
    "Section",
    "ThisNotThisBlock",
    "VideoEmbedBlock",
    "build_answer_model",
    "check_answers",
    "find_block",
    "is_multi_select",
    "is_selector",
    "option_values",
    "outgoing_rules",
    "requires_interaction",
]
