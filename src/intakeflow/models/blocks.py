"""Block models.

A block is one input or presentational unit inside a section. Blocks are a
tagged union discriminated on ``type``; each kind carries only its own
fields. JSON uses camelCase keys (``inputType``, ``bookingUrl``), Python
attributes are snake_case.

Only two properties of a block matter to the flow graph:
- whether it is a selector (single/multi choice) that may drive routing
- its option set, the values a routing rule may compare against

Everything else is opaque to routing and exists so flows round-trip.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

InputType = Literal["short", "long", "select", "multi", "slider", "date", "file"]
BlockType = Literal[
    "context",
    "question",
    "image_choice",
    "image_moodboard",
    "this_not_this",
    "link_preview",
    "book_call",
    "heading",
    "divider",
    "image_display",
    "video_embed",
    "quote",
]

# Question input types that render as a choice between fixed options
SELECTOR_INPUT_TYPES: frozenset[str] = frozenset({"select", "multi"})


class FlowModel(BaseModel):
    """Base for all flow records: frozen, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class ContextBlock(FlowModel):
    """Free-standing explanatory text."""

    id: str = Field(min_length=1)
    type: Literal["context"] = "context"
    text: str = ""


class QuestionBlock(FlowModel):
    """A question answered with free text, a choice, a slider, a date or a file.

    Only ``select`` and ``multi`` questions are selectors.
    """

    id: str = Field(min_length=1)
    type: Literal["question"] = "question"
    label: str = ""
    helper_text: str | None = None
    required: bool = False
    input_type: InputType = "short"
    options: tuple[str, ...] | None = None


class ImageChoiceOption(FlowModel):
    """One selectable image; routing compares against ``id``."""

    id: str = Field(min_length=1)
    image_url: str = ""
    label: str | None = None


class ImageChoiceBlock(FlowModel):
    """Pick one (or several, with ``multi``) images from a fixed set."""

    id: str = Field(min_length=1)
    type: Literal["image_choice"] = "image_choice"
    label: str = ""
    helper_text: str | None = None
    required: bool = False
    multi: bool = False
    options: tuple[ImageChoiceOption, ...] = ()


class ImageItem(FlowModel):
    """An image tile shown by moodboard and this-not-this blocks."""

    id: str = Field(min_length=1)
    image_url: str = ""
    caption: str | None = None


class ImageMoodboardBlock(FlowModel):
    id: str = Field(min_length=1)
    type: Literal["image_moodboard"] = "image_moodboard"
    label: str = ""
    helper_text: str | None = None
    items: tuple[ImageItem, ...] = ()


class ThisNotThisBlock(FlowModel):
    id: str = Field(min_length=1)
    type: Literal["this_not_this"] = "this_not_this"
    label: str = ""
    helper_text: str | None = None
    items: tuple[ImageItem, ...] = ()


class LinkPreviewBlock(FlowModel):
    """Respondent-supplied links; ``max_items`` caps how many they may add."""

    id: str = Field(min_length=1)
    type: Literal["link_preview"] = "link_preview"
    label: str = ""
    helper_text: str | None = None
    required: bool = False
    max_items: int | None = None


class BookCallBlock(FlowModel):
    """A call-booking link.

    ``booking_url`` is kept as a plain string so malformed URLs load and can
    be reported by the validator. With ``required_to_continue`` set, the
    respondent must open the link before the navigator lets them advance.
    """

    id: str = Field(min_length=1)
    type: Literal["book_call"] = "book_call"
    title: str | None = None
    text: str | None = None
    booking_url: str = ""
    button_label: str | None = None
    open_in_new_tab: bool = False
    required_to_continue: bool = False


class HeadingBlock(FlowModel):
    id: str = Field(min_length=1)
    type: Literal["heading"] = "heading"
    text: str = ""
    level: Literal["h1", "h2", "h3"] = "h2"


class DividerBlock(FlowModel):
    id: str = Field(min_length=1)
    type: Literal["divider"] = "divider"
    style: Literal["solid", "dashed", "dotted"] = "solid"


class ImageDisplayBlock(FlowModel):
    id: str = Field(min_length=1)
    type: Literal["image_display"] = "image_display"
    image_url: str = ""
    alt: str | None = None
    caption: str | None = None


class VideoEmbedBlock(FlowModel):
    id: str = Field(min_length=1)
    type: Literal["video_embed"] = "video_embed"
    video_url: str = ""
    caption: str | None = None


class QuoteBlock(FlowModel):
    id: str = Field(min_length=1)
    type: Literal["quote"] = "quote"
    text: str = ""
    attribution: str | None = None


Block = Annotated[
    ContextBlock
    | QuestionBlock
    | ImageChoiceBlock
    | ImageMoodboardBlock
    | ThisNotThisBlock
    | LinkPreviewBlock
    | BookCallBlock
    | HeadingBlock
    | DividerBlock
    | ImageDisplayBlock
    | VideoEmbedBlock
    | QuoteBlock,
    Field(discriminator="type"),
]


def is_selector(block: Block) -> bool:
    """True if the block is a single/multi choice that can drive a branch."""
    if isinstance(block, QuestionBlock):
        return block.input_type in SELECTOR_INPUT_TYPES
    return isinstance(block, ImageChoiceBlock)


def is_multi_select(block: Block) -> bool:
    """True if the block's answer is a list of chosen options."""
    if isinstance(block, QuestionBlock):
        return block.input_type == "multi"
    if isinstance(block, ImageChoiceBlock):
        return block.multi
    return False


def option_values(block: Block) -> frozenset[str]:
    """Normalize a selector's options into a flat set of comparable values.

    Question options are compared by their text, image choices by option id.
    Non-selector blocks have no option set.
    """
    if isinstance(block, QuestionBlock):
        if block.input_type not in SELECTOR_INPUT_TYPES:
            return frozenset()
        return frozenset(block.options or ())
    if isinstance(block, ImageChoiceBlock):
        return frozenset(option.id for option in block.options)
    return frozenset()


def requires_interaction(block: Block) -> bool:
    """True if the respondent must interact with the block before advancing."""
    return isinstance(block, BookCallBlock) and block.required_to_continue
