"""Flow graph error types.

Lookup and load failures raised to callers that work with flow files
directly (the CLI, storage adapters). The validator and navigator never
raise these: authoring defects surface as validation issues, and the
navigator degrades to linear progression.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches
from pathlib import Path  # noqa: TC003 - dataclass field type


class FlowGraphError(Exception):
    """Base class for flow graph failures.

    Subclasses implement to_feedback() to give an author-facing explanation.
    """

    def to_feedback(self) -> str:
        """Format the error as an actionable message for an author."""
        raise NotImplementedError


@dataclass
class SectionNotFoundError(FlowGraphError):
    """Raised when looking up a section id that is not in the flow.

    Attributes:
        section_id: The id that was requested.
        available: Section ids present in the flow.
        context: Where the reference occurred.
    """

    section_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Section '{self.section_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        super().__init__(msg)

    def suggestions(self) -> list[str]:
        """Find similar ids that might be typos."""
        return get_close_matches(self.section_id, self.available, n=3, cutoff=0.6)

    def to_feedback(self) -> str:
        lines = [f"Section `{self.section_id}` does not exist in this flow."]
        if self.context:
            lines.append(f"Context: {self.context}")

        suggestions = self.suggestions()
        if suggestions:
            lines.append("Did you mean: " + ", ".join(f"`{s}`" for s in suggestions) + "?")

        if self.available:
            shown = self.available[:20]
            lines.append("Valid section ids: " + ", ".join(f"`{s}`" for s in shown))
            if len(self.available) > 20:
                lines.append(f"... and {len(self.available) - 20} more")
        return "\n".join(lines)


@dataclass
class FlowLoadError(FlowGraphError):
    """Raised when a flow file cannot be read or parsed.

    Attributes:
        path: The file that failed to load.
        reason: What went wrong.
    """

    path: Path
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Failed to load flow at {self.path}: {self.reason}")

    def to_feedback(self) -> str:
        return (
            f"Could not load `{self.path}`.\n"
            f"Reason: {self.reason}\n"
            "Check that the file is JSON or YAML with a top-level `sections` list."
        )
