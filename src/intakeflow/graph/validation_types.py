"""Validation report types returned by the flow validator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class ValidationIssue:
    """A single validator finding.

    Attributes:
        severity: "error" blocks publishing; "warning" is advisory.
        code: Stable identifier for the kind of finding.
        message: Human-readable description.
        section_id: Section the finding points at, if any.
        block_id: Block the finding points at, if any.
    """

    severity: Severity
    code: str
    message: str
    section_id: str | None = None
    block_id: str | None = None

    @property
    def locator(self) -> dict[str, str | None]:
        """Position a UI can jump to, as ``{sectionId, blockId}``."""
        return {"sectionId": self.section_id, "blockId": self.block_id}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.severity, "code": self.code, "message": self.message}
        if self.section_id is not None:
            data["sectionId"] = self.section_id
        if self.block_id is not None:
            data["blockId"] = self.block_id
        return data


@dataclass(frozen=True)
class ValidationStats:
    """Structural facts computed while validating.

    Attributes:
        start_sections: Sections with no explicit incoming rule.
        end_sections: Sections with no explicit outgoing rule.
        unreachable_sections: Sections not reachable from the entry node
            over explicit rules.
        total_sections: Number of sections in the flow.
        total_rules: Number of routing rules across all sections.
        has_cycle: True if the explicit graph contains a loop reachable
            from the entry node.
    """

    start_sections: tuple[str, ...] = ()
    end_sections: tuple[str, ...] = ()
    unreachable_sections: tuple[str, ...] = ()
    total_sections: int = 0
    total_rules: int = 0
    has_cycle: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "startSections": list(self.start_sections),
            "endSections": list(self.end_sections),
            "unreachableSections": list(self.unreachable_sections),
            "totalSections": self.total_sections,
            "totalRules": self.total_rules,
            "hasCycle": self.has_cycle,
        }


@dataclass(frozen=True)
class FlowValidationReport:
    """Aggregated validator output.

    Warnings never block publishing; ``is_valid`` depends on errors only.
    """

    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    stats: ValidationStats = field(default_factory=ValidationStats)

    @property
    def is_valid(self) -> bool:
        """True iff there are no blocking errors."""
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def issues(self) -> tuple[ValidationIssue, ...]:
        """Errors first, then warnings."""
        return self.errors + self.warnings

    def codes(self) -> list[str]:
        return [issue.code for issue in self.issues]

    def is_publishable(self, *, strict: bool = False) -> bool:
        """Whether the flow may be published; ``strict`` also rejects warnings."""
        if strict:
            return self.is_valid and not self.has_warnings
        return self.is_valid

    @property
    def summary(self) -> str:
        """Human-readable summary of the report."""
        parts: list[str] = []
        if self.errors:
            parts.append(f"{len(self.errors)} errors")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warnings")
        if not parts:
            return "no issues"
        return ", ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "stats": self.stats.to_dict(),
        }
