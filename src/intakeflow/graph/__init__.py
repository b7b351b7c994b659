"""Flow graph analysis: structural validation, graph algorithms, file storage."""

from intakeflow.graph.errors import FlowGraphError, FlowLoadError, SectionNotFoundError
from intakeflow.graph.store import load_flow, parse_flow, save_flow
from intakeflow.graph.validation_types import (
    FlowValidationReport,
    ValidationIssue,
    ValidationStats,
)
from intakeflow.graph.validator import CachedValidator, structural_hash, validate_flow

__all__ = [
    "CachedValidator",
    "FlowGraphError",
    "FlowLoadError",
    "FlowValidationReport",
    "SectionNotFoundError",
    "ValidationIssue",
    "ValidationStats",
    "load_flow",
    "parse_flow",
    "save_flow",
    "structural_hash",
    "validate_flow",
]
