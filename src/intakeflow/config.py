"""Project configuration loading.

An intake project is a directory holding ``intake.yaml``, the flow file it
names, and the submissions log completed sessions are appended to.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

from intakeflow.graph.validator import DEFAULT_CACHE_SIZE

CONFIG_FILENAME = "intake.yaml"
DEFAULT_FLOW_FILE = "flow.json"
DEFAULT_SUBMISSIONS_FILE = "submissions/submissions.jsonl"

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_bool(value: Any) -> bool:
    """YAML booleans pass through; quoted strings use the same words as the env override."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


@dataclass
class ProjectConfig:
    """Configuration for an intake project.

    Resolution order for ``flow`` and ``strict``:
    1. Environment variable (INTAKEFLOW_FLOW, INTAKEFLOW_STRICT)
    2. intake.yaml
    3. Defaults

    Attributes:
        name: Project name.
        version: Config format version.
        flow: Flow file path, relative to the project directory.
        submissions: JSONL submissions log, relative to the project directory.
        strict: Treat validator warnings as blocking when publishing.
        validation_cache_size: Reports kept by the memoizing validator.
    """

    name: str
    version: int = 1
    flow: str = DEFAULT_FLOW_FILE
    submissions: str = DEFAULT_SUBMISSIONS_FILE
    strict: bool = False
    validation_cache_size: int = DEFAULT_CACHE_SIZE

    def get_flow(self) -> str:
        return os.getenv("INTAKEFLOW_FLOW") or self.flow

    def get_strict(self) -> bool:
        env = os.getenv("INTAKEFLOW_STRICT")
        if env is not None:
            return _parse_bool(env)
        return self.strict

    def flow_path(self, project_path: Path) -> Path:
        return project_path / self.get_flow()

    def submissions_path(self, project_path: Path) -> Path:
        return project_path / self.submissions

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary containing config fields. ``validation`` may
                hold ``strict`` and ``cache_size``.

        Returns:
            ProjectConfig instance.

        Raises:
            ValueError: If ``cache_size`` is not a positive integer.
        """
        validation = dict(data.get("validation") or {})
        cache_size = int(validation.get("cache_size", DEFAULT_CACHE_SIZE))
        if cache_size < 1:
            raise ValueError(f"validation.cache_size must be positive, got {cache_size}")

        return cls(
            name=data.get("name", "unnamed"),
            version=data.get("version", 1),
            flow=data.get("flow", DEFAULT_FLOW_FILE),
            submissions=data.get("submissions", DEFAULT_SUBMISSIONS_FILE),
            strict=_parse_bool(validation.get("strict", False)),
            validation_cache_size=cache_size,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "flow": self.flow,
            "submissions": self.submissions,
            "validation": {
                "strict": self.strict,
                "cache_size": self.validation_cache_size,
            },
        }


class ProjectConfigError(Exception):
    """Raised when project configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load project config at {path}: {reason}")


def load_project_config(project_path: Path) -> ProjectConfig:
    """Load project configuration from intake.yaml.

    Args:
        project_path: Path to the project root directory.

    Returns:
        ProjectConfig instance.

    Raises:
        ProjectConfigError: If config cannot be loaded.
    """
    config_path = project_path / CONFIG_FILENAME

    if not config_path.exists():
        raise ProjectConfigError(config_path, "File not found")

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ProjectConfigError(config_path, "Empty file")

        return ProjectConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, ProjectConfigError):
            raise
        raise ProjectConfigError(config_path, str(e)) from e


def save_project_config(config: ProjectConfig, project_path: Path) -> Path:
    """Write intake.yaml into ``project_path``."""
    config_path = project_path / CONFIG_FILENAME
    yaml_writer = YAML()
    yaml_writer.default_flow_style = False
    with config_path.open("w", encoding="utf-8") as f:
        yaml_writer.dump(config.to_dict(), f)
    return config_path
