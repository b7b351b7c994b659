"""Flow file storage.

Reads and writes FlowGraph snapshots as JSON or YAML. The file layout is
the editor's export: a top-level mapping with a ``sections`` list and an
optional ``metadata`` mapping. Extra keys (``edges``, ``publishedAt``,
``slug``) are ignored on load.

Section, block and rule order is preserved in both directions; rule order
decides ``equals`` priority at runtime.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from intakeflow.graph.errors import FlowLoadError
from intakeflow.models.flow import FlowGraph
from intakeflow.observability.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")
SUPPORTED_SUFFIXES = (".json", *YAML_SUFFIXES)


def parse_flow(data: Any, *, source: Path) -> FlowGraph:
    """Build a FlowGraph from already-decoded file content.

    A bare list is accepted as the section list.

    Raises:
        FlowLoadError: If the content does not describe a flow.
    """
    if isinstance(data, list):
        data = {"sections": data}
    if not isinstance(data, dict):
        raise FlowLoadError(source, "Top-level value must be a mapping or a list of sections")
    if "sections" not in data:
        raise FlowLoadError(source, "Missing 'sections' key")

    try:
        return FlowGraph.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise FlowLoadError(
            source, f"{e.error_count()} validation error(s); first at {location}: {first['msg']}"
        ) from e


def load_flow(path: Path) -> FlowGraph:
    """Load a flow from a ``.json``, ``.yaml`` or ``.yml`` file.

    Raises:
        FlowLoadError: If the file is missing, unreadable or malformed.
    """
    if not path.exists():
        raise FlowLoadError(path, "File not found")
    if path.suffix not in SUPPORTED_SUFFIXES:
        raise FlowLoadError(path, f"Unsupported file type '{path.suffix}'")

    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix in YAML_SUFFIXES:
                data = YAML(typ="safe").load(f)
            else:
                data = json.load(f)
    except OSError as e:
        raise FlowLoadError(path, str(e)) from e
    except (json.JSONDecodeError, YAMLError) as e:
        raise FlowLoadError(path, f"Parse error: {e}") from e

    if data is None:
        raise FlowLoadError(path, "Empty file")

    graph = parse_flow(data, source=path)
    log.debug("flow_loaded", path=str(path), sections=len(graph.sections))
    return graph


def save_flow(graph: FlowGraph, path: Path) -> Path:
    """Write a flow as JSON or YAML, chosen by file suffix.

    Returns:
        The path written.

    Raises:
        ValueError: If the suffix is not supported.
    """
    if path.suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported flow file type: {path.suffix}")

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix in YAML_SUFFIXES:
        yaml = YAML()
        yaml.default_flow_style = False
        data = graph.model_dump(mode="json", by_alias=True, exclude_none=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
    else:
        path.write_text(graph.to_json() + "\n", encoding="utf-8")

    log.debug("flow_saved", path=str(path), sections=len(graph.sections))
    return path
