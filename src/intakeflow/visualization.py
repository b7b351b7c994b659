"""Flow graph visualization.

Extracts the section/rule structure of a flow and renders it as DOT
(Graphviz) or Mermaid markup. Only explicit routing rules are drawn; the
runtime's linear fallback is shown as a dotted edge when requested.
Pure graph analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from intakeflow.graph.algorithms import build_adjacency, reachable_from
from intakeflow.models.blocks import ImageChoiceBlock, QuestionBlock
from intakeflow.models.flow import find_block
from intakeflow.observability.logging import get_logger

if TYPE_CHECKING:
    from intakeflow.models.flow import FlowGraph, RoutingRule, Section

log = get_logger(__name__)

_START_COLOR = "#90EE90"  # light green
_ENDING_COLOR = "#FFB6C1"  # light pink
_UNREACHABLE_COLOR = "#D3D3D3"  # light grey
_SECTION_COLOR = "#ADD8E6"  # light blue
_FALLBACK_COLOR = "#6A5ACD"  # slate blue


@dataclass
class VizNode:
    """A section node in the visualization."""

    id: str
    label: str
    is_entry: bool = False
    is_start: bool = False
    is_ending: bool = False
    is_unreachable: bool = False
    block_count: int = 0


@dataclass
class VizEdge:
    """A routing edge in the visualization."""

    from_id: str
    to_id: str
    label: str = ""
    is_fallback: bool = False
    is_linear: bool = False


@dataclass
class FlowDiagram:
    """Complete visualization data extracted from a flow."""

    nodes: list[VizNode]
    edges: list[VizEdge] = field(default_factory=list)


def _rule_label(section: Section, rule: RoutingRule) -> str:
    if rule.operator == "any":
        return "otherwise"
    if rule.operator is None:
        return ""

    block = find_block(section, rule.from_block_id)
    value = rule.value or ""
    if isinstance(block, ImageChoiceBlock):
        for option in block.options:
            if option.id == value and option.label:
                value = option.label
                break
    if isinstance(block, (QuestionBlock, ImageChoiceBlock)) and block.label:
        return f"{_truncate(block.label, 24)} = {value}"
    return f"= {value}"


def build_flow_diagram(graph: FlowGraph, *, show_linear: bool = False) -> FlowDiagram:
    """Extract visualization data from a flow.

    Args:
        graph: The flow snapshot.
        show_linear: Also draw the implicit next-section fallback for
            sections whose rules never fire unconditionally.

    Returns:
        FlowDiagram with nodes in authoring order and edges in rule order.
    """
    adjacency = build_adjacency(graph)
    reachable = reachable_from(graph.sections[0].id, adjacency) if graph.sections else set()
    section_ids = set(graph.section_ids)

    nodes = [
        VizNode(
            id=section.id,
            label=_truncate(section.title or section.id, 40),
            is_entry=index == 0,
            is_start=not adjacency.incoming[section.id],
            is_ending=not adjacency.outgoing[section.id],
            is_unreachable=section.id not in reachable,
            block_count=len(section.blocks),
        )
        for index, section in enumerate(graph.sections)
    ]

    edges: list[VizEdge] = []
    for index, section in enumerate(graph.sections):
        for rule in section.routing:
            if rule.next_section_id not in section_ids:
                log.warning(
                    "viz_rule_target_missing",
                    section_id=section.id,
                    rule_id=rule.id,
                    target=rule.next_section_id,
                )
                continue
            edges.append(
                VizEdge(
                    from_id=section.id,
                    to_id=rule.next_section_id,
                    label=_rule_label(section, rule),
                    is_fallback=rule.operator != "equals",
                )
            )
        unconditional = any(rule.operator != "equals" for rule in section.routing)
        if show_linear and not unconditional and index + 1 < len(graph.sections):
            edges.append(
                VizEdge(
                    from_id=section.id,
                    to_id=graph.sections[index + 1].id,
                    is_linear=True,
                )
            )

    log.info("flow_diagram_built", nodes=len(nodes), edges=len(edges))
    return FlowDiagram(nodes=nodes, edges=edges)


def render_dot(diagram: FlowDiagram, *, no_labels: bool = False) -> str:
    """Render a FlowDiagram as DOT (Graphviz) markup.

    Args:
        diagram: Flow diagram data.
        no_labels: If True, omit condition labels on edges.

    Returns:
        DOT format string.
    """
    lines = [
        "digraph flow {",
        "  rankdir=LR;",
        '  node [fontname="Helvetica" fontsize=10 style="filled,solid"];',
        '  edge [fontname="Helvetica" fontsize=8];',
        "",
    ]

    for node in diagram.nodes:
        attrs = _dot_node_attrs(node)
        attr_str = " ".join(f"{k}={v}" for k, v in attrs.items())
        lines.append(f'  "{_dot_escape(node.id)}" [{attr_str}];')

    lines.append("")

    for edge in diagram.edges:
        edge_attrs: dict[str, str] = {}
        if not no_labels and edge.label:
            edge_attrs["label"] = f'"{_dot_escape(edge.label)}"'
        if edge.is_linear:
            edge_attrs["style"] = '"dotted"'
            edge_attrs["color"] = '"grey"'
        elif edge.is_fallback:
            edge_attrs["color"] = f'"{_FALLBACK_COLOR}"'
            edge_attrs["penwidth"] = '"2"'
        edge_attr_str = " ".join(f"{k}={v}" for k, v in edge_attrs.items())
        suffix = f" [{edge_attr_str}]" if edge_attr_str else ""
        lines.append(f'  "{_dot_escape(edge.from_id)}" -> "{_dot_escape(edge.to_id)}"{suffix};')

    lines.append("}")
    return "\n".join(lines)


def render_mermaid(diagram: FlowDiagram, *, no_labels: bool = False) -> str:
    """Render a FlowDiagram as Mermaid markup.

    Args:
        diagram: Flow diagram data.
        no_labels: If True, omit condition labels on edges.

    Returns:
        Mermaid format string.
    """
    lines = ["graph LR"]

    for node in diagram.nodes:
        safe_id = _mermaid_id(node.id)
        label = _mermaid_escape(node.label)
        if node.is_unreachable:
            lines.append(f'  {safe_id}["{label}"]:::unreachable')
        elif node.is_entry or node.is_start:
            lines.append(f'  {safe_id}(["{label}"]):::start')
        elif node.is_ending:
            lines.append(f'  {safe_id}["{label}"]:::ending')
        else:
            lines.append(f'  {safe_id}["{label}"]')

    lines.append("")

    for edge in diagram.edges:
        src = _mermaid_id(edge.from_id)
        dst = _mermaid_id(edge.to_id)
        arrow = "-.->" if edge.is_linear else "-->"
        if not no_labels and edge.label:
            label = _mermaid_escape(edge.label)
            lines.append(f'  {src} {arrow}|"{label}"| {dst}')
        else:
            lines.append(f"  {src} {arrow} {dst}")

    lines.append("")
    lines.append(f"  classDef start fill:{_START_COLOR},stroke:#333")
    lines.append(f"  classDef ending fill:{_ENDING_COLOR},stroke:#333")
    lines.append(f"  classDef unreachable fill:{_UNREACHABLE_COLOR},stroke:#999,stroke-dasharray:4")
    fallback_indices = [
        i for i, e in enumerate(diagram.edges) if e.is_fallback and not e.is_linear
    ]
    if fallback_indices:
        idx_list = ",".join(str(i) for i in fallback_indices)
        lines.append(f"  linkStyle {idx_list} stroke:{_FALLBACK_COLOR},stroke-width:2px")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _truncate(text: str, max_len: int) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _dot_node_attrs(node: VizNode) -> dict[str, str]:
    """Build DOT attribute dict for a node."""
    attrs: dict[str, str] = {}

    if node.is_entry:
        attrs["shape"] = "doubleoctagon"
        attrs["fillcolor"] = f'"{_START_COLOR}"'
    elif node.is_unreachable:
        attrs["shape"] = "box"
        attrs["fillcolor"] = f'"{_UNREACHABLE_COLOR}"'
        attrs["style"] = '"filled,dashed"'
    elif node.is_ending:
        attrs["shape"] = "octagon"
        attrs["fillcolor"] = f'"{_ENDING_COLOR}"'
    else:
        attrs["shape"] = "box"
        attrs["fillcolor"] = f'"{_SECTION_COLOR}"'

    attrs["label"] = f'"{_dot_escape(node.label)}"'
    return attrs


def _dot_escape(text: str) -> str:
    """Escape special characters for DOT labels."""
    return text.replace('"', '\\"').replace("\n", "\\n")


def _mermaid_id(node_id: str) -> str:
    """Convert a section id to a Mermaid-safe identifier."""
    safe = "".join(ch if ch.isalnum() or ch == "_" else "_" for ch in node_id)
    return f"s_{safe}"


def _mermaid_escape(text: str) -> str:
    """Escape special characters for Mermaid labels."""
    return text.replace('"', "&quot;").replace("\n", " ")
