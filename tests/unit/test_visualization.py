"""Tests for flow graph visualization."""

from __future__ import annotations

from typing import TYPE_CHECKING

from intakeflow.visualization import build_flow_diagram, render_dot, render_mermaid
from tests.fixtures.flow_fixtures import make_flow, make_loop_flow, rule, when

if TYPE_CHECKING:
    from intakeflow.models import FlowGraph


class TestBuildFlowDiagram:
    def test_nodes_in_authoring_order(self, branching_flow: FlowGraph) -> None:
        diagram = build_flow_diagram(branching_flow)
        assert [n.id for n in diagram.nodes] == ["start", "x", "y", "end"]
        start, _, _, end = diagram.nodes
        assert start.is_entry and start.is_start
        assert end.is_ending
        assert start.block_count == 1

    def test_edge_labels(self, branching_flow: FlowGraph) -> None:
        diagram = build_flow_diagram(branching_flow)
        labels = [e.label for e in diagram.edges if e.from_id == "start"]
        assert labels == ["Kind = X", "Kind = Y", "otherwise"]

    def test_image_choice_uses_option_label(self) -> None:
        graph = make_flow(
            {
                "id": "a",
                "blocks": [
                    {
                        "id": "style",
                        "type": "image_choice",
                        "label": "Style",
                        "options": [{"id": "modern", "label": "Modern look"}],
                    }
                ],
                "routing": [when("style", "modern", "b")],
            },
            {"id": "b"},
        )
        (edge,) = build_flow_diagram(graph).edges
        assert edge.label == "Style = Modern look"

    def test_missing_targets_not_drawn(self) -> None:
        graph = make_flow({"id": "a", "routing": [rule("r", "ghost")]})
        assert build_flow_diagram(graph).edges == []

    def test_unreachable_marked(self) -> None:
        diagram = build_flow_diagram(make_loop_flow())
        assert [n.id for n in diagram.nodes if n.is_unreachable] == ["c"]

    def test_linear_edges_only_on_request(self) -> None:
        graph = make_flow({"id": "a"}, {"id": "b"})
        assert build_flow_diagram(graph).edges == []
        (edge,) = build_flow_diagram(graph, show_linear=True).edges
        assert edge.is_linear
        assert (edge.from_id, edge.to_id) == ("a", "b")

    def test_no_linear_edge_after_unconditional_rule(self, branching_flow: FlowGraph) -> None:
        diagram = build_flow_diagram(branching_flow, show_linear=True)
        assert not any(e.is_linear and e.from_id == "start" for e in diagram.edges)


class TestRenderers:
    def test_dot(self, branching_flow: FlowGraph) -> None:
        dot = render_dot(build_flow_diagram(branching_flow))
        assert dot.startswith("digraph flow {")
        assert '"start" -> "x" [label="Kind = X"];' in dot
        assert dot.rstrip().endswith("}")

    def test_dot_without_labels(self, branching_flow: FlowGraph) -> None:
        dot = render_dot(build_flow_diagram(branching_flow), no_labels=True)
        assert "Kind = X" not in dot

    def test_mermaid(self, branching_flow: FlowGraph) -> None:
        mermaid = render_mermaid(build_flow_diagram(branching_flow))
        assert mermaid.startswith("graph LR")
        assert 's_start -->|"Kind = X"| s_x' in mermaid
        assert "classDef start" in mermaid
        assert "linkStyle" in mermaid

    def test_mermaid_ids_are_safe(self) -> None:
        graph = make_flow({"id": "step-1 a"})
        mermaid = render_mermaid(build_flow_diagram(graph))
        assert "s_step_1_a" in mermaid
