"""Graph algorithms over a flow's explicit routing rules.

Pure functions that read a FlowGraph without modifying it. Adjacency is
built strictly from declared rules; the navigator's implicit "advance to
the next section" fallback is never an edge here. That fallback is a
last-resort runtime mechanism the structural checks deliberately ignore.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from intakeflow.models.flow import FlowGraph


@dataclass
class Adjacency:
    """Explicit incoming/outgoing edges per section.

    Both maps contain every section id, with targets in rule order.
    Duplicate targets are kept, so lists count rules rather than
    distinct neighbours.
    """

    outgoing: dict[str, list[str]] = field(default_factory=dict)
    incoming: dict[str, list[str]] = field(default_factory=dict)


def build_adjacency(graph: FlowGraph) -> Adjacency:
    """Build explicit adjacency from routing rules whose target exists.

    Rules pointing at unknown sections are skipped; the validator reports
    them separately.
    """
    ids = set(graph.section_ids)
    adjacency = Adjacency(
        outgoing={s.id: [] for s in graph.sections},
        incoming={s.id: [] for s in graph.sections},
    )
    for section in graph.sections:
        for rule in section.routing:
            target = rule.next_section_id
            if target in ids:
                adjacency.outgoing[section.id].append(target)
                adjacency.incoming[target].append(section.id)
    return adjacency


def find_start_sections(graph: FlowGraph, adjacency: Adjacency) -> list[str]:
    """Sections with zero explicit incoming edges, in authoring order."""
    return [s.id for s in graph.sections if not adjacency.incoming[s.id]]


def find_end_sections(graph: FlowGraph, adjacency: Adjacency) -> list[str]:
    """Sections with zero explicit outgoing edges, in authoring order."""
    return [s.id for s in graph.sections if not adjacency.outgoing[s.id]]


def reachable_from(start: str, adjacency: Adjacency) -> set[str]:
    """Breadth-first set of sections reachable from ``start`` (inclusive)."""
    reachable = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for successor in adjacency.outgoing.get(current, []):
            if successor not in reachable:
                reachable.add(successor)
                queue.append(successor)
    return reachable


def find_back_edge(start: str, adjacency: Adjacency) -> tuple[str, str] | None:
    """Depth-first search for a cycle reachable from ``start``.

    Iterative so long flows cannot exhaust the interpreter's recursion
    limit. Tracks the active recursion stack explicitly; an edge into a
    section on that stack closes a loop.

    Returns:
        The first ``(from_id, to_id)`` back edge found, or None if the
        explicit graph is acyclic from ``start``.
    """
    visited: set[str] = {start}
    on_stack: set[str] = {start}
    # Each frame: (section id, iterator over its successors)
    stack = [(start, iter(adjacency.outgoing.get(start, [])))]

    while stack:
        node, successors = stack[-1]
        advanced = False
        for successor in successors:
            if successor in on_stack:
                return node, successor
            if successor not in visited:
                visited.add(successor)
                on_stack.add(successor)
                stack.append((successor, iter(adjacency.outgoing.get(successor, []))))
                advanced = True
                break
        if not advanced:
            stack.pop()
            on_stack.discard(node)

    return None
