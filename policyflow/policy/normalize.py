# policyflow/policy/normalize.py
"""
Normalizers for the list-shaped parts of generated policies.

Each normalizer accepts whatever the LLM produced and always returns a
usable structure, substituting fixed fallbacks when nothing survives.
"""

import re
from typing import Any, List, Set

from .models import (
    WorkflowStep,
    PolicyRule,
    PolicyGraph,
    GraphNode,
    GraphEdge,
    OPERATORS,
    GRAPH_NODE_TYPES,
)
from .engine import to_text

FALLBACK_WORKFLOW = (
    ("Review Policy", "Read and understand the policy document thoroughly."),
    ("Implement Steps", "Execute each required action as outlined in the policy."),
)

FALLBACK_CHECKLIST = (
    "Review policy document",
    "Verify all required documents",
    "Confirm compliance",
)

MAX_GRAPH_LABEL_WORDS = 6

_NUMERIC_STEP = re.compile(r"^\d+$")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return to_text(value).strip()


def normalize_workflow(raw: Any) -> List[WorkflowStep]:
    """
    Normalize workflow steps.

    Accepts "step" or "title" as the step name. Bare numbers become
    "Step <n>". Entries without a name are dropped.
    """
    entries = raw if isinstance(raw, list) else []
    steps = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get("step")
        if name is None:
            name = entry.get("title")
        name = _as_text(name)
        if _NUMERIC_STEP.match(name):
            name = f"Step {name}"
        if not name:
            continue
        steps.append(WorkflowStep(step=name, description=_as_text(entry.get("description"))))

    if not steps:
        steps = [WorkflowStep(step=s, description=d) for s, d in FALLBACK_WORKFLOW]
    return steps


def normalize_checklist(raw: Any) -> List[str]:
    """
    Normalize checklist entries to non-empty strings.

    Object entries contribute their "task", "description" or "title".
    """
    entries = raw if isinstance(raw, list) else []
    items = []
    for entry in entries:
        if isinstance(entry, dict):
            value = entry.get("task")
            if value is None:
                value = entry.get("description")
            if value is None:
                value = entry.get("title")
            text = _as_text(value)
        else:
            text = _as_text(entry)
        if text:
            items.append(text)

    if not items:
        items = list(FALLBACK_CHECKLIST)
    return items


def normalize_rules(raw: Any) -> List[PolicyRule]:
    """
    Normalize generated validation rules.

    Rules without a field or with an unsupported operator are dropped.
    Missing or duplicate ids are replaced with rule_<n>.
    """
    entries = raw if isinstance(raw, list) else []
    rules: List[PolicyRule] = []
    seen_ids: Set[str] = set()

    for entry in entries:
        if not isinstance(entry, dict):
            continue
        field = entry.get("field")
        operator = str(entry.get("operator", "")).strip()
        if not isinstance(field, str) or not field.strip() or operator not in OPERATORS:
            continue

        rule_id = entry.get("id")
        rule_id = rule_id.strip() if isinstance(rule_id, str) else ""
        if not rule_id or rule_id in seen_ids:
            rule_id = f"rule_{len(rules) + 1}"
            while rule_id in seen_ids:
                rule_id = f"{rule_id}_"
        seen_ids.add(rule_id)

        value = entry.get("value")
        if not isinstance(value, (bool, int, float)):
            value = _as_text(value)

        rules.append(PolicyRule(
            id=rule_id,
            field=field.strip(),
            operator=operator,
            value=value,
            description=_as_text(entry.get("description")) or field.strip(),
        ))

    return rules


def fallback_graph() -> PolicyGraph:
    return PolicyGraph(
        nodes=[
            GraphNode(id="start", label="Start", type="start"),
            GraphNode(id="end", label="End", type="end"),
        ],
        edges=[GraphEdge(source="start", target="end")],
    )


def sanitize_graph(raw: Any) -> PolicyGraph:
    """
    Sanitize the flowchart graph.

    Deduplicates node ids, keeps exactly one start and one end node,
    drops edges to unknown nodes and orphaned nodes, and stitches a linear
    chain when no edges survive.
    """
    if not isinstance(raw, dict):
        return fallback_graph()
    raw_nodes = raw.get("nodes")
    raw_edges = raw.get("edges")
    if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
        return fallback_graph()

    nodes: List[GraphNode] = []
    seen_ids: Set[str] = set()
    for i, n in enumerate(raw_nodes):
        if not isinstance(n, dict):
            continue
        node_id = _as_text(n.get("id")) or f"node_{i}"
        if node_id in seen_ids:
            continue
        seen_ids.add(node_id)
        label = " ".join(_as_text(n.get("label")).split()[:MAX_GRAPH_LABEL_WORDS]) or "Step"
        node_type = _as_text(n.get("type"))
        if node_type not in GRAPH_NODE_TYPES:
            node_type = "process"
        nodes.append(GraphNode(id=node_id, label=label, type=node_type))

    # A start and an end need two distinct nodes
    if len(nodes) < 2:
        return fallback_graph()

    # First start node wins, last end node wins
    start = next((n for n in nodes if n.type == "start"), nodes[0])
    start.type = "start"
    others = [n for n in nodes if n is not start]
    end = next((n for n in reversed(others) if n.type == "end"), others[-1])
    end.type = "end"
    for n in others:
        if n is not end and n.type in ("start", "end"):
            n.type = "process"

    edges: List[GraphEdge] = []
    for e in raw_edges:
        if not isinstance(e, dict):
            continue
        source = _as_text(e.get("source", e.get("from")))
        target = _as_text(e.get("target", e.get("to")))
        if source not in seen_ids or target not in seen_ids or source == target:
            continue
        label = _as_text(e.get("label", e.get("condition"))).upper()
        edges.append(GraphEdge(
            source=source,
            target=target,
            label=label if label in ("YES", "NO") else None,
        ))

    if not edges:
        edges = [GraphEdge(source=a.id, target=b.id) for a, b in zip(nodes, nodes[1:])]
        return PolicyGraph(nodes=nodes, edges=edges)

    referenced = {start.id, end.id}
    for edge in edges:
        referenced.update((edge.source, edge.target))
    connected = [n for n in nodes if n.id in referenced]
    return PolicyGraph(nodes=connected, edges=edges)
