# policyflow/policy/decision_tree.py
"""
Decision tree sanitizer.

LLM output is not schema constrained: tree fragments arrive partial,
too deep, or in the wrong shape. sanitize_tree() converges any input to a
binary tree of DecisionQuestion / DecisionAction nodes whose depth never
exceeds max_depth (root = depth 1). Nodes at the ceiling are always
actions.

Repair order per node:
1. question  -> DecisionQuestion, both branches sanitized one level down
2. action    -> DecisionAction
3. first key -> implied question (key longer than MIN_IMPLIED_QUESTION_LENGTH,
                only for objects without any of NODE_KEYS)
4. anything else -> FALLBACK_ACTION
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from .models import DecisionNode, DecisionQuestion, DecisionAction
from ..logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 3
MIN_IMPLIED_QUESTION_LENGTH = 3
FALLBACK_ACTION = "Review manually and escalate to a supervisor"
CEILING_ACTION_PREFIX = "Proceed with: "
NODE_KEYS = frozenset(("question", "action", "yes", "no"))


@dataclass
class SanitizeStats:
    """Counts which repair path produced each node."""
    clean: int = 0
    recovered: int = 0
    fallback: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"clean": self.clean, "recovered": self.recovered, "fallback": self.fallback}


def _non_empty(raw: Any, key: str) -> Optional[str]:
    if not isinstance(raw, dict):
        return None
    value = raw.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _fallback_leaf(stats: Optional[SanitizeStats]) -> DecisionAction:
    if stats is not None:
        stats.fallback += 1
    return DecisionAction(action=FALLBACK_ACTION)


def sanitize_tree(
    raw: Any,
    depth: int = 1,
    max_depth: int = DEFAULT_MAX_DEPTH,
    stats: Optional[SanitizeStats] = None,
) -> DecisionNode:
    """
    Repair an untrusted tree fragment into a valid DecisionNode.

    Never raises. The returned subtree rooted at `depth` ends at or
    before `max_depth`.
    """
    question = _non_empty(raw, "question")
    action = _non_empty(raw, "action")

    if depth >= max_depth:
        if action:
            if stats is not None:
                stats.clean += 1
            return DecisionAction(action=action)
        if question:
            if stats is not None:
                stats.recovered += 1
            return DecisionAction(action=f"{CEILING_ACTION_PREFIX}{question}")
        return _fallback_leaf(stats)

    if question:
        if stats is not None:
            stats.clean += 1
        return DecisionQuestion(
            question=question,
            yes=sanitize_tree(raw.get("yes"), depth + 1, max_depth, stats),
            no=sanitize_tree(raw.get("no"), depth + 1, max_depth, stats),
        )

    if action:
        if stats is not None:
            stats.clean += 1
        return DecisionAction(action=action)

    # Unrecognized shape: treat the first key as an implied question.
    # Objects using the node keys are broken nodes, not implied questions.
    if isinstance(raw, dict) and raw and not NODE_KEYS.intersection(raw):
        key = next(iter(raw))
        if isinstance(key, str) and len(key.strip()) > MIN_IMPLIED_QUESTION_LENGTH:
            if stats is not None:
                stats.recovered += 1
            return DecisionQuestion(
                question=key.strip(),
                yes=sanitize_tree(raw[key], depth + 1, max_depth, stats),
                no=_fallback_leaf(stats),
            )

    return _fallback_leaf(stats)


def fallback_tree(title: str) -> DecisionQuestion:
    """Two-level tree used when the generated root is not a question."""
    return DecisionQuestion(
        question=f'Do documents exist for "{title}"?',
        yes=DecisionQuestion(
            question="Have compliance checks been completed?",
            yes=DecisionAction(action="Approve and proceed to next stage"),
            no=DecisionAction(action="Complete remaining compliance checks"),
        ),
        no=DecisionAction(action="Collect missing documents first"),
    )


def is_flat_tree(raw: Any) -> bool:
    """True for the {start_node, nodes, edges} graph form of a tree."""
    return (
        isinstance(raw, dict)
        and isinstance(raw.get("nodes"), list)
        and isinstance(raw.get("edges"), list)
        and "question" not in raw
        and "action" not in raw
    )


def nested_from_flat(raw: Dict[str, Any], max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
    """
    Convert a flat {start_node, nodes, edges} tree into the nested shape.

    Conversion stops at max_depth so cyclic edge lists terminate; the
    result still goes through sanitize_tree().
    """
    nodes = {
        str(n["id"]): n
        for n in raw["nodes"]
        if isinstance(n, dict) and "id" in n
    }
    branches: Dict[str, Dict[str, str]] = {}
    for edge in raw["edges"]:
        if not isinstance(edge, dict):
            continue
        source = str(edge.get("from", edge.get("source", "")))
        target = str(edge.get("to", edge.get("target", "")))
        condition = str(edge.get("condition", edge.get("label", ""))).strip().lower()
        if condition in ("yes", "no"):
            branches.setdefault(source, {})[condition] = target

    start = raw.get("start_node")
    if not isinstance(start, str) or start not in nodes:
        start = next(iter(nodes), None)

    def convert(node_id: Optional[str], depth: int) -> Any:
        node = nodes.get(node_id) if node_id is not None else None
        if node is None:
            return None
        label = str(node.get("label", "")).strip()
        if node.get("type") == "action" or depth >= max_depth:
            key = "action" if node.get("type") == "action" else "question"
            return {key: label}
        node_branches = branches.get(node_id, {})
        return {
            "question": label,
            "yes": convert(node_branches.get("yes"), depth + 1),
            "no": convert(node_branches.get("no"), depth + 1),
        }

    return convert(start, 1)


def sanitize_root(
    raw: Any,
    title: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    stats: Optional[SanitizeStats] = None,
) -> DecisionQuestion:
    """
    Sanitize a whole generated tree; the root must be a question.

    A root that sanitizes to an action is replaced by fallback_tree(title).
    """
    if is_flat_tree(raw):
        raw = nested_from_flat(raw, max_depth)

    root = sanitize_tree(raw, 1, max_depth, stats)
    if isinstance(root, DecisionQuestion):
        return root

    logger.warning("decision_tree_root_replaced", title=title, root_action=root.action)
    return fallback_tree(title)


def iter_nodes(node: DecisionNode) -> Iterator[DecisionNode]:
    """Depth-first iteration over every node."""
    yield node
    if isinstance(node, DecisionQuestion):
        yield from iter_nodes(node.yes)
        yield from iter_nodes(node.no)


def tree_depth(node: DecisionNode) -> int:
    if isinstance(node, DecisionQuestion):
        return 1 + max(tree_depth(node.yes), tree_depth(node.no))
    return 1
