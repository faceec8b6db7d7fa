# policyflow/policy/models.py
"""
Policy models.
"""

from typing import Optional, Dict, Any, List, Union
from dataclasses import dataclass, field
from datetime import datetime


OPERATORS = (">", "<", ">=", "<=", "==", "!=")

# Rule outcome statuses
PASSED = "passed"
FAILED = "failed"
MISSING = "missing"

# Overall validation statuses
APPROVED = "approved"
REJECTED = "rejected"
NEEDS_REVIEW = "needs_review"

GRAPH_NODE_TYPES = ("start", "process", "decision", "end")


@dataclass
class WorkflowStep:
    """One ordered step of a policy workflow."""
    step: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "description": self.description}


@dataclass
class ChecklistItem:
    """Checklist entry a field officer ticks off."""
    id: str
    title: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChecklistItem":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            completed=bool(data.get("completed", False)),
        )


@dataclass
class PolicyRule:
    """Validation clause: compares one case field against a value."""
    id: str
    field: str  # e.g., "age", "citizen"
    operator: str  # one of OPERATORS
    value: Union[str, int, float, bool]
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field,
            "operator": self.operator,
            "value": self.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyRule":
        return cls(
            id=str(data["id"]),
            field=str(data["field"]),
            operator=str(data["operator"]),
            value=data.get("value"),
            description=str(data.get("description", "")),
        )


@dataclass
class DecisionAction:
    """Terminal decision tree node."""
    action: str

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action}


@dataclass
class DecisionQuestion:
    """Internal decision tree node with yes/no branches."""
    question: str
    yes: "DecisionNode"
    no: "DecisionNode"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "yes": self.yes.to_dict(),
            "no": self.no.to_dict(),
        }


DecisionNode = Union[DecisionQuestion, DecisionAction]


def decision_node_from_dict(data: Dict[str, Any]) -> DecisionNode:
    """Load a stored (already sanitized) decision tree."""
    if "question" in data:
        return DecisionQuestion(
            question=data["question"],
            yes=decision_node_from_dict(data["yes"]),
            no=decision_node_from_dict(data["no"]),
        )
    return DecisionAction(action=data["action"])


@dataclass
class GraphNode:
    id: str
    label: str
    type: str  # one of GRAPH_NODE_TYPES

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "type": self.type}


@dataclass
class GraphEdge:
    source: str
    target: str
    label: Optional[str] = None  # "YES" / "NO" on decision edges

    def to_dict(self) -> Dict[str, Any]:
        data = {"source": self.source, "target": self.target}
        if self.label:
            data["label"] = self.label
        return data


@dataclass
class PolicyGraph:
    """Flowchart view of a policy."""
    nodes: List[GraphNode]
    edges: List[GraphEdge]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyGraph":
        return cls(
            nodes=[GraphNode(**n) for n in data.get("nodes", [])],
            edges=[
                GraphEdge(source=e["source"], target=e["target"], label=e.get("label"))
                for e in data.get("edges", [])
            ],
        )


@dataclass
class GeneratedPolicy:
    """Normalized output of one generation call, before ids and persistence."""
    workflow: List[WorkflowStep]
    decision_tree: DecisionNode
    checklist: List[str]
    rules: List[PolicyRule] = field(default_factory=list)
    graph: Optional[PolicyGraph] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": [s.to_dict() for s in self.workflow],
            "decision_tree": self.decision_tree.to_dict(),
            "checklist": list(self.checklist),
            "rules": [r.to_dict() for r in self.rules],
            "graph": self.graph.to_dict() if self.graph else None,
        }


@dataclass
class Policy:
    """Stored policy document."""
    title: str
    input_text: str
    workflow: List[WorkflowStep]
    decision_tree: DecisionNode
    checklist: List[ChecklistItem]
    user_id: str
    rules: List[PolicyRule] = field(default_factory=list)
    graph: Optional[PolicyGraph] = None
    id: Optional[str] = None  # assigned by the store
    created_at: Optional[datetime] = None  # assigned by the store

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "input_text": self.input_text,
            "workflow": [s.to_dict() for s in self.workflow],
            "decision_tree": self.decision_tree.to_dict(),
            "checklist": [c.to_dict() for c in self.checklist],
            "rules": [r.to_dict() for r in self.rules],
            "graph": self.graph.to_dict() if self.graph else None,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class RuleResult:
    """Outcome of one rule against one case."""
    rule_id: str
    status: str  # passed / failed / missing
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"ruleId": self.rule_id, "status": self.status, "message": self.message}


@dataclass
class ValidationResult:
    """Overall verdict for a case."""
    status: str  # approved / rejected / needs_review
    results: List[RuleResult]
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "status": self.status,
            "results": [r.to_dict() for r in self.results],
        }
        if self.message:
            data["message"] = self.message
        return data
