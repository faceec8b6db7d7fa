# Policy module
from .models import (
    Policy,
    PolicyRule,
    WorkflowStep,
    ChecklistItem,
    DecisionNode,
    DecisionQuestion,
    DecisionAction,
    GeneratedPolicy,
    RuleResult,
    ValidationResult,
)
from .engine import evaluate, validate_case, CaseValidator
from .decision_tree import sanitize_tree, sanitize_root, fallback_tree

__all__ = [
    "Policy",
    "PolicyRule",
    "WorkflowStep",
    "ChecklistItem",
    "DecisionNode",
    "DecisionQuestion",
    "DecisionAction",
    "GeneratedPolicy",
    "RuleResult",
    "ValidationResult",
    "evaluate",
    "validate_case",
    "CaseValidator",
    "sanitize_tree",
    "sanitize_root",
    "fallback_tree",
]
