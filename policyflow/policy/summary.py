# policyflow/policy/summary.py
"""
Dashboard summaries derived from stored policies.
"""

from typing import Any, Dict, List

from .models import Policy

DESCRIPTION_CHARS = 120
DEFAULT_DESCRIPTION = "AI-generated policy document"


def summarize_policy(policy: Policy) -> Dict[str, Any]:
    """
    Summarize a policy for list views.

    A policy is "archived" once every checklist item is completed.
    """
    total = len(policy.checklist)
    completed = sum(1 for item in policy.checklist if item.completed)
    percentage = round(completed / total * 100) if total else 0

    description = DEFAULT_DESCRIPTION
    if policy.input_text:
        description = policy.input_text[:DESCRIPTION_CHARS].replace("\n", " ")

    return {
        "id": policy.id,
        "title": policy.title,
        "description": description,
        "status": "archived" if percentage == 100 else "active",
        "completion_percentage": percentage,
        "checklist_total": total,
        "checklist_completed": completed,
        "workflow_steps": len(policy.workflow),
        "rules": len(policy.rules),
        "created_at": policy.created_at.isoformat() if policy.created_at else None,
    }


def completion_stats(policies: List[Policy]) -> Dict[str, int]:
    """Totals across a user's policies."""
    total_tasks = sum(len(p.checklist) for p in policies)
    completed = sum(1 for p in policies for item in p.checklist if item.completed)
    return {
        "total_policies": len(policies),
        "completed_tasks": completed,
        "pending_tasks": total_tasks - completed,
    }
