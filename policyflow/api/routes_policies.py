# policyflow/api/routes_policies.py
"""
Policy storage API routes.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..db.store import PolicyStore
from ..logging import get_api_logger
from ..policy.decision_tree import sanitize_root
from ..policy.models import ChecklistItem, Policy
from ..policy.normalize import normalize_workflow, normalize_rules, sanitize_graph
from ..policy.summary import summarize_policy, completion_stats
from .deps import get_store

logger = get_api_logger()

router = APIRouter(prefix="/policies", tags=["policies"])


class CreatePolicyRequest(BaseModel):
    """Request to save a generated policy."""
    title: str
    user_id: str = Field(alias="userId")
    input_text: Optional[str] = ""
    workflow: List[Any]
    decision_tree: Dict[str, Any]
    checklist: List[Any]
    rules: Optional[List[Any]] = None
    graph: Optional[Dict[str, Any]] = None

    model_config = {"populate_by_name": True}


class ChecklistItemPayload(BaseModel):
    id: str
    title: str
    completed: bool = False


class UpdateChecklistRequest(BaseModel):
    checklist: List[ChecklistItemPayload]


def _checklist_items(raw: List[Any]) -> List[ChecklistItem]:
    """Accept stored {id, title, completed} items or bare strings."""
    items = []
    for idx, entry in enumerate(raw):
        if isinstance(entry, dict) and str(entry.get("title", "")).strip():
            items.append(ChecklistItem(
                id=str(entry.get("id") or f"item-{idx + 1}"),
                title=str(entry["title"]).strip(),
                completed=bool(entry.get("completed", False)),
            ))
        elif isinstance(entry, str) and entry.strip():
            items.append(ChecklistItem(id=f"item-{idx + 1}", title=entry.strip()))
    return items


@router.get("")
async def list_policies(
    user_id: Optional[str] = None,
    summary: bool = False,
    store: PolicyStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    List a user's policies, newest first.

    Args:
        user_id: Owner id (required)
        summary: Return dashboard summaries instead of full documents
    """
    if not user_id:
        raise HTTPException(status_code=400, detail="user_id is required")

    policies = store.list(user_id)
    if summary:
        return {"success": True, "policies": [summarize_policy(p) for p in policies]}
    return {"success": True, "policies": [p.to_dict() for p in policies]}


@router.post("", status_code=201)
async def create_policy(
    request: CreatePolicyRequest,
    store: PolicyStore = Depends(get_store),
) -> Dict[str, Any]:
    """Persist a policy; the tree and lists are re-normalized before storage."""
    if not request.user_id.strip():
        raise HTTPException(status_code=400, detail="user_id is required")
    if not request.title.strip():
        raise HTTPException(
            status_code=400, detail="title is required and must be a non-empty string"
        )

    checklist = _checklist_items(request.checklist)
    if not checklist:
        raise HTTPException(status_code=400, detail="checklist must contain at least one item")

    title = request.title.strip()
    policy = store.create(Policy(
        title=title,
        input_text=(request.input_text or "").strip(),
        workflow=normalize_workflow(request.workflow),
        decision_tree=sanitize_root(request.decision_tree, title),
        checklist=checklist,
        rules=normalize_rules(request.rules),
        graph=sanitize_graph(request.graph) if request.graph else None,
        user_id=request.user_id,
    ))
    return {"success": True, "policy": policy.to_dict()}


@router.get("/stats")
async def policy_stats(
    user_id: Optional[str] = None,
    store: PolicyStore = Depends(get_store),
) -> Dict[str, Any]:
    """Checklist completion totals across a user's policies."""
    if not user_id:
        raise HTTPException(status_code=400, detail="user_id is required")
    return {"success": True, "stats": completion_stats(store.list(user_id))}


@router.get("/{policy_id}")
async def get_policy(
    policy_id: str,
    store: PolicyStore = Depends(get_store),
) -> Dict[str, Any]:
    policy = store.get_by_id(policy_id)
    if policy is None:
        raise HTTPException(status_code=404, detail=f'Policy with ID "{policy_id}" not found')
    return {"success": True, "policy": policy.to_dict()}


@router.patch("/{policy_id}/checklist")
async def update_checklist(
    policy_id: str,
    request: UpdateChecklistRequest,
    store: PolicyStore = Depends(get_store),
) -> Dict[str, Any]:
    """Persist checklist completion toggles."""
    checklist = [
        ChecklistItem(id=item.id, title=item.title, completed=item.completed)
        for item in request.checklist
    ]
    store.update_checklist(policy_id, checklist)
    return {"success": True, "checklist": [item.to_dict() for item in checklist]}
