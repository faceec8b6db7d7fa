# policyflow/api/routes_generate.py
"""
Policy generation API routes.

Generation returns the assembled policy without persisting it; clients
review it and save it through POST /policies.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..errors import BadInputError
from ..logging import get_api_logger
from ..pipeline.generator import PolicyGenerator, PolicyInput, build_policy
from .deps import get_generator

logger = get_api_logger()

router = APIRouter(tags=["generate"])


class GenerateRequest(BaseModel):
    """Request to generate a policy."""
    title: str
    user_id: str = Field(alias="userId")
    input_text: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    pdf_base64: Optional[str] = Field(default=None, alias="pdfBase64")

    model_config = {"populate_by_name": True}


@router.post("/generate")
def generate_policy(
    request: GenerateRequest,
    generator: PolicyGenerator = Depends(get_generator),
) -> Dict[str, Any]:
    """
    Generate workflow, decision tree, checklist and rules from policy text.

    Returns:
        {"success": True, "policy": {...}} with checklist item ids assigned
    """
    if not request.user_id.strip():
        raise BadInputError("user_id is required")
    if not request.title.strip():
        raise BadInputError("title is required and must be a non-empty string")

    input_text = (request.input_text or "").strip()
    if not input_text and not request.pdf_base64:
        raise BadInputError("input_text is required and must be a non-empty string")

    generated = generator.generate(PolicyInput(
        title=request.title,
        policy_text=input_text or None,
        pdf_base64=request.pdf_base64,
        description=request.description,
        notes=request.notes,
    ))

    policy = build_policy(generated, request.title, input_text, request.user_id)
    logger.info("generate_request_completed", title=policy.title, user_id=request.user_id)
    return {"success": True, "policy": policy.to_dict()}
