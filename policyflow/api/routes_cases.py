# policyflow/api/routes_cases.py
"""
Case validation API routes.

Endpoints for validating case data against a policy's rules, either as
typed JSON or extracted from an uploaded PDF.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field

from ..errors import BadInputError
from ..pipeline.extractor import CaseExtractor, PDF_MIME_TYPE
from ..policy.engine import CaseValidator
from .deps import get_validator, get_extractor

router = APIRouter(tags=["cases"])


class ValidateCaseRequest(BaseModel):
    """Request to validate case data."""
    policy_id: Optional[str] = Field(default=None, alias="policyId")
    case_data: Any = Field(default=None, alias="caseData")

    model_config = {"populate_by_name": True}


@router.post("/validate-case")
async def validate_case(
    request: ValidateCaseRequest,
    validator: CaseValidator = Depends(get_validator),
) -> Dict[str, Any]:
    """
    Validate case data against a stored policy.

    Returns:
        {"status": approved|rejected|needs_review, "results": [...]}
    """
    result = validator.validate(request.policy_id, request.case_data)
    return result.to_dict()


@router.post("/extract-case")
def extract_case(
    policy_id: Optional[str] = Form(default=None, alias="policyId"),
    pdf: Optional[UploadFile] = File(default=None),
    extractor: CaseExtractor = Depends(get_extractor),
) -> Dict[str, Any]:
    """
    Extract case data from a PDF and validate it.

    Returns:
        {"extractedData": {...}, "status": ..., "results": [...]}; a 422
        with "rawResponse" when the document could not be read.
    """
    if not policy_id:
        raise BadInputError("policyId is required")
    if pdf is None or pdf.content_type != PDF_MIME_TYPE:
        raise BadInputError("A PDF file is required")

    pdf_bytes = pdf.file.read()
    extraction = extractor.extract_case(
        policy_id,
        pdf_bytes,
        filename=pdf.filename or "case.pdf",
    )
    return extraction.to_dict()
