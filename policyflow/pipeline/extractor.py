# policyflow/pipeline/extractor.py
"""
Case extraction pipeline.

Uploads a case document to the provider's transient file store, asks the
LLM for a flat JSON object of case fields, and validates those fields
against the policy's rules. The upload is always deleted before
extract_case() returns, whatever happened after it was created.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from ..errors import BadInputError, ExtractionParseError
from ..llm.client import UploadedDocument
from ..llm.parsing import extract_json, JSONExtractionError
from ..logging import get_logger
from ..policy.engine import CaseValidator
from ..policy.models import PolicyRule, ValidationResult
from .prompts import build_extraction_prompt

logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"


@dataclass
class CaseExtraction:
    """Extracted case fields plus their validation outcome."""
    extracted_data: Dict[str, Any]
    validation: ValidationResult

    def to_dict(self) -> Dict[str, Any]:
        data = {"extractedData": self.extracted_data}
        data.update(self.validation.to_dict())
        return data


def flat_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep scalar fields only; nested values are never case data."""
    flat = {}
    for key, value in data.items():
        if isinstance(value, (dict, list)):
            logger.warning("extracted_field_dropped", field=key, reason="nested value")
            continue
        flat[str(key)] = value
    return flat


class CaseExtractor:
    """
    Extracts case data from a PDF and validates it.

    Usage:
        extractor = CaseExtractor(llm, llm.document_store(), PolicyStore(session))
        extraction = extractor.extract_case(policy_id, pdf_bytes)
    """

    def __init__(self, llm, documents, store):
        self.llm = llm
        self.documents = documents
        self.store = store
        self.validator = CaseValidator(store)

    def _hint_rules(self, policy_id: str) -> List[PolicyRule]:
        """Rules used to guide extraction; failures degrade to unguided extraction."""
        try:
            policy = self.store.get_by_id(policy_id)
        except Exception as exc:
            logger.warning("rules_fetch_failed", policy_id=policy_id, error=str(exc))
            return []
        return list(policy.rules) if policy is not None else []

    def _release(self, uploaded: UploadedDocument):
        try:
            self.documents.delete(uploaded.handle)
        except Exception:
            logger.exception("document_cleanup_failed", handle=uploaded.handle)

    def extract_case(
        self,
        policy_id: str,
        pdf_bytes: bytes,
        filename: str = "case.pdf",
    ) -> CaseExtraction:
        """
        Extract and validate case data from a PDF.

        Raises:
            BadInputError: Missing policy id or empty document
            ExtractionParseError: LLM output is not a JSON object
            PolicyNotFoundError: Unknown policy
            RateLimitError: LLM rate limited (retryable)
        """
        if not policy_id:
            raise BadInputError("policyId is required")
        if not pdf_bytes:
            raise BadInputError("A PDF file is required")

        log = logger.bind(policy_id=policy_id)
        uploaded = self.documents.upload(pdf_bytes, PDF_MIME_TYPE, filename)
        log.info("case_document_uploaded", handle=uploaded.handle)
        try:
            rules = self._hint_rules(policy_id)
            prompt = build_extraction_prompt(rules)
            raw = self.llm.complete(prompt, attachment=uploaded).content.strip()

            try:
                data = extract_json(raw)
            except JSONExtractionError:
                raise ExtractionParseError(raw)
            if not isinstance(data, dict):
                raise ExtractionParseError(raw)

            extracted = flat_fields(data)
            validation = self.validator.validate(policy_id, extracted)
            log.info(
                "case_extracted",
                fields=len(extracted),
                status=validation.status,
            )
            return CaseExtraction(extracted_data=extracted, validation=validation)
        finally:
            self._release(uploaded)
