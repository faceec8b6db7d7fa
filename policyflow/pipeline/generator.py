# policyflow/pipeline/generator.py
"""
Policy generation pipeline.

Turns policy text (or a PDF) into a GeneratedPolicy:

    prompt -> LLM -> JSON extraction -> shape check -> normalizers

Everything below the top-level shape is repaired rather than rejected:
empty workflows and checklists get fallbacks, and the decision tree is
sanitized into a bounded binary tree. Only unparseable output, or output
missing workflow / decision_tree / checklist entirely, fails the call.
"""

import binascii
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..errors import BadInputError, MalformedOutputError
from ..llm.client import InlineDocument
from ..llm.parsing import extract_json, preview, JSONExtractionError
from ..logging import get_logger
from ..policy.decision_tree import sanitize_root, SanitizeStats, DEFAULT_MAX_DEPTH
from ..policy.models import ChecklistItem, GeneratedPolicy, Policy
from ..policy.normalize import (
    normalize_workflow,
    normalize_checklist,
    normalize_rules,
    sanitize_graph,
)
from ..settings import settings
from .prompts import build_generation_prompt, RETRY_SUFFIX

logger = get_logger(__name__)


@dataclass
class PolicyInput:
    """Caller-supplied material for one generation."""
    title: str
    policy_text: Optional[str] = None
    pdf_base64: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None


def check_shape(parsed: Any, raw: str, preview_chars: int = 500) -> Dict[str, Any]:
    """
    Require the three mandatory top-level sections.

    Raises:
        MalformedOutputError: If workflow/checklist are not arrays or
            decision_tree is not an object
    """
    if not isinstance(parsed, dict):
        raise MalformedOutputError(
            "AI response is not a JSON object", raw_preview=preview(raw, preview_chars)
        )

    missing = []
    if not isinstance(parsed.get("workflow"), list):
        missing.append("workflow")
    if not isinstance(parsed.get("decision_tree"), dict):
        missing.append("decision_tree")
    if not isinstance(parsed.get("checklist"), list):
        missing.append("checklist")

    if missing:
        raise MalformedOutputError(
            f"AI response is missing required sections: {', '.join(missing)}",
            raw_preview=preview(raw, preview_chars),
        )
    return parsed


class PolicyGenerator:
    """
    Generates structured policies through the LLM.

    Usage:
        generator = PolicyGenerator(get_llm_client())
        generated = generator.generate(PolicyInput(title="...", policy_text="..."))
    """

    def __init__(
        self,
        llm,
        max_depth: Optional[int] = None,
        preview_chars: Optional[int] = None,
    ):
        self.llm = llm
        self.max_depth = max_depth or settings.decision_tree_max_depth or DEFAULT_MAX_DEPTH
        self.preview_chars = preview_chars or settings.raw_response_preview_chars

    def _attachment(self, policy_input: PolicyInput) -> Optional[InlineDocument]:
        if not policy_input.pdf_base64:
            return None
        try:
            return InlineDocument.from_base64(policy_input.pdf_base64)
        except (binascii.Error, ValueError):
            raise BadInputError("pdf_base64 is not valid base64")

    def _parse(self, raw: str) -> Optional[Any]:
        try:
            return extract_json(raw)
        except JSONExtractionError:
            return None

    def generate(self, policy_input: PolicyInput) -> GeneratedPolicy:
        """
        Run one generation.

        Raises:
            BadInputError: Missing title, or neither text nor PDF supplied
            RateLimitError: LLM rate limited (retryable)
            UpstreamError: LLM transport failure
            MalformedOutputError: Output unparseable or missing a section
        """
        title = (policy_input.title or "").strip()
        if not title:
            raise BadInputError("title is required and must be a non-empty string")
        if not (policy_input.policy_text or "").strip() and not policy_input.pdf_base64:
            raise BadInputError("policy text or a PDF document is required")

        log = logger.bind(title=title)
        attachment = self._attachment(policy_input)
        prompt = build_generation_prompt(
            title=title,
            policy_text=(policy_input.policy_text or "").strip() or None,
            description=policy_input.description,
            notes=policy_input.notes,
        )

        raw = self.llm.complete(prompt, attachment=attachment).content
        log.debug("generation_raw_response", chars=len(raw), preview=preview(raw, 200))

        parsed = self._parse(raw)
        if parsed is None:
            log.warning("generation_parse_failed_retrying")
            raw = self.llm.complete(prompt + RETRY_SUFFIX, attachment=attachment).content
            parsed = self._parse(raw)
        if parsed is None:
            raise MalformedOutputError(
                "Could not parse JSON from AI response",
                raw_preview=preview(raw, self.preview_chars),
            )

        parsed = check_shape(parsed, raw, self.preview_chars)

        stats = SanitizeStats()
        generated = GeneratedPolicy(
            workflow=normalize_workflow(parsed["workflow"]),
            decision_tree=sanitize_root(parsed["decision_tree"], title, self.max_depth, stats),
            checklist=normalize_checklist(parsed["checklist"]),
            rules=normalize_rules(parsed.get("rules")),
            graph=sanitize_graph(parsed.get("graph")),
        )

        log.info("decision_tree_sanitized", **stats.to_dict())
        log.info(
            "policy_generated",
            workflow_steps=len(generated.workflow),
            checklist_items=len(generated.checklist),
            rules=len(generated.rules),
        )
        return generated


def build_policy(
    generated: GeneratedPolicy,
    title: str,
    input_text: str,
    user_id: str,
) -> Policy:
    """Assemble a storable Policy, assigning checklist item ids."""
    return Policy(
        title=title.strip(),
        input_text=(input_text or "").strip(),
        workflow=generated.workflow,
        decision_tree=generated.decision_tree,
        checklist=[
            ChecklistItem(id=f"item-{idx + 1}", title=text, completed=False)
            for idx, text in enumerate(generated.checklist)
        ],
        rules=generated.rules,
        graph=generated.graph,
        user_id=user_id,
    )
