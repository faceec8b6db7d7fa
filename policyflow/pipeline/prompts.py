# policyflow/pipeline/prompts.py
"""
Prompts for policy generation and case extraction.
"""

from typing import List, Optional

from ..policy.models import PolicyRule


GENERATION_SYSTEM_PROMPT = """You are an expert policy analyst. You receive raw government or organizational policy text and convert it into precise, structured operational outputs for field officers.

STEP 1 - EXTRACT (silently, before generating JSON):
- ENTITIES: every actor, department, role, document or organization mentioned
- CONDITIONS: every IF/ELSE rule, eligibility check, threshold, deadline or exception
- ACTIONS: every concrete procedure, task, validation step or compliance requirement

STEP 2 - GENERATE the following JSON exactly. Return ONLY valid JSON. No markdown, no explanation, no preamble.

{
  "workflow": [
    { "step": "string", "description": "string" }
  ],
  "decision_tree": {
    "question": "Are all required documents submitted?",
    "yes": {
      "question": "Do the documents meet compliance standards?",
      "yes": { "action": "Approve application" },
      "no": { "action": "Issue 30-day correction notice" }
    },
    "no": {
      "question": "Can the applicant provide the missing documents?",
      "yes": { "action": "Resume review with complete file" },
      "no": { "action": "Mark application abandoned" }
    }
  },
  "checklist": [
    { "task": "string", "completed": false }
  ],
  "rules": [
    { "id": "rule_1", "field": "age", "operator": ">=", "value": 18, "description": "Applicant must be at least 18 years old" },
    { "id": "rule_2", "field": "citizen", "operator": "==", "value": true, "description": "Applicant must be a citizen" }
  ],
  "graph": {
    "nodes": [
      { "id": "start", "label": "Start", "type": "start" },
      { "id": "step1", "label": "Receive Application", "type": "process" },
      { "id": "dec1", "label": "Documents complete?", "type": "decision" },
      { "id": "end", "label": "End", "type": "end" }
    ],
    "edges": [
      { "source": "start", "target": "step1" },
      { "source": "step1", "target": "dec1" },
      { "source": "dec1", "target": "end", "label": "YES" },
      { "source": "dec1", "target": "step1", "label": "NO" }
    ]
  }
}

The JSON above is ONLY a structural template. Replace ALL placeholder content with content derived exclusively from the input policy.

WORKFLOW RULES:
- 6-10 sequential steps; more for complex policies
- Every step names the responsible department or actor
- "step" = short action verb phrase (e.g. "Verify identity documents")
- "description" = who does what, referencing policy-specific rules, deadlines and entities
- NEVER generate generic steps ("Submit form", "Complete process", "Proceed")

DECISION TREE RULES:
- Every node is EITHER { "question", "yes", "no" } OR { "action" }; never both, never neither
- The root is always a question
- At most 3 levels: root question, second-level questions, then actions
- Every question has both a "yes" and a "no" branch
- Actions are specific outcomes (not "proceed", "continue", "done")
- Include negative paths: rejection reasons, correction notices, escalation routes

CHECKLIST RULES:
- 8-12 items; each maps to a workflow step
- Each item is a concrete, verifiable action a field officer can tick off
- Use document names, entities and thresholds from the policy

RULES RULES:
- Extract every specific threshold, eligibility condition, numeric limit or boolean requirement
- Each rule is atomic (one condition per rule)
- field = the case data field to check, as a short camelCase identifier
- operator = one of: >, <, >=, <=, ==, !=
- value = the threshold or required value (number, boolean or string)
- If no specific conditions can be extracted return an empty array
- NEVER invent rules not supported by the policy text

GRAPH RULES:
- 10-15 nodes at most; exactly one "start" and one "end" node
- "process" nodes are workflow steps, "decision" nodes are key branching points
- Edges leaving a decision node have label "YES" or "NO"; other edges have no label
- All node ids are unique strings without spaces; no orphan nodes

GLOBAL RULES:
- Output ONLY valid JSON, absolutely no text outside the JSON object
- All sections must be populated"""


RETRY_SUFFIX = (
    "\n\nIMPORTANT: Your previous response could not be parsed as JSON. "
    "Return ONLY raw JSON - no markdown, no text, no code fences."
)


EXTRACTION_PROMPT = """You are a case data extractor. Read the attached document and extract structured case data as a flat JSON object.

{rules_hint}

Rules:
- Output ONLY a valid JSON object, no markdown, no explanation
- Keys must be camelCase short identifiers (e.g. "age", "wasteSegregated", "collectionTime")
- Values must be: string, number, or boolean only
- Do NOT nest objects
- If a field is not present in the document, omit it
- Extract ALL measurable facts you find

Example output:
{{
  "age": 25,
  "citizen": true,
  "income": 45000,
  "wasteSegregated": true,
  "collectionTime": "8:30",
  "hazardousPresent": false
}}"""

UNGUIDED_HINT = "Extract all measurable facts, values, conditions, dates, and boolean states."


def build_generation_prompt(
    title: str,
    policy_text: Optional[str] = None,
    description: Optional[str] = None,
    notes: Optional[str] = None,
) -> str:
    return (
        f"{GENERATION_SYSTEM_PROMPT}\n\n"
        "Policy Input:\n"
        f"TITLE: {title}\n"
        f"DESCRIPTION: {description or '(not provided)'}\n"
        f"NOTES: {notes or '(none)'}\n"
        f"FULL TEXT: {policy_text or '(see attached PDF)'}"
    )


def build_rules_hint(rules: List[PolicyRule]) -> str:
    """Tell the extractor which fields the policy rules read."""
    if not rules:
        return UNGUIDED_HINT
    lines = "\n".join(f'  - "{rule.field}": {rule.description}' for rule in rules)
    return (
        "The policy has these rules that check the following fields:\n"
        f"{lines}\n\n"
        "Extract values for ALL of these fields if present."
    )


def build_extraction_prompt(rules: List[PolicyRule]) -> str:
    return EXTRACTION_PROMPT.format(rules_hint=build_rules_hint(rules))
