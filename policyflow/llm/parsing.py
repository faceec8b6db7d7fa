# policyflow/llm/parsing.py
"""
JSON extraction from free-text LLM responses.

Models wrap JSON in markdown fences or surround it with prose. Candidates
are tried in order: fenced block content, then the span from the first
"{" to the last "}", then the whole trimmed text.
"""

import json
import re
from typing import Any, List

_FENCE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")


class JSONExtractionError(ValueError):
    """Raised when no candidate in a response parses as JSON."""
    pass


def json_candidates(raw: str) -> List[str]:
    candidates = []

    fenced = _FENCE.search(raw)
    if fenced:
        candidates.append(fenced.group(1).strip())

    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end > start:
        candidates.append(raw[start:end + 1])

    candidates.append(raw.strip())
    return candidates


def extract_json(raw: str) -> Any:
    """
    Parse the JSON payload embedded in an LLM response.

    Raises:
        JSONExtractionError: If no candidate parses
    """
    for candidate in json_candidates(raw or ""):
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    raise JSONExtractionError("No JSON object found in AI response")


def preview(raw: str, limit: int = 500) -> str:
    """Bounded prefix of a raw response for error reports."""
    raw = raw or ""
    if len(raw) <= limit:
        return raw
    return raw[:limit] + "..."
