# policyflow/policy/engine.py
"""
Rule evaluation engine.

Validates flat case data against a policy's rules. Each rule resolves to
passed, failed or missing, and the rule outcomes reduce to one verdict:
rejected if anything failed, needs_review if anything is missing,
approved otherwise.
"""

import math
import re
from typing import Any, Dict, List, Mapping, Optional

from .models import (
    PolicyRule,
    RuleResult,
    ValidationResult,
    PASSED,
    FAILED,
    MISSING,
    APPROVED,
    REJECTED,
    NEEDS_REVIEW,
)
from ..errors import BadInputError, PolicyNotFoundError
from ..logging import get_logger

logger = get_logger(__name__)

NO_RULES_MESSAGE = "No rules defined for this policy."

_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_PREFIXED_DIGITS = re.compile(r"^[0-9a-fA-F]+$")
_PREFIXED = {"0x": 16, "0o": 8, "0b": 2}


def to_number(value: Any) -> Optional[float]:
    """
    Strict numeric coercion.

    Booleans become 1/0 and None becomes 0. Strings are trimmed; an empty
    string is 0, otherwise the whole string must be a decimal literal, a
    0x/0o/0b literal or Infinity. Returns None when the value is not numeric.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) else number
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text == "":
        return 0.0
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    if _DECIMAL.match(text):
        return float(text)

    base = _PREFIXED.get(text[:2].lower())
    # int() also accepts signs, whitespace and "_" separators; literals here do not
    if base and _PREFIXED_DIGITS.match(text[2:]):
        try:
            return float(int(text[2:], base))
        except ValueError:
            return None
    return None


def to_text(value: Any) -> str:
    """Stringify an operand the way case data is displayed to users."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def evaluate(case_value: Any, operator: str, rule_value: Any) -> bool:
    """
    Compare one case value against one rule value.

    Numeric when both sides coerce to numbers. Otherwise only == and !=
    apply, as string comparison; ordering operators are False.
    """
    case_number = to_number(case_value)
    rule_number = to_number(rule_value)

    if case_number is not None and rule_number is not None:
        if operator == ">":
            return case_number > rule_number
        elif operator == "<":
            return case_number < rule_number
        elif operator == ">=":
            return case_number >= rule_number
        elif operator == "<=":
            return case_number <= rule_number
        elif operator == "==":
            return case_number == rule_number
        elif operator == "!=":
            return case_number != rule_number
        return False

    if operator == "==":
        return to_text(case_value) == to_text(rule_value)
    elif operator == "!=":
        return to_text(case_value) != to_text(rule_value)

    return False


def is_missing(case_data: Mapping[str, Any], field: str) -> bool:
    """Absent, None and the empty string count as missing; 0 and False do not."""
    if field not in case_data:
        return True
    value = case_data[field]
    return value is None or (isinstance(value, str) and value == "")


def evaluate_rule(rule: PolicyRule, case_data: Mapping[str, Any]) -> RuleResult:
    """Classify a single rule against case data."""
    if is_missing(case_data, rule.field):
        return RuleResult(
            rule_id=rule.id,
            status=MISSING,
            message=f'Field "{rule.field}" is missing from case data',
        )

    field_value = case_data[rule.field]
    if evaluate(field_value, rule.operator, rule.value):
        return RuleResult(rule_id=rule.id, status=PASSED, message=rule.description)

    return RuleResult(
        rule_id=rule.id,
        status=FAILED,
        message=(
            f"Failed: {rule.field} {rule.operator} {to_text(rule.value)} "
            f"(got: {to_text(field_value)})"
        ),
    )


def overall_status(results: List[RuleResult]) -> str:
    """Failed takes precedence over missing; all passed means approved."""
    if any(r.status == FAILED for r in results):
        return REJECTED
    if any(r.status == MISSING for r in results):
        return NEEDS_REVIEW
    return APPROVED


def validate_case(
    rules: List[PolicyRule],
    case_data: Mapping[str, Any],
) -> ValidationResult:
    """
    Validate case data against every rule of a policy.

    A policy without rules cannot reject a case, so it approves with no
    results.
    """
    if not rules:
        return ValidationResult(status=APPROVED, results=[], message=NO_RULES_MESSAGE)

    results = [evaluate_rule(rule, case_data) for rule in rules]
    return ValidationResult(status=overall_status(results), results=results)


def ensure_flat_case_data(case_data: Any) -> Dict[str, Any]:
    """
    Check case data is a flat mapping of scalars.

    Raises:
        BadInputError: If case data is not an object or has nested values
    """
    if not isinstance(case_data, dict):
        raise BadInputError("caseData must be an object")

    for key, value in case_data.items():
        if isinstance(value, (dict, list, tuple)):
            raise BadInputError(
                f'caseData must be flat; field "{key}" holds a nested value'
            )
    return case_data


class CaseValidator:
    """
    Validates case data against a stored policy.

    Usage:
        validator = CaseValidator(PolicyStore(session))
        result = validator.validate(policy_id, {"age": 20})
    """

    def __init__(self, store):
        self.store = store

    def rules_for(self, policy_id: str) -> List[PolicyRule]:
        """
        Load a policy's rules.

        Raises:
            PolicyNotFoundError: If the policy does not exist
        """
        policy = self.store.get_by_id(policy_id)
        if policy is None:
            raise PolicyNotFoundError(policy_id)
        return list(policy.rules)

    def validate(self, policy_id: str, case_data: Any) -> ValidationResult:
        if not policy_id or not isinstance(policy_id, str):
            raise BadInputError("policyId is required")
        case_data = ensure_flat_case_data(case_data)

        rules = self.rules_for(policy_id)
        result = validate_case(rules, case_data)

        logger.info(
            "case_validated",
            policy_id=policy_id,
            status=result.status,
            rules=len(rules),
            failed=sum(1 for r in result.results if r.status == FAILED),
            missing=sum(1 for r in result.results if r.status == MISSING),
        )
        return result
