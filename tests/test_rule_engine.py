"""
Test rule evaluation and case validation.

Verifies numeric-aware comparison, missing-field detection and the
failed > missing > approved verdict precedence.
"""

import math

import pytest

from policyflow.errors import BadInputError, PolicyNotFoundError
from policyflow.policy.engine import (
    evaluate,
    to_number,
    to_text,
    validate_case,
    CaseValidator,
    NO_RULES_MESSAGE,
)
from policyflow.policy.models import PolicyRule


def rule(field="age", operator=">=", value=18, description="Adult", rule_id="r1"):
    return PolicyRule(id=rule_id, field=field, operator=operator, value=value,
                      description=description)


class TestNumericCoercion:
    """Tests for strict numeric coercion."""

    def test_numbers_pass_through(self):
        assert to_number(5) == 5.0
        assert to_number(2.5) == 2.5

    def test_booleans_coerce_to_one_and_zero(self):
        assert to_number(True) == 1.0
        assert to_number(False) == 0.0

    def test_numeric_strings_are_trimmed(self):
        assert to_number(" 42 ") == 42.0
        assert to_number("1e3") == 1000.0
        assert to_number(".5") == 0.5
        assert to_number("-7") == -7.0

    def test_prefixed_literals(self):
        assert to_number("0x10") == 16.0
        assert to_number("0b101") == 5.0
        assert to_number("0o17") == 15.0

    def test_prefixed_literals_are_strict(self):
        for value in ("0x1_0", "0b1_01", "0x 10", "0x-10", "0x+10", "0b12", "0xg"):
            assert to_number(value) is None, value
        assert evaluate("0x1_0", "==", 16) is False

    def test_empty_string_is_zero(self):
        assert to_number("") == 0.0
        assert to_number("   ") == 0.0

    def test_non_numeric_strings_rejected(self):
        for value in ("abc", "12abc", "1_000", "nan", "inf", "-0x10", "0x"):
            assert to_number(value) is None, value

    def test_infinity_literal(self):
        assert to_number("Infinity") == math.inf
        assert to_number("-Infinity") == -math.inf

    def test_nan_and_containers_rejected(self):
        assert to_number(float("nan")) is None
        assert to_number({"a": 1}) is None
        assert to_number([1]) is None


class TestEvaluate:
    """Tests for single rule comparison."""

    def test_numeric_ordering(self):
        assert evaluate(5, ">", 3) is True
        assert evaluate(3, ">", 5) is False
        assert evaluate(18, ">=", 18) is True
        assert evaluate(17, "<", 18) is True
        assert evaluate(18, "<=", 17) is False

    def test_string_numbers_compare_numerically(self):
        assert evaluate("5", ">", "3") is True
        assert evaluate("10", ">", "9") is True
        assert evaluate("18.0", "==", 18) is True

    def test_boolean_equals_one(self):
        assert evaluate(True, "==", 1) is True
        assert evaluate(False, "==", 0) is True
        assert evaluate(True, "==", True) is True
        assert evaluate(False, "!=", True) is True

    def test_non_numeric_ordering_is_false(self):
        assert evaluate("abc", ">", "abd") is False
        assert evaluate("abd", ">", "abc") is False
        assert evaluate("abc", "<=", "abc") is False

    def test_string_equality(self):
        assert evaluate("abc", "==", "abc") is True
        assert evaluate("abc", "!=", "abd") is True
        assert evaluate("abc", "==", "ABC") is False

    def test_mixed_operands_compare_as_strings(self):
        assert evaluate("yes", "==", True) is False
        assert evaluate("true", "==", True) is True
        assert evaluate(5, "==", "five") is False

    def test_unknown_operator_is_false(self):
        assert evaluate(5, "in", 5) is False
        assert evaluate("a", "contains", "a") is False

    def test_never_raises_on_odd_input(self):
        assert evaluate({"nested": 1}, ">", 3) is False
        assert evaluate(None, "==", "x") is False


class TestToText:
    def test_display_forms(self):
        assert to_text(True) == "true"
        assert to_text(None) == "null"
        assert to_text(18.0) == "18"
        assert to_text(2.5) == "2.5"
        assert to_text("x") == "x"


class TestValidateCase:
    """Tests for verdict aggregation."""

    def test_adult_is_approved(self):
        result = validate_case([rule()], {"age": 20})

        assert result.to_dict() == {
            "status": "approved",
            "results": [{"ruleId": "r1", "status": "passed", "message": "Adult"}],
        }

    def test_missing_field_needs_review(self):
        result = validate_case([rule()], {})

        assert result.status == "needs_review"
        assert result.results[0].status == "missing"
        assert result.results[0].message == 'Field "age" is missing from case data'

    def test_failure_message(self):
        result = validate_case([rule()], {"age": 16})

        assert result.status == "rejected"
        assert result.results[0].status == "failed"
        assert result.results[0].message == "Failed: age >= 18 (got: 16)"

    def test_failure_message_formats_booleans(self):
        result = validate_case(
            [rule(field="citizen", operator="==", value=True, description="Citizen")],
            {"citizen": False},
        )
        assert result.results[0].message == "Failed: citizen == true (got: false)"

    def test_failed_takes_precedence_over_missing(self):
        rules = [
            rule(rule_id="r1"),
            rule(field="citizen", operator="==", value=True, rule_id="r2"),
        ]
        result = validate_case(rules, {"age": 12})

        statuses = {r.rule_id: r.status for r in result.results}
        assert statuses == {"r1": "failed", "r2": "missing"}
        assert result.status == "rejected"

    def test_empty_rules_approve_anything(self):
        for case_data in ({}, {"age": 3}, {"anything": "goes"}):
            result = validate_case([], case_data)
            assert result.status == "approved"
            assert result.results == []
            assert result.message == NO_RULES_MESSAGE

    @pytest.mark.parametrize("case_data", [{}, {"age": None}, {"age": ""}])
    def test_missing_values(self, case_data):
        result = validate_case([rule()], case_data)
        assert result.results[0].status == "missing"

    def test_zero_and_false_are_not_missing(self):
        rules = [
            rule(field="income", operator=">=", value=0, rule_id="r1"),
            rule(field="hazardous", operator="==", value=False, rule_id="r2"),
        ]
        result = validate_case(rules, {"income": 0, "hazardous": False})

        assert [r.status for r in result.results] == ["passed", "passed"]
        assert result.status == "approved"

    def test_results_preserve_rule_order(self):
        rules = [rule(rule_id=f"r{i}") for i in range(5)]
        result = validate_case(rules, {"age": 30})
        assert [r.rule_id for r in result.results] == ["r0", "r1", "r2", "r3", "r4"]


class TestCaseValidator:
    """Tests for validation against stored policies."""

    def test_validates_stored_rules(self, store, saved_policy):
        result = CaseValidator(store).validate(saved_policy.id, {"age": 30, "citizen": True})
        assert result.status == "approved"
        assert len(result.results) == 2

    def test_unknown_policy_is_not_found(self, store):
        with pytest.raises(PolicyNotFoundError):
            CaseValidator(store).validate("does-not-exist", {"age": 30})

    def test_policy_without_rules_approves(self, store, policy_factory):
        policy = store.create(policy_factory(rules=[]))
        result = CaseValidator(store).validate(policy.id, {})
        assert result.status == "approved"
        assert result.results == []

    def test_missing_policy_id_is_bad_input(self, store):
        with pytest.raises(BadInputError):
            CaseValidator(store).validate("", {"age": 30})

    @pytest.mark.parametrize("case_data", [None, "age=20", [1, 2], {"address": {"city": "X"}}])
    def test_malformed_case_data_is_bad_input(self, store, saved_policy, case_data):
        with pytest.raises(BadInputError):
            CaseValidator(store).validate(saved_policy.id, case_data)
