"""
Test the policy generation pipeline.

The LLM is a FakeLLM with queued responses; no network calls are made.
"""

import base64
import json

import pytest

from policyflow.errors import (
    BadInputError,
    MalformedOutputError,
    RateLimitError,
    UpstreamError,
)
from policyflow.llm.client import InlineDocument
from policyflow.pipeline.generator import PolicyGenerator, PolicyInput, build_policy, check_shape
from policyflow.pipeline.prompts import RETRY_SUFFIX
from policyflow.policy.decision_tree import (
    FALLBACK_ACTION,
    CEILING_ACTION_PREFIX,
    fallback_tree,
    tree_depth,
)
from policyflow.policy.models import DecisionQuestion, DecisionAction
from policyflow.policy.normalize import FALLBACK_WORKFLOW, FALLBACK_CHECKLIST

from conftest import FakeLLM, VALID_GENERATION


def waste_input(**overrides):
    values = {
        "title": "Waste Collection",
        "policy_text": "Households must segregate waste before 9am collection.",
    }
    values.update(overrides)
    return PolicyInput(**values)


class TestGenerate:
    """Tests for PolicyGenerator.generate()."""

    def test_valid_response(self, valid_generation_text):
        llm = FakeLLM([valid_generation_text])
        generated = PolicyGenerator(llm).generate(waste_input())

        assert len(llm.calls) == 1
        assert [s.step for s in generated.workflow] == ["Receive application", "Verify identity"]
        assert generated.checklist == ["Record application number", "Photocopy ID card"]
        assert generated.decision_tree.to_dict() == VALID_GENERATION["decision_tree"]
        assert [r.id for r in generated.rules] == ["rule_1", "rule_2"]

        data = generated.to_dict()
        assert data["graph"]["nodes"][0]["type"] == "start"
        assert data["checklist"] == generated.checklist

    def test_prompt_contains_inputs(self, valid_generation_text):
        llm = FakeLLM([valid_generation_text])
        PolicyGenerator(llm).generate(waste_input(description="Ward 12", notes="Pilot"))

        prompt = llm.calls[0]["prompt"]
        assert "TITLE: Waste Collection" in prompt
        assert "DESCRIPTION: Ward 12" in prompt
        assert "NOTES: Pilot" in prompt
        assert "segregate waste" in prompt
        assert llm.calls[0]["attachment"] is None

    def test_malformed_sections_repaired(self):
        """A leaf root, empty workflow and null checklist entries are repaired."""
        raw = json.dumps({
            "workflow": [],
            "decision_tree": {"action": "Collect waste"},
            "checklist": [None],
        })
        generated = PolicyGenerator(FakeLLM([raw])).generate(waste_input())

        assert generated.decision_tree == fallback_tree("Waste Collection")
        assert [(s.step, s.description) for s in generated.workflow] == list(FALLBACK_WORKFLOW)
        assert generated.checklist == list(FALLBACK_CHECKLIST)
        assert generated.rules == []

    def test_deep_tree_bounded(self):
        tree = {"action": "bottom"}
        for i in range(6):
            tree = {"question": f"Level {i}?", "yes": tree, "no": {"action": "stop"}}
        raw = json.dumps({"workflow": [], "decision_tree": tree, "checklist": []})

        generated = PolicyGenerator(FakeLLM([raw])).generate(waste_input())

        assert tree_depth(generated.decision_tree) == 3
        assert generated.decision_tree.yes.yes == DecisionAction(
            f"{CEILING_ACTION_PREFIX}Level 3?"
        )

    def test_custom_max_depth(self):
        tree = {"question": "A?", "yes": {"question": "B?", "yes": {"action": "x"}}}
        raw = json.dumps({"workflow": [], "decision_tree": tree, "checklist": []})

        generated = PolicyGenerator(FakeLLM([raw]), max_depth=2).generate(waste_input())

        assert generated.decision_tree == DecisionQuestion(
            question="A?",
            yes=DecisionAction(f"{CEILING_ACTION_PREFIX}B?"),
            no=DecisionAction(FALLBACK_ACTION),
        )

    def test_retry_once_after_parse_failure(self, valid_generation_text):
        llm = FakeLLM(["Sorry, here is the policy in prose.", valid_generation_text])
        generated = PolicyGenerator(llm).generate(waste_input())

        assert len(llm.calls) == 2
        assert llm.calls[1]["prompt"].endswith(RETRY_SUFFIX)
        assert generated.checklist

    def test_hard_failure_after_retry(self):
        raw = "not json " * 200
        llm = FakeLLM(["still prose", raw])

        with pytest.raises(MalformedOutputError) as exc_info:
            PolicyGenerator(llm).generate(waste_input())

        error = exc_info.value
        assert error.status_code == 502
        assert error.raw_preview == raw[:500] + "..."
        assert len(llm.calls) == 2

    def test_missing_section(self):
        raw = json.dumps({"workflow": [], "checklist": []})
        llm = FakeLLM([raw])

        with pytest.raises(MalformedOutputError) as exc_info:
            PolicyGenerator(llm).generate(waste_input())

        assert "decision_tree" in exc_info.value.message
        assert len(llm.calls) == 1

    def test_rate_limit_propagates(self):
        llm = FakeLLM([RateLimitError("quota exceeded")])

        with pytest.raises(RateLimitError) as exc_info:
            PolicyGenerator(llm).generate(waste_input())

        assert exc_info.value.retryable
        assert len(llm.calls) == 1

    def test_upstream_error_propagates(self):
        with pytest.raises(UpstreamError):
            PolicyGenerator(FakeLLM([UpstreamError("boom")])).generate(waste_input())

    def test_pdf_attachment(self, valid_generation_text):
        llm = FakeLLM([valid_generation_text])
        pdf_base64 = base64.b64encode(b"%PDF-1.4 policy").decode()

        PolicyGenerator(llm).generate(waste_input(policy_text=None, pdf_base64=pdf_base64))

        attachment = llm.calls[0]["attachment"]
        assert isinstance(attachment, InlineDocument)
        assert attachment.data == b"%PDF-1.4 policy"
        assert "(see attached PDF)" in llm.calls[0]["prompt"]


class TestBadInput:
    """Tests for rejected generation input."""

    def test_empty_title(self):
        llm = FakeLLM()
        with pytest.raises(BadInputError):
            PolicyGenerator(llm).generate(waste_input(title="   "))
        assert llm.calls == []

    def test_no_text_and_no_pdf(self):
        with pytest.raises(BadInputError):
            PolicyGenerator(FakeLLM()).generate(waste_input(policy_text="  "))

    def test_invalid_pdf(self):
        with pytest.raises(BadInputError):
            PolicyGenerator(FakeLLM()).generate(waste_input(pdf_base64="%%%"))


class TestCheckShape:
    def test_not_an_object(self):
        with pytest.raises(MalformedOutputError):
            check_shape([1, 2], "[1, 2]")

    def test_wrong_types(self):
        with pytest.raises(MalformedOutputError) as exc_info:
            check_shape({"workflow": {}, "decision_tree": [], "checklist": "x"}, "{}")
        assert exc_info.value.message == (
            "AI response is missing required sections: workflow, decision_tree, checklist"
        )


class TestBuildPolicy:
    def test_checklist_ids(self, valid_generation_text):
        generated = PolicyGenerator(FakeLLM([valid_generation_text])).generate(waste_input())

        policy = build_policy(generated, " Waste Collection ", " text ", "user-9")

        assert policy.title == "Waste Collection"
        assert policy.input_text == "text"
        assert [c.to_dict() for c in policy.checklist] == [
            {"id": "item-1", "title": "Record application number", "completed": False},
            {"id": "item-2", "title": "Photocopy ID card", "completed": False},
        ]
        assert policy.id is None
