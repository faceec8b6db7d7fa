# tests/conftest.py
"""
Pytest configuration and fixtures.

Storage tests run against in-memory SQLite. The LLM client and the
transient document store are replaced with in-process fakes, injected
through constructors or FastAPI dependency overrides.
"""

import json

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from policyflow.db.engine import Base
from policyflow.db.store import PolicyStore
from policyflow.errors import UpstreamError
from policyflow.llm.client import LLMResponse, UploadedDocument
from policyflow.policy.models import (
    Policy,
    PolicyRule,
    WorkflowStep,
    ChecklistItem,
    DecisionQuestion,
    DecisionAction,
)


class FakeLLM:
    """Returns queued responses in order; queued exceptions are raised."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def complete(self, prompt, attachment=None, **kwargs):
        self.calls.append({"prompt": prompt, "attachment": attachment})
        if not self.responses:
            raise AssertionError("FakeLLM has no queued response")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return LLMResponse(content=item, raw_response=None, model="fake", usage={})


class FakeDocumentStore:
    """Records uploads and deletes."""

    def __init__(self, fail_upload=False, fail_delete=False):
        self.fail_upload = fail_upload
        self.fail_delete = fail_delete
        self.uploads = []
        self.deleted = []

    def upload(self, data, mime_type, display_name):
        if self.fail_upload:
            raise UpstreamError("upload failed")
        handle = f"files/{len(self.uploads) + 1}"
        self.uploads.append({"handle": handle, "data": data, "mime_type": mime_type})
        return UploadedDocument(
            handle=handle,
            uri=f"uri://{handle}",
            mime_type=mime_type,
            display_name=display_name,
        )

    def delete(self, handle):
        self.deleted.append(handle)
        if self.fail_delete:
            raise RuntimeError("delete failed")


VALID_GENERATION = {
    "workflow": [
        {"step": "Receive application", "description": "Front desk logs the application."},
        {"step": "Verify identity", "description": "Registrar checks ID documents."},
    ],
    "decision_tree": {
        "question": "Is the applicant at least 18?",
        "yes": {
            "question": "Is the applicant a citizen?",
            "yes": {"action": "Approve application"},
            "no": {"action": "Refer to immigration desk"},
        },
        "no": {"action": "Reject - underage"},
    },
    "checklist": [
        {"task": "Record application number", "completed": False},
        "Photocopy ID card",
    ],
    "rules": [
        {"id": "rule_1", "field": "age", "operator": ">=", "value": 18,
         "description": "Applicant must be at least 18 years old"},
        {"id": "rule_2", "field": "citizen", "operator": "==", "value": True,
         "description": "Applicant must be a citizen"},
    ],
}


@pytest.fixture
def valid_generation_text() -> str:
    return "```json\n" + json.dumps(VALID_GENERATION) + "\n```"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine) -> Session:
    SessionFactory = sessionmaker(bind=engine)
    session = SessionFactory()
    yield session
    session.close()


@pytest.fixture
def store(session) -> PolicyStore:
    return PolicyStore(session)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def documents() -> FakeDocumentStore:
    return FakeDocumentStore()


def make_policy(rules=None, user_id="user-1", title="Voter Registration") -> Policy:
    return Policy(
        title=title,
        input_text="Applicants must be adult citizens.",
        workflow=[WorkflowStep(step="Receive application", description="Log it")],
        decision_tree=DecisionQuestion(
            question="Is the applicant eligible?",
            yes=DecisionAction(action="Register voter"),
            no=DecisionAction(action="Reject application"),
        ),
        checklist=[
            ChecklistItem(id="item-1", title="Check ID"),
            ChecklistItem(id="item-2", title="Check address"),
        ],
        rules=rules if rules is not None else [
            PolicyRule(id="r1", field="age", operator=">=", value=18, description="Adult"),
            PolicyRule(id="r2", field="citizen", operator="==", value=True,
                       description="Citizen"),
        ],
        user_id=user_id,
    )


@pytest.fixture
def saved_policy(store) -> Policy:
    """Policy with an age and a citizenship rule."""
    return store.create(make_policy())


@pytest.fixture
def client(session, fake_llm, documents):
    """API client wired to the SQLite session and the fakes."""
    from fastapi.testclient import TestClient

    from policyflow.main import app
    from policyflow.db.engine import get_session
    from policyflow.llm.client import get_llm_client, get_document_store

    def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    app.dependency_overrides[get_document_store] = lambda: documents

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def policy_factory():
    """Builds unsaved policies; pass rules=[] for a policy without rules."""
    return make_policy
