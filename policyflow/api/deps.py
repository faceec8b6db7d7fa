# policyflow/api/deps.py
"""
FastAPI dependencies.

Each pipeline receives its collaborators explicitly; tests replace the
LLM client, document store and session through app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ..db.engine import get_session
from ..db.store import PolicyStore
from ..llm.client import get_llm_client, get_document_store
from ..pipeline.generator import PolicyGenerator
from ..pipeline.extractor import CaseExtractor
from ..policy.engine import CaseValidator


def get_store(session: Session = Depends(get_session)) -> PolicyStore:
    return PolicyStore(session)


def get_generator(llm=Depends(get_llm_client)) -> PolicyGenerator:
    return PolicyGenerator(llm)


def get_validator(store: PolicyStore = Depends(get_store)) -> CaseValidator:
    return CaseValidator(store)


def get_extractor(
    llm=Depends(get_llm_client),
    documents=Depends(get_document_store),
    store: PolicyStore = Depends(get_store),
) -> CaseExtractor:
    return CaseExtractor(llm, documents, store)
