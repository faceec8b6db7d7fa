# policyflow/db/store.py
"""
Policy store.

Policies are written whole after a successful generation; afterwards only
the checklist changes. Storage failures surface as StorageError and are
never reported as a missing policy.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import Column, DateTime, JSON, String, Text, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .engine import Base
from ..errors import PolicyNotFoundError, StorageError
from ..logging import get_logger
from ..policy.models import (
    Policy,
    PolicyRule,
    PolicyGraph,
    WorkflowStep,
    ChecklistItem,
    decision_node_from_dict,
)

logger = get_logger(__name__)


class PolicyRecord(Base):
    __tablename__ = "policy"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    input_text = Column(Text, nullable=False, default="")
    workflow = Column(JSON, nullable=False)
    decision_tree = Column(JSON, nullable=False)
    checklist = Column(JSON, nullable=False)
    rules = Column(JSON, nullable=False)
    graph = Column(JSON, nullable=True)
    user_id = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def to_policy(self) -> Policy:
        return Policy(
            id=self.id,
            title=self.title,
            input_text=self.input_text or "",
            workflow=[WorkflowStep(**s) for s in self.workflow],
            decision_tree=decision_node_from_dict(self.decision_tree),
            checklist=[ChecklistItem.from_dict(c) for c in self.checklist],
            rules=[PolicyRule.from_dict(r) for r in (self.rules or [])],
            graph=PolicyGraph.from_dict(self.graph) if self.graph else None,
            user_id=self.user_id,
            created_at=self.created_at,
        )


class PolicyStore:
    """
    Document-style policy storage on SQLAlchemy.

    Usage:
        store = PolicyStore(session)
        policy = store.create(policy)
        store.get_by_id(policy.id)
    """

    def __init__(self, session: Session):
        self.session = session

    def create(self, policy: Policy) -> Policy:
        """Persist a new policy, assigning its id and creation time."""
        policy.id = str(uuid4())
        policy.created_at = datetime.now(timezone.utc)
        data = policy.to_dict()

        record = PolicyRecord(
            id=policy.id,
            title=policy.title,
            input_text=policy.input_text,
            workflow=data["workflow"],
            decision_tree=data["decision_tree"],
            checklist=data["checklist"],
            rules=data["rules"],
            graph=data["graph"],
            user_id=policy.user_id,
            created_at=policy.created_at,
        )
        try:
            self.session.add(record)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("policy_create_failed", title=policy.title)
            raise StorageError(f"Failed to create policy: {exc}") from exc

        logger.info("policy_created", policy_id=policy.id, user_id=policy.user_id)
        return policy

    def get_by_id(self, policy_id: str) -> Optional[Policy]:
        """Return the policy, or None if no policy has this id."""
        try:
            record = self.session.get(PolicyRecord, policy_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load policy: {exc}") from exc
        return record.to_policy() if record else None

    def list(self, user_id: Optional[str] = None) -> List[Policy]:
        """Policies newest-first, optionally restricted to one owner."""
        query = select(PolicyRecord).order_by(PolicyRecord.created_at.desc())
        if user_id:
            query = query.where(PolicyRecord.user_id == user_id)
        try:
            records = self.session.execute(query).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to list policies: {exc}") from exc
        return [r.to_policy() for r in records]

    def update_checklist(self, policy_id: str, checklist: List[ChecklistItem]) -> None:
        """
        Replace a policy's checklist.

        Raises:
            PolicyNotFoundError: If the policy does not exist
        """
        try:
            record = self.session.get(PolicyRecord, policy_id)
            if record is None:
                raise PolicyNotFoundError(policy_id)
            record.checklist = [item.to_dict() for item in checklist]
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(f"Failed to update checklist: {exc}") from exc

        logger.info(
            "checklist_updated",
            policy_id=policy_id,
            completed=sum(1 for item in checklist if item.completed),
            total=len(checklist),
        )
