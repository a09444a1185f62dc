"""Approval-related models."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from spendflow import db

MATCH_ALL = "all"


class ApprovalDecisionStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class ApprovalRuleType(enum.Enum):
    PERCENTAGE = "percentage"
    SPECIFIC_APPROVER = "specific_approver"
    HYBRID = "hybrid"

    @property
    def uses_percentage(self) -> bool:
        return self in (ApprovalRuleType.PERCENTAGE, ApprovalRuleType.HYBRID)

    @property
    def uses_specific_approver(self) -> bool:
        return self in (ApprovalRuleType.SPECIFIC_APPROVER, ApprovalRuleType.HYBRID)


class ApprovalRule(db.Model):
    __tablename__ = "approval_rules"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    rule_type = db.Column(db.Enum(ApprovalRuleType, name="approval_rule_type"), nullable=False)
    percentage = db.Column(db.Integer, nullable=True)
    specific_approver = db.Column(db.String(255), nullable=True)
    # Ordered list of {"role": str, "order": int, "required": bool}
    approvers = db.Column(db.JSON, nullable=False, default=list)
    amount_threshold = db.Column(db.Numeric(12, 2), nullable=True)
    category = db.Column(db.String(120), nullable=True)
    department = db.Column(db.String(120), nullable=True)
    is_sequential = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company = db.relationship("Company", back_populates="approval_rules", lazy="joined")

    @property
    def conditions(self) -> dict:
        return {
            "amount_threshold": float(self.amount_threshold) if self.amount_threshold is not None else None,
            "category": self.category or MATCH_ALL,
            "department": self.department or MATCH_ALL,
        }

    def ordered_approvers(self) -> list:
        entries = list(enumerate(self.approvers or []))
        entries.sort(key=lambda pair: (pair[1].get("order", pair[0] + 1), pair[0]))
        return [entry for _, entry in entries]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "rule_type": self.rule_type.value if self.rule_type else None,
            "percentage": self.percentage,
            "specific_approver": self.specific_approver,
            "approvers": self.ordered_approvers(),
            "conditions": self.conditions,
            "is_sequential": self.is_sequential,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<ApprovalRule id={self.id} type={self.rule_type.value if self.rule_type else None}>"


class ApprovalStep(db.Model):
    __tablename__ = "approval_steps"
    __table_args__ = (
        db.UniqueConstraint("expense_id", "approver_user_id", name="uq_approval_steps_expense_approver"),
        db.UniqueConstraint("expense_id", "sequence_index", name="uq_approval_steps_expense_sequence"),
    )

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=False, index=True)
    approver_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    sequence_index = db.Column(db.Integer, nullable=False)
    status = db.Column(
        db.Enum(ApprovalDecisionStatus, name="approval_decision_status"),
        nullable=False,
        default=ApprovalDecisionStatus.PENDING,
    )
    is_specific_approver = db.Column(db.Boolean, default=False, nullable=False)
    counts_toward_percentage = db.Column(db.Boolean, default=True, nullable=False)
    required = db.Column(db.Boolean, default=False, nullable=False)
    comments = db.Column(db.Text, nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)

    expense = db.relationship("Expense", back_populates="steps")
    approver = db.relationship("User", back_populates="approval_steps", lazy="joined")

    @property
    def approved(self) -> Optional[bool]:
        if self.status == ApprovalDecisionStatus.APPROVED:
            return True
        if self.status == ApprovalDecisionStatus.REJECTED:
            return False
        return None

    @property
    def is_outstanding(self) -> bool:
        return self.status == ApprovalDecisionStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_id": self.expense_id,
            "approver_id": self.approver_user_id,
            "sequence_index": self.sequence_index,
            "status": self.status.value if self.status else None,
            "approved": self.approved,
            "is_specific_approver": self.is_specific_approver,
            "counts_toward_percentage": self.counts_toward_percentage,
            "required": self.required,
            "comments": self.comments,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<ApprovalStep expense_id={self.expense_id} approver={self.approver_user_id} "
            f"status={self.status.value if self.status else None}>"
        )
