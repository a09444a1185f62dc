"""Expense model definitions."""
from __future__ import annotations

import enum

from spendflow import db
from spendflow.models.approval import ApprovalRuleType


class ExpenseStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Expense(db.Model):
    __tablename__ = "expenses"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    submitter_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False)
    amount_in_company_currency = db.Column(db.Numeric(12, 2), nullable=True)
    category = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    department = db.Column(db.String(120), nullable=True)
    date_spent = db.Column(db.Date, nullable=False)
    status = db.Column(db.Enum(ExpenseStatus, name="expense_status"), nullable=False, default=ExpenseStatus.PENDING)

    # Rule decision, fixed at submission.
    approval_rule_id = db.Column(db.Integer, db.ForeignKey("approval_rules.id"), nullable=True)
    rule_type = db.Column(db.Enum(ApprovalRuleType, name="approval_rule_type"), nullable=False)
    percentage_threshold = db.Column(db.Integer, nullable=True)
    is_sequential = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)
    decided_at = db.Column(db.DateTime, nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)

    # Every decision bumps the version explicitly; a stale UPDATE raises StaleDataError.
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    submitter = db.relationship("User", back_populates="submitted_expenses", lazy="joined")
    approval_rule = db.relationship("ApprovalRule", lazy="select")
    steps = db.relationship(
        "ApprovalStep",
        back_populates="expense",
        lazy="selectin",
        order_by="ApprovalStep.sequence_index",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_steps: bool = False) -> dict:
        payload = {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.submitter_user_id,
            "amount": float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "amount_in_company_currency": float(self.amount_in_company_currency)
            if self.amount_in_company_currency is not None
            else None,
            "category": self.category,
            "description": self.description,
            "department": self.department,
            "date": self.date_spent.isoformat() if self.date_spent else None,
            "status": self.status.value if self.status else None,
            "approval_rule_id": self.approval_rule_id,
            "rule_type": self.rule_type.value if self.rule_type else None,
            "percentage_threshold": self.percentage_threshold,
            "is_sequential": self.is_sequential,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
        }
        if include_steps:
            payload["steps"] = [step.to_dict() for step in self.steps]
        return payload

    def __repr__(self) -> str:
        return f"<Expense id={self.id} status={self.status.value if self.status else None}>"
