"""SQL-backed persistence for expenses, approval steps and approver lookups."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from spendflow.exceptions import InvalidTransitionError
from spendflow.models import (
    ApprovalDecisionStatus,
    ApprovalRule,
    ApprovalStep,
    AuditLog,
    Expense,
    ExpenseStatus,
    User,
    UserRole,
    db,
)

logger = logging.getLogger(__name__)

TERMINAL_EXPENSE_STATUSES = {ExpenseStatus.APPROVED, ExpenseStatus.REJECTED}


class ExpenseRepository:
    """Durable storage for expenses and their approval steps.

    Methods stage changes in the current session; ``save_expense_with_steps``
    commits on its own, decision writes are committed by the caller so the
    whole decision lands in one transaction.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        return self.session.get(Expense, expense_id, populate_existing=True)

    def get_approval_steps(self, expense_id: int) -> List[ApprovalStep]:
        return (
            self.session.query(ApprovalStep)
            .filter(ApprovalStep.expense_id == expense_id)
            .order_by(ApprovalStep.sequence_index.asc())
            .populate_existing()
            .all()
        )

    def active_rules(self, company_id: int) -> List[ApprovalRule]:
        return (
            self.session.query(ApprovalRule)
            .filter(ApprovalRule.company_id == company_id, ApprovalRule.is_active.is_(True))
            .all()
        )

    def save_expense_with_steps(
        self, expense: Expense, steps: Iterable[ApprovalStep], actor_id: Optional[int] = None
    ) -> Expense:
        """Persist an expense and its approval steps in one transaction."""
        steps = list(steps)
        try:
            expense.steps = steps
            self.session.add(expense)
            self.session.flush()
            AuditLog.record(
                "expense",
                expense.id,
                "expense_submitted",
                user_id=actor_id,
                company_id=expense.company_id,
                approval_rule_id=expense.approval_rule_id,
                rule_type=expense.rule_type.value,
                approvers=[step.approver_user_id for step in steps],
            )
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Failed to persist expense for user %s", expense.submitter_user_id)
            raise
        return expense

    def update_step(
        self,
        step: ApprovalStep,
        decision: ApprovalDecisionStatus,
        comments: Optional[str] = None,
        decided_at: Optional[datetime] = None,
    ) -> ApprovalStep:
        if not step.is_outstanding:
            raise InvalidTransitionError(
                "This approval step has already been decided.",
                details={"expense_id": step.expense_id, "approver_id": step.approver_user_id},
            )
        step.status = decision
        step.comments = comments
        step.approved_at = decided_at or datetime.utcnow()
        return step

    def touch_expense(self, expense: Expense, when: Optional[datetime] = None) -> None:
        """Bump the expense row so concurrent decisions conflict on its version."""
        expense.version = (expense.version or 0) + 1
        expense.updated_at = when or datetime.utcnow()

    def update_expense_status(
        self, expense: Expense, status: ExpenseStatus, decided_at: Optional[datetime] = None
    ) -> Expense:
        """Finalize ``expense`` and mark its remaining steps as skipped."""
        if expense.status is not ExpenseStatus.PENDING or status not in TERMINAL_EXPENSE_STATUSES:
            raise InvalidTransitionError(
                f"Expense cannot move from {expense.status.value} to {status.value}.",
                details={"expense_id": expense.id},
            )
        expense.status = status
        expense.decided_at = decided_at or datetime.utcnow()
        for step in expense.steps:
            if step.is_outstanding:
                step.status = ApprovalDecisionStatus.SKIPPED
        return expense

    def pending_steps_for(self, user_id: int) -> List[ApprovalStep]:
        return (
            self.session.query(ApprovalStep)
            .join(Expense, ApprovalStep.expense_id == Expense.id)
            .filter(
                ApprovalStep.approver_user_id == user_id,
                ApprovalStep.status == ApprovalDecisionStatus.PENDING,
                Expense.status == ExpenseStatus.PENDING,
            )
            .order_by(Expense.created_at.desc(), Expense.id.desc())
            .all()
        )

    def expenses_submitted_by(self, user_id: int) -> List[Expense]:
        return (
            self.session.query(Expense)
            .filter(Expense.submitter_user_id == user_id)
            .order_by(Expense.created_at.desc(), Expense.id.desc())
            .all()
        )

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class UserDirectory:
    """Approver lookups scoped to one company."""

    def __init__(self, session=None):
        self.session = session or db.session

    def get_user(self, company_id: int, user_id: int) -> Optional[User]:
        user = self.session.get(User, user_id)
        if user is None or user.company_id != company_id:
            return None
        return user

    def holders(
        self,
        company_id: int,
        *,
        role: Optional[UserRole] = None,
        job_title: Optional[str] = None,
        exclude_user_id: Optional[int] = None,
    ) -> List[User]:
        query = self.session.query(User).filter(User.company_id == company_id, User.is_active.is_(True))
        if role is not None:
            query = query.filter(User.role == role)
        if job_title is not None:
            query = query.filter(func.lower(User.job_title) == job_title.strip().lower())
        if exclude_user_id is not None:
            query = query.filter(User.id != exclude_user_id)
        return query.order_by(User.created_at.asc(), User.id.asc()).all()

    def admins(self, company_id: int) -> List[User]:
        return self.holders(company_id, role=UserRole.ADMIN)
