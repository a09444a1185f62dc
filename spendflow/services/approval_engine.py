"""Approval state machine for multi-step expense workflows.

The outcome of a decision is computed by pure functions over immutable step
snapshots (``apply_decision``/``resolve_outcome``). ``record_decision`` wraps
them in one database transaction guarded by the expense's version column, and
retries a bounded number of times when another decision on the same expense
commits first.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from spendflow.exceptions import (
    ConcurrencyConflict,
    ExpenseNotFoundError,
    InvalidTransitionError,
    WorkflowError,
)
from spendflow.identity import Identity
from spendflow.models import (
    ApprovalDecisionStatus,
    ApprovalRuleType,
    ApprovalStep,
    AuditLog,
    Expense,
    ExpenseStatus,
)
from spendflow.services import notification_service
from spendflow.services.repository import ExpenseRepository

logger = logging.getLogger(__name__)


class BranchState(enum.Enum):
    OPEN = "open"
    SATISFIED = "satisfied"
    FAILED = "failed"


@dataclass(frozen=True)
class ApprovalPolicy:
    rule_type: ApprovalRuleType
    percentage: Optional[int] = None
    is_sequential: bool = False

    @classmethod
    def from_expense(cls, expense: Expense) -> "ApprovalPolicy":
        return cls(
            rule_type=expense.rule_type,
            percentage=expense.percentage_threshold,
            is_sequential=bool(expense.is_sequential),
        )


@dataclass(frozen=True)
class StepSnapshot:
    approver_id: int
    sequence_index: int
    status: ApprovalDecisionStatus = ApprovalDecisionStatus.PENDING
    is_specific_approver: bool = False
    counts_toward_percentage: bool = True
    required: bool = False

    @classmethod
    def from_step(cls, step: ApprovalStep) -> "StepSnapshot":
        return cls(
            approver_id=step.approver_user_id,
            sequence_index=step.sequence_index,
            status=step.status,
            is_specific_approver=bool(step.is_specific_approver),
            counts_toward_percentage=bool(step.counts_toward_percentage),
            required=bool(step.required),
        )

    @property
    def outstanding(self) -> bool:
        return self.status is ApprovalDecisionStatus.PENDING


@dataclass(frozen=True)
class Transition:
    step_status: ApprovalDecisionStatus
    expense_status: ExpenseStatus
    steps: Tuple[StepSnapshot, ...]

    @property
    def finalized(self) -> bool:
        return self.expense_status is not ExpenseStatus.PENDING


@dataclass
class DecisionResult:
    finalized: bool
    expense_status: ExpenseStatus
    expense: Expense
    step: ApprovalStep
    newly_assigned: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "finalized": self.finalized,
            "expense_status": self.expense_status.value,
            "expense": self.expense.to_dict(),
            "step": self.step.to_dict(),
        }


# Pure evaluation ------------------------------------------------------------


def percentage_branch(policy: ApprovalPolicy, steps: Sequence[StepSnapshot]) -> BranchState:
    counted = [step for step in steps if step.counts_toward_percentage]
    if not counted or policy.percentage is None:
        return BranchState.OPEN

    total = len(counted)
    approved = sum(1 for step in counted if step.status is ApprovalDecisionStatus.APPROVED)
    outstanding = sum(1 for step in counted if step.outstanding)
    required = [step for step in counted if step.required]

    if any(step.status is ApprovalDecisionStatus.REJECTED for step in required):
        return BranchState.FAILED
    if (approved + outstanding) * 100 < policy.percentage * total:
        return BranchState.FAILED
    if approved * 100 >= policy.percentage * total and not any(step.outstanding for step in required):
        return BranchState.SATISFIED
    return BranchState.OPEN


def specific_branch(steps: Sequence[StepSnapshot]) -> BranchState:
    specific = [step for step in steps if step.is_specific_approver]
    if any(step.status is ApprovalDecisionStatus.APPROVED for step in specific):
        return BranchState.SATISFIED
    if any(step.status is ApprovalDecisionStatus.REJECTED for step in specific):
        return BranchState.FAILED
    return BranchState.OPEN


def resolve_outcome(policy: ApprovalPolicy, steps: Sequence[StepSnapshot]) -> ExpenseStatus:
    """Expense status implied by the current step decisions."""
    if policy.rule_type is ApprovalRuleType.SPECIFIC_APPROVER:
        branches = (specific_branch(steps),)
    elif policy.rule_type is ApprovalRuleType.PERCENTAGE:
        branches = (percentage_branch(policy, steps),)
    else:
        branches = (specific_branch(steps), percentage_branch(policy, steps))

    if BranchState.SATISFIED in branches:
        return ExpenseStatus.APPROVED
    if BranchState.FAILED in branches:
        return ExpenseStatus.REJECTED
    return ExpenseStatus.PENDING


def is_actionable(policy: ApprovalPolicy, steps: Sequence[StepSnapshot], approver_id: int) -> bool:
    """Whether ``approver_id`` has an outstanding step they may decide now."""
    step = next((s for s in steps if s.approver_id == approver_id and s.outstanding), None)
    if step is None:
        return False
    if not policy.is_sequential:
        return True
    return all(not s.outstanding for s in steps if s.sequence_index < step.sequence_index)


def actionable_approvers(policy: ApprovalPolicy, steps: Sequence[StepSnapshot]) -> List[int]:
    return [s.approver_id for s in steps if s.outstanding and is_actionable(policy, steps, s.approver_id)]


def apply_decision(
    policy: ApprovalPolicy, steps: Sequence[StepSnapshot], approver_id: int, approved: bool
) -> Transition:
    """Apply one approver's decision and compute the resulting expense status."""
    step = next((s for s in steps if s.approver_id == approver_id), None)
    if step is None:
        raise InvalidTransitionError(
            "You are not an assigned approver for this expense.",
            details={"approver_id": approver_id},
        )
    if not step.outstanding:
        raise InvalidTransitionError(
            "You have already decided on this expense.",
            details={"approver_id": approver_id, "status": step.status.value},
        )
    if not is_actionable(policy, steps, approver_id):
        raise InvalidTransitionError(
            "Earlier approval steps must be decided first.",
            details={"approver_id": approver_id, "sequence_index": step.sequence_index},
        )

    decision = ApprovalDecisionStatus.APPROVED if approved else ApprovalDecisionStatus.REJECTED
    updated = tuple(replace(s, status=decision) if s is step else s for s in steps)
    return Transition(step_status=decision, expense_status=resolve_outcome(policy, updated), steps=updated)


# Transactional boundary -----------------------------------------------------


def _decide(
    identity: Identity,
    expense_id: int,
    approved: bool,
    comment: Optional[str],
    repository: ExpenseRepository,
) -> DecisionResult:
    expense = repository.get_expense(expense_id)
    if expense is None or expense.company_id != identity.company_id:
        raise ExpenseNotFoundError("Expense not found.", details={"expense_id": expense_id})
    if expense.status is not ExpenseStatus.PENDING:
        raise InvalidTransitionError(
            f"Expense has already been {expense.status.value}.",
            details={"expense_id": expense_id, "status": expense.status.value},
        )

    steps = repository.get_approval_steps(expense.id)
    policy = ApprovalPolicy.from_expense(expense)
    before = [StepSnapshot.from_step(step) for step in steps]
    transition = apply_decision(policy, before, identity.user_id, approved)

    now = datetime.utcnow()
    step = next(s for s in steps if s.approver_user_id == identity.user_id)
    repository.update_step(step, transition.step_status, comment, now)
    repository.touch_expense(expense, now)
    AuditLog.record(
        "expense",
        expense.id,
        "decision_recorded",
        user_id=identity.user_id,
        company_id=expense.company_id,
        decision=transition.step_status.value,
        comments=comment,
    )

    newly_assigned: List[int] = []
    if transition.finalized:
        repository.update_expense_status(expense, transition.expense_status, now)
        AuditLog.record(
            "expense",
            expense.id,
            "expense_finalized",
            user_id=identity.user_id,
            company_id=expense.company_id,
            status=transition.expense_status.value,
        )
    elif policy.is_sequential:
        waiting_before = set(actionable_approvers(policy, before))
        newly_assigned = [
            approver_id
            for approver_id in actionable_approvers(policy, transition.steps)
            if approver_id not in waiting_before
        ]

    return DecisionResult(
        finalized=transition.finalized,
        expense_status=transition.expense_status,
        expense=expense,
        step=step,
        newly_assigned=newly_assigned,
    )


def record_decision(
    identity: Identity,
    expense_id: int,
    approved: bool,
    comment: Optional[str] = None,
    repository: Optional[ExpenseRepository] = None,
    max_attempts: Optional[int] = None,
) -> DecisionResult:
    """Record ``identity``'s approve/reject decision on an expense.

    Raises ``InvalidTransitionError`` for duplicate, unassigned or
    out-of-order decisions and for finalized expenses, and
    ``ConcurrencyConflict`` once retries against concurrent decisions are
    exhausted.
    """
    repository = repository or ExpenseRepository()
    attempts = max_attempts or current_app.config.get("DECISION_MAX_ATTEMPTS", 3)

    for attempt in range(1, attempts + 1):
        try:
            result = _decide(identity, expense_id, approved, comment, repository)
            repository.commit()
        except StaleDataError:
            repository.rollback()
            logger.warning(
                "Concurrent decision on expense %s, retrying (attempt %d/%d)",
                expense_id,
                attempt,
                attempts,
            )
            continue
        except (WorkflowError, SQLAlchemyError):
            repository.rollback()
            raise

        logger.info(
            "User %s %s expense %s; expense is now %s",
            identity.user_id,
            result.step.status.value,
            expense_id,
            result.expense_status.value,
        )
        _notify_decision(result)
        return result

    raise ConcurrencyConflict(
        "The expense was updated concurrently; please retry.",
        details={"expense_id": expense_id, "attempts": attempts},
    )


def _notify_decision(result: DecisionResult) -> None:
    expense = result.expense
    if result.finalized:
        notification_service.notify(
            expense.submitter_user_id,
            "expense_finalized",
            expense_id=expense.id,
            status=result.expense_status.value,
        )
    for approver_id in result.newly_assigned:
        notification_service.notify(approver_id, "step_assigned", expense_id=expense.id)


def actionable_steps_for(user_id: int, repository: Optional[ExpenseRepository] = None) -> List[ApprovalStep]:
    """Outstanding steps the user can decide now, honouring sequential rules."""
    repository = repository or ExpenseRepository()
    actionable = []
    for step in repository.pending_steps_for(user_id):
        expense = step.expense
        snapshots = [StepSnapshot.from_step(s) for s in expense.steps]
        if is_actionable(ApprovalPolicy.from_expense(expense), snapshots, user_id):
            actionable.append(step)
    return actionable
