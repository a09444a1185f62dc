"""Expense submission: rule selection, step generation and persistence."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from flask import current_app

from spendflow.exceptions import AuthorizationError, ConfigurationError, ExpenseNotFoundError, ValidationError
from spendflow.identity import Identity
from spendflow.models import Company, Expense, ExpenseStatus, db
from spendflow.services import currency_service, notification_service
from spendflow.services.approval_engine import ApprovalPolicy, StepSnapshot, actionable_approvers
from spendflow.services.repository import ExpenseRepository, UserDirectory
from spendflow.services.rule_evaluator import select_rule
from spendflow.services.step_generator import default_rule, generate_steps

logger = logging.getLogger(__name__)


def _parse_amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Amount must be a number.", details={"amount": value})
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than zero.", details={"amount": str(value)})
    return amount


def submit_expense(
    identity: Identity,
    data: Dict[str, Any],
    repository: Optional[ExpenseRepository] = None,
    directory: Optional[UserDirectory] = None,
) -> Expense:
    """Create a pending expense together with its approval steps.

    ``data`` carries ``amount``, ``category`` and ``date`` and optionally
    ``currency``, ``description`` and ``department``. Nothing is written when
    the applicable rule cannot be resolved to approvers.
    """
    repository = repository or ExpenseRepository()
    directory = directory or UserDirectory()

    submitter = directory.get_user(identity.company_id, identity.user_id)
    if submitter is None:
        raise AuthorizationError("Unknown submitter.")
    company = db.session.get(Company, identity.company_id)

    amount = _parse_amount(data.get("amount"))
    category = (data.get("category") or "").strip()
    if not category:
        raise ValidationError("Category is required.", details={"category": "missing"})
    date_spent = data.get("date") or date.today()

    currency = (data.get("currency") or company.base_currency).upper()
    converted = currency_service.convert_currency(amount, currency, company.base_currency)

    expense = Expense(
        company_id=identity.company_id,
        submitter_user_id=submitter.id,
        amount=amount,
        currency=currency,
        amount_in_company_currency=converted,
        category=category,
        description=data.get("description"),
        department=data.get("department") or submitter.department,
        date_spent=date_spent,
        status=ExpenseStatus.PENDING,
        version=1,
    )

    rule = select_rule(expense, repository.active_rules(identity.company_id))
    if rule is None:
        fallback = current_app.config.get("DEFAULT_APPROVER_ROLE", "Manager")
        logger.info("No approval rule matched expense of user %s; using default approver %s", submitter.id, fallback)
        rule = default_rule(identity.company_id, fallback)
    else:
        logger.info("Approval rule %s selected for expense of user %s", rule.id, submitter.id)

    try:
        steps = generate_steps(expense, rule, submitter, directory)
    except ConfigurationError as exc:
        logger.error("Approval rule %s could not be applied for user %s: %s", rule.id, submitter.id, exc.message)
        notification_service.notify_company_admins(
            identity.company_id,
            "rule_match_failed",
            submitter_id=submitter.id,
            rule_id=rule.id,
            reason=exc.message,
        )
        raise

    expense.approval_rule_id = rule.id
    expense.rule_type = rule.rule_type
    expense.percentage_threshold = rule.percentage if rule.rule_type.uses_percentage else None
    expense.is_sequential = bool(rule.is_sequential)

    repository.save_expense_with_steps(expense, steps, actor_id=submitter.id)
    logger.info("Expense %s submitted by user %s with %d approval step(s)", expense.id, submitter.id, len(steps))

    policy = ApprovalPolicy.from_expense(expense)
    for approver_id in actionable_approvers(policy, [StepSnapshot.from_step(step) for step in steps]):
        notification_service.notify(approver_id, "step_assigned", expense_id=expense.id)
    return expense


def get_expense_for(identity: Identity, expense_id: int, repository: Optional[ExpenseRepository] = None) -> Expense:
    """Expense detail visible to its submitter, its approvers and company admins."""
    repository = repository or ExpenseRepository()
    expense = repository.get_expense(expense_id)
    if expense is None or expense.company_id != identity.company_id:
        raise ExpenseNotFoundError("Expense not found.", details={"expense_id": expense_id})

    approver_ids = {step.approver_user_id for step in expense.steps}
    if identity.is_admin or identity.user_id == expense.submitter_user_id or identity.user_id in approver_ids:
        return expense
    raise AuthorizationError("You are not allowed to view this expense.", details={"expense_id": expense_id})


def expenses_for(identity: Identity, repository: Optional[ExpenseRepository] = None) -> List[Expense]:
    repository = repository or ExpenseRepository()
    return repository.expenses_submitted_by(identity.user_id)
