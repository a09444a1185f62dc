"""Expansion of an approval rule into concrete approval steps."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from spendflow.exceptions import ConfigurationError
from spendflow.models import (
    ApprovalDecisionStatus,
    ApprovalRule,
    ApprovalRuleType,
    ApprovalStep,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

_USER_REFERENCE = re.compile(r"^(?:user:)?(\d+)$", re.IGNORECASE)


def default_rule(company_id: int, approver_reference: str) -> ApprovalRule:
    """Transient rule used when no configured rule matches an expense.

    It is never added to the session; only its fields are copied onto the
    expense.
    """
    return ApprovalRule(
        id=None,
        company_id=company_id,
        name="Default approval",
        is_active=True,
        rule_type=ApprovalRuleType.SPECIFIC_APPROVER,
        specific_approver=approver_reference,
        approvers=[],
        is_sequential=False,
    )


def _parse_user_reference(reference: str) -> Optional[int]:
    match = _USER_REFERENCE.match(reference)
    return int(match.group(1)) if match else None


def _resolve_manager(submitter: User, directory) -> User:
    if submitter.manager_id:
        manager = directory.get_user(submitter.company_id, submitter.manager_id)
        if manager is not None and manager.is_active and manager.id != submitter.id:
            return manager
        logger.warning(
            "User %s has manager_id=%s but that manager is not an active user of company %s",
            submitter.id,
            submitter.manager_id,
            submitter.company_id,
        )

    managers = directory.holders(submitter.company_id, role=UserRole.MANAGER, exclude_user_id=submitter.id)
    if len(managers) == 1:
        return managers[0]
    if not managers:
        raise ConfigurationError(
            "No Manager is configured for this company.",
            details={"reference": UserRole.MANAGER.value, "submitter_id": submitter.id},
        )
    raise ConfigurationError(
        "Submitter has no direct manager and the company has several Managers.",
        details={"reference": UserRole.MANAGER.value, "submitter_id": submitter.id},
    )


def resolve_approver(reference: Any, submitter: User, directory) -> User:
    """Resolve a role, job title or ``user:<id>`` reference to one user."""
    ref = str(reference).strip() if reference is not None else ""
    if not ref:
        raise ConfigurationError("Approver reference is empty.")

    user_id = _parse_user_reference(ref)
    if user_id is not None:
        user = directory.get_user(submitter.company_id, user_id)
        if user is None or not user.is_active:
            raise ConfigurationError(
                f"Approver user {user_id} is not an active user of this company.",
                details={"reference": ref},
            )
        if user.id == submitter.id:
            raise ConfigurationError(
                "The submitter cannot be the approver of their own expense.",
                details={"reference": ref},
            )
        return user

    role = UserRole.parse(ref)
    if role is UserRole.MANAGER:
        return _resolve_manager(submitter, directory)

    if role is not None:
        holders = directory.holders(submitter.company_id, role=role, exclude_user_id=submitter.id)
    else:
        holders = directory.holders(submitter.company_id, job_title=ref, exclude_user_id=submitter.id)

    if not holders:
        raise ConfigurationError(
            f"No active user holds '{ref}' in this company.",
            details={"reference": ref},
        )
    return holders[0]


def _new_step(approver: User, **flags: bool) -> ApprovalStep:
    return ApprovalStep(
        approver_user_id=approver.id,
        status=ApprovalDecisionStatus.PENDING,
        is_specific_approver=flags.get("is_specific_approver", False),
        counts_toward_percentage=flags.get("counts_toward_percentage", False),
        required=flags.get("required", False),
    )


def _percentage_steps(rule: ApprovalRule, submitter: User, directory) -> Dict[int, ApprovalStep]:
    steps: Dict[int, ApprovalStep] = {}
    for entry in rule.ordered_approvers():
        approver = resolve_approver(entry.get("role"), submitter, directory)
        required = bool(entry.get("required", False))
        existing = steps.get(approver.id)
        if existing is not None:
            existing.required = existing.required or required
            continue
        steps[approver.id] = _new_step(approver, counts_toward_percentage=True, required=required)
    return steps


def generate_steps(expense: Any, rule: ApprovalRule, submitter: User, directory) -> List[ApprovalStep]:
    """Materialize the unsaved approval steps ``rule`` requires for ``expense``.

    Raises ``ConfigurationError`` when any approver reference cannot be
    resolved; nothing is written either way.
    """
    rule_type = rule.rule_type
    steps: Dict[int, ApprovalStep] = {}

    if rule_type.uses_percentage:
        steps = _percentage_steps(rule, submitter, directory)

    if rule_type.uses_specific_approver:
        approver = resolve_approver(rule.specific_approver, submitter, directory)
        if approver.id in steps:
            steps[approver.id].is_specific_approver = True
        else:
            steps[approver.id] = _new_step(
                approver,
                is_specific_approver=True,
                required=rule_type is ApprovalRuleType.SPECIFIC_APPROVER,
            )

    if not steps:
        raise ConfigurationError(
            f"Approval rule '{rule.name}' does not resolve to any approver.",
            details={"rule_id": rule.id},
        )

    ordered = list(steps.values())
    for index, step in enumerate(ordered, start=1):
        step.sequence_index = index

    logger.debug(
        "Generated %d approval step(s) for expense %s from rule %s",
        len(ordered),
        getattr(expense, "id", None),
        rule.id,
    )
    return ordered
