"""Approval rule selection.

``select_rule`` is pure: it only reads the expense and the candidate rules, so
it can run before anything is persisted and gives the same answer for the
same inputs.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from spendflow.models import MATCH_ALL, ApprovalRule


def _normalize(value: Any) -> str:
    return str(value).strip().casefold() if value is not None else ""


def is_match_all(value: Any) -> bool:
    """Unset, blank or ``"all"`` conditions match every expense."""
    normalized = _normalize(value)
    return normalized in ("", MATCH_ALL)


def _threshold(rule: ApprovalRule) -> Optional[Decimal]:
    if rule.amount_threshold is None:
        return None
    try:
        threshold = Decimal(str(rule.amount_threshold))
    except InvalidOperation:
        return None
    return threshold if threshold > 0 else None


def _expense_amount(expense: Any) -> Decimal:
    amount = getattr(expense, "amount_in_company_currency", None)
    if amount is None:
        amount = expense.amount
    return Decimal(str(amount))


def rule_specificity(rule: ApprovalRule) -> int:
    """Number of non-default conditions set on the rule."""
    return sum(
        (
            _threshold(rule) is not None,
            not is_match_all(rule.category),
            not is_match_all(rule.department),
        )
    )


def conditions_match(rule: ApprovalRule, expense: Any) -> bool:
    threshold = _threshold(rule)
    if threshold is not None and _expense_amount(expense) < threshold:
        return False
    if not is_match_all(rule.category) and _normalize(rule.category) != _normalize(expense.category):
        return False
    if not is_match_all(rule.department) and _normalize(rule.department) != _normalize(
        getattr(expense, "department", None)
    ):
        return False
    return True


def _selection_key(rule: ApprovalRule):
    return (rule_specificity(rule), rule.updated_at or datetime.min, rule.id or 0)


def select_rule(expense: Any, rules: Iterable[ApprovalRule]) -> Optional[ApprovalRule]:
    """Pick the active rule that applies to ``expense``.

    The most specific matching rule wins; ties go to the most recently
    updated rule, then to the highest id. Returns ``None`` when nothing
    matches and the caller should fall back to the default approver.
    """
    candidates = [rule for rule in rules if rule.is_active and conditions_match(rule, expense)]
    if not candidates:
        return None
    return max(candidates, key=_selection_key)
