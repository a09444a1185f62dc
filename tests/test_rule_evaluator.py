"""Tests for approval rule selection."""
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from spendflow.models import ApprovalRule, ApprovalRuleType
from spendflow.services.rule_evaluator import conditions_match, rule_specificity, select_rule


def make_rule(rule_id, updated_at=datetime(2025, 1, 1), **fields):
    fields.setdefault("is_active", True)
    fields.setdefault("rule_type", ApprovalRuleType.SPECIFIC_APPROVER)
    fields.setdefault("specific_approver", "Manager")
    return ApprovalRule(id=rule_id, company_id=1, name=f"rule {rule_id}", updated_at=updated_at, **fields)


def make_expense(amount="100.00", category="Travel", department="Engineering", converted=None):
    return SimpleNamespace(
        amount=Decimal(amount),
        amount_in_company_currency=Decimal(converted) if converted is not None else None,
        category=category,
        department=department,
    )


def test_category_rule_beats_match_all_rule():
    match_all = make_rule(1, category="all")
    travel = make_rule(2, category="Travel")

    assert select_rule(make_expense(category="Travel"), [match_all, travel]) is travel
    assert select_rule(make_expense(category="Meals"), [match_all, travel]) is match_all


def test_no_matching_rule_returns_none():
    rules = [make_rule(1, category="Travel"), make_rule(2, amount_threshold=Decimal("500"))]
    assert select_rule(make_expense(category="Meals"), rules) is None


def test_inactive_rules_are_ignored():
    inactive = make_rule(1, category="Travel", is_active=False)
    assert select_rule(make_expense(), [inactive]) is None


def test_amount_threshold_uses_company_currency_amount():
    rule = make_rule(1, amount_threshold=Decimal("1000"))

    assert conditions_match(rule, make_expense(amount="600", converted="1200"))
    assert not conditions_match(rule, make_expense(amount="2000", converted="900"))
    assert conditions_match(rule, make_expense(amount="1000"))


def test_zero_threshold_and_blank_conditions_match_everything():
    rule = make_rule(1, amount_threshold=Decimal("0"), category="", department=None)

    assert rule_specificity(rule) == 0
    assert conditions_match(rule, make_expense(amount="0.01", category="Anything", department=None))


def test_condition_strings_ignore_case_and_whitespace():
    rule = make_rule(1, category="  travel ", department="ENGINEERING")
    assert conditions_match(rule, make_expense(category="Travel", department="engineering"))


def test_department_condition_requires_department():
    rule = make_rule(1, department="Sales")
    assert not conditions_match(rule, make_expense(department=None))


def test_most_specific_rule_wins():
    category_only = make_rule(1, category="Travel")
    category_and_amount = make_rule(2, category="Travel", amount_threshold=Decimal("50"))
    everything = make_rule(3, category="Travel", amount_threshold=Decimal("50"), department="Engineering")

    assert rule_specificity(everything) == 3
    assert select_rule(make_expense(), [category_only, everything, category_and_amount]) is everything


def test_ties_go_to_latest_update_then_highest_id():
    older = make_rule(5, category="Travel", updated_at=datetime(2025, 1, 1))
    newer = make_rule(4, category="Travel", updated_at=datetime(2025, 6, 1))
    assert select_rule(make_expense(), [older, newer]) is newer

    same_time_low = make_rule(7, category="Travel")
    same_time_high = make_rule(8, category="Travel")
    assert select_rule(make_expense(), [same_time_high, same_time_low]) is same_time_high


def test_selection_is_deterministic_regardless_of_order():
    rules = [make_rule(i, category="Travel" if i % 2 else "all") for i in range(1, 7)]
    expense = make_expense()

    assert select_rule(expense, rules) is select_rule(expense, list(reversed(rules)))
