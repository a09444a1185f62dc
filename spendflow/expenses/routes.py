"""Expense submission and approval routes."""
from __future__ import annotations

from typing import Any

from flask_login import login_required

from spendflow.services import approval_engine, expense_service
from spendflow.utils.helpers import current_identity, json_response, validated

from . import expenses_bp
from .forms import DecisionForm, ExpenseForm


@expenses_bp.route("", methods=["POST"])
@login_required
def submit_expense() -> Any:
    """Submit an expense and route it to its approvers."""
    data = validated(ExpenseForm.from_request())
    expense = expense_service.submit_expense(current_identity(), data)
    return json_response({"message": "Expense submitted.", "expense": expense.to_dict(include_steps=True)}, status=201)


@expenses_bp.route("/my", methods=["GET"])
@login_required
def my_expenses() -> Any:
    expenses = expense_service.expenses_for(current_identity())
    return json_response({"expenses": [expense.to_dict(include_steps=True) for expense in expenses]})


@expenses_bp.route("/pending", methods=["GET"])
@login_required
def pending_approvals() -> Any:
    """Approval steps waiting on the current user."""
    steps = approval_engine.actionable_steps_for(current_identity().user_id)
    return json_response(
        {
            "approvals": [
                {"step": step.to_dict(), "expense": step.expense.to_dict()}
                for step in steps
            ]
        }
    )


@expenses_bp.route("/approve", methods=["POST"])
@login_required
def decide() -> Any:
    """Record the current user's approve/reject decision on an expense."""
    data = validated(DecisionForm.from_request())
    result = approval_engine.record_decision(
        current_identity(),
        data["expense_id"],
        bool(data["approved"]),
        comment=data.get("comments") or None,
    )
    return json_response({"message": "Decision recorded.", **result.to_dict()})


@expenses_bp.route("/<int:expense_id>", methods=["GET"])
@login_required
def expense_detail(expense_id: int) -> Any:
    expense = expense_service.get_expense_for(current_identity(), expense_id)
    return json_response({"expense": expense.to_dict(include_steps=True)})
