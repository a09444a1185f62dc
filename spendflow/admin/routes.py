"""Administrative routes."""
from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app, request
from flask_login import current_user, login_required

from spendflow import db
from spendflow.exceptions import ValidationError
from spendflow.models import ApprovalRule, AuditLog, User, UserRole
from spendflow.utils.helpers import json_response, role_required, validated

from . import admin_bp
from .forms import RuleForm, UserForm, UserUpdateForm, rule_fields


def _json_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _parse_role(value: str) -> UserRole:
    role = UserRole.parse(value)
    if role is None:
        raise ValidationError("Unsupported role.", details={"role": [member.value for member in UserRole]})
    return role


def _company_manager(manager_id: Optional[int], user_id: Optional[int] = None) -> Optional[User]:
    if manager_id is None:
        return None
    if manager_id == user_id:
        raise ValidationError("A user cannot be their own manager.", details={"manager_id": manager_id})
    manager = db.session.get(User, manager_id)
    if manager is None or manager.company_id != current_user.company_id:
        raise ValidationError("Invalid manager selected.", details={"manager_id": manager_id})
    return manager


def _company_rule(rule_id: int) -> Optional[ApprovalRule]:
    rule = db.session.get(ApprovalRule, rule_id)
    if rule is None or rule.company_id != current_user.company_id:
        return None
    return rule


@admin_bp.route("/users", methods=["GET"])
@login_required
@role_required(UserRole.ADMIN)
def users() -> Any:
    """List all users in the admin's company."""
    users = User.query.filter_by(company_id=current_user.company_id).order_by(User.id.asc()).all()
    return json_response({"users": [user.to_dict() for user in users]})


@admin_bp.route("/users", methods=["POST"])
@login_required
@role_required(UserRole.ADMIN)
def create_user() -> Any:
    """Create a new employee, manager or admin."""
    data = validated(UserForm.from_request())

    email = data["email"].strip().lower()
    if User.query.filter_by(email=email).first():
        return json_response({"error": "Email already exists.", "code": "email_taken"}, status=409)

    role = _parse_role(data["role"])
    manager = _company_manager(data.get("manager_id"))

    new_user = User(
        name=data["name"],
        email=email,
        role=role,
        company_id=current_user.company_id,
        manager_id=manager.id if manager else None,
        department=data.get("department") or None,
        job_title=data.get("job_title") or None,
    )
    new_user.set_password(data["password"])

    db.session.add(new_user)
    db.session.flush()
    AuditLog.record(
        "user",
        new_user.id,
        "user_created",
        user_id=current_user.id,
        company_id=current_user.company_id,
        role=role.value,
        manager_id=new_user.manager_id,
    )
    db.session.commit()

    current_app.logger.info("Admin %s created user %s as %s", current_user.id, new_user.id, role.value)
    return json_response({"message": "User created.", "user": new_user.to_dict()}, status=201)


@admin_bp.route("/users/<int:user_id>", methods=["PATCH"])
@login_required
@role_required(UserRole.ADMIN)
def update_user(user_id: int) -> Any:
    """Reassign a user's role or manager, or update their profile."""
    user = db.session.get(User, user_id)
    if user is None or user.company_id != current_user.company_id:
        return json_response({"error": "User not found.", "code": "user_not_found"}, status=404)

    payload = _json_payload()
    data = validated(UserUpdateForm.from_request())

    changes: Dict[str, Any] = {}
    if data.get("role"):
        user.role = _parse_role(data["role"])
        changes["role"] = user.role.value
    if "manager_id" in payload:
        manager = _company_manager(data.get("manager_id"), user_id=user.id)
        user.manager_id = manager.id if manager else None
        changes["manager_id"] = user.manager_id
    for field in ("name", "department", "job_title"):
        if field in payload:
            setattr(user, field, data.get(field) or None)
            changes[field] = getattr(user, field)
    if "is_active" in payload:
        user.is_active = bool(data["is_active"])
        changes["is_active"] = user.is_active

    AuditLog.record(
        "user", user.id, "user_updated", user_id=current_user.id, company_id=current_user.company_id, **changes
    )
    db.session.commit()
    return json_response({"message": "User updated.", "user": user.to_dict()})


@admin_bp.route("/approval-rules", methods=["GET"])
@login_required
@role_required(UserRole.ADMIN)
def approval_rules() -> Any:
    """List approval rules, newest first."""
    rules = (
        ApprovalRule.query.filter_by(company_id=current_user.company_id)
        .order_by(ApprovalRule.updated_at.desc(), ApprovalRule.id.desc())
        .all()
    )
    return json_response({"rules": [rule.to_dict() for rule in rules]})


@admin_bp.route("/approval-rules", methods=["POST"])
@login_required
@role_required(UserRole.ADMIN)
def create_rule() -> Any:
    """Create an approval rule."""
    form = RuleForm.from_request()
    validated(form)
    fields = rule_fields(form, _json_payload())

    rule = ApprovalRule(company_id=current_user.company_id, **fields)
    db.session.add(rule)
    db.session.flush()
    AuditLog.record(
        "approval_rule",
        rule.id,
        "rule_created",
        user_id=current_user.id,
        company_id=current_user.company_id,
        rule_type=rule.rule_type.value,
    )
    db.session.commit()

    current_app.logger.info("Admin %s created approval rule %s (%s)", current_user.id, rule.id, rule.rule_type.value)
    return json_response({"message": "Approval rule created.", "rule": rule.to_dict()}, status=201)


@admin_bp.route("/approval-rules/<int:rule_id>", methods=["PUT"])
@login_required
@role_required(UserRole.ADMIN)
def update_rule(rule_id: int) -> Any:
    """Replace an approval rule's definition.

    Expenses already submitted keep the rule decision they were created with.
    """
    rule = _company_rule(rule_id)
    if rule is None:
        return json_response({"error": "Approval rule not found.", "code": "rule_not_found"}, status=404)

    form = RuleForm.from_request()
    validated(form)
    fields = rule_fields(form, _json_payload())
    for key, value in fields.items():
        setattr(rule, key, value)

    AuditLog.record(
        "approval_rule",
        rule.id,
        "rule_updated",
        user_id=current_user.id,
        company_id=current_user.company_id,
        rule_type=rule.rule_type.value,
    )
    db.session.commit()
    return json_response({"message": "Approval rule updated.", "rule": rule.to_dict()})


@admin_bp.route("/approval-rules/<int:rule_id>", methods=["DELETE"])
@login_required
@role_required(UserRole.ADMIN)
def delete_rule(rule_id: int) -> Any:
    """Deactivate an approval rule; referencing expenses keep their history."""
    rule = _company_rule(rule_id)
    if rule is None:
        return json_response({"error": "Approval rule not found.", "code": "rule_not_found"}, status=404)

    rule.is_active = False
    AuditLog.record(
        "approval_rule", rule.id, "rule_deactivated", user_id=current_user.id, company_id=current_user.company_id
    )
    db.session.commit()
    return json_response({"message": "Approval rule deactivated.", "rule": rule.to_dict()})
