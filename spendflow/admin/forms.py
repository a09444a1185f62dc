"""Admin forms and approval-rule payload validation."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from wtforms import BooleanField, IntegerField, PasswordField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, NumberRange, Optional

from spendflow.exceptions import ValidationError
from spendflow.models import MATCH_ALL, ApprovalRuleType
from spendflow.utils.forms import JsonForm


class UserForm(JsonForm):
    name = StringField("Full Name", validators=[DataRequired(), Length(max=200)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=8)])
    role = StringField("Role", validators=[DataRequired()])
    manager_id = IntegerField("Manager", validators=[Optional()])
    department = StringField("Department", validators=[Optional(), Length(max=120)])
    job_title = StringField("Job Title", validators=[Optional(), Length(max=120)])


class UserUpdateForm(JsonForm):
    name = StringField("Full Name", validators=[Optional(), Length(max=200)])
    role = StringField("Role", validators=[Optional()])
    manager_id = IntegerField("Manager", validators=[Optional()])
    department = StringField("Department", validators=[Optional(), Length(max=120)])
    job_title = StringField("Job Title", validators=[Optional(), Length(max=120)])
    is_active = BooleanField("Active")


class RuleForm(JsonForm):
    name = StringField("Rule name", validators=[DataRequired(), Length(max=255)])
    description = TextAreaField("Description", validators=[Optional()])
    rule_type = StringField("Rule type", validators=[DataRequired()])
    percentage = IntegerField("Percentage", validators=[Optional(), NumberRange(min=1, max=100)])
    specific_approver = StringField("Specific approver", validators=[Optional(), Length(max=255)])
    is_sequential = BooleanField("Sequential")
    is_active = BooleanField("Active", default=True)


def _parse_approvers(raw: Any) -> List[Dict[str, Any]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("'approvers' must be a list.", details={"approvers": "not a list"})

    approvers = []
    for position, entry in enumerate(raw, start=1):
        if isinstance(entry, str):
            entry = {"role": entry}
        if not isinstance(entry, dict) or not str(entry.get("role") or "").strip():
            raise ValidationError(
                "Each approver needs a 'role'.", details={"approvers": f"entry {position} has no role"}
            )
        try:
            order = int(entry.get("order", position))
        except (TypeError, ValueError):
            raise ValidationError("Approver 'order' must be an integer.", details={"approvers": entry})
        required = entry.get("required", False)
        if not isinstance(required, bool):
            raise ValidationError("Approver 'required' must be true or false.", details={"approvers": entry})
        approvers.append({"role": str(entry["role"]).strip(), "order": order, "required": required})
    return approvers


def _parse_conditions(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {"amount_threshold": None, "category": None, "department": None}
    if not isinstance(raw, dict):
        raise ValidationError("'conditions' must be an object.", details={"conditions": "not an object"})

    threshold = raw.get("amount_threshold")
    if threshold in (None, ""):
        threshold = None
    else:
        try:
            threshold = Decimal(str(threshold))
        except InvalidOperation:
            raise ValidationError("'amount_threshold' must be a number.", details={"conditions": raw})
        if not threshold.is_finite():
            raise ValidationError("'amount_threshold' must be a finite number.", details={"conditions": raw})
        if threshold < 0:
            raise ValidationError("'amount_threshold' cannot be negative.", details={"conditions": raw})

    def text(key: str):
        value = raw.get(key)
        value = str(value).strip() if value is not None else ""
        return None if value.lower() in ("", MATCH_ALL) else value

    return {"amount_threshold": threshold, "category": text("category"), "department": text("department")}


def rule_fields(form: RuleForm, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Column values for an approval rule, validated against its type."""
    rule_type = ApprovalRuleType.__members__.get(str(form.rule_type.data).strip().upper())
    if rule_type is None:
        raise ValidationError(
            "Invalid rule_type.",
            details={"rule_type": [member.value for member in ApprovalRuleType]},
        )

    approvers = _parse_approvers(payload.get("approvers"))
    percentage = form.percentage.data
    specific_approver = (form.specific_approver.data or "").strip() or None

    errors: Dict[str, str] = {}
    if rule_type.uses_percentage:
        if percentage is None:
            errors["percentage"] = f"Required for {rule_type.value} rules."
        if not approvers:
            errors["approvers"] = f"{rule_type.value.capitalize()} rules need at least one approver."
    elif percentage is not None:
        errors["percentage"] = f"Not allowed for {rule_type.value} rules."

    if rule_type.uses_specific_approver:
        if specific_approver is None:
            errors["specific_approver"] = f"Required for {rule_type.value} rules."
    elif specific_approver is not None:
        errors["specific_approver"] = f"Not allowed for {rule_type.value} rules."

    if errors:
        raise ValidationError("Approval rule is inconsistent with its type.", details=errors)

    fields = {
        "name": form.name.data.strip(),
        "description": form.description.data or None,
        "rule_type": rule_type,
        "percentage": percentage,
        "specific_approver": specific_approver,
        "approvers": approvers,
        "is_sequential": bool(form.is_sequential.data),
        "is_active": bool(form.is_active.data) if "is_active" in payload else True,
    }
    fields.update(_parse_conditions(payload.get("conditions")))
    return fields
