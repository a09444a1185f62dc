"""Tests for user and approval-rule administration."""
import pytest

from spendflow import db
from spendflow.models import ApprovalRule, AuditLog, User


def rule_payload(**overrides):
    payload = {
        "name": "Travel over 500",
        "description": "Large travel expenses",
        "rule_type": "hybrid",
        "percentage": 60,
        "specific_approver": "CEO",
        "approvers": [{"role": "Finance", "order": 1, "required": True}, {"role": "Director", "order": 2}],
        "conditions": {"amount_threshold": 500, "category": "Travel", "department": "all"},
        "is_sequential": False,
    }
    payload.update(overrides)
    return payload


def test_admin_endpoints_require_admin_role(org, login):
    response = login("employee@acme.com").get("/api/users")
    assert response.status_code == 403

    response = login("manager@acme.com").post("/api/approval-rules", json=rule_payload())
    assert response.status_code == 403


def test_list_users_is_scoped_to_company(org, other_org, login):
    users = login("admin@acme.com").get("/api/users").get_json()["users"]
    emails = {user["email"] for user in users}

    assert "employee@acme.com" in emails
    assert "employee@globex.com" not in emails


def test_create_user_with_manager(app, org, login):
    response = login("admin@acme.com").post(
        "/api/users",
        json={
            "name": "Nina",
            "email": "Nina@Acme.com",
            "password": "password123",
            "role": "employee",
            "manager_id": org.manager,
            "department": "Sales",
        },
    )

    assert response.status_code == 201
    user = response.get_json()["user"]
    assert user["email"] == "nina@acme.com"
    assert user["role"] == "Employee"
    assert user["manager_id"] == org.manager
    with app.app_context():
        assert AuditLog.history_for("user", user["id"])[0].action == "user_created"


def test_create_user_rejects_duplicates_and_bad_roles(org, login):
    admin = login("admin@acme.com")
    base = {"name": "X", "email": "employee@acme.com", "password": "password123", "role": "Employee"}

    assert admin.post("/api/users", json=base).status_code == 409
    response = admin.post("/api/users", json={**base, "email": "new@acme.com", "role": "Intern"})
    assert response.status_code == 400
    response = admin.post("/api/users", json={**base, "email": "new@acme.com", "password": "short"})
    assert response.status_code == 400
    assert "password" in response.get_json()["details"]


def test_manager_must_belong_to_the_same_company(org, other_org, login):
    response = login("admin@acme.com").post(
        "/api/users",
        json={
            "name": "Y",
            "email": "y@acme.com",
            "password": "password123",
            "role": "Employee",
            "manager_id": other_org.admin,
        },
    )
    assert response.status_code == 400


def test_patch_user_reassigns_role_and_manager(app, org, login):
    admin = login("admin@acme.com")
    response = admin.patch(
        f"/api/users/{org.orphan}",
        json={"role": "Manager", "manager_id": org.ceo, "job_title": "Regional Lead"},
    )

    assert response.status_code == 200
    user = response.get_json()["user"]
    assert user["role"] == "Manager"
    assert user["manager_id"] == org.ceo
    assert user["job_title"] == "Regional Lead"

    response = admin.patch(f"/api/users/{org.orphan}", json={"manager_id": None})
    assert response.get_json()["user"]["manager_id"] is None
    with app.app_context():
        assert db.session.get(User, org.orphan).role.value == "Manager"


def test_patch_user_cannot_manage_themselves(org, login):
    response = login("admin@acme.com").patch(f"/api/users/{org.employee}", json={"manager_id": org.employee})
    assert response.status_code == 400


def test_patch_unknown_user_is_not_found(org, other_org, login):
    response = login("admin@acme.com").patch(f"/api/users/{other_org.employee}", json={"name": "Z"})
    assert response.status_code == 404


def test_create_and_list_rules(org, login):
    admin = login("admin@acme.com")
    response = admin.post("/api/approval-rules", json=rule_payload())

    assert response.status_code == 201
    rule = response.get_json()["rule"]
    assert rule["rule_type"] == "hybrid"
    assert rule["conditions"] == {"amount_threshold": 500.0, "category": "Travel", "department": "all"}
    assert rule["approvers"][0] == {"role": "Finance", "order": 1, "required": True}
    assert rule["is_active"] is True

    rules = admin.get("/api/approval-rules").get_json()["rules"]
    assert [r["id"] for r in rules] == [rule["id"]]


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"rule_type": "percentage", "specific_approver": None, "percentage": None}, "percentage"),
        ({"rule_type": "percentage"}, "specific_approver"),
        ({"rule_type": "specific_approver", "specific_approver": None, "percentage": None}, "specific_approver"),
        ({"rule_type": "specific_approver"}, "percentage"),
        ({"approvers": []}, "approvers"),
    ],
)
def test_rule_shape_must_match_its_type(org, login, overrides, field):
    response = login("admin@acme.com").post("/api/approval-rules", json=rule_payload(**overrides))

    assert response.status_code == 400
    assert field in response.get_json()["details"]


def test_rule_percentage_must_be_in_range(org, login):
    response = login("admin@acme.com").post("/api/approval-rules", json=rule_payload(percentage=150))
    assert response.status_code == 400
    assert "percentage" in response.get_json()["details"]


def test_unknown_rule_type_is_rejected(org, login):
    response = login("admin@acme.com").post("/api/approval-rules", json=rule_payload(rule_type="majority"))
    assert response.status_code == 400


def test_update_and_deactivate_rule(app, org, other_org, login):
    admin = login("admin@acme.com")
    rule_id = admin.post("/api/approval-rules", json=rule_payload()).get_json()["rule"]["id"]

    response = admin.put(
        f"/api/approval-rules/{rule_id}",
        json=rule_payload(rule_type="specific_approver", percentage=None, approvers=[], specific_approver="user:2"),
    )
    assert response.status_code == 200
    assert response.get_json()["rule"]["rule_type"] == "specific_approver"
    assert response.get_json()["rule"]["percentage"] is None

    assert login("admin@globex.com").delete(f"/api/approval-rules/{rule_id}").status_code == 404

    response = admin.delete(f"/api/approval-rules/{rule_id}")
    assert response.status_code == 200
    with app.app_context():
        rule = db.session.get(ApprovalRule, rule_id)
        assert rule is not None and rule.is_active is False
        actions = [entry.action for entry in AuditLog.history_for("approval_rule", rule_id)]
        assert actions == ["rule_created", "rule_updated", "rule_deactivated"]


@pytest.mark.parametrize("threshold", ["NaN", "Infinity", "-Infinity", "ten", -5])
def test_rule_threshold_must_be_a_finite_non_negative_number(org, login, threshold):
    response = login("admin@acme.com").post(
        "/api/approval-rules", json=rule_payload(conditions={"amount_threshold": threshold})
    )
    assert response.status_code == 400
    assert response.get_json()["code"] == "validation_error"


@pytest.mark.parametrize("required", ["false", "0", 1, None])
def test_approver_required_flag_must_be_a_json_boolean(app, org, login, required):
    approvers = [{"role": "Finance", "required": required}, {"role": "Director"}]
    response = login("admin@acme.com").post(
        "/api/approval-rules",
        json=rule_payload(rule_type="percentage", specific_approver=None, approvers=approvers),
    )

    assert response.status_code == 400
    assert "approvers" in response.get_json()["details"]
    with app.app_context():
        assert ApprovalRule.query.count() == 0


def test_approver_required_flag_defaults_to_optional(org, login):
    response = login("admin@acme.com").post(
        "/api/approval-rules",
        json=rule_payload(
            rule_type="percentage",
            specific_approver=None,
            approvers=[{"role": "Finance", "required": False}, {"role": "Director"}],
        ),
    )
    assert response.status_code == 201
    assert [entry["required"] for entry in response.get_json()["rule"]["approvers"]] == [False, False]
