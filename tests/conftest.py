"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from datetime import date
from types import SimpleNamespace
from typing import List, Tuple

import pytest

from spendflow import create_app, db
from spendflow.models import (
    ApprovalRule,
    ApprovalRuleType,
    AuditLog,
    Company,
    User,
    UserRole,
)
from spendflow.services import currency_service, notification_service

PASSWORD = "password123"

EXCHANGE_RATES = {
    "USD": {"USD": 1.0, "EUR": 0.5, "INR": 80.0},
    "EUR": {"EUR": 1.0, "USD": 2.0},
}


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Application bound to a fresh file-backed SQLite database."""
    monkeypatch.setattr(
        currency_service, "fetch_exchange_rates", lambda base: EXCHANGE_RATES.get(base.upper(), {})
    )
    monkeypatch.setattr(
        currency_service,
        "get_default_currency_for_country",
        lambda country: {"currency_code": "INR", "currency_name": "Indian rupee"}
        if country.lower() == "india"
        else {"currency_code": None, "currency_name": None},
    )
    app = create_app(
        "testing",
        {"SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}"},
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def notifications(monkeypatch) -> List[Tuple[int, str, dict]]:
    """Capture workflow notifications instead of delivering them."""
    sent: List[Tuple[int, str, dict]] = []

    def _notify(user_id, event, **payload):
        sent.append((user_id, event, payload))
        return True

    monkeypatch.setattr(notification_service, "notify", _notify)
    return sent


def _add_user(company_id: int, email: str, role: UserRole, **fields) -> User:
    user = User(company_id=company_id, email=email, role=role, name=fields.pop("name", email.split("@")[0]), **fields)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.flush()
    return user


@pytest.fixture
def org(app):
    """A company with an admin, two managers and a handful of employees."""
    with app.app_context():
        company = Company(name="Acme", country="United States", base_currency="USD")
        db.session.add(company)
        db.session.flush()

        admin = _add_user(company.id, "admin@acme.com", UserRole.ADMIN, job_title="CFO")
        manager = _add_user(company.id, "manager@acme.com", UserRole.MANAGER)
        ceo = _add_user(company.id, "ceo@acme.com", UserRole.MANAGER, job_title="CEO")
        finance = _add_user(company.id, "finance@acme.com", UserRole.EMPLOYEE, job_title="Finance")
        director = _add_user(company.id, "director@acme.com", UserRole.EMPLOYEE, job_title="Director")
        lead = _add_user(company.id, "lead@acme.com", UserRole.EMPLOYEE, job_title="Team Lead")
        employee = _add_user(
            company.id,
            "employee@acme.com",
            UserRole.EMPLOYEE,
            manager_id=manager.id,
            department="Engineering",
        )
        orphan = _add_user(company.id, "orphan@acme.com", UserRole.EMPLOYEE)
        db.session.commit()

        return SimpleNamespace(
            company_id=company.id,
            admin=admin.id,
            manager=manager.id,
            ceo=ceo.id,
            finance=finance.id,
            director=director.id,
            lead=lead.id,
            employee=employee.id,
            orphan=orphan.id,
        )


@pytest.fixture
def other_org(app):
    with app.app_context():
        company = Company(name="Globex", base_currency="EUR")
        db.session.add(company)
        db.session.flush()
        admin = _add_user(company.id, "admin@globex.com", UserRole.ADMIN)
        employee = _add_user(company.id, "employee@globex.com", UserRole.EMPLOYEE)
        db.session.commit()
        return SimpleNamespace(company_id=company.id, admin=admin.id, employee=employee.id)


@pytest.fixture
def make_rule(app):
    def _make(company_id: int, rule_type: ApprovalRuleType, **fields) -> int:
        with app.app_context():
            rule = ApprovalRule(
                company_id=company_id,
                name=fields.pop("name", f"{rule_type.value} rule"),
                rule_type=rule_type,
                approvers=fields.pop("approvers", []),
                **fields,
            )
            db.session.add(rule)
            db.session.commit()
            return rule.id

    return _make


@pytest.fixture
def login(app):
    """Return a test client logged in as the user with ``email``."""
    def _login(email: str, password: str = PASSWORD):
        client = app.test_client()
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.get_json()
        return client

    return _login


@pytest.fixture
def submit(login):
    """Submit an expense as ``email`` and return the parsed response."""
    def _submit(email: str, **fields):
        payload = {"amount": "120.00", "category": "Travel", "date": date(2025, 9, 30).isoformat()}
        payload.update(fields)
        response = login(email).post("/api/expenses", json=payload)
        return response.status_code, response.get_json()

    return _submit


@pytest.fixture
def audit_actions(app):
    """Actions recorded in the audit log for an expense, oldest first."""
    def _actions(expense_id: int) -> List[str]:
        with app.app_context():
            return [entry.action for entry in AuditLog.history_for("expense", expense_id)]

    return _actions
