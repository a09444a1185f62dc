"""Authentication routes."""
from __future__ import annotations

from typing import Any

from flask import current_app, session
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from spendflow import db
from spendflow.models import AuditLog, Company, User, UserRole
from spendflow.services import currency_service
from spendflow.utils.helpers import json_response, validated

from . import auth_bp
from .forms import LoginForm, SignupForm


def _company_currency(form: SignupForm) -> str:
    if form.base_currency.data:
        return form.base_currency.data.upper()
    if form.country.data:
        currency = currency_service.get_default_currency_for_country(form.country.data)
        if currency["currency_code"]:
            return currency["currency_code"]
    return current_app.config.get("DEFAULT_CURRENCY", "USD")


@auth_bp.route("/signup", methods=["POST"])
def signup() -> Any:
    """Register a company and its first Admin, then log the Admin in."""
    form = SignupForm.from_request()
    data = validated(form)

    email = data["email"].strip().lower()
    if User.query.filter_by(email=email).first():
        return json_response({"error": "Email already registered.", "code": "email_taken"}, status=409)

    company_name = data["company_name"].strip()
    company = Company.query.filter_by(name=company_name).first()
    if company is None:
        company = Company(name=company_name, country=data.get("country") or None, base_currency=_company_currency(form))
        db.session.add(company)
        db.session.flush()
    elif User.query.filter_by(company_id=company.id, role=UserRole.ADMIN).first():
        return json_response(
            {"error": "Admin already exists for this company.", "code": "admin_exists"}, status=400
        )

    user = User(
        name=data["name"],
        email=email,
        role=UserRole.ADMIN,
        company_id=company.id,
    )
    user.set_password(data["password"])
    db.session.add(user)
    db.session.flush()
    AuditLog.record("user", user.id, "admin_signup", user_id=user.id, company_id=company.id)
    db.session.commit()

    current_app.logger.info("Company %s signed up with admin %s", company.id, user.id)
    login_user(user)
    return json_response({"message": "Signup successful.", "user": user.to_dict(), "company": company.to_dict()}, status=201)


@auth_bp.route("/login", methods=["POST"])
def login() -> Any:
    """Authenticate a user using email/password."""
    form = LoginForm.from_request()
    data = validated(form)

    user = User.query.filter_by(email=data["email"].strip().lower()).first()
    if not user or not user.check_password(data["password"]):
        return json_response({"error": "Invalid credentials.", "code": "invalid_credentials"}, status=401)

    if not user.is_active:
        return json_response({"error": "User account is inactive.", "code": "inactive"}, status=403)

    login_user(user, remember=bool(data.get("remember")))
    return json_response({"message": "Login successful.", "user": user.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout() -> Any:
    """Terminate the user session."""
    logout_user()
    session.clear()
    return json_response({"message": "Logged out."})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me() -> Any:
    return json_response({"user": current_user.to_dict(), "company": current_user.company.to_dict()})


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token() -> Any:
    return json_response({"csrf_token": generate_csrf()})
