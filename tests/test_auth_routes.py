"""Tests for signup, login and session handling."""
from spendflow import db
from spendflow.models import Company, User, UserRole


def signup_payload(**overrides):
    payload = {
        "name": "Ada Admin",
        "email": "ada@initech.com",
        "password": "password123",
        "company_name": "Initech",
        "base_currency": "usd",
    }
    payload.update(overrides)
    return payload


def test_signup_creates_company_and_admin(app):
    client = app.test_client()
    response = client.post("/api/auth/signup", json=signup_payload())

    assert response.status_code == 201
    body = response.get_json()
    assert body["user"]["role"] == "Admin"
    assert body["company"]["base_currency"] == "USD"

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.get_json()["user"]["email"] == "ada@initech.com"


def test_signup_derives_currency_from_country(app):
    response = app.test_client().post(
        "/api/auth/signup", json=signup_payload(base_currency=None, country="India")
    )
    assert response.get_json()["company"]["base_currency"] == "INR"


def test_signup_falls_back_to_default_currency(app):
    response = app.test_client().post(
        "/api/auth/signup", json=signup_payload(base_currency=None, country="Atlantis")
    )
    assert response.get_json()["company"]["base_currency"] == app.config["DEFAULT_CURRENCY"]


def test_second_admin_signup_for_company_is_rejected(app):
    client = app.test_client()
    client.post("/api/auth/signup", json=signup_payload())

    response = app.test_client().post("/api/auth/signup", json=signup_payload(email="bob@initech.com"))
    assert response.status_code == 400
    assert response.get_json()["code"] == "admin_exists"


def test_signup_joins_existing_company_without_admin(app):
    with app.app_context():
        db.session.add(Company(name="Initech", base_currency="EUR"))
        db.session.commit()

    response = app.test_client().post("/api/auth/signup", json=signup_payload())
    assert response.status_code == 201
    with app.app_context():
        assert db.session.query(Company).count() == 1
        assert User.query.filter_by(role=UserRole.ADMIN).count() == 1


def test_signup_validates_payload(app):
    client = app.test_client()

    response = client.post("/api/auth/signup", json=signup_payload(email="not-an-email"))
    assert response.status_code == 400
    assert "email" in response.get_json()["details"]

    response = client.post("/api/auth/signup", json={})
    assert response.status_code == 400


def test_duplicate_email_is_rejected(app, org):
    response = app.test_client().post("/api/auth/signup", json=signup_payload(email="admin@acme.com"))
    assert response.status_code == 409


def test_login_and_logout(app, org):
    client = app.test_client()
    response = client.post("/api/auth/login", json={"email": "Employee@Acme.com", "password": "password123"})
    assert response.status_code == 200
    assert response.get_json()["user"]["id"] == org.employee

    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_login_rejects_bad_credentials(app, org):
    response = app.test_client().post("/api/auth/login", json={"email": "employee@acme.com", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.get_json()["code"] == "invalid_credentials"


def test_inactive_user_cannot_log_in(app, org):
    with app.app_context():
        db.session.get(User, org.employee).is_active = False
        db.session.commit()

    response = app.test_client().post("/api/auth/login", json={"email": "employee@acme.com", "password": "password123"})
    assert response.status_code == 403


def test_csrf_token_endpoint(app):
    response = app.test_client().get("/api/auth/csrf-token")
    assert response.status_code == 200
    assert response.get_json()["csrf_token"]


def test_csrf_is_enforced_when_enabled(tmp_path):
    from spendflow import create_app

    app = create_app(
        "testing",
        {"SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'csrf.db'}", "WTF_CSRF_ENABLED": True},
    )
    client = app.test_client()

    response = client.post("/api/auth/login", json={"email": "a@b.com", "password": "x"})
    assert response.status_code == 400
    assert response.get_json()["code"] == "csrf_error"

    token = client.get("/api/auth/csrf-token").get_json()["csrf_token"]
    response = client.post(
        "/api/auth/login",
        json={"email": "a@b.com", "password": "password123"},
        headers={"X-CSRFToken": token},
    )
    assert response.status_code == 401
