"""Tests for workflow notifications and currency helpers."""
from decimal import Decimal

import requests

from spendflow import mail
from spendflow.services import currency_service
from spendflow.services.notification_service import notification_service, notify, notify_company_admins


def test_notify_only_logs_when_email_is_disabled(app, org):
    with app.app_context(), mail.record_messages() as outbox:
        assert notify(org.employee, "expense_finalized", expense_id=1, status="approved") is False
        assert outbox == []


def test_notify_sends_mail_when_enabled(app, org):
    app.config["NOTIFY_BY_EMAIL"] = True
    with app.app_context(), mail.record_messages() as outbox:
        assert notify(org.employee, "expense_finalized", expense_id=7, status="rejected") is True

    assert len(outbox) == 1
    assert outbox[0].recipients == ["employee@acme.com"]
    assert outbox[0].subject == "SpendFlow - Your expense has been rejected"
    assert "Expense #7" in outbox[0].body


def test_admins_are_notified_of_rule_failures(app, org):
    app.config["NOTIFY_BY_EMAIL"] = True
    with app.app_context(), mail.record_messages() as outbox:
        notify_company_admins(org.company_id, "rule_match_failed", submitter_id=org.employee, rule_id=3, reason="x")

    assert [message.recipients for message in outbox] == [["admin@acme.com"]]


def test_delivery_failures_never_raise(app, org, monkeypatch):
    class BrokenMail:
        def send(self, message):
            raise ConnectionRefusedError("smtp down")

    app.config["NOTIFY_BY_EMAIL"] = True
    monkeypatch.setattr(notification_service, "mail", BrokenMail())
    with app.app_context():
        assert notify(org.employee, "step_assigned", expense_id=1) is False


def test_unknown_user_is_skipped(app, org):
    app.config["NOTIFY_BY_EMAIL"] = True
    with app.app_context():
        assert notify(9999, "step_assigned", expense_id=1) is False


def test_convert_currency_keeps_amount_when_rate_is_missing(app):
    assert currency_service.convert_currency(Decimal("10"), "USD", "USD") == Decimal("10")
    assert currency_service.convert_currency(Decimal("10"), "USD", "EUR") == Decimal("5.00")
    assert currency_service.convert_currency(Decimal("10"), "USD", "JPY") == Decimal("10")


def test_fetch_exchange_rates_tolerates_network_errors(monkeypatch):
    def failing_get(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(currency_service.requests, "get", failing_get)
    assert currency_service.fetch_exchange_rates("USD") == {}
    assert currency_service.get_default_currency_for_country("India") == {
        "currency_code": None,
        "currency_name": None,
    }
