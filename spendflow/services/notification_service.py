"""Workflow notifications: always logged, optionally mailed."""
from __future__ import annotations

import logging
from typing import Any, Optional

from flask import current_app
from flask_mail import Mail, Message

from spendflow.models import User, UserRole, db

logger = logging.getLogger(__name__)

SUBJECTS = {
    "step_assigned": "SpendFlow - An expense is waiting for your approval",
    "expense_finalized": "SpendFlow - Your expense has been {status}",
    "rule_match_failed": "SpendFlow - Approval rule could not be applied",
}

BODIES = {
    "step_assigned": "Expense #{expense_id} is waiting for your decision.",
    "expense_finalized": "Expense #{expense_id} has been {status}.",
    "rule_match_failed": (
        "Expense submission by user {submitter_id} could not be routed for approval: {reason}"
    ),
}


class NotificationService:
    """Fire-and-forget delivery of workflow events."""

    def __init__(self, mail: Optional[Mail] = None):
        self.mail = mail

    def notify(self, user_id: int, event: str, **payload: Any) -> bool:
        """Log ``event`` for ``user_id`` and mail it when enabled. Never raises."""
        logger.info("Notify user %s of %s %s", user_id, event, payload)
        try:
            if not current_app.config.get("NOTIFY_BY_EMAIL"):
                return False
            user = db.session.get(User, user_id)
            if user is None or not user.email:
                logger.warning("Cannot notify user %s: no email address", user_id)
                return False
            return self._send_email(user.email, event, payload)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to deliver {event} notification to user {user_id}: {str(e)}")
            return False

    def _send_email(self, to_email: str, event: str, payload: dict) -> bool:
        if not self.mail:
            logger.error("Mail service not initialized")
            return False

        msg = Message(
            subject=self._format(SUBJECTS, event, payload, "SpendFlow - Notification"),
            sender=current_app.config.get("MAIL_DEFAULT_SENDER"),
            recipients=[to_email],
        )
        msg.body = self._format(BODIES, event, payload, f"Event: {event}")
        self.mail.send(msg)
        logger.info(f"Email sent successfully to {to_email}")
        return True

    @staticmethod
    def _format(templates: dict, event: str, payload: dict, fallback: str) -> str:
        template = templates.get(event)
        if template is None:
            return fallback
        try:
            return template.format(**payload)
        except (KeyError, IndexError):
            return fallback


# Global notification service instance
notification_service = NotificationService()


def init_notification_service(mail: Mail) -> None:
    """Initialize the notification service with the Flask-Mail instance."""
    notification_service.mail = mail


def notify(user_id: int, event: str, **payload: Any) -> bool:
    return notification_service.notify(user_id, event, **payload)


def notify_company_admins(company_id: int, event: str, **payload: Any) -> None:
    admins = User.query.filter_by(company_id=company_id, role=UserRole.ADMIN, is_active=True).all()
    for admin in admins:
        notify(admin.id, event, **payload)
