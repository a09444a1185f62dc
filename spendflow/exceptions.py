"""Typed errors raised by the approval workflow.

Each error carries an HTTP ``status_code`` and a machine-readable ``code`` so
the API layer can render it without inspecting messages.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class for all expected workflow failures."""

    status_code = 400
    code = "workflow_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(WorkflowError):
    """Malformed input: missing fields, non-positive amounts, bad rule shape."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(WorkflowError):
    status_code = 403
    code = "forbidden"


class ConfigurationError(WorkflowError):
    """A rule references an approver that cannot be resolved in the company."""

    status_code = 422
    code = "configuration_error"


class InvalidTransitionError(WorkflowError):
    """Duplicate, out-of-order or unassigned decision, or a finalized expense."""

    status_code = 409
    code = "invalid_transition"


class ExpenseNotFoundError(InvalidTransitionError):
    status_code = 404
    code = "expense_not_found"


class ConcurrencyConflict(WorkflowError):
    """Raised once optimistic-concurrency retries are exhausted."""

    status_code = 503
    code = "concurrency_conflict"
