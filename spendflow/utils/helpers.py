"""General helper utilities."""
from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict

from flask import Flask, current_app, jsonify
from flask_login import current_user
from flask_wtf import FlaskForm
from flask_wtf.csrf import CSRFError

from spendflow.exceptions import ValidationError, WorkflowError
from spendflow.identity import Identity
from spendflow.models import UserRole

JsonView = Callable[..., Any]


def json_response(payload: Any, status: int = 200):
    """Return a JSON response with status code."""
    return jsonify(payload), status


def role_required(*roles: UserRole):
    """Restrict a route to one or more roles."""
    def decorator(view_func: JsonView) -> JsonView:
        @wraps(view_func)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                return json_response({"error": "Authentication required.", "code": "unauthenticated"}, status=401)
            if current_user.role not in roles:
                return json_response({"error": "Insufficient permissions.", "code": "forbidden"}, status=403)
            return view_func(*args, **kwargs)

        return wrapped

    return decorator


def current_identity() -> Identity:
    return Identity.from_user(current_user)


def validated(form: FlaskForm) -> Dict[str, Any]:
    """Run ``form`` validation and return its data, raising on field errors."""
    if not form.validate():
        raise ValidationError("Invalid request payload.", details=form.errors)
    return form.data


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(WorkflowError)
    def handle_workflow_error(error: WorkflowError):
        current_app.logger.info("%s: %s", error.code, error.message)
        return json_response(error.to_dict(), status=error.status_code)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error: CSRFError):
        return json_response({"error": error.description, "code": "csrf_error"}, status=400)

    @app.errorhandler(404)
    def handle_not_found(_error):
        return json_response({"error": "Not found.", "code": "not_found"}, status=404)

    @app.errorhandler(405)
    def handle_method_not_allowed(_error):
        return json_response({"error": "Method not allowed.", "code": "method_not_allowed"}, status=405)
