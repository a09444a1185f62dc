"""Flask-WTF forms populated from JSON request bodies."""
from __future__ import annotations

from typing import Any

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict


def _form_value(value: Any) -> Any:
    # BooleanField understands real booleans; everything else parses from text.
    return value if isinstance(value, bool) else str(value)


class JsonForm(FlaskForm):
    """Base form for JSON endpoints; CSRF is enforced app-wide by CSRFProtect."""

    class Meta:
        csrf = False

    @classmethod
    def from_request(cls) -> "JsonForm":
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}
        formdata = MultiDict(
            {
                key: _form_value(value)
                for key, value in payload.items()
                if value is not None and not isinstance(value, (list, dict))
            }
        )
        return cls(formdata=formdata)
