"""Company administration blueprint: users and approval rules."""
from flask import Blueprint

admin_bp = Blueprint("admin", __name__, url_prefix="/api")

from . import routes  # noqa: E402,F401
