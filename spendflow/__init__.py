"""Application factory and extension initialization for SpendFlow."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask
from flask_login import LoginManager
from flask_mail import Mail
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

from spendflow.config import config_by_name

# Global extension instances -------------------------------------------------

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
mail = Mail()


def create_app(config_name: Optional[str] = None, config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """Flask application factory."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    config_name = config_name or os.getenv("FLASK_CONFIG", "development")
    config_class = config_by_name.get(config_name.lower())
    if config_class is None:
        raise ValueError(f"Unknown Flask configuration '{config_name}'")

    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    # Ensure instance folder exists for SQLite DBs
    os.makedirs(app.instance_path, exist_ok=True)

    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("spendflow").setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    mail.init_app(app)

    from spendflow.services.notification_service import init_notification_service
    init_notification_service(mail)

    # Register blueprints
    from spendflow.auth import auth_bp
    from spendflow.admin import admin_bp
    from spendflow.expenses import expenses_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(expenses_bp)

    from spendflow.utils.helpers import register_error_handlers
    register_error_handlers(app)

    # Import all models to ensure they are registered with SQLAlchemy
    from spendflow.models import (  # noqa: F401
        ApprovalRule, ApprovalStep, AuditLog, Company, Expense, User
    )

    @login_manager.user_loader
    def load_user(user_id: str) -> Optional[User]:
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        from spendflow.utils.helpers import json_response
        return json_response({"error": "Authentication required.", "code": "unauthenticated"}, status=401)

    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            db.create_all()

    @app.shell_context_processor
    def shell_context():
        return {"db": db, "User": User, "Expense": Expense, "ApprovalRule": ApprovalRule}

    return app
