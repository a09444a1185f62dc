"""User-related models."""
from __future__ import annotations

import enum
from typing import Optional

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from spendflow import db


class UserRole(enum.Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"

    @classmethod
    def parse(cls, value: str) -> Optional["UserRole"]:
        """Look a role up by name or value, ignoring case."""
        if not isinstance(value, str):
            return None
        key = value.strip().upper()
        return cls.__members__.get(key)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(200), nullable=True)
    role = db.Column(db.Enum(UserRole, name="user_role"), nullable=False, default=UserRole.EMPLOYEE)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    department = db.Column(db.String(120), nullable=True)
    job_title = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)

    company = db.relationship("Company", back_populates="users", lazy="joined")
    manager = db.relationship(
        "User",
        remote_side=[id],
        back_populates="direct_reports",
    )
    direct_reports = db.relationship("User", back_populates="manager")
    submitted_expenses = db.relationship(
        "Expense",
        foreign_keys="Expense.submitter_user_id",
        back_populates="submitter",
        lazy="selectin",
    )
    approval_steps = db.relationship(
        "ApprovalStep",
        foreign_keys="ApprovalStep.approver_user_id",
        back_populates="approver",
        lazy="selectin",
    )

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def get_id(self) -> str:
        return str(self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "manager_id": self.manager_id,
            "department": self.department,
            "job_title": self.job_title,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role.value if self.role else None}>"
