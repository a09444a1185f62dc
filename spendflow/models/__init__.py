"""Application data models exposed for easy imports."""
from spendflow import db  # noqa: F401
from .company import Company  # noqa: F401
from .user import User, UserRole  # noqa: F401
from .approval import (  # noqa: F401
    MATCH_ALL,
    ApprovalDecisionStatus,
    ApprovalRule,
    ApprovalRuleType,
    ApprovalStep,
)
from .expense import Expense, ExpenseStatus  # noqa: F401
from .audit import AuditLog  # noqa: F401

__all__ = [
    "db",
    "Company",
    "User",
    "UserRole",
    "Expense",
    "ExpenseStatus",
    "ApprovalStep",
    "ApprovalDecisionStatus",
    "ApprovalRule",
    "ApprovalRuleType",
    "AuditLog",
    "MATCH_ALL",
]
