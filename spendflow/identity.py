"""Caller identity passed explicitly into workflow operations."""
from __future__ import annotations

from dataclasses import dataclass

from spendflow.models import User, UserRole


@dataclass(frozen=True)
class Identity:
    user_id: int
    company_id: int
    role: UserRole

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, company_id=user.company_id, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN
