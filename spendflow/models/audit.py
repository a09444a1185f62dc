"""Audit trail for workflow and administration changes."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from spendflow import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    entity_type = db.Column(db.String(120), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    action = db.Column(db.String(120), nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    extra_data = db.Column(db.JSON, nullable=True)

    @classmethod
    def record(
        cls,
        entity_type: str,
        entity_id: int,
        action: str,
        *,
        user_id: Optional[int] = None,
        company_id: Optional[int] = None,
        **extra: Any,
    ) -> "AuditLog":
        """Stage an audit entry in the current session; the caller commits."""
        entry = cls(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            user_id=user_id,
            company_id=company_id,
            extra_data=extra or None,
        )
        db.session.add(entry)
        return entry

    @classmethod
    def history_for(cls, entity_type: str, entity_id: int) -> list:
        return (
            cls.query.filter_by(entity_type=entity_type, entity_id=entity_id)
            .order_by(cls.timestamp.asc(), cls.id.asc())
            .all()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "action": self.action,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "extra_data": self.extra_data,
        }

    def __repr__(self) -> str:
        return f"<AuditLog {self.entity_type}#{self.entity_id} action={self.action}>"
