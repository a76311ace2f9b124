"""
Append-only activity log entries.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from salesdesk.database.base import Base, create_table_args, utcnow


class AuditLogEntry(Base):
    """
    Immutable record of one operator action.

    Attributes:
        id: Unique entry identifier
        actor_email: Operator email
        actor_role: Operator role
        action: Human-readable action name ("Accept Sales Order", ...)
        details: JSON payload (order id, customer, line deltas, totals)
        created_at: When the action was recorded
    """

    __tablename__ = "audit_log_entries"
    __table_args__ = create_table_args(
        Index("ix_audit_action_created", "action", "created_at"),
        comment="Operator activity log",
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    actor_email: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
