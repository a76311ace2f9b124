"""
Audit recorder for order state transitions and pricing decisions.

Entries are written in a dedicated session so a failed insert can never
poison or roll back the business transaction it describes. Recording is
best effort: failures are logged and swallowed.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from salesdesk.core.identity import OperatorIdentity
from salesdesk.core.logging import get_logger
from salesdesk.database.models.audit import AuditLogEntry
from salesdesk.services.fulfillment.errors import AuditLogError

logger = get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]

ACTION_ACCEPT = "Accept Sales Order"
ACTION_REJECT = "Reject Sales Order"
ACTION_COMPLETE = "Complete Sales Order"


def to_jsonable(value: Any) -> Any:
    """Convert UUIDs, Decimals, dates and enums inside a payload for JSON storage."""
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


class AuditRecorder:
    """
    Fire-and-forget writer of AuditLogEntry rows.

    Attributes:
        session_factory: Callable returning a fresh AsyncSession
    """

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def record(
        self,
        actor: OperatorIdentity,
        action: str,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditLogEntry]:
        """
        Append one audit entry.

        Args:
            actor: Operator who performed the action
            action: Action name
            details: JSON payload describing the action

        Returns:
            The stored entry, or None if recording failed
        """
        entry = AuditLogEntry(
            actor_email=actor.email,
            actor_role=actor.role,
            action=action,
            details=to_jsonable(details or {}),
        )

        try:
            async with self.session_factory() as session:
                try:
                    session.add(entry)
                    await session.commit()
                except Exception as e:
                    await session.rollback()
                    raise AuditLogError(
                        "Failed to record audit entry",
                        error=str(e),
                        error_type=type(e).__name__,
                    ) from e
        except Exception as e:
            context = e.context if isinstance(e, AuditLogError) else {"error": str(e)}
            logger.error(
                "Audit log write failed",
                action=action,
                actor=actor.email,
                **context,
            )
            return None

        logger.debug("Audit entry recorded", action=action, actor=actor.email)
        return entry
