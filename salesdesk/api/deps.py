"""
FastAPI dependencies for operator identity, sessions and services.

Authentication is handled upstream; the operator arrives as explicit
``X-Operator-*`` headers and is passed into every service call.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from salesdesk.core.config import get_settings
from salesdesk.core.identity import OperatorIdentity
from salesdesk.core.logging import get_logger, set_operator_email
from salesdesk.database.connection import get_db, get_session_factory
from salesdesk.services.audit.recorder import AuditRecorder
from salesdesk.services.fulfillment.service import FulfillmentService
from salesdesk.services.fulfillment.workspace import WorkspaceRegistry

logger = get_logger(__name__)


async def get_current_operator(
    x_operator_email: Annotated[Optional[str], Header()] = None,
    x_operator_role: Annotated[Optional[str], Header()] = None,
    x_operator_name: Annotated[Optional[str], Header()] = None,
) -> OperatorIdentity:
    """
    Build the operator identity from request headers.

    Raises:
        HTTPException: 401 if the operator email header is missing
    """
    if not x_operator_email or not x_operator_email.strip():
        logger.warning("Request rejected: no operator identity")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Operator-Email header is required",
        )

    operator = OperatorIdentity(
        email=x_operator_email.strip().lower(),
        role=(x_operator_role or "unknown").strip(),
        name=x_operator_name.strip() if x_operator_name else None,
    )
    set_operator_email(operator.email)
    return operator


@lru_cache()
def get_workspace_registry() -> WorkspaceRegistry:
    """Process-wide registry of open workspaces."""
    return WorkspaceRegistry()


def get_audit_recorder() -> AuditRecorder:
    return AuditRecorder(get_session_factory())


DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentOperator = Annotated[OperatorIdentity, Depends(get_current_operator)]
Registry = Annotated[WorkspaceRegistry, Depends(get_workspace_registry)]
Recorder = Annotated[AuditRecorder, Depends(get_audit_recorder)]


async def get_fulfillment_service(
    db: DatabaseSession,
    registry: Registry,
    audit_recorder: Recorder,
) -> FulfillmentService:
    return FulfillmentService(
        db,
        audit_recorder=audit_recorder,
        registry=registry,
        settings=get_settings(),
    )


Fulfillment = Annotated[FulfillmentService, Depends(get_fulfillment_service)]
