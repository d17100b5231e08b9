from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from backend.app.api.deps import Caller, get_audit_service
from backend.app.domains.audit.schemas import (
    AuditAction,
    AuditEntityType,
    AuditLogResponse,
    AuditQuery,
)
from backend.app.domains.audit.service import AuditService

router = APIRouter()

AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]


@router.get("", response_model=list[AuditLogResponse])
async def query_audit_log(
    caller: Caller,
    service: AuditServiceDep,
    entity_type: Optional[AuditEntityType] = None,
    entity_id: Optional[UUID] = None,
    action: Optional[AuditAction] = None,
    actor_id: Optional[UUID] = None,
    from_timestamp: Optional[datetime] = None,
    to_timestamp: Optional[datetime] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[AuditLogResponse]:
    """Applicants are limited to the entries they caused themselves."""
    query = AuditQuery(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        from_timestamp=from_timestamp,
        to_timestamp=to_timestamp,
        skip=skip,
        limit=limit,
    )
    entries = await service.query_for_caller(caller, query)
    return [AuditLogResponse.model_validate(e) for e in entries]
