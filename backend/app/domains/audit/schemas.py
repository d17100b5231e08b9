from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuditEntityType(str, PyEnum):
    LETTER_REQUEST = "LETTER_REQUEST"
    LETTER_VERSION = "LETTER_VERSION"
    LETTER_TEMPLATE = "LETTER_TEMPLATE"
    RENDERED_LETTER = "RENDERED_LETTER"


class AuditAction(str, PyEnum):
    REQUEST_CREATED = "REQUEST_CREATED"
    REQUEST_ACCEPTED = "REQUEST_ACCEPTED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    REQUEST_CANCELED = "REQUEST_CANCELED"
    STATUS_CHANGED = "STATUS_CHANGED"
    CONTENT_EDITED = "CONTENT_EDITED"
    LETTER_APPROVED = "LETTER_APPROVED"
    GENERATION_COMPLETED = "GENERATION_COMPLETED"
    VERSION_CREATED = "VERSION_CREATED"
    VERSION_RESTORED = "VERSION_RESTORED"
    HISTORY_CLEARED = "HISTORY_CLEARED"
    LETTER_RENDERED = "LETTER_RENDERED"
    TEMPLATE_CREATED = "TEMPLATE_CREATED"
    TEMPLATE_UPDATED = "TEMPLATE_UPDATED"
    TEMPLATE_DEACTIVATED = "TEMPLATE_DEACTIVATED"


class AuditQuery(BaseModel):
    entity_type: Optional[AuditEntityType] = None
    entity_id: Optional[UUID] = None
    action: Optional[AuditAction] = None
    actor_id: Optional[UUID] = None
    from_timestamp: Optional[datetime] = None
    to_timestamp: Optional[datetime] = None
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1, le=1000)


class AuditLogResponse(BaseModel):
    id: UUID
    entity_type: str
    entity_id: UUID
    action: str
    actor_id: Optional[UUID] = None
    metadata: dict[str, Any] = Field(validation_alias="metadata_")
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)
