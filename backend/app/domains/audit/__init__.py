from backend.app.domains.audit.letter_audit_service import LetterAuditService
from backend.app.domains.audit.models import AuditLog
from backend.app.domains.audit.repository import AuditRepository
from backend.app.domains.audit.schemas import (
    AuditAction,
    AuditEntityType,
    AuditLogResponse,
    AuditQuery,
)
from backend.app.domains.audit.service import AuditService

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "AuditLogResponse",
    "AuditQuery",
    "AuditRepository",
    "AuditService",
    "LetterAuditService",
]
