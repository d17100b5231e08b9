from typing import Any
from uuid import UUID

from backend.app.domains.audit.models import AuditLog
from backend.app.domains.audit.repository import AuditRepository
from backend.app.domains.audit.schemas import AuditAction, AuditEntityType, AuditQuery
from backend.app.logging_config import get_logger

logger = get_logger("app.domains.audit.letter_audit_service")


class LetterAuditService:
    """Typed audit entries for the letter workflow."""

    def __init__(self, audit_repo: AuditRepository):
        self.audit_repo = audit_repo

    async def log_request_event(
        self,
        letter_id: UUID,
        action: AuditAction,
        actor_id: UUID | None,
        from_status: str | None = None,
        to_status: str | None = None,
        reason: str | None = None,
    ) -> AuditLog:
        metadata: dict[str, Any] = {}
        if from_status is not None:
            metadata["from_status"] = from_status
        if to_status is not None:
            metadata["to_status"] = to_status
        if reason:
            metadata["reason"] = reason

        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_REQUEST,
            entity_id=letter_id,
            action=action,
            actor_id=actor_id,
            metadata=metadata,
        )

    async def log_status_change(
        self,
        letter_id: UUID,
        actor_id: UUID | None,
        from_status: str,
        to_status: str,
        trigger: str,
    ) -> AuditLog:
        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_REQUEST,
            entity_id=letter_id,
            action=AuditAction.STATUS_CHANGED,
            actor_id=actor_id,
            metadata={"from_status": from_status, "to_status": to_status, "trigger": trigger},
        )

    async def log_content_edited(
        self,
        letter_id: UUID,
        actor_id: UUID,
        current_version: int,
        content_hash: str,
        content_length: int,
    ) -> AuditLog:
        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_REQUEST,
            entity_id=letter_id,
            action=AuditAction.CONTENT_EDITED,
            actor_id=actor_id,
            metadata={
                "current_version": current_version,
                "content_hash": content_hash,
                "content_length": content_length,
            },
        )

    async def log_generation_completed(
        self,
        letter_id: UUID,
        actor_id: UUID,
        version_number: int,
        trigger: str,
        selected_model: str,
        model_used: str | None,
        tokens_used: int,
        content_hash: str,
        generation_duration_ms: float | None = None,
    ) -> AuditLog:
        metadata: dict[str, Any] = {
            "version_number": version_number,
            "trigger": trigger,
            "selected_model": selected_model,
            "model_used": model_used,
            "tokens_used": tokens_used,
            "content_hash": content_hash,
        }
        if generation_duration_ms is not None:
            metadata["generation_duration_ms"] = generation_duration_ms

        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_VERSION,
            entity_id=letter_id,
            action=AuditAction.GENERATION_COMPLETED,
            actor_id=actor_id,
            metadata=metadata,
        )

    async def log_version_restored(
        self,
        letter_id: UUID,
        actor_id: UUID,
        restored_from_version: int,
        version_number: int,
        content_hash: str,
    ) -> AuditLog:
        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_VERSION,
            entity_id=letter_id,
            action=AuditAction.VERSION_RESTORED,
            actor_id=actor_id,
            metadata={
                "restored_from_version": restored_from_version,
                "version_number": version_number,
                "content_hash": content_hash,
            },
        )

    async def log_history_cleared(
        self,
        letter_id: UUID,
        actor_id: UUID,
        discarded: list[dict[str, Any]],
    ) -> AuditLog:
        """`discarded` summarizes the removed snapshots (number, kind, hash)."""
        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_REQUEST,
            entity_id=letter_id,
            action=AuditAction.HISTORY_CLEARED,
            actor_id=actor_id,
            metadata={"discarded_count": len(discarded), "discarded_versions": discarded},
        )

    async def log_letter_rendered(
        self,
        letter_id: UUID,
        actor_id: UUID,
        version: int,
        output_format: str,
        output_path: str,
        content_hash: str,
        file_size_bytes: int,
    ) -> AuditLog:
        return await self._create_audit_log(
            entity_type=AuditEntityType.RENDERED_LETTER,
            entity_id=letter_id,
            action=AuditAction.LETTER_RENDERED,
            actor_id=actor_id,
            metadata={
                "version": version,
                "format": output_format,
                "output_path": output_path,
                "content_hash": content_hash,
                "file_size_bytes": file_size_bytes,
            },
        )

    async def log_template_created(
        self, template_id: UUID, actor_id: UUID | None, name: str, category: str
    ) -> AuditLog:
        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_TEMPLATE,
            entity_id=template_id,
            action=AuditAction.TEMPLATE_CREATED,
            actor_id=actor_id,
            metadata={"name": name, "category": category},
        )

    async def log_template_updated(
        self, template_id: UUID, actor_id: UUID, changed_fields: list[str]
    ) -> AuditLog:
        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_TEMPLATE,
            entity_id=template_id,
            action=AuditAction.TEMPLATE_UPDATED,
            actor_id=actor_id,
            metadata={"changed_fields": changed_fields},
        )

    async def log_template_deactivated(
        self, template_id: UUID, actor_id: UUID, name: str
    ) -> AuditLog:
        return await self._create_audit_log(
            entity_type=AuditEntityType.LETTER_TEMPLATE,
            entity_id=template_id,
            action=AuditAction.TEMPLATE_DEACTIVATED,
            actor_id=actor_id,
            metadata={"name": name},
        )

    async def query_by_letter_id(
        self, letter_id: UUID, skip: int = 0, limit: int = 100
    ) -> list[AuditLog]:
        logs = await self.audit_repo.query(
            AuditQuery(entity_id=letter_id, skip=skip, limit=limit)
        )
        return list(logs)

    async def _create_audit_log(
        self,
        entity_type: AuditEntityType,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID | None,
        metadata: dict[str, Any],
    ) -> AuditLog:
        audit_log = AuditLog(
            entity_type=entity_type.value,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            metadata_=metadata,
        )
        logger.debug(f"Audit {action.value} for {entity_type.value} {entity_id}")
        return await self.audit_repo.create(audit_log)
