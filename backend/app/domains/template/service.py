from typing import Optional, Sequence
from uuid import UUID

from backend.app.domains.audit.letter_audit_service import LetterAuditService
from backend.app.domains.letter.access import require_role
from backend.app.domains.letter.schemas import CallerIdentity, UserRole
from backend.app.domains.template.binder import (
    extract_placeholders,
    validate_template_placeholders,
)
from backend.app.domains.template.models import LetterTemplate, TemplateCategory
from backend.app.domains.template.repository import TemplateRepository
from backend.app.domains.template.schemas import (
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from backend.app.infrastructure.datetime_utils import utc_now
from backend.app.infrastructure.errors import (
    NotFoundError,
    PermissionDeniedError,
    WorkflowValidationError,
)
from backend.app.logging_config import get_logger

logger = get_logger("app.domains.template.service")


def build_template_response(template: LetterTemplate) -> TemplateResponse:
    response = TemplateResponse.model_validate(template)
    return response.model_copy(
        update={"placeholders": extract_placeholders(template.prompt_template)}
    )


def _require_template_owner(
    template: LetterTemplate, caller: CallerIdentity, operation: str
) -> None:
    if template.is_system_template:
        raise PermissionDeniedError(None, f"cannot {operation} a system template")
    if template.created_by != caller.user_id:
        raise PermissionDeniedError(None, f"you can only {operation} your own templates")


def _validate_prompt(prompt_template: str) -> list[str]:
    placeholders = validate_template_placeholders(prompt_template)
    if not placeholders:
        raise WorkflowValidationError(
            "prompt_template", "template must contain at least one placeholder"
        )
    return placeholders


class TemplateService:
    def __init__(self, repo: TemplateRepository, audit: LetterAuditService):
        self.repo = repo
        self.audit = audit

    async def get_template(self, template_id: UUID) -> LetterTemplate:
        template = await self.repo.get_by_id(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        return template

    async def get_active_template(self, template_id: UUID) -> LetterTemplate:
        template = await self.get_template(template_id)
        if not template.is_active:
            raise WorkflowValidationError("template_id", "template is inactive", value=template_id)
        return template

    async def list_templates(
        self,
        caller: Optional[CallerIdentity] = None,
        category: Optional[TemplateCategory] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Sequence[LetterTemplate]:
        owner_id = caller.user_id if caller and caller.role == UserRole.REFEREE else None
        return await self.repo.list_visible(
            owner_id=owner_id, category=category, skip=skip, limit=limit
        )

    async def create_template(self, data: TemplateCreate, caller: CallerIdentity) -> LetterTemplate:
        require_role(caller, UserRole.REFEREE)
        placeholders = _validate_prompt(data.prompt_template)

        template = LetterTemplate(
            name=data.name.strip(),
            description=data.description,
            category=data.category,
            prompt_template=data.prompt_template,
            default_parameters=data.default_parameters.model_dump(exclude_none=True),
            created_by=caller.user_id,
            is_system_template=False,
            is_active=True,
        )
        created = await self.repo.create(template)
        await self.audit.log_template_created(
            created.id, caller.user_id, created.name, created.category.value
        )
        logger.info(
            f"Template {created.id} '{created.name}' created by {caller.user_id}"
            f" with placeholders {placeholders}"
        )
        return created

    async def update_template(
        self, template_id: UUID, data: TemplateUpdate, caller: CallerIdentity
    ) -> LetterTemplate:
        """Only the creator may edit a template; system templates are read-only."""
        require_role(caller, UserRole.REFEREE)
        template = await self.get_template(template_id)
        _require_template_owner(template, caller, "edit")

        # An explicit null only clears the description; other fields keep their value
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field == "description"
        }
        if "prompt_template" in changes:
            _validate_prompt(changes["prompt_template"])
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        if "default_parameters" in changes:
            changes["default_parameters"] = data.default_parameters.model_dump(exclude_none=True)

        changed_fields = sorted(changes)
        for field, value in changes.items():
            setattr(template, field, value)
        template.updated_at = utc_now()

        await self.repo.save(template)
        await self.audit.log_template_updated(template.id, caller.user_id, changed_fields)
        logger.info(f"Template {template.id} updated by {caller.user_id}: {changed_fields}")
        return template

    async def deactivate_template(
        self, template_id: UUID, caller: CallerIdentity
    ) -> LetterTemplate:
        """Soft delete: the row stays so letters generated from it keep their reference."""
        require_role(caller, UserRole.REFEREE)
        template = await self.get_template(template_id)
        _require_template_owner(template, caller, "delete")

        if template.is_active:
            template.is_active = False
            template.updated_at = utc_now()
            await self.repo.save(template)
            await self.audit.log_template_deactivated(template.id, caller.user_id, template.name)
            logger.info(f"Template {template.id} deactivated by {caller.user_id}")
        return template
