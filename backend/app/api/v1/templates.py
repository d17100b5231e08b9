from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from backend.app.api.deps import Caller, get_template_service
from backend.app.domains.template.models import TemplateCategory
from backend.app.domains.template.schemas import (
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from backend.app.domains.template.service import TemplateService, build_template_response

router = APIRouter()

TemplateServiceDep = Annotated[TemplateService, Depends(get_template_service)]


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    caller: Caller,
    service: TemplateServiceDep,
    category: Optional[TemplateCategory] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[TemplateResponse]:
    templates = await service.list_templates(caller, category=category, skip=skip, limit=limit)
    return [build_template_response(t) for t in templates]


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: TemplateCreate,
    caller: Caller,
    service: TemplateServiceDep,
) -> TemplateResponse:
    template = await service.create_template(data, caller)
    await service.repo.session.commit()
    return build_template_response(template)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: UUID,
    caller: Caller,
    service: TemplateServiceDep,
) -> TemplateResponse:
    template = await service.get_template(template_id)
    return build_template_response(template)


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: UUID,
    data: TemplateUpdate,
    caller: Caller,
    service: TemplateServiceDep,
) -> TemplateResponse:
    template = await service.update_template(template_id, data, caller)
    await service.repo.session.commit()
    return build_template_response(template)


@router.delete("/{template_id}", response_model=TemplateResponse)
async def delete_template(
    template_id: UUID,
    caller: Caller,
    service: TemplateServiceDep,
) -> TemplateResponse:
    """Deactivates the template; it no longer appears in listings or accepts generations."""
    template = await service.deactivate_template(template_id, caller)
    await service.repo.session.commit()
    return build_template_response(template)
