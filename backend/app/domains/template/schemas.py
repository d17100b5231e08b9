from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backend.app.domains.template.models import TemplateCategory


class TemplateParameters(BaseModel):
    tone: Optional[str] = None
    length: Optional[str] = None
    detail_level: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: TemplateCategory = TemplateCategory.GENERAL
    prompt_template: str = Field(..., min_length=1)
    default_parameters: TemplateParameters = Field(default_factory=TemplateParameters)


class TemplateUpdate(BaseModel):
    """Partial update; fields left out keep their current value."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[TemplateCategory] = None
    prompt_template: Optional[str] = Field(default=None, min_length=1)
    default_parameters: Optional[TemplateParameters] = None

    model_config = ConfigDict(extra="forbid")


class TemplateResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    category: TemplateCategory
    prompt_template: str
    default_parameters: dict = Field(default_factory=dict)
    created_by: Optional[UUID] = None
    is_system_template: bool
    is_active: bool
    placeholders: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
