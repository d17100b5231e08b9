from backend.app.domains.template.binder import (
    KNOWN_PLACEHOLDERS,
    bind_prompt,
    extract_placeholders,
    validate_template_placeholders,
)
from backend.app.domains.template.models import LetterTemplate, TemplateCategory
from backend.app.domains.template.repository import TemplateRepository
from backend.app.domains.template.schemas import TemplateCreate, TemplateResponse
from backend.app.domains.template.service import TemplateService

__all__ = [
    "KNOWN_PLACEHOLDERS",
    "LetterTemplate",
    "TemplateCategory",
    "TemplateCreate",
    "TemplateRepository",
    "TemplateResponse",
    "TemplateService",
    "bind_prompt",
    "extract_placeholders",
    "validate_template_placeholders",
]
