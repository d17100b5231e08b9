import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domains.template.binder import validate_template_placeholders
from backend.app.domains.template.models import LetterTemplate, TemplateCategory
from backend.app.logging_config import get_logger

logger = get_logger("app.infrastructure.template_seeding")


ACADEMIC_TEMPLATE_ID = uuid.UUID("550e8400-e29b-41d4-a716-446655440001")
JOB_TEMPLATE_ID = uuid.UUID("550e8400-e29b-41d4-a716-446655440002")
SCHOLARSHIP_TEMPLATE_ID = uuid.UUID("550e8400-e29b-41d4-a716-446655440003")
GENERAL_TEMPLATE_ID = uuid.UUID("550e8400-e29b-41d4-a716-446655440004")

SYSTEM_TEMPLATES: list[dict[str, Any]] = [
    {
        "id": ACADEMIC_TEMPLATE_ID,
        "name": "Academic Recommendation",
        "description": (
            "Standard template for academic recommendations (grad school, research positions)"
        ),
        "category": TemplateCategory.ACADEMIC,
        "prompt_template": """Write a professional academic recommendation letter for {applicantName}, who is applying for {position}.

Context:
- Applicant: {applicantName}
- Position/Program: {position}
- Relationship: {relationship}
- Duration: {duration}

Key strengths to highlight:
{strengths}

Specific examples:
{examples}

Additional context:
{additionalContext}

Please write in a {tone} tone, with {length} length, and {detailLevel} level of detail.""",
        "default_parameters": {
            "tone": "formal",
            "length": "standard",
            "detail_level": "comprehensive",
        },
    },
    {
        "id": JOB_TEMPLATE_ID,
        "name": "Job Application",
        "description": "Template for job recommendations in corporate/professional settings",
        "category": TemplateCategory.JOB,
        "prompt_template": """Write a professional job recommendation letter for {applicantName}, who is applying for the position of {position}.

Background:
- Applicant: {applicantName}
- Target Position: {position}
- My relationship with applicant: {relationship}
- Duration of our working relationship: {duration}

Key qualifications and strengths:
{strengths}

Specific examples of their work:
{examples}

Additional relevant information:
{additionalContext}

Please write this in a {tone} tone, with {length} length, and include {detailLevel} level of specific details.""",
        "default_parameters": {
            "tone": "professional",
            "length": "standard",
            "detail_level": "standard",
        },
    },
    {
        "id": SCHOLARSHIP_TEMPLATE_ID,
        "name": "Scholarship Application",
        "description": "Template for scholarship and fellowship recommendations",
        "category": TemplateCategory.SCHOLARSHIP,
        "prompt_template": """Write a compelling recommendation letter for {applicantName}, who is applying for {position}.

Applicant Details:
- Name: {applicantName}
- Scholarship/Fellowship: {position}
- My relationship: {relationship}
- Duration I've known them: {duration}

Key strengths and achievements:
{strengths}

Specific examples of excellence:
{examples}

Why they deserve this opportunity:
{additionalContext}

Please write in a {tone} tone, with {length} length, emphasizing their potential with {detailLevel} level of detail.""",
        "default_parameters": {
            "tone": "enthusiastic",
            "length": "detailed",
            "detail_level": "comprehensive",
        },
    },
    {
        "id": GENERAL_TEMPLATE_ID,
        "name": "General Purpose",
        "description": "Flexible template for various recommendation needs",
        "category": TemplateCategory.GENERAL,
        "prompt_template": """Write a recommendation letter for {applicantName} for {position}.

Background:
- Applicant: {applicantName}
- Purpose: {position}
- My relationship: {relationship}
- Duration: {duration}

Key points to highlight:
{strengths}

Supporting examples:
{examples}

Additional information:
{additionalContext}

Please write in a {tone} tone, with {length} length, and {detailLevel} level of detail.""",
        "default_parameters": {
            "tone": "formal",
            "length": "standard",
            "detail_level": "standard",
        },
    },
]


class SystemTemplateSeeder:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def seed_all(self, force: bool = False) -> dict[str, Any]:
        """
        Insert the system templates that are missing.

        With `force`, existing system templates are reset to the definitions
        above (ids are stable so letters keep pointing at them).
        """
        logger.info("Starting system template seeding")
        result: dict[str, Any] = {"created": [], "updated": [], "unchanged": []}

        for definition in SYSTEM_TEMPLATES:
            validate_template_placeholders(definition["prompt_template"])
            existing = await self._get(definition["id"])
            if existing is None:
                self.session.add(
                    LetterTemplate(
                        **definition, created_by=None, is_system_template=True, is_active=True
                    )
                )
                result["created"].append(str(definition["id"]))
            elif force:
                for field, value in definition.items():
                    setattr(existing, field, value)
                existing.is_system_template = True
                existing.is_active = True
                result["updated"].append(str(definition["id"]))
            else:
                result["unchanged"].append(str(definition["id"]))

        await self.session.flush()
        await self.session.commit()

        logger.info(f"System template seeding completed: {result}")
        return result

    async def _get(self, template_id: uuid.UUID) -> LetterTemplate | None:
        stmt = select(LetterTemplate).where(LetterTemplate.id == template_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()


def get_system_template_ids() -> dict[str, str]:
    return {str(t["category"].value): str(t["id"]) for t in SYSTEM_TEMPLATES}


def is_system_template_id(template_id: uuid.UUID) -> bool:
    return any(t["id"] == template_id for t in SYSTEM_TEMPLATES)
