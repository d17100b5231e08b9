import uuid
from collections.abc import Sequence
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domains.template.models import LetterTemplate, TemplateCategory


class TemplateRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, template: LetterTemplate) -> LetterTemplate:
        self.session.add(template)
        await self.session.flush()
        return template

    async def save(self, template: LetterTemplate) -> LetterTemplate:
        await self.session.flush()
        return template

    async def get_by_id(self, template_id: uuid.UUID) -> LetterTemplate | None:
        stmt = select(LetterTemplate).where(LetterTemplate.id == template_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_visible(
        self,
        owner_id: Optional[uuid.UUID] = None,
        category: Optional[TemplateCategory] = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> Sequence[LetterTemplate]:
        """System templates plus the ones `owner_id` created."""
        visibility = LetterTemplate.is_system_template.is_(True)
        if owner_id is not None:
            visibility = or_(visibility, LetterTemplate.created_by == owner_id)

        stmt = select(LetterTemplate).where(visibility)
        if category is not None:
            stmt = stmt.where(LetterTemplate.category == category)
        if not include_inactive:
            stmt = stmt.where(LetterTemplate.is_active.is_(True))
        stmt = (
            stmt.order_by(LetterTemplate.is_system_template.desc(), LetterTemplate.name.asc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
