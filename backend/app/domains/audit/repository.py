import uuid
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domains.audit.models import AuditLog
from backend.app.domains.audit.schemas import AuditQuery


class AuditRepository:
    """Append-only store; entries are never updated or deleted."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, log: AuditLog) -> AuditLog:
        self.session.add(log)
        await self.session.flush()
        return log

    async def query(self, query: AuditQuery) -> Sequence[AuditLog]:
        """Newest first."""
        stmt = (
            select(AuditLog)
            .where(*self._conditions(query))
            .order_by(AuditLog.timestamp.desc())
            .offset(query.skip)
            .limit(query.limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_for_entity(self, entity_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(AuditLog).where(AuditLog.entity_id == entity_id)
        return int((await self.session.execute(stmt)).scalar_one())

    @staticmethod
    def _conditions(query: AuditQuery) -> list:
        conditions = []
        if query.entity_type:
            conditions.append(AuditLog.entity_type == query.entity_type.value)
        if query.entity_id:
            conditions.append(AuditLog.entity_id == query.entity_id)
        if query.action:
            conditions.append(AuditLog.action == query.action.value)
        if query.actor_id:
            conditions.append(AuditLog.actor_id == query.actor_id)
        if query.from_timestamp:
            conditions.append(AuditLog.timestamp >= query.from_timestamp)
        if query.to_timestamp:
            conditions.append(AuditLog.timestamp <= query.to_timestamp)
        return conditions
