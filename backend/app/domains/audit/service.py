from typing import Sequence

from backend.app.domains.audit.models import AuditLog
from backend.app.domains.audit.repository import AuditRepository
from backend.app.domains.audit.schemas import AuditQuery
from backend.app.domains.letter.schemas import CallerIdentity, UserRole


class AuditService:
    """Read side of the audit trail."""

    def __init__(self, repo: AuditRepository):
        self.repo = repo

    async def query_for_caller(
        self, caller: CallerIdentity, query: AuditQuery
    ) -> Sequence[AuditLog]:
        # Applicants only see the entries they caused
        if caller.role == UserRole.APPLICANT:
            query = query.model_copy(update={"actor_id": caller.user_id})
        return await self.repo.query(query)
