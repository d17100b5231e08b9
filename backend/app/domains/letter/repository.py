import uuid
from typing import Any, Optional, Sequence, cast

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domains.letter.models import LetterRequest, LetterVersion
from backend.app.domains.letter.state_machine import LetterStatus
from backend.app.infrastructure.datetime_utils import utc_now


class LetterRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, letter: LetterRequest) -> LetterRequest:
        self.session.add(letter)
        await self.session.flush()
        return letter

    async def get_by_id(self, letter_id: uuid.UUID) -> Optional[LetterRequest]:
        stmt = (
            select(LetterRequest)
            .where(LetterRequest.id == letter_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return cast(Optional[LetterRequest], result.scalar_one_or_none())

    async def compare_and_set(
        self,
        letter_id: uuid.UUID,
        expected_version: int,
        expected_status: LetterStatus,
        values: dict[str, Any],
    ) -> bool:
        """
        Write `values` only if the row still has the expected version and status.

        Returns False when another writer got there first; nothing is changed.
        """
        stmt = (
            update(LetterRequest)
            .where(
                LetterRequest.id == letter_id,
                LetterRequest.current_version == expected_version,
                LetterRequest.status == expected_status,
            )
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_for_referee(
        self,
        referee_id: uuid.UUID,
        statuses: Sequence[LetterStatus] | None = None,
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[Sequence[LetterRequest], int]:
        condition = LetterRequest.referee_id == referee_id
        return await self._paginate(condition, statuses, skip, limit)

    async def list_for_applicant(
        self,
        requester_id: uuid.UUID,
        statuses: Sequence[LetterStatus] | None = None,
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[Sequence[LetterRequest], int]:
        condition = LetterRequest.requester_id == requester_id
        return await self._paginate(condition, statuses, skip, limit)

    async def list_pending_for_referee(self, referee_id: uuid.UUID) -> Sequence[LetterRequest]:
        stmt = (
            select(LetterRequest)
            .where(
                LetterRequest.status == LetterStatus.REQUESTED,
                or_(
                    LetterRequest.invited_referee_id == referee_id,
                    LetterRequest.invited_referee_id.is_(None),
                ),
            )
            .order_by(LetterRequest.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return cast(Sequence[LetterRequest], result.scalars().all())

    async def _paginate(
        self,
        condition: Any,
        statuses: Sequence[LetterStatus] | None,
        skip: int,
        limit: int,
    ) -> tuple[Sequence[LetterRequest], int]:
        if statuses:
            condition = and_(condition, LetterRequest.status.in_(list(statuses)))

        count_stmt = select(func.count()).select_from(LetterRequest).where(condition)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(LetterRequest)
            .where(condition)
            .order_by(LetterRequest.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return cast(Sequence[LetterRequest], result.scalars().all()), int(total)

    # =========================================================================
    # Version ledger (insert / read / delete-all only, snapshots are immutable)
    # =========================================================================

    async def add_version(self, version: LetterVersion) -> LetterVersion:
        self.session.add(version)
        await self.session.flush()
        return version

    async def get_version(
        self, letter_id: uuid.UUID, version_number: int
    ) -> Optional[LetterVersion]:
        stmt = select(LetterVersion).where(
            LetterVersion.letter_id == letter_id,
            LetterVersion.version_number == version_number,
        )
        result = await self.session.execute(stmt)
        return cast(Optional[LetterVersion], result.scalar_one_or_none())

    async def list_versions(self, letter_id: uuid.UUID) -> Sequence[LetterVersion]:
        stmt = (
            select(LetterVersion)
            .where(LetterVersion.letter_id == letter_id)
            .order_by(LetterVersion.version_number.asc())
        )
        result = await self.session.execute(stmt)
        return cast(Sequence[LetterVersion], result.scalars().all())

    async def count_versions(self, letter_id: uuid.UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(LetterVersion)
            .where(LetterVersion.letter_id == letter_id)
        )
        return int((await self.session.execute(stmt)).scalar_one())

    async def delete_versions(self, letter_id: uuid.UUID) -> int:
        stmt = delete(LetterVersion).where(LetterVersion.letter_id == letter_id)
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)
