import math
from typing import Any, Optional, Sequence
from uuid import UUID

from backend.app.domains.audit.letter_audit_service import LetterAuditService
from backend.app.domains.audit.schemas import AuditAction
from backend.app.domains.letter.access import (
    can_see_content,
    is_owning_referee,
    is_requesting_applicant,
    require_invited_referee,
    require_owning_referee,
    require_reader,
    require_role,
)
from backend.app.domains.letter.models import LetterRequest, compute_content_hash
from backend.app.domains.letter.repository import LetterRepository
from backend.app.domains.letter.schemas import (
    CallerIdentity,
    LetterListResponse,
    LetterRequestCreate,
    LetterResponse,
    LetterSummary,
    ManualEditRequest,
    Pagination,
    PendingRequestResponse,
    UserRole,
)
from backend.app.domains.letter.state_machine import (
    EDITABLE_STATUSES,
    LetterStatus,
    assert_mutable,
    assert_status_in,
    assert_transition,
)
from backend.app.infrastructure.datetime_utils import utc_now
from backend.app.infrastructure.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    WorkflowValidationError,
)
from backend.app.infrastructure.redis import LockClient, letter_write_lock
from backend.app.logging_config import get_logger

logger = get_logger("app.domains.letter.service")


def parse_status_filter(raw: Optional[str]) -> list[LetterStatus]:
    """Parse a comma separated status filter such as ``"draft,in_review"``."""
    if not raw:
        return []
    statuses = []
    for part in raw.split(","):
        value = part.strip().lower()
        if not value:
            continue
        try:
            statuses.append(LetterStatus(value))
        except ValueError:
            raise WorkflowValidationError("status", "unknown letter status", value=value)
    return statuses


def build_letter_response(letter: LetterRequest, caller: CallerIdentity) -> LetterResponse:
    """Applicants only see the content once the letter is completed."""
    response = LetterResponse.model_validate(letter)
    if not can_see_content(letter, caller):
        response = response.model_copy(update={"current_content": None})
    return response


def build_letter_summary(letter: LetterRequest, caller: CallerIdentity) -> LetterSummary:
    return LetterSummary(
        id=letter.id,
        status=letter.status,
        applicant_name=letter.applicant_name,
        program=(letter.applicant_data or {}).get("program"),
        referee_id=letter.referee_id,
        template_id=letter.template_id,
        content=letter.current_content if can_see_content(letter, caller) else None,
        created_at=letter.created_at,
        completed_at=letter.completed_at,
    )


class LetterService:
    """Lifecycle operations on letter requests outside of generation."""

    def __init__(
        self,
        repo: LetterRepository,
        audit: LetterAuditService,
        lock_client: LockClient,
        lock_ttl_seconds: int = 120,
    ):
        self.repo = repo
        self.audit = audit
        self.lock_client = lock_client
        self.lock_ttl_seconds = lock_ttl_seconds

    async def create_request(
        self, caller: CallerIdentity, data: LetterRequestCreate
    ) -> LetterRequest:
        require_role(caller, UserRole.APPLICANT)

        applicant_data = data.applicant_data.model_dump(mode="json", exclude_none=True)
        if not applicant_data.get("email") and caller.email:
            applicant_data["email"] = caller.email

        letter = LetterRequest(
            status=LetterStatus.REQUESTED,
            applicant_data=applicant_data,
            requester_id=caller.user_id,
            invited_referee_id=data.referee_id,
            preferences=data.preferences.model_dump(mode="json", exclude_none=True),
            current_version=1,
            generation_attempts=0,
        )
        created = await self.repo.create(letter)
        await self.audit.log_request_event(
            created.id,
            AuditAction.REQUEST_CREATED,
            caller.user_id,
            to_status=LetterStatus.REQUESTED.value,
        )
        logger.info(
            f"Letter request {created.id} created by applicant {caller.user_id}"
            f" for referee {data.referee_id or 'any'}"
        )
        return created

    async def get_letter(self, letter_id: UUID, caller: CallerIdentity) -> LetterRequest:
        letter = await self.load(letter_id)
        require_reader(letter, caller)
        return letter

    async def list_letters(
        self,
        caller: CallerIdentity,
        statuses: Sequence[LetterStatus] | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> LetterListResponse:
        if page < 1:
            raise WorkflowValidationError("page", "must be at least 1", value=page)
        if limit < 1 or limit > 100:
            raise WorkflowValidationError("limit", "must be between 1 and 100", value=limit)

        skip = (page - 1) * limit
        if caller.role == UserRole.REFEREE:
            rows, total = await self.repo.list_for_referee(caller.user_id, statuses, skip, limit)
        else:
            rows, total = await self.repo.list_for_applicant(caller.user_id, statuses, skip, limit)

        return LetterListResponse(
            letters=[build_letter_summary(letter, caller) for letter in rows],
            pagination=Pagination(
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit) if total else 0,
            ),
        )

    async def list_pending(self, caller: CallerIdentity) -> list[PendingRequestResponse]:
        require_role(caller, UserRole.REFEREE)
        rows = await self.repo.list_pending_for_referee(caller.user_id)
        pending = []
        for letter in rows:
            data = letter.applicant_data or {}
            preferences = letter.preferences or {}
            pending.append(
                PendingRequestResponse(
                    id=letter.id,
                    applicant_name=letter.applicant_name,
                    applicant_email=letter.applicant_email,
                    program=data.get("program"),
                    goal=data.get("goal"),
                    achievements=data.get("achievements") or [],
                    preferences=preferences,
                    deadline=preferences.get("deadline"),
                    created_at=letter.created_at,
                )
            )
        return pending

    async def accept(self, letter_id: UUID, caller: CallerIdentity) -> LetterRequest:
        letter = await self.load(letter_id)
        require_invited_referee(letter, caller)
        assert_transition(letter.status, LetterStatus.IN_PROGRESS, letter.id)

        await self.write(
            letter,
            {
                "status": LetterStatus.IN_PROGRESS,
                "referee_id": caller.user_id,
                "accepted_at": utc_now(),
            },
        )
        await self.audit.log_request_event(
            letter.id,
            AuditAction.REQUEST_ACCEPTED,
            caller.user_id,
            from_status=letter.status.value,
            to_status=LetterStatus.IN_PROGRESS.value,
        )
        logger.info(f"Letter {letter_id} accepted by referee {caller.user_id}")
        return await self.load(letter_id)

    async def reject(self, letter_id: UUID, caller: CallerIdentity, reason: str) -> LetterRequest:
        letter = await self.load(letter_id)
        require_invited_referee(letter, caller)
        assert_transition(letter.status, LetterStatus.REJECTED, letter.id)
        if not reason or not reason.strip():
            raise WorkflowValidationError(
                "reason", "a rejection reason is required", letter_id=letter.id
            )

        await self.write(
            letter,
            {
                "status": LetterStatus.REJECTED,
                "referee_id": caller.user_id,
                "rejection_reason": reason.strip(),
                "rejected_at": utc_now(),
            },
        )
        await self.audit.log_request_event(
            letter.id,
            AuditAction.REQUEST_REJECTED,
            caller.user_id,
            from_status=letter.status.value,
            to_status=LetterStatus.REJECTED.value,
            reason=reason.strip(),
        )
        logger.info(f"Letter {letter_id} rejected by referee {caller.user_id}")
        return await self.load(letter_id)

    async def cancel(
        self, letter_id: UUID, caller: CallerIdentity, reason: str | None = None
    ) -> LetterRequest:
        letter = await self.load(letter_id)
        if not (is_owning_referee(letter, caller) or is_requesting_applicant(letter, caller)):
            raise PermissionDeniedError(letter.id, "only the referee or the applicant may cancel")
        assert_mutable(letter.status, "cancel", letter.id)
        assert_transition(letter.status, LetterStatus.CANCELED, letter.id)

        cleaned = reason.strip() if reason and reason.strip() else None
        await self.write(
            letter,
            {
                "status": LetterStatus.CANCELED,
                "cancellation_reason": cleaned,
                "canceled_at": utc_now(),
            },
        )
        await self.audit.log_request_event(
            letter.id,
            AuditAction.REQUEST_CANCELED,
            caller.user_id,
            from_status=letter.status.value,
            to_status=LetterStatus.CANCELED.value,
            reason=cleaned,
        )
        logger.info(f"Letter {letter_id} canceled by {caller.role.value} {caller.user_id}")
        return await self.load(letter_id)

    async def edit_content(
        self, letter_id: UUID, caller: CallerIdentity, data: ManualEditRequest
    ) -> LetterRequest:
        """
        Replace the current content by hand.

        A manual edit does not create a version snapshot; it moves the letter
        between draft and in_review only.
        """
        with letter_write_lock(self.lock_client, letter_id, self.lock_ttl_seconds):
            letter = await self.load(letter_id)
            require_owning_referee(letter, caller)
            assert_mutable(letter.status, "edit", letter.id)
            assert_status_in(letter.status, EDITABLE_STATUSES, "edit", letter.id)

            if data.status not in EDITABLE_STATUSES:
                raise WorkflowValidationError(
                    "status",
                    "must be 'draft' or 'in_review'",
                    value=data.status.value,
                    letter_id=letter.id,
                )
            if not data.letter_content.strip():
                raise WorkflowValidationError(
                    "letter_content", "content must not be empty", letter_id=letter.id
                )
            if data.status != letter.status:
                assert_transition(letter.status, data.status, letter.id)

            await self.write(
                letter, {"current_content": data.letter_content, "status": data.status}
            )
            await self.audit.log_content_edited(
                letter.id,
                caller.user_id,
                current_version=letter.current_version,
                content_hash=compute_content_hash(data.letter_content),
                content_length=len(data.letter_content),
            )
            if data.status != letter.status:
                await self.audit.log_status_change(
                    letter.id, caller.user_id, letter.status.value, data.status.value, "edit"
                )

        logger.info(f"Letter {letter_id} edited manually, status {data.status.value}")
        return await self.load(letter_id)

    async def approve(self, letter_id: UUID, caller: CallerIdentity) -> LetterRequest:
        letter = await self.load(letter_id)
        require_owning_referee(letter, caller)
        assert_mutable(letter.status, "approve", letter.id)
        assert_status_in(letter.status, EDITABLE_STATUSES, "approve", letter.id)
        if not (letter.current_content or "").strip():
            raise WorkflowValidationError(
                "current_content", "cannot approve a letter without content", letter_id=letter.id
            )

        await self.write(
            letter, {"status": LetterStatus.COMPLETED, "completed_at": utc_now()}
        )
        await self.audit.log_request_event(
            letter.id,
            AuditAction.LETTER_APPROVED,
            caller.user_id,
            from_status=letter.status.value,
            to_status=LetterStatus.COMPLETED.value,
        )
        logger.info(f"Letter {letter_id} approved by referee {caller.user_id}")
        return await self.load(letter_id)

    async def load(self, letter_id: UUID) -> LetterRequest:
        letter = await self.repo.get_by_id(letter_id)
        if letter is None:
            raise NotFoundError("Letter", letter_id, letter_id=letter_id)
        return letter

    async def write(self, letter: LetterRequest, values: dict[str, Any]) -> None:
        """Compare-and-set against the version and status `letter` was read with."""
        written = await self.repo.compare_and_set(
            letter.id, letter.current_version, letter.status, values
        )
        if not written:
            raise ConflictError(letter.id, "letter was modified by another operation")
