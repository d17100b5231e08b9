from uuid import UUID

from backend.app.domains.audit.letter_audit_service import LetterAuditService
from backend.app.domains.letter.access import require_owning_referee
from backend.app.domains.letter.models import LetterRequest, LetterVersion, VersionKind
from backend.app.domains.letter.repository import LetterRepository
from backend.app.domains.letter.schemas import CallerIdentity
from backend.app.domains.letter.state_machine import assert_mutable
from backend.app.domains.versioning.schemas import (
    ClearHistoryResult,
    LetterVersionHistory,
    RestoreResult,
    VersionSnapshotResponse,
)
from backend.app.infrastructure.datetime_utils import utc_now
from backend.app.infrastructure.errors import (
    ConflictError,
    NotFoundError,
    WorkflowValidationError,
)
from backend.app.infrastructure.redis import LockClient, letter_write_lock
from backend.app.logging_config import LogContext, get_logger

logger = get_logger("app.domains.versioning.service")


class VersionLedgerService:
    """
    Append-only version history of a letter.

    Snapshots are only ever inserted; restoring appends a RESTORATION entry
    instead of rewinding, so `current_version == len(history) + 1` holds after
    every operation. Clearing is the one destructive operation and resets the
    ledger to a fresh baseline built from the current content.
    """

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

    async def list_history(self, letter_id: UUID, caller: CallerIdentity) -> LetterVersionHistory:
        letter = await self._load(letter_id)
        require_owning_referee(letter, caller)
        versions = await self.repo.list_versions(letter_id)
        return LetterVersionHistory(
            letter_id=letter.id,
            status=letter.status,
            current_version=letter.current_version,
            total_versions=len(versions),
            history_cleared_at=letter.history_cleared_at,
            history=[VersionSnapshotResponse.model_validate(v) for v in versions],
        )

    async def get_version(
        self, letter_id: UUID, caller: CallerIdentity, version_number: int
    ) -> LetterVersion:
        letter = await self._load(letter_id)
        require_owning_referee(letter, caller)
        return await self._get_snapshot(letter, version_number)

    async def restore(
        self, letter_id: UUID, caller: CallerIdentity, version_number: int
    ) -> RestoreResult:
        with LogContext(letter_id=str(letter_id)):
            with letter_write_lock(self.lock_client, letter_id, self.lock_ttl_seconds):
                letter = await self._load(letter_id)
                require_owning_referee(letter, caller)
                assert_mutable(letter.status, "restore a version", letter.id)
                snapshot = await self._get_snapshot(letter, version_number)

                entry_number = letter.current_version
                written = await self.repo.compare_and_set(
                    letter.id,
                    letter.current_version,
                    letter.status,
                    {
                        "current_content": snapshot.content,
                        "current_version": entry_number + 1,
                    },
                )
                if not written:
                    raise ConflictError(letter.id, "letter changed during restore")

                await self.repo.add_version(
                    LetterVersion(
                        letter_id=letter.id,
                        version_number=entry_number,
                        kind=VersionKind.RESTORATION,
                        restored_from_version=snapshot.version_number,
                        model_used=snapshot.model_used,
                        selected_model=snapshot.selected_model,
                        tokens_used=0,
                        content=snapshot.content,
                        content_hash=snapshot.content_hash,
                        generation_settings={
                            **(snapshot.generation_settings or {}),
                            "trigger": "restoration",
                            "restored_from_version": snapshot.version_number,
                        },
                    )
                )
                await self.audit.log_version_restored(
                    letter.id,
                    caller.user_id,
                    restored_from_version=snapshot.version_number,
                    version_number=entry_number,
                    content_hash=snapshot.content_hash,
                )

        logger.info(
            f"Letter {letter_id} restored from version {version_number}"
            f" as version {entry_number}"
        )
        return RestoreResult(
            letter_id=letter.id,
            status=letter.status,
            restored_from_version=snapshot.version_number,
            snapshot_version=entry_number,
            current_version=entry_number + 1,
            content=snapshot.content,
        )

    async def clear_history(self, letter_id: UUID, caller: CallerIdentity) -> ClearHistoryResult:
        """Drop every snapshot. The current content becomes the new baseline."""
        with LogContext(letter_id=str(letter_id)):
            with letter_write_lock(self.lock_client, letter_id, self.lock_ttl_seconds):
                letter = await self._load(letter_id)
                require_owning_referee(letter, caller)
                assert_mutable(letter.status, "clear history", letter.id)

                versions = await self.repo.list_versions(letter.id)
                discarded = [
                    {
                        "version_number": v.version_number,
                        "kind": v.kind.value,
                        "content_hash": v.content_hash,
                        "selected_model": v.selected_model,
                    }
                    for v in versions
                ]
                cleared_at = utc_now()
                written = await self.repo.compare_and_set(
                    letter.id,
                    letter.current_version,
                    letter.status,
                    {"current_version": 1, "history_cleared_at": cleared_at},
                )
                if not written:
                    raise ConflictError(letter.id, "letter changed while clearing history")

                await self.repo.delete_versions(letter.id)
                await self.audit.log_history_cleared(letter.id, caller.user_id, discarded)

        logger.info(f"Letter {letter_id} history cleared, {len(discarded)} versions discarded")
        return ClearHistoryResult(
            letter_id=letter.id,
            discarded_count=len(discarded),
            current_version=1,
            history_cleared_at=cleared_at,
        )

    async def _load(self, letter_id: UUID) -> LetterRequest:
        letter = await self.repo.get_by_id(letter_id)
        if letter is None:
            raise NotFoundError("Letter", letter_id, letter_id=letter_id)
        return letter

    async def _get_snapshot(self, letter: LetterRequest, version_number: int) -> LetterVersion:
        if version_number < 1:
            raise WorkflowValidationError(
                "version", "version numbers start at 1", value=version_number, letter_id=letter.id
            )
        snapshot = await self.repo.get_version(letter.id, version_number)
        if snapshot is None:
            raise NotFoundError("Letter version", version_number, letter_id=letter.id)
        return snapshot
