import pytest
import pytest_asyncio

from backend.app.domains.audit.schemas import AuditAction
from backend.app.domains.generation.provider import MockTextProvider
from backend.app.domains.generation.schemas import GenerateDraftRequest
from backend.app.domains.generation.service import GenerationConfig, GenerationCoordinator
from backend.app.domains.letter.models import VersionKind
from backend.app.domains.letter.state_machine import LetterStatus
from backend.app.infrastructure.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StateError,
    WorkflowValidationError,
)
from backend.app.infrastructure.redis import letter_lock_name


@pytest_asyncio.fixture
async def generated_letter(
    letter_repository,
    template_repository,
    mock_redis,
    letter_audit_service,
    letter_factory,
    letter_template,
    referee,
    reviewer_context,
):
    """A draft letter with three generated snapshots: 'Draft one' .. 'Draft three'."""
    provider = MockTextProvider(responses=["Draft one", "Draft two", "Draft three"])
    coordinator = GenerationCoordinator(
        letter_repository,
        template_repository,
        provider,
        mock_redis,
        letter_audit_service,
        GenerationConfig(timeout_seconds=5.0),
    )
    letter = await letter_factory(LetterStatus.IN_PROGRESS)
    request = GenerateDraftRequest(template_id=letter_template.id, extra_context=reviewer_context)
    for _ in range(3):
        await coordinator.generate_draft(letter.id, referee, request)
    return await letter_repository.get_by_id(letter.id)


@pytest.mark.asyncio
class TestHistory:
    async def test_list_history_in_order(self, ledger_service, generated_letter, referee):
        history = await ledger_service.list_history(generated_letter.id, referee)

        assert history.total_versions == 3
        assert history.current_version == 4
        assert [v.version_number for v in history.history] == [1, 2, 3]
        assert [v.content for v in history.history] == ["Draft one", "Draft two", "Draft three"]
        assert history.status == LetterStatus.DRAFT

    async def test_get_single_version(self, ledger_service, generated_letter, referee):
        snapshot = await ledger_service.get_version(generated_letter.id, referee, 2)
        assert snapshot.content == "Draft two"
        assert snapshot.kind == VersionKind.GENERATION

    async def test_missing_version(self, ledger_service, generated_letter, referee):
        with pytest.raises(NotFoundError):
            await ledger_service.get_version(generated_letter.id, referee, 9)

    async def test_version_numbers_start_at_one(self, ledger_service, generated_letter, referee):
        with pytest.raises(WorkflowValidationError):
            await ledger_service.get_version(generated_letter.id, referee, 0)

    async def test_history_requires_owning_referee(
        self, ledger_service, generated_letter, other_referee, applicant
    ):
        with pytest.raises(PermissionDeniedError):
            await ledger_service.list_history(generated_letter.id, other_referee)
        with pytest.raises(PermissionDeniedError):
            await ledger_service.list_history(generated_letter.id, applicant)


@pytest.mark.asyncio
class TestRestore:
    async def test_restore_appends_restoration_entry(
        self, ledger_service, letter_repository, generated_letter, referee
    ):
        result = await ledger_service.restore(generated_letter.id, referee, 1)

        assert result.content == "Draft one"
        assert result.restored_from_version == 1
        assert result.snapshot_version == 4
        assert result.current_version == 5
        assert result.status == LetterStatus.DRAFT

        stored = await letter_repository.get_by_id(generated_letter.id)
        assert stored.current_content == "Draft one"
        assert stored.current_version == 5
        assert stored.status == LetterStatus.DRAFT
        assert stored.generation_parameters == generated_letter.generation_parameters

        versions = await letter_repository.list_versions(generated_letter.id)
        assert len(versions) == 4
        entry = versions[-1]
        assert entry.kind == VersionKind.RESTORATION
        assert entry.restored_from_version == 1
        assert entry.tokens_used == 0
        assert entry.content == "Draft one"
        assert entry.content_hash == versions[0].content_hash
        assert entry.selected_model == versions[0].selected_model
        assert entry.generation_settings["trigger"] == "restoration"

    async def test_restored_snapshots_untouched(
        self, ledger_service, letter_repository, generated_letter, referee
    ):
        before = [
            (v.version_number, v.content, v.content_hash)
            for v in await letter_repository.list_versions(generated_letter.id)
        ]
        await ledger_service.restore(generated_letter.id, referee, 2)
        after = [
            (v.version_number, v.content, v.content_hash)
            for v in await letter_repository.list_versions(generated_letter.id)
        ]
        assert after[:3] == before

    async def test_restore_unknown_version(self, ledger_service, generated_letter, referee):
        with pytest.raises(NotFoundError):
            await ledger_service.restore(generated_letter.id, referee, 42)

    async def test_restore_refused_in_terminal_status(
        self, ledger_service, letter_factory, referee
    ):
        letter = await letter_factory(LetterStatus.COMPLETED, current_content="Final")
        with pytest.raises(StateError):
            await ledger_service.restore(letter.id, referee, 1)

    async def test_restore_conflicts_with_running_generation(
        self, ledger_service, generated_letter, referee, mock_redis
    ):
        mock_redis.acquire_lock(letter_lock_name(generated_letter.id))
        with pytest.raises(ConflictError):
            await ledger_service.restore(generated_letter.id, referee, 1)

    async def test_restore_is_audited(
        self, ledger_service, letter_audit_service, generated_letter, referee
    ):
        await ledger_service.restore(generated_letter.id, referee, 3)

        logs = await letter_audit_service.query_by_letter_id(generated_letter.id)
        restored = [log for log in logs if log.action == AuditAction.VERSION_RESTORED.value]
        assert len(restored) == 1
        assert restored[0].metadata_["restored_from_version"] == 3
        assert restored[0].metadata_["version_number"] == 4


@pytest.mark.asyncio
class TestClearHistory:
    async def test_clear_history_resets_ledger(
        self, ledger_service, letter_repository, generated_letter, referee
    ):
        result = await ledger_service.clear_history(generated_letter.id, referee)

        assert result.discarded_count == 3
        assert result.current_version == 1
        assert result.history_cleared_at is not None

        stored = await letter_repository.get_by_id(generated_letter.id)
        assert stored.current_version == 1
        assert stored.current_content == "Draft three"
        assert stored.history_cleared_at is not None
        assert await letter_repository.count_versions(generated_letter.id) == 0

    async def test_generation_after_clear_starts_at_version_one(
        self,
        ledger_service,
        coordinator,
        letter_repository,
        generated_letter,
        letter_template,
        referee,
        reviewer_context,
    ):
        await ledger_service.clear_history(generated_letter.id, referee)
        result = await coordinator.generate_draft(
            generated_letter.id,
            referee,
            GenerateDraftRequest(template_id=letter_template.id, extra_context=reviewer_context),
        )

        assert result.snapshot_version == 1
        assert result.current_version == 2
        versions = await letter_repository.list_versions(generated_letter.id)
        assert [v.version_number for v in versions] == [1]

    async def test_clear_history_audit_keeps_discarded_summary(
        self, ledger_service, letter_audit_service, generated_letter, referee
    ):
        await ledger_service.clear_history(generated_letter.id, referee)

        logs = await letter_audit_service.query_by_letter_id(generated_letter.id)
        cleared = next(log for log in logs if log.action == AuditAction.HISTORY_CLEARED.value)
        assert cleared.metadata_["discarded_count"] == 3
        assert [d["version_number"] for d in cleared.metadata_["discarded_versions"]] == [1, 2, 3]

    async def test_clear_history_refused_when_completed(
        self, ledger_service, letter_factory, referee
    ):
        letter = await letter_factory(LetterStatus.COMPLETED, current_content="Final")
        with pytest.raises(StateError):
            await ledger_service.clear_history(letter.id, referee)
