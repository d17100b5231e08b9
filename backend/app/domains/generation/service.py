"""
Generation coordinator.

Runs one generation for a letter: takes the per-letter lock, binds the
prompt, calls the provider under a timeout and, only once the provider has
answered, records the new snapshot and advances the letter in a single
compare-and-set write. A failed or cancelled provider call leaves the letter
exactly as it was.
"""

import asyncio
import time
from typing import Callable, Optional
from uuid import UUID

from backend.app.domains.audit.letter_audit_service import LetterAuditService
from backend.app.domains.generation.catalog import ModelInfo, get_model
from backend.app.domains.generation.provider import (
    BaseTextProvider,
    ProviderError,
    ProviderResponse,
)
from backend.app.domains.generation.schemas import (
    EffectiveGenerationSettings,
    GenerateDraftRequest,
    GenerationResult,
    GenerationTrigger,
)
from backend.app.domains.letter.access import require_owning_referee
from backend.app.domains.letter.models import (
    LetterRequest,
    LetterVersion,
    VersionKind,
    compute_content_hash,
)
from backend.app.domains.letter.repository import LetterRepository
from backend.app.domains.letter.schemas import CallerIdentity
from backend.app.domains.letter.state_machine import (
    GENERATION_STATUSES,
    LetterStatus,
    assert_mutable,
    assert_status_in,
    assert_transition,
)
from backend.app.domains.template.binder import bind_prompt
from backend.app.domains.template.models import LetterTemplate
from backend.app.domains.template.repository import TemplateRepository
from backend.app.infrastructure.errors import (
    ConflictError,
    GenerationError,
    NotFoundError,
    WorkflowValidationError,
)
from backend.app.infrastructure.redis import LockClient, letter_write_lock
from backend.app.logging_config import LogContext, get_logger

logger = get_logger("app.domains.generation.service")

SettingsResolver = Callable[[LetterRequest], EffectiveGenerationSettings]


class GenerationConfig:
    def __init__(
        self,
        default_model: str = "gpt-3.5-turbo",
        timeout_seconds: float = 60.0,
        max_tokens: int = 800,
        temperature: float = 0.7,
        lock_ttl_seconds: int = 120,
    ):
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.lock_ttl_seconds = lock_ttl_seconds

    @classmethod
    def from_settings(cls, settings) -> "GenerationConfig":
        return cls(
            default_model=settings.default_model,
            timeout_seconds=settings.generation_timeout_seconds,
            max_tokens=settings.generation_max_tokens,
            temperature=settings.generation_temperature,
            lock_ttl_seconds=settings.generation_lock_ttl_seconds,
        )


class GenerationCoordinator:
    def __init__(
        self,
        letter_repo: LetterRepository,
        template_repo: TemplateRepository,
        provider: BaseTextProvider,
        lock_client: LockClient,
        audit: LetterAuditService,
        config: Optional[GenerationConfig] = None,
    ):
        self.letter_repo = letter_repo
        self.template_repo = template_repo
        self.provider = provider
        self.lock_client = lock_client
        self.audit = audit
        self.config = config or GenerationConfig()

    async def generate_draft(
        self, letter_id: UUID, caller: CallerIdentity, request: GenerateDraftRequest
    ) -> GenerationResult:
        settings = EffectiveGenerationSettings(
            template_id=request.template_id,
            selected_model=request.selected_model or self.config.default_model,
            extra_context=request.extra_context,
            referee=request.referee,
        )
        return await self.run_generation(
            letter_id, caller, lambda letter: settings, GenerationTrigger.INITIAL
        )

    async def run_generation(
        self,
        letter_id: UUID,
        caller: CallerIdentity,
        resolve: SettingsResolver,
        trigger: GenerationTrigger,
    ) -> GenerationResult:
        """
        Generate a new version of the letter.

        `resolve` turns the freshly loaded letter into the settings to use; it
        runs while the lock is held so regeneration strategies see the same
        row the write is checked against.
        """
        with LogContext(letter_id=str(letter_id)):
            with letter_write_lock(self.lock_client, letter_id, self.config.lock_ttl_seconds):
                letter = await self._load_letter(letter_id)
                require_owning_referee(letter, caller)
                assert_mutable(letter.status, "generate", letter.id)
                assert_status_in(letter.status, GENERATION_STATUSES, "generate", letter.id)

                settings = resolve(letter)
                model = get_model(settings.selected_model)
                template = await self._load_template(settings.template_id)
                prompt = bind_prompt(
                    template,
                    letter.applicant_data or {},
                    settings.extra_context,
                    letter.preferences or {},
                    settings.referee,
                )

                logger.info(
                    f"Generating letter {letter.id} ({trigger.value}) with {model.id},"
                    f" template {template.id}, prompt {len(prompt)} chars"
                )
                started_at = time.monotonic()
                response = await self._invoke_provider(letter, model, prompt, trigger)
                duration_ms = (time.monotonic() - started_at) * 1000

                return await self._record_generation(
                    letter, caller, settings, model, template, response, trigger, duration_ms
                )

    async def _invoke_provider(
        self,
        letter: LetterRequest,
        model: ModelInfo,
        prompt: str,
        trigger: GenerationTrigger,
    ) -> ProviderResponse:
        try:
            return await asyncio.wait_for(
                self.provider.generate(
                    prompt,
                    model.identifier,
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                ),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = GenerationError(
                "timeout",
                f"provider did not respond within {self.config.timeout_seconds}s",
                letter_id=letter.id,
                model_id=model.id,
            )
        except ProviderError as e:
            error = GenerationError(e.cause, e.message, letter_id=letter.id, model_id=model.id)

        logger.warning(
            f"Generation failed for letter {letter.id} ({trigger.value}, {model.id}):"
            f" {error.cause}, letter left unchanged",
            extra={"extra_data": error.to_structured().to_log_dict()},
        )
        raise error

    async def _record_generation(
        self,
        letter: LetterRequest,
        caller: CallerIdentity,
        settings: EffectiveGenerationSettings,
        model: ModelInfo,
        template: LetterTemplate,
        response: ProviderResponse,
        trigger: GenerationTrigger,
        duration_ms: float,
    ) -> GenerationResult:
        snapshot_version = letter.current_version
        previous_status = letter.status
        next_status = previous_status
        if previous_status == LetterStatus.IN_PROGRESS:
            next_status = LetterStatus.DRAFT
            assert_transition(previous_status, next_status, letter.id)

        values = {
            "current_content": response.content,
            "current_version": snapshot_version + 1,
            "template_id": template.id,
            "generation_parameters": settings.to_parameters(response.tokens_used),
            "generation_attempts": (letter.generation_attempts or 0) + 1,
            "status": next_status,
        }
        written = await self.letter_repo.compare_and_set(
            letter.id, snapshot_version, previous_status, values
        )
        if not written:
            raise ConflictError(letter.id, "letter changed while the generation was running")

        content_hash = compute_content_hash(response.content)
        await self.letter_repo.add_version(
            LetterVersion(
                letter_id=letter.id,
                version_number=snapshot_version,
                kind=VersionKind.GENERATION,
                model_used=response.model_echo,
                selected_model=model.id,
                tokens_used=response.tokens_used,
                content=response.content,
                content_hash=content_hash,
                generation_settings={
                    **settings.to_parameters(response.tokens_used),
                    "provider_model": model.identifier,
                    "trigger": trigger.value,
                },
            )
        )

        await self.audit.log_generation_completed(
            letter.id,
            caller.user_id,
            version_number=snapshot_version,
            trigger=trigger.value,
            selected_model=model.id,
            model_used=response.model_echo,
            tokens_used=response.tokens_used,
            content_hash=content_hash,
            generation_duration_ms=duration_ms,
        )
        if next_status != previous_status:
            await self.audit.log_status_change(
                letter.id, caller.user_id, previous_status.value, next_status.value, "generation"
            )

        logger.info(
            f"Letter {letter.id} generated as version {snapshot_version}"
            f" ({response.tokens_used} tokens, {duration_ms:.0f}ms), status {next_status.value}"
        )
        return GenerationResult(
            letter_id=letter.id,
            status=next_status,
            content=response.content,
            snapshot_version=snapshot_version,
            current_version=snapshot_version + 1,
            selected_model=model.id,
            model_used=response.model_echo,
            tokens_used=response.tokens_used,
            trigger=trigger,
            generation_attempts=values["generation_attempts"],
        )

    async def _load_letter(self, letter_id: UUID) -> LetterRequest:
        letter = await self.letter_repo.get_by_id(letter_id)
        if letter is None:
            raise NotFoundError("Letter", letter_id, letter_id=letter_id)
        return letter

    async def _load_template(self, template_id: UUID) -> LetterTemplate:
        template = await self.template_repo.get_by_id(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        if not template.is_active:
            raise WorkflowValidationError("template_id", "template is inactive", value=template_id)
        return template
