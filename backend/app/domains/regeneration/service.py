from uuid import UUID

from backend.app.domains.generation.catalog import get_model
from backend.app.domains.generation.schemas import (
    EffectiveGenerationSettings,
    GenerationResult,
    GenerationTrigger,
)
from backend.app.domains.generation.service import GenerationCoordinator
from backend.app.domains.letter.models import LetterRequest
from backend.app.domains.letter.schemas import CallerIdentity
from backend.app.domains.regeneration.schemas import (
    NewContextRegeneration,
    NewModelRegeneration,
    RegenerationRequest,
    SameSettingsRegeneration,
)
from backend.app.infrastructure.errors import WorkflowValidationError
from backend.app.logging_config import get_logger

logger = get_logger("app.domains.regeneration.service")

TRIGGERS = {
    "same_settings": GenerationTrigger.SAME_SETTINGS,
    "new_model": GenerationTrigger.NEW_MODEL,
    "new_context": GenerationTrigger.NEW_CONTEXT,
}


def last_used_settings(letter: LetterRequest) -> EffectiveGenerationSettings:
    parameters = letter.generation_parameters
    if not parameters or not parameters.get("template_id") or not parameters.get("model_id"):
        raise WorkflowValidationError(
            "type",
            "letter has never been generated, use generate-draft first",
            letter_id=letter.id,
        )
    return EffectiveGenerationSettings.from_parameters(parameters)


def resolve_strategy(
    letter: LetterRequest, request: RegenerationRequest
) -> EffectiveGenerationSettings:
    """Turn a regeneration payload into the settings of the next generation."""
    previous = last_used_settings(letter)

    if isinstance(request, SameSettingsRegeneration):
        return previous

    if isinstance(request, NewModelRegeneration):
        model = get_model(request.selected_model)
        return previous.model_copy(update={"selected_model": model.id})

    if isinstance(request, NewContextRegeneration):
        blank = request.extra_context.blank_required_fields()
        if blank:
            raise WorkflowValidationError(
                "extra_context",
                f"required fields are blank: {', '.join(blank)}",
                letter_id=letter.id,
            )
        return previous.model_copy(update={"extra_context": request.extra_context})

    raise WorkflowValidationError("type", "unknown regeneration strategy", letter_id=letter.id)


class RegenerationService:
    def __init__(self, coordinator: GenerationCoordinator):
        self.coordinator = coordinator

    async def regenerate(
        self, letter_id: UUID, caller: CallerIdentity, request: RegenerationRequest
    ) -> GenerationResult:
        logger.info(f"Regeneration of letter {letter_id} requested with strategy {request.type}")
        return await self.coordinator.run_generation(
            letter_id,
            caller,
            lambda letter: resolve_strategy(letter, request),
            TRIGGERS[request.type],
        )
