from enum import Enum as PyEnum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from backend.app.domains.letter.schemas import RefereeProfile, ReviewerContext
from backend.app.domains.letter.state_machine import LetterStatus


class GenerationTrigger(str, PyEnum):
    INITIAL = "initial"
    SAME_SETTINGS = "same_settings"
    NEW_MODEL = "new_model"
    NEW_CONTEXT = "new_context"


class GenerateDraftRequest(BaseModel):
    template_id: UUID
    selected_model: Optional[str] = Field(
        default=None, description="Allow-list model id; the configured default when omitted"
    )
    extra_context: ReviewerContext = Field(default_factory=ReviewerContext)
    referee: Optional[RefereeProfile] = None


class EffectiveGenerationSettings(BaseModel):
    """The (template, model, context) triple a generation runs with."""

    template_id: UUID
    selected_model: str
    extra_context: ReviewerContext
    referee: Optional[RefereeProfile] = None

    def to_parameters(self, tokens_used: int) -> dict[str, Any]:
        """Shape stored in `LetterRequest.generation_parameters`."""
        return {
            "template_id": str(self.template_id),
            "model_id": self.selected_model,
            "extra_context": self.extra_context.model_dump(),
            "referee": self.referee.model_dump() if self.referee else None,
            "tokens_used": tokens_used,
        }

    @classmethod
    def from_parameters(cls, parameters: dict[str, Any]) -> "EffectiveGenerationSettings":
        return cls(
            template_id=parameters["template_id"],
            selected_model=parameters["model_id"],
            extra_context=ReviewerContext(**(parameters.get("extra_context") or {})),
            referee=(
                RefereeProfile(**parameters["referee"]) if parameters.get("referee") else None
            ),
        )


class GenerationResult(BaseModel):
    letter_id: UUID
    status: LetterStatus
    content: str
    snapshot_version: int = Field(description="Version number of the snapshot just recorded")
    current_version: int
    selected_model: str
    model_used: Optional[str] = None
    tokens_used: int
    trigger: GenerationTrigger
    generation_attempts: int
