from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from backend.app.domains.letter.schemas import ReviewerContext


class SameSettingsRegeneration(BaseModel):
    """Reuse the last template, model and context verbatim."""

    type: Literal["same_settings"] = "same_settings"

    model_config = ConfigDict(extra="forbid")


class NewModelRegeneration(BaseModel):
    """Reuse the last template and context with another model."""

    type: Literal["new_model"] = "new_model"
    selected_model: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class NewContextRegeneration(BaseModel):
    """Reuse the last template and model with new reviewer context."""

    type: Literal["new_context"] = "new_context"
    extra_context: ReviewerContext

    model_config = ConfigDict(extra="forbid")


RegenerationRequest = Annotated[
    Union[SameSettingsRegeneration, NewModelRegeneration, NewContextRegeneration],
    Field(discriminator="type"),
]
