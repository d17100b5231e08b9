from pydantic import BaseModel

from backend.app.infrastructure.errors import WorkflowValidationError


class ModelInfo(BaseModel):
    id: str
    name: str
    identifier: str
    description: str
    pricing: str


AVAILABLE_MODELS: dict[str, ModelInfo] = {
    "gpt-3.5-turbo": ModelInfo(
        id="gpt-3.5-turbo",
        name="GPT-3.5 Turbo",
        identifier="openai/gpt-3.5-turbo",
        description="Fast and cost-effective",
        pricing="Low cost",
    ),
    "mistral-7b": ModelInfo(
        id="mistral-7b",
        name="Mistral 7B",
        identifier="mistralai/mistral-7b-instruct",
        description="Fast and free alternative",
        pricing="FREE",
    ),
    "claude-3-haiku": ModelInfo(
        id="claude-3-haiku",
        name="Claude 3 Haiku",
        identifier="anthropic/claude-3-haiku",
        description="Fast Claude model",
        pricing="$0.00025/1K tokens",
    ),
}


def get_model(model_id: str) -> ModelInfo:
    model = AVAILABLE_MODELS.get(model_id)
    if model is None:
        raise WorkflowValidationError(
            "selected_model",
            f"unknown model, expected one of {sorted(AVAILABLE_MODELS)}",
            value=model_id,
        )
    return model


def list_available_models() -> list[ModelInfo]:
    return list(AVAILABLE_MODELS.values())
