from backend.app.domains.generation.catalog import (
    AVAILABLE_MODELS,
    ModelInfo,
    get_model,
    list_available_models,
)
from backend.app.domains.generation.provider import (
    BaseTextProvider,
    MockTextProvider,
    OpenRouterConfig,
    OpenRouterProvider,
    ProviderError,
    ProviderResponse,
)
from backend.app.domains.generation.schemas import (
    EffectiveGenerationSettings,
    GenerateDraftRequest,
    GenerationResult,
    GenerationTrigger,
)
from backend.app.domains.generation.service import GenerationConfig, GenerationCoordinator

__all__ = [
    "AVAILABLE_MODELS",
    "BaseTextProvider",
    "EffectiveGenerationSettings",
    "GenerateDraftRequest",
    "GenerationConfig",
    "GenerationCoordinator",
    "GenerationResult",
    "GenerationTrigger",
    "MockTextProvider",
    "ModelInfo",
    "OpenRouterConfig",
    "OpenRouterProvider",
    "ProviderError",
    "ProviderResponse",
    "get_model",
    "list_available_models",
]
