from backend.app.domains.rendering.engine import SUPPORTED_FORMATS, LetterRenderer
from backend.app.domains.rendering.schemas import RenderMetadata, RenderRequest, RenderResult
from backend.app.domains.rendering.service import LetterRenderingService
from backend.app.domains.rendering.validator import RenderedLetterValidator

__all__ = [
    "LetterRenderer",
    "LetterRenderingService",
    "RenderMetadata",
    "RenderRequest",
    "RenderResult",
    "RenderedLetterValidator",
    "SUPPORTED_FORMATS",
]
