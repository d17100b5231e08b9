import hashlib
import time
from uuid import UUID

from backend.app.domains.audit.letter_audit_service import LetterAuditService
from backend.app.domains.letter.access import require_reader
from backend.app.domains.letter.models import LetterRequest
from backend.app.domains.letter.repository import LetterRepository
from backend.app.domains.letter.schemas import CallerIdentity, RefereeProfile
from backend.app.domains.letter.state_machine import LetterStatus, assert_status_in
from backend.app.domains.rendering.engine import LetterRenderer
from backend.app.domains.rendering.schemas import RenderMetadata, RenderRequest, RenderResult
from backend.app.domains.rendering.validator import RenderedLetterValidator
from backend.app.infrastructure.datetime_utils import utc_now
from backend.app.infrastructure.errors import NotFoundError, RenderingError
from backend.app.infrastructure.storage import CONTENT_TYPES, StorageService
from backend.app.logging_config import LogContext, get_logger

logger = get_logger("app.domains.rendering.service")


class LetterRenderingService:
    def __init__(
        self,
        repo: LetterRepository,
        storage: StorageService,
        audit: LetterAuditService,
        renderer: LetterRenderer | None = None,
    ):
        self.repo = repo
        self.storage = storage
        self.audit = audit
        self.renderer = renderer or LetterRenderer()
        self.validator = RenderedLetterValidator()

    async def render_letter(
        self, letter_id: UUID, caller: CallerIdentity, request: RenderRequest
    ) -> RenderResult:
        """Render a completed letter and store it under its current version."""
        with LogContext(letter_id=str(letter_id)):
            letter = await self._load(letter_id)
            require_reader(letter, caller)
            assert_status_in(letter.status, {LetterStatus.COMPLETED}, "render", letter.id)

            start_time = time.time()
            metadata = self._build_metadata(letter)
            content = self.renderer.render(letter.current_content or "", metadata, request.format)

            validation = self.validator.validate(content, request.format)
            if not validation.is_valid:
                raise RenderingError(
                    "validation_failed", "; ".join(validation.error_messages), letter.id
                )

            try:
                output_path = self.storage.upload_letter_output(
                    letter.id, letter.current_version, request.format, content
                )
            except Exception as e:
                raise RenderingError("upload_failed", str(e), letter.id) from e

            content_hash = hashlib.sha256(content).hexdigest()
            await self.audit.log_letter_rendered(
                letter.id,
                caller.user_id,
                version=letter.current_version,
                output_format=request.format,
                output_path=output_path,
                content_hash=content_hash,
                file_size_bytes=len(content),
            )
            logger.info(
                f"Rendered letter {letter.id} v{letter.current_version} as {request.format}"
                f" to {output_path} ({len(content)} bytes,"
                f" {(time.time() - start_time) * 1000:.0f}ms)"
            )
            return RenderResult(
                letter_id=letter.id,
                version=letter.current_version,
                format=request.format,
                output_path=output_path,
                content_type=CONTENT_TYPES[request.format],
                content_hash=content_hash,
                file_size_bytes=len(content),
            )

    async def get_rendered_letter(
        self, letter_id: UUID, caller: CallerIdentity, output_format: str
    ) -> bytes:
        letter = await self._load(letter_id)
        require_reader(letter, caller)
        assert_status_in(letter.status, {LetterStatus.COMPLETED}, "download", letter.id)

        try:
            content = self.storage.get_letter_output(
                letter.id, letter.current_version, output_format
            )
        except Exception as e:
            raise RenderingError("download_failed", str(e), letter.id) from e
        if content is None:
            raise NotFoundError("Rendered letter", f"{letter.id} ({output_format})", letter.id)
        return content

    def _build_metadata(self, letter: LetterRequest) -> RenderMetadata:
        """The letterhead is the referee profile the letter was last generated with."""
        completed_at = letter.completed_at or utc_now()
        stored_referee = (letter.generation_parameters or {}).get("referee")
        return RenderMetadata(
            title=f"Letter of Recommendation for {letter.applicant_name}",
            applicant_name=letter.applicant_name,
            referee=RefereeProfile(**stored_referee) if stored_referee else RefereeProfile(),
            letter_date=completed_at.date(),
        )

    async def _load(self, letter_id: UUID) -> LetterRequest:
        letter = await self.repo.get_by_id(letter_id)
        if letter is None:
            raise NotFoundError("Letter", letter_id, letter_id=letter_id)
        return letter
