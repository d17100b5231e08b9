from typing import Annotated, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Response, status

from backend.app.api.deps import (
    Caller,
    get_generation_coordinator,
    get_letter_service,
    get_regeneration_service,
    get_rendering_service,
    get_version_ledger_service,
)
from backend.app.domains.generation.catalog import ModelInfo, list_available_models
from backend.app.domains.generation.schemas import GenerateDraftRequest, GenerationResult
from backend.app.domains.generation.service import GenerationCoordinator
from backend.app.domains.letter.schemas import (
    CancelRequest,
    LetterListResponse,
    LetterRequestCreate,
    LetterResponse,
    ManualEditRequest,
    PendingRequestResponse,
    RejectRequest,
)
from backend.app.domains.letter.service import (
    LetterService,
    build_letter_response,
    parse_status_filter,
)
from backend.app.domains.regeneration.schemas import RegenerationRequest
from backend.app.domains.regeneration.service import RegenerationService
from backend.app.domains.rendering.schemas import RenderRequest, RenderResult
from backend.app.domains.rendering.service import LetterRenderingService
from backend.app.domains.versioning.schemas import (
    ClearHistoryResult,
    LetterVersionHistory,
    RestoreResult,
    VersionSnapshotResponse,
)
from backend.app.domains.versioning.service import VersionLedgerService
from backend.app.infrastructure.storage import CONTENT_TYPES
from backend.app.logging_config import get_logger

router = APIRouter()
logger = get_logger("app.api.v1.letters")

LetterServiceDep = Annotated[LetterService, Depends(get_letter_service)]
CoordinatorDep = Annotated[GenerationCoordinator, Depends(get_generation_coordinator)]
RegenerationServiceDep = Annotated[RegenerationService, Depends(get_regeneration_service)]
LedgerServiceDep = Annotated[VersionLedgerService, Depends(get_version_ledger_service)]
RenderingServiceDep = Annotated[LetterRenderingService, Depends(get_rendering_service)]


@router.post("/request", response_model=LetterResponse, status_code=status.HTTP_201_CREATED)
async def create_letter_request(
    data: LetterRequestCreate,
    caller: Caller,
    service: LetterServiceDep,
) -> LetterResponse:
    letter = await service.create_request(caller, data)
    await service.repo.session.commit()
    return build_letter_response(letter, caller)


@router.get("", response_model=LetterListResponse)
async def list_letters(
    caller: Caller,
    service: LetterServiceDep,
    status_filter: Optional[str] = Query(
        default=None,
        alias="status",
        description="Comma separated statuses, e.g. 'draft,in_review'",
    ),
    page: int = 1,
    limit: int = 10,
) -> LetterListResponse:
    return await service.list_letters(caller, parse_status_filter(status_filter), page, limit)


@router.get("/pending", response_model=list[PendingRequestResponse])
async def list_pending_requests(
    caller: Caller,
    service: LetterServiceDep,
) -> list[PendingRequestResponse]:
    return await service.list_pending(caller)


@router.get("/available-models", response_model=list[ModelInfo])
async def get_available_models() -> list[ModelInfo]:
    return list_available_models()


@router.get("/{letter_id}", response_model=LetterResponse)
async def get_letter(
    letter_id: UUID,
    caller: Caller,
    service: LetterServiceDep,
) -> LetterResponse:
    letter = await service.get_letter(letter_id, caller)
    return build_letter_response(letter, caller)


@router.post("/{letter_id}/accept", response_model=LetterResponse)
async def accept_letter_request(
    letter_id: UUID,
    caller: Caller,
    service: LetterServiceDep,
) -> LetterResponse:
    letter = await service.accept(letter_id, caller)
    await service.repo.session.commit()
    return build_letter_response(letter, caller)


@router.post("/{letter_id}/reject", response_model=LetterResponse)
async def reject_letter_request(
    letter_id: UUID,
    data: RejectRequest,
    caller: Caller,
    service: LetterServiceDep,
) -> LetterResponse:
    letter = await service.reject(letter_id, caller, data.reason)
    await service.repo.session.commit()
    return build_letter_response(letter, caller)


@router.post("/{letter_id}/cancel", response_model=LetterResponse)
async def cancel_letter_request(
    letter_id: UUID,
    caller: Caller,
    service: LetterServiceDep,
    data: Optional[CancelRequest] = Body(default=None),
) -> LetterResponse:
    letter = await service.cancel(letter_id, caller, data.reason if data else None)
    await service.repo.session.commit()
    return build_letter_response(letter, caller)


@router.post("/{letter_id}/generate-draft", response_model=GenerationResult)
async def generate_draft(
    letter_id: UUID,
    request: GenerateDraftRequest,
    caller: Caller,
    coordinator: CoordinatorDep,
) -> GenerationResult:
    """
    Generate a draft from a template and the reviewer's context.

    The first successful generation moves the letter from in_progress to
    draft. Each success appends the previous content to the version history.
    """
    result = await coordinator.generate_draft(letter_id, caller, request)
    await coordinator.letter_repo.session.commit()
    return result


@router.post("/{letter_id}/regenerate", response_model=GenerationResult)
async def regenerate_letter(
    letter_id: UUID,
    request: RegenerationRequest,
    caller: Caller,
    service: RegenerationServiceDep,
) -> GenerationResult:
    """
    Regenerate with one of three strategies:

    - `same_settings`: reuse the last template, model and context
    - `new_model`: swap only the model
    - `new_context`: swap only the reviewer context
    """
    result = await service.regenerate(letter_id, caller, request)
    await service.coordinator.letter_repo.session.commit()
    return result


@router.put("/{letter_id}/edit", response_model=LetterResponse)
async def edit_letter_content(
    letter_id: UUID,
    data: ManualEditRequest,
    caller: Caller,
    service: LetterServiceDep,
) -> LetterResponse:
    letter = await service.edit_content(letter_id, caller, data)
    await service.repo.session.commit()
    return build_letter_response(letter, caller)


@router.post("/{letter_id}/approve", response_model=LetterResponse)
async def approve_letter(
    letter_id: UUID,
    caller: Caller,
    service: LetterServiceDep,
) -> LetterResponse:
    letter = await service.approve(letter_id, caller)
    await service.repo.session.commit()
    return build_letter_response(letter, caller)


@router.get("/{letter_id}/history", response_model=LetterVersionHistory)
async def get_letter_history(
    letter_id: UUID,
    caller: Caller,
    service: LedgerServiceDep,
) -> LetterVersionHistory:
    return await service.list_history(letter_id, caller)


@router.get("/{letter_id}/history/{version_number}", response_model=VersionSnapshotResponse)
async def get_letter_version(
    letter_id: UUID,
    version_number: int,
    caller: Caller,
    service: LedgerServiceDep,
) -> VersionSnapshotResponse:
    snapshot = await service.get_version(letter_id, caller, version_number)
    return VersionSnapshotResponse.model_validate(snapshot)


@router.post("/{letter_id}/restore/{version_number}", response_model=RestoreResult)
async def restore_letter_version(
    letter_id: UUID,
    version_number: int,
    caller: Caller,
    service: LedgerServiceDep,
) -> RestoreResult:
    result = await service.restore(letter_id, caller, version_number)
    await service.repo.session.commit()
    return result


@router.delete("/{letter_id}/history", response_model=ClearHistoryResult)
async def clear_letter_history(
    letter_id: UUID,
    caller: Caller,
    service: LedgerServiceDep,
) -> ClearHistoryResult:
    result = await service.clear_history(letter_id, caller)
    await service.repo.session.commit()
    return result


@router.post("/{letter_id}/render", response_model=RenderResult, status_code=status.HTTP_201_CREATED)
async def render_letter(
    letter_id: UUID,
    caller: Caller,
    service: RenderingServiceDep,
    request: Optional[RenderRequest] = Body(default=None),
) -> RenderResult:
    result = await service.render_letter(letter_id, caller, request or RenderRequest())
    await service.repo.session.commit()
    return result


@router.get("/{letter_id}/download")
async def download_letter(
    letter_id: UUID,
    caller: Caller,
    service: RenderingServiceDep,
    output_format: Literal["docx", "txt"] = Query(default="docx", alias="format"),
) -> Response:
    content = await service.get_rendered_letter(letter_id, caller, output_format)
    logger.info(f"Returning {len(content)} bytes for letter {letter_id} ({output_format})")

    return Response(
        content=content,
        media_type=CONTENT_TYPES[output_format],
        headers={
            "Content-Disposition": f"attachment; filename=letter_{letter_id}.{output_format}",
            "Content-Length": str(len(content)),
            "Access-Control-Expose-Headers": "Content-Disposition",
        },
    )
