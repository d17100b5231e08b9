from functools import lru_cache
from typing import Annotated, AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import get_settings
from backend.app.domains.audit.letter_audit_service import LetterAuditService
from backend.app.domains.audit.repository import AuditRepository
from backend.app.domains.audit.service import AuditService
from backend.app.domains.generation.provider import (
    BaseTextProvider,
    OpenRouterConfig,
    OpenRouterProvider,
)
from backend.app.domains.generation.service import GenerationConfig, GenerationCoordinator
from backend.app.domains.letter.repository import LetterRepository
from backend.app.domains.letter.schemas import CallerIdentity, UserRole
from backend.app.domains.letter.service import LetterService
from backend.app.domains.regeneration.service import RegenerationService
from backend.app.domains.rendering.service import LetterRenderingService
from backend.app.domains.template.repository import TemplateRepository
from backend.app.domains.template.service import TemplateService
from backend.app.domains.versioning.service import VersionLedgerService
from backend.app.infrastructure.database import get_db_session
from backend.app.infrastructure.redis import LockClient, get_redis_client
from backend.app.infrastructure.storage import StorageService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_db_session():
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_caller(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_role: Annotated[Optional[str], Header()] = None,
    x_user_email: Annotated[Optional[str], Header()] = None,
) -> CallerIdentity:
    """Identity is verified upstream; the headers are taken at face value."""
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id and X-User-Role headers are required",
        )
    try:
        user_id = UUID(x_user_id)
        role = UserRole(x_user_role.lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id must be a UUID and X-User-Role 'referee' or 'applicant'",
        )
    return CallerIdentity(user_id=user_id, role=role, email=x_user_email)


Caller = Annotated[CallerIdentity, Depends(get_caller)]


def get_storage_service() -> StorageService:
    return StorageService(get_settings())


def get_lock_client() -> LockClient:
    return get_redis_client(get_settings().redis_url)


@lru_cache
def get_text_provider() -> BaseTextProvider:
    settings = get_settings()
    return OpenRouterProvider(
        OpenRouterConfig(
            api_key=settings.openrouter_api_key,
            api_base_url=settings.openrouter_base_url,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    )


def get_generation_config() -> GenerationConfig:
    return GenerationConfig.from_settings(get_settings())


def get_audit_repository(session: DbSession) -> AuditRepository:
    return AuditRepository(session)


def get_audit_service(
    repo: Annotated[AuditRepository, Depends(get_audit_repository)],
) -> AuditService:
    return AuditService(repo)


def get_letter_audit_service(
    repo: Annotated[AuditRepository, Depends(get_audit_repository)],
) -> LetterAuditService:
    return LetterAuditService(repo)


def get_letter_repository(session: DbSession) -> LetterRepository:
    return LetterRepository(session)


def get_template_repository(session: DbSession) -> TemplateRepository:
    return TemplateRepository(session)


def get_template_service(
    repo: Annotated[TemplateRepository, Depends(get_template_repository)],
    audit: Annotated[LetterAuditService, Depends(get_letter_audit_service)],
) -> TemplateService:
    return TemplateService(repo, audit)


def get_letter_service(
    repo: Annotated[LetterRepository, Depends(get_letter_repository)],
    audit: Annotated[LetterAuditService, Depends(get_letter_audit_service)],
    lock_client: Annotated[LockClient, Depends(get_lock_client)],
    config: Annotated[GenerationConfig, Depends(get_generation_config)],
) -> LetterService:
    return LetterService(repo, audit, lock_client, config.lock_ttl_seconds)


def get_generation_coordinator(
    repo: Annotated[LetterRepository, Depends(get_letter_repository)],
    template_repo: Annotated[TemplateRepository, Depends(get_template_repository)],
    provider: Annotated[BaseTextProvider, Depends(get_text_provider)],
    lock_client: Annotated[LockClient, Depends(get_lock_client)],
    audit: Annotated[LetterAuditService, Depends(get_letter_audit_service)],
    config: Annotated[GenerationConfig, Depends(get_generation_config)],
) -> GenerationCoordinator:
    return GenerationCoordinator(repo, template_repo, provider, lock_client, audit, config)


def get_regeneration_service(
    coordinator: Annotated[GenerationCoordinator, Depends(get_generation_coordinator)],
) -> RegenerationService:
    return RegenerationService(coordinator)


def get_version_ledger_service(
    repo: Annotated[LetterRepository, Depends(get_letter_repository)],
    audit: Annotated[LetterAuditService, Depends(get_letter_audit_service)],
    lock_client: Annotated[LockClient, Depends(get_lock_client)],
    config: Annotated[GenerationConfig, Depends(get_generation_config)],
) -> VersionLedgerService:
    return VersionLedgerService(repo, audit, lock_client, config.lock_ttl_seconds)


def get_rendering_service(
    repo: Annotated[LetterRepository, Depends(get_letter_repository)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    audit: Annotated[LetterAuditService, Depends(get_letter_audit_service)],
) -> LetterRenderingService:
    return LetterRenderingService(repo, storage, audit)
