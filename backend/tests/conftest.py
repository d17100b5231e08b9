"""
Pytest configuration and shared fixtures for all tests.

This module provides:
- Database session fixtures on an in-memory SQLite database
- Mock services (storage, redis lock client, text provider)
- Callers, templates and letters in every workflow status
"""

import os
import sys
from collections.abc import AsyncGenerator
from typing import Any, Optional
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy import JSON
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add the workspace root to the Python path for absolute imports
workspace_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, workspace_root)

# Set test environment variables BEFORE importing app modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("S3_ENDPOINT_URL", "http://localhost:9000")
os.environ.setdefault("S3_ACCESS_KEY", "test_access_key")
os.environ.setdefault("S3_SECRET_KEY", "test_secret_key")
os.environ.setdefault("S3_BUCKET_NAME", "test-bucket")
os.environ.setdefault("LOG_DIR", "/tmp/test_logs")

# Monkey-patch JSONB to use JSON for SQLite compatibility
# This must be done before importing any models
from sqlalchemy.dialects import postgresql  # noqa: E402

postgresql.JSONB = JSON

from backend.app.config import Settings  # noqa: E402
from backend.app.domains.audit.letter_audit_service import LetterAuditService  # noqa: E402
from backend.app.domains.audit.models import AuditLog  # noqa: E402, F401
from backend.app.domains.audit.repository import AuditRepository  # noqa: E402
from backend.app.domains.generation.provider import MockTextProvider  # noqa: E402
from backend.app.domains.generation.service import (  # noqa: E402
    GenerationConfig,
    GenerationCoordinator,
)
from backend.app.domains.letter.models import LetterRequest, LetterVersion  # noqa: E402, F401
from backend.app.domains.letter.repository import LetterRepository  # noqa: E402
from backend.app.domains.letter.schemas import (  # noqa: E402
    CallerIdentity,
    ReviewerContext,
    UserRole,
)
from backend.app.domains.letter.service import LetterService  # noqa: E402
from backend.app.domains.letter.state_machine import LetterStatus  # noqa: E402
from backend.app.domains.regeneration.service import RegenerationService  # noqa: E402
from backend.app.domains.rendering.service import LetterRenderingService  # noqa: E402
from backend.app.domains.template.models import LetterTemplate, TemplateCategory  # noqa: E402
from backend.app.domains.template.repository import TemplateRepository  # noqa: E402
from backend.app.domains.template.service import TemplateService  # noqa: E402
from backend.app.domains.versioning.service import VersionLedgerService  # noqa: E402
from backend.app.infrastructure.database import Base  # noqa: E402
from backend.app.infrastructure.storage import letter_output_key  # noqa: E402
from backend.app.infrastructure.template_seeding import SYSTEM_TEMPLATES  # noqa: E402

# ============================================================================
# Test Settings
# ============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with in-memory database."""
    return Settings(
        app_env="test",
        database_url="sqlite+aiosqlite:///:memory:",
        redis_url="redis://localhost:6379/15",
        s3_endpoint_url="http://localhost:9000",
        s3_access_key="test_access_key",
        s3_secret_key="test_secret_key",
        s3_bucket_name="test-bucket",
        log_dir="/tmp/test_logs",
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def async_engine():
    """Create async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session with automatic rollback after each test."""
    async with session_maker() as session:
        yield session
        await session.rollback()


# ============================================================================
# Mock Storage Fixture
# ============================================================================


class MockStorageService:
    """In-memory mock for S3 storage service."""

    def __init__(self):
        self._files: dict[str, bytes] = {}
        self.fail_uploads = False
        self.fail_reads = False

    def upload_letter_output(self, letter_id, version, file_format, content: bytes) -> str:
        if self.fail_uploads:
            raise ConnectionError("storage unavailable")
        key = letter_output_key(letter_id, version, file_format)
        self._files[key] = content
        return key

    def get_letter_output(self, letter_id, version, file_format) -> bytes | None:
        return self.get_file(letter_output_key(letter_id, version, file_format))

    def get_file(self, key: str) -> bytes | None:
        if self.fail_reads:
            raise ConnectionError("storage unavailable")
        return self._files.get(key)

    def file_exists(self, key: str) -> bool:
        return key in self._files

    def clear(self):
        """Clear all stored files."""
        self._files.clear()


@pytest.fixture
def mock_storage() -> MockStorageService:
    """Provide a mock storage service."""
    return MockStorageService()


# ============================================================================
# Mock Redis Fixture
# ============================================================================


class MockRedisClient:
    """In-memory mock for the Redis lock client."""

    def __init__(self):
        self._locks: dict[str, str] = {}
        self.acquired: list[str] = []

    def acquire_lock(self, lock_name: str, ttl_seconds: int = 60) -> str | None:
        if lock_name in self._locks:
            return None
        token = str(uuid4())
        self._locks[lock_name] = token
        self.acquired.append(lock_name)
        return token

    def release_lock(self, lock_name: str, token: str) -> bool:
        if self._locks.get(lock_name) == token:
            del self._locks[lock_name]
            return True
        return False

    def is_locked(self, lock_name: str) -> bool:
        return lock_name in self._locks

    def clear(self):
        self._locks.clear()
        self.acquired.clear()


@pytest.fixture
def mock_redis() -> MockRedisClient:
    """Provide a mock Redis client."""
    return MockRedisClient()


@pytest.fixture
def mock_provider() -> MockTextProvider:
    return MockTextProvider(responses=["Dear Admissions Committee, Jane is exceptional."])


@pytest.fixture
def generation_config() -> GenerationConfig:
    return GenerationConfig(timeout_seconds=5.0, lock_ttl_seconds=30)


# ============================================================================
# Repository and Service Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def letter_repository(db_session) -> LetterRepository:
    return LetterRepository(db_session)


@pytest_asyncio.fixture
async def template_repository(db_session) -> TemplateRepository:
    return TemplateRepository(db_session)


@pytest_asyncio.fixture
async def audit_repository(db_session) -> AuditRepository:
    return AuditRepository(db_session)


@pytest_asyncio.fixture
async def letter_audit_service(audit_repository) -> LetterAuditService:
    return LetterAuditService(audit_repository)


@pytest_asyncio.fixture
async def letter_service(letter_repository, letter_audit_service, mock_redis) -> LetterService:
    return LetterService(letter_repository, letter_audit_service, mock_redis, 30)


@pytest_asyncio.fixture
async def template_service(template_repository, letter_audit_service) -> TemplateService:
    return TemplateService(template_repository, letter_audit_service)


@pytest_asyncio.fixture
async def coordinator(
    letter_repository,
    template_repository,
    mock_provider,
    mock_redis,
    letter_audit_service,
    generation_config,
) -> GenerationCoordinator:
    return GenerationCoordinator(
        letter_repository,
        template_repository,
        mock_provider,
        mock_redis,
        letter_audit_service,
        generation_config,
    )


@pytest_asyncio.fixture
async def regeneration_service(coordinator) -> RegenerationService:
    return RegenerationService(coordinator)


@pytest_asyncio.fixture
async def ledger_service(letter_repository, letter_audit_service, mock_redis) -> VersionLedgerService:
    return VersionLedgerService(letter_repository, letter_audit_service, mock_redis, 30)


@pytest_asyncio.fixture
async def rendering_service(
    letter_repository, mock_storage, letter_audit_service
) -> LetterRenderingService:
    return LetterRenderingService(letter_repository, mock_storage, letter_audit_service)


# ============================================================================
# Callers
# ============================================================================


@pytest.fixture
def referee() -> CallerIdentity:
    return CallerIdentity(user_id=uuid4(), role=UserRole.REFEREE, email="prof.smith@uni.edu")


@pytest.fixture
def other_referee() -> CallerIdentity:
    return CallerIdentity(user_id=uuid4(), role=UserRole.REFEREE, email="dr.jones@uni.edu")


@pytest.fixture
def applicant() -> CallerIdentity:
    return CallerIdentity(user_id=uuid4(), role=UserRole.APPLICANT, email="jane.doe@mail.com")


# ============================================================================
# Sample Data Factories
# ============================================================================


@pytest.fixture
def applicant_data() -> dict[str, Any]:
    return {
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane.doe@mail.com",
        "program": "MIT PhD in Computer Science",
        "goal": "Research in distributed systems",
        "achievements": ["Dean's list", "Published at SOSP"],
    }


@pytest.fixture
def reviewer_context() -> ReviewerContext:
    return ReviewerContext(
        relationship="Thesis advisor",
        duration="3 years",
        strengths="Rigorous, creative, collaborative",
        specific_examples="Led the consensus protocol project",
        additional_context="",
    )


@pytest_asyncio.fixture
async def letter_template(db_session) -> LetterTemplate:
    academic = SYSTEM_TEMPLATES[0]
    template = LetterTemplate(
        id=uuid4(),
        name=academic["name"],
        description=academic["description"],
        category=TemplateCategory.ACADEMIC,
        prompt_template=academic["prompt_template"],
        default_parameters=dict(academic["default_parameters"]),
        created_by=None,
        is_system_template=True,
        is_active=True,
    )
    db_session.add(template)
    await db_session.flush()
    return template


@pytest.fixture
def letter_factory(db_session, applicant, referee, applicant_data):
    """Insert a letter directly in the given status."""

    async def _create(
        status: LetterStatus = LetterStatus.IN_PROGRESS,
        referee_id: Optional[UUID] = None,
        current_content: Optional[str] = None,
        **overrides: Any,
    ) -> LetterRequest:
        assigned = status != LetterStatus.REQUESTED
        values: dict[str, Any] = {
            "status": status,
            "applicant_data": dict(applicant_data),
            "requester_id": applicant.user_id,
            "invited_referee_id": referee.user_id,
            "referee_id": referee_id or (referee.user_id if assigned else None),
            "preferences": {"tone": "formal"},
            "current_content": current_content,
            "current_version": 1,
            "generation_attempts": 0,
        }
        values.update(overrides)
        letter = LetterRequest(**values)
        db_session.add(letter)
        await db_session.flush()
        return letter

    return _create


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
