import hashlib
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.domains.letter.state_machine import LetterStatus
from backend.app.infrastructure.database import Base
from backend.app.infrastructure.datetime_utils import utc_now


def compute_content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class VersionKind(str, PyEnum):
    GENERATION = "GENERATION"
    RESTORATION = "RESTORATION"


class LetterRequest(Base):
    __tablename__ = "letter_requests"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    status: Mapped[LetterStatus] = mapped_column(
        SQLEnum(
            LetterStatus,
            name="letter_status_enum",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=LetterStatus.REQUESTED,
    )
    applicant_data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    requester_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    invited_referee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    referee_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("letter_templates.id"), nullable=True
    )
    preferences: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)

    current_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    generation_parameters: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    generation_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    history_cleared_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_letter_requests_referee_status", "referee_id", "status"),
        Index("ix_letter_requests_requester", "requester_id"),
    )

    @property
    def applicant_name(self) -> str:
        data = self.applicant_data or {}
        if data.get("name"):
            return str(data["name"])
        parts = [data.get("first_name"), data.get("last_name")]
        return " ".join(p for p in parts if p)

    @property
    def applicant_email(self) -> Optional[str]:
        return (self.applicant_data or {}).get("email")


class LetterVersion(Base):
    """Immutable snapshot of a letter's content. Rows are only ever inserted."""

    __tablename__ = "letter_versions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    letter_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("letter_requests.id", ondelete="CASCADE"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[VersionKind] = mapped_column(
        SQLEnum(VersionKind, name="letter_version_kind_enum"),
        nullable=False,
        default=VersionKind.GENERATION,
    )
    restored_from_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    model_used: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    selected_model: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    generation_settings: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("letter_id", "version_number", name="uq_letter_version"),
    )
