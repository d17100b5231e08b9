from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.app.domains.letter.state_machine import LetterStatus


class UserRole(str, PyEnum):
    REFEREE = "referee"
    APPLICANT = "applicant"


class CallerIdentity(BaseModel):
    """Already-verified identity handed to the core by the API layer."""

    user_id: UUID
    role: UserRole
    email: str | None = None

    model_config = ConfigDict(frozen=True)


class ApplicantData(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    email: str | None = None
    program: str | None = None
    goal: str | None = None
    achievements: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="after")
    def _require_a_name(self) -> "ApplicantData":
        if not (self.name or self.first_name or self.last_name):
            raise ValueError("applicant_data needs 'name' or 'first_name'/'last_name'")
        return self

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class LetterPreferences(BaseModel):
    tone: str | None = None
    length: str | None = None
    detail_level: str | None = None
    deadline: date | None = None


class ReviewerContext(BaseModel):
    """Free-text fields the referee supplies for a generation."""

    relationship: str = ""
    duration: str = ""
    strengths: str = ""
    specific_examples: str = ""
    additional_context: str = ""

    model_config = ConfigDict(extra="forbid")

    def blank_required_fields(self) -> list[str]:
        required = ("relationship", "duration", "strengths")
        return [name for name in required if not getattr(self, name).strip()]


class RefereeProfile(BaseModel):
    """Referee details used in prompts and on the rendered letter."""

    name: str | None = None
    title: str | None = None
    institution: str | None = None
    department: str | None = None
    email: str | None = None

    model_config = ConfigDict(extra="forbid")


class LetterRequestCreate(BaseModel):
    applicant_data: ApplicantData
    referee_id: UUID | None = Field(
        default=None, description="Referee the applicant addresses; open request when omitted"
    )
    preferences: LetterPreferences = Field(default_factory=LetterPreferences)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ManualEditRequest(BaseModel):
    letter_content: str
    status: LetterStatus = Field(
        default=LetterStatus.IN_REVIEW,
        description="draft or in_review; editing moves the letter to in_review by default",
    )


class LetterResponse(BaseModel):
    id: UUID
    status: LetterStatus
    applicant_data: dict[str, Any]
    requester_id: UUID
    invited_referee_id: UUID | None = None
    referee_id: UUID | None = None
    template_id: UUID | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)
    current_content: str | None = None
    current_version: int
    generation_parameters: dict[str, Any] | None = None
    generation_attempts: int = 0
    rejection_reason: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    rejected_at: datetime | None = None
    canceled_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LetterSummary(BaseModel):
    id: UUID
    status: LetterStatus
    applicant_name: str
    program: str | None = None
    referee_id: UUID | None = None
    template_id: UUID | None = None
    content: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class LetterListResponse(BaseModel):
    letters: list[LetterSummary]
    pagination: Pagination


class PendingRequestResponse(BaseModel):
    id: UUID
    applicant_name: str
    applicant_email: str | None = None
    program: str | None = None
    goal: str | None = None
    achievements: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)
    deadline: str | None = None
    created_at: datetime
