from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backend.app.domains.letter.models import VersionKind
from backend.app.domains.letter.state_machine import LetterStatus


class VersionSnapshotResponse(BaseModel):
    version_number: int
    kind: VersionKind
    restored_from_version: Optional[int] = None
    model_used: Optional[str] = None
    selected_model: Optional[str] = None
    tokens_used: int = 0
    content: str
    content_hash: str
    generation_settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LetterVersionHistory(BaseModel):
    letter_id: UUID
    status: LetterStatus
    current_version: int
    total_versions: int
    history_cleared_at: Optional[datetime] = None
    history: list[VersionSnapshotResponse] = Field(default_factory=list)


class RestoreResult(BaseModel):
    letter_id: UUID
    status: LetterStatus
    restored_from_version: int
    snapshot_version: int = Field(description="Version number of the restoration entry")
    current_version: int
    content: str


class ClearHistoryResult(BaseModel):
    letter_id: UUID
    discarded_count: int
    current_version: int
    history_cleared_at: datetime
