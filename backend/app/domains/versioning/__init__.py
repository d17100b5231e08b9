from backend.app.domains.versioning.schemas import (
    ClearHistoryResult,
    LetterVersionHistory,
    RestoreResult,
    VersionSnapshotResponse,
)
from backend.app.domains.versioning.service import VersionLedgerService

__all__ = [
    "ClearHistoryResult",
    "LetterVersionHistory",
    "RestoreResult",
    "VersionLedgerService",
    "VersionSnapshotResponse",
]
