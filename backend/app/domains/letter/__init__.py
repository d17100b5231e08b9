from backend.app.domains.letter.models import (
    LetterRequest,
    LetterVersion,
    VersionKind,
    compute_content_hash,
)
from backend.app.domains.letter.repository import LetterRepository
from backend.app.domains.letter.schemas import CallerIdentity, UserRole
from backend.app.domains.letter.service import LetterService
from backend.app.domains.letter.state_machine import LetterStatus

__all__ = [
    "CallerIdentity",
    "LetterRepository",
    "LetterRequest",
    "LetterService",
    "LetterStatus",
    "LetterVersion",
    "UserRole",
    "VersionKind",
    "compute_content_hash",
]
