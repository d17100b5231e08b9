"""
Letter status state machine.

    requested   -> in_progress | rejected | canceled
    in_progress -> draft | canceled
    draft       -> in_review | completed | canceled
    in_review   -> draft | completed | canceled

completed, rejected and canceled are terminal: every mutating operation is
refused, reads stay available.
"""

import uuid
from enum import Enum as PyEnum
from typing import Iterable

from backend.app.infrastructure.errors import StateError


class LetterStatus(str, PyEnum):
    REQUESTED = "requested"
    IN_PROGRESS = "in_progress"
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELED = "canceled"


VALID_TRANSITIONS: dict[LetterStatus, frozenset[LetterStatus]] = {
    LetterStatus.REQUESTED: frozenset(
        {LetterStatus.IN_PROGRESS, LetterStatus.REJECTED, LetterStatus.CANCELED}
    ),
    LetterStatus.IN_PROGRESS: frozenset({LetterStatus.DRAFT, LetterStatus.CANCELED}),
    LetterStatus.DRAFT: frozenset(
        {LetterStatus.IN_REVIEW, LetterStatus.COMPLETED, LetterStatus.CANCELED}
    ),
    LetterStatus.IN_REVIEW: frozenset(
        {LetterStatus.DRAFT, LetterStatus.COMPLETED, LetterStatus.CANCELED}
    ),
    LetterStatus.COMPLETED: frozenset(),
    LetterStatus.REJECTED: frozenset(),
    LetterStatus.CANCELED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    {LetterStatus.COMPLETED, LetterStatus.REJECTED, LetterStatus.CANCELED}
)

# Statuses in which the content and its ledger may change
EDITABLE_STATUSES = frozenset({LetterStatus.DRAFT, LetterStatus.IN_REVIEW})
GENERATION_STATUSES = frozenset(
    {LetterStatus.IN_PROGRESS, LetterStatus.DRAFT, LetterStatus.IN_REVIEW}
)


def is_terminal(status: LetterStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: LetterStatus, target: LetterStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


def assert_transition(
    current: LetterStatus, target: LetterStatus, letter_id: uuid.UUID | None = None
) -> None:
    if not can_transition(current, target):
        raise StateError(current.value, target.value, letter_id=letter_id)


def assert_mutable(
    current: LetterStatus, operation: str, letter_id: uuid.UUID | None = None
) -> None:
    if is_terminal(current):
        raise StateError(current.value, operation, letter_id=letter_id, operation=operation)


def assert_status_in(
    current: LetterStatus,
    allowed: Iterable[LetterStatus],
    operation: str,
    letter_id: uuid.UUID | None = None,
) -> None:
    allowed = frozenset(allowed)
    if current not in allowed:
        raise StateError(
            current.value,
            "|".join(sorted(s.value for s in allowed)),
            letter_id=letter_id,
            operation=operation,
        )
