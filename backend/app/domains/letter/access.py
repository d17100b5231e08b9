"""Ownership checks. The caller's identity itself is trusted."""

from backend.app.domains.letter.models import LetterRequest
from backend.app.domains.letter.schemas import CallerIdentity, UserRole
from backend.app.domains.letter.state_machine import LetterStatus
from backend.app.infrastructure.errors import PermissionDeniedError


def is_owning_referee(letter: LetterRequest, caller: CallerIdentity) -> bool:
    return caller.role == UserRole.REFEREE and letter.referee_id == caller.user_id


def is_requesting_applicant(letter: LetterRequest, caller: CallerIdentity) -> bool:
    if caller.role != UserRole.APPLICANT:
        return False
    if letter.requester_id == caller.user_id:
        return True
    email = letter.applicant_email
    return bool(email and caller.email and email.lower() == caller.email.lower())


def require_role(caller: CallerIdentity, role: UserRole, letter: LetterRequest | None = None):
    if caller.role != role:
        raise PermissionDeniedError(
            letter.id if letter else None, f"operation requires the '{role.value}' role"
        )


def require_owning_referee(letter: LetterRequest, caller: CallerIdentity) -> None:
    require_role(caller, UserRole.REFEREE, letter)
    if letter.referee_id != caller.user_id:
        raise PermissionDeniedError(letter.id, "letter is assigned to another referee")


def require_invited_referee(letter: LetterRequest, caller: CallerIdentity) -> None:
    """Accept/reject: open requests, or requests addressed to this referee."""
    require_role(caller, UserRole.REFEREE, letter)
    if letter.invited_referee_id is not None and letter.invited_referee_id != caller.user_id:
        raise PermissionDeniedError(letter.id, "request is addressed to another referee")


def require_reader(letter: LetterRequest, caller: CallerIdentity) -> None:
    if is_owning_referee(letter, caller) or is_requesting_applicant(letter, caller):
        return
    raise PermissionDeniedError(letter.id, "caller is neither the referee nor the applicant")


def can_see_content(letter: LetterRequest, caller: CallerIdentity) -> bool:
    return is_owning_referee(letter, caller) or letter.status == LetterStatus.COMPLETED
