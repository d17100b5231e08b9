"""
Error handling infrastructure for the letter workflow.

Provides:
- Structured error models with codes and contexts (API error bodies)
- The workflow exception taxonomy raised by domain services
- Recovery and retry guidance
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backend.app.infrastructure.datetime_utils import utc_now


class ErrorCategory(str, PyEnum):
    """High-level error categories for classification."""

    STATE = "STATE"
    BINDING = "BINDING"
    GENERATION = "GENERATION"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    PERMISSION = "PERMISSION"
    RENDERING = "RENDERING"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    UNKNOWN = "UNKNOWN"


class ErrorSeverity(str, PyEnum):
    """Error severity levels."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RecoveryAction(str, PyEnum):
    """Suggested recovery actions."""

    RETRY = "RETRY"
    CORRECT_INPUT = "CORRECT_INPUT"
    MANUAL_INTERVENTION = "MANUAL_INTERVENTION"
    CONTACT_SUPPORT = "CONTACT_SUPPORT"
    NONE = "NONE"


class StructuredError(BaseModel):
    """
    Structured error with full context for debugging and observability.

    Designed to be:
    - Understandable without reading code
    - Queryable for patterns
    - Actionable with recovery guidance
    """

    code: str = Field(description="Unique error code for identification")
    category: ErrorCategory
    severity: ErrorSeverity
    message: str = Field(description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error context")

    correlation_id: str | None = None
    letter_id: UUID | None = None

    recovery_action: RecoveryAction = RecoveryAction.NONE
    recovery_hint: str | None = None
    is_retryable: bool = False

    occurred_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(from_attributes=True)

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to dictionary suitable for logging."""
        return {
            "error_code": self.code,
            "error_category": self.category.value,
            "error_severity": self.severity.value,
            "error_message": self.message,
            "error_details": self.details,
            "correlation_id": self.correlation_id,
            "letter_id": str(self.letter_id) if self.letter_id else None,
            "recovery_action": self.recovery_action.value,
            "is_retryable": self.is_retryable,
        }


class LetterWorkflowError(Exception):
    """Base class for every error a workflow operation can raise."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.LOW
    recovery_action: RecoveryAction = RecoveryAction.NONE

    def __init__(
        self,
        message: str,
        code: str,
        details: dict[str, Any] | None = None,
        letter_id: UUID | None = None,
        recovery_hint: str | None = None,
        is_retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.letter_id = letter_id
        self.recovery_hint = recovery_hint
        self.is_retryable = is_retryable

    def to_structured(self, correlation_id: str | None = None) -> StructuredError:
        return StructuredError(
            code=self.code,
            category=self.category,
            severity=self.severity,
            message=self.message,
            details=self.details,
            correlation_id=correlation_id,
            letter_id=self.letter_id,
            recovery_action=self.recovery_action,
            recovery_hint=self.recovery_hint,
            is_retryable=self.is_retryable,
        )


class StateError(LetterWorkflowError):
    """Illegal status transition, or a mutation attempted in a terminal state."""

    category = ErrorCategory.STATE
    recovery_action = RecoveryAction.NONE

    def __init__(
        self,
        current_status: str,
        requested: str,
        letter_id: UUID | None = None,
        operation: str | None = None,
    ):
        if operation:
            message = (
                f"Cannot {operation} while letter is '{current_status}'"
                f" (requested: '{requested}')"
            )
        else:
            message = f"Illegal transition from '{current_status}' to '{requested}'"
        super().__init__(
            message=message,
            code="STATE_OPERATION_NOT_ALLOWED" if operation else "STATE_ILLEGAL_TRANSITION",
            details={
                "current_status": current_status,
                "requested": requested,
                "operation": operation,
            },
            letter_id=letter_id,
            recovery_hint="Reload the letter and check its status before retrying",
        )
        self.current_status = current_status
        self.requested = requested
        self.operation = operation


class BindingError(LetterWorkflowError):
    """Template placeholders that could not be resolved."""

    category = ErrorCategory.BINDING
    recovery_action = RecoveryAction.CORRECT_INPUT

    def __init__(self, missing_keys: list[str], reason: str = "unresolved placeholders"):
        super().__init__(
            message=f"Prompt binding failed, {reason}: {', '.join(missing_keys)}",
            code="BINDING_UNRESOLVED_PLACEHOLDERS",
            details={"missing_keys": missing_keys, "reason": reason},
            recovery_hint="Provide values for every listed placeholder",
        )
        self.missing_keys = missing_keys


class GenerationError(LetterWorkflowError):
    """The text-generation provider failed; nothing was written."""

    category = ErrorCategory.GENERATION
    severity = ErrorSeverity.MEDIUM
    recovery_action = RecoveryAction.RETRY

    def __init__(
        self,
        cause: str,
        provider_message: str,
        letter_id: UUID | None = None,
        model_id: str | None = None,
    ):
        super().__init__(
            message=f"Letter generation failed ({cause}): {provider_message}",
            code=f"GENERATION_{cause.upper()}",
            details={
                "cause": cause,
                "provider_message": provider_message,
                "model_id": model_id,
            },
            letter_id=letter_id,
            recovery_hint="The letter is unchanged; retry later or pick another model",
            is_retryable=cause not in {"invalid_request", "configuration"},
        )
        self.cause = cause
        self.provider_message = provider_message


class ConflictError(LetterWorkflowError):
    """Another write (usually a generation) holds or changed the letter."""

    category = ErrorCategory.CONFLICT
    recovery_action = RecoveryAction.RETRY

    def __init__(self, letter_id: UUID, conflict_reason: str):
        super().__init__(
            message=f"Conflicting operation on letter {letter_id}: {conflict_reason}",
            code="CONFLICT_CONCURRENT_OPERATION",
            details={"conflict_reason": conflict_reason},
            letter_id=letter_id,
            recovery_hint="Wait for the running operation to finish, then retry",
            is_retryable=True,
        )
        self.conflict_reason = conflict_reason


class WorkflowValidationError(LetterWorkflowError):
    """Missing or invalid caller-supplied fields."""

    category = ErrorCategory.VALIDATION
    recovery_action = RecoveryAction.CORRECT_INPUT

    def __init__(
        self,
        field: str,
        reason: str,
        value: Any = None,
        letter_id: UUID | None = None,
    ):
        super().__init__(
            message=f"Invalid value for '{field}': {reason}",
            code="VALIDATION_INVALID_FIELD",
            details={
                "field": field,
                "reason": reason,
                "value": str(value) if value is not None else None,
            },
            letter_id=letter_id,
            recovery_hint=f"Correct the value for '{field}' and retry",
        )
        self.field = field
        self.reason = reason


class NotFoundError(LetterWorkflowError):
    category = ErrorCategory.NOT_FOUND

    def __init__(self, entity: str, identifier: Any, letter_id: UUID | None = None):
        super().__init__(
            message=f"{entity} {identifier} not found",
            code=f"NOT_FOUND_{entity.upper().replace(' ', '_')}",
            details={"entity": entity, "identifier": str(identifier)},
            letter_id=letter_id,
        )
        self.entity = entity
        self.identifier = identifier


class PermissionDeniedError(LetterWorkflowError):
    """Caller does not own the letter (or has the wrong role)."""

    category = ErrorCategory.PERMISSION
    severity = ErrorSeverity.MEDIUM

    def __init__(self, letter_id: UUID | None, reason: str):
        super().__init__(
            message=f"Not authorized: {reason}",
            code="PERMISSION_DENIED",
            details={"reason": reason},
            letter_id=letter_id,
        )
        self.reason = reason


class RenderingError(LetterWorkflowError):
    """Rendering or uploading a completed letter failed."""

    category = ErrorCategory.RENDERING
    severity = ErrorSeverity.HIGH
    recovery_action = RecoveryAction.RETRY

    def __init__(self, reason: str, message: str, letter_id: UUID | None = None):
        super().__init__(
            message=f"Rendering failed ({reason}): {message}",
            code=f"RENDERING_{reason.upper()}",
            details={"reason": reason},
            letter_id=letter_id,
            recovery_hint="The letter itself is unchanged; retry the render",
            is_retryable=True,
        )
        self.reason = reason

