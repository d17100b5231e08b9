import json
import logging
from uuid import uuid4

import pytest

from backend.app.infrastructure.errors import (
    BindingError,
    ConflictError,
    ErrorCategory,
    GenerationError,
    NotFoundError,
    PermissionDeniedError,
    RecoveryAction,
    RenderingError,
    StateError,
    WorkflowValidationError,
)
from backend.app.logging_config import (
    LogContext,
    StructuredJSONFormatter,
    clear_context,
    get_correlation_id,
    set_correlation_id,
)
from backend.app.main import status_code_for


def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="app.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def reset_log_context():
    clear_context()
    yield
    clear_context()


class TestStructuredErrors:
    def test_state_error_structure(self):
        letter_id = uuid4()
        error = StateError("completed", "edit", letter_id=letter_id, operation="edit")
        structured = error.to_structured(correlation_id="corr-1")

        assert structured.code == "STATE_OPERATION_NOT_ALLOWED"
        assert structured.category == ErrorCategory.STATE
        assert structured.letter_id == letter_id
        assert structured.details["current_status"] == "completed"

        log_dict = structured.to_log_dict()
        assert log_dict["letter_id"] == str(letter_id)
        assert log_dict["correlation_id"] == "corr-1"
        assert log_dict["error_category"] == "STATE"

    def test_generation_error_retryability(self):
        assert GenerationError("rate_limit", "slow down").is_retryable
        assert GenerationError("timeout", "no answer").code == "GENERATION_TIMEOUT"
        assert not GenerationError("invalid_request", "bad prompt").is_retryable

    def test_binding_error_lists_keys(self):
        error = BindingError(["relationship", "duration"])
        assert "relationship, duration" in error.message
        assert error.to_structured().recovery_action == RecoveryAction.CORRECT_INPUT


class TestStatusCodes:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (StateError("draft", "requested"), 409),
            (BindingError(["tone"]), 422),
            (GenerationError("rate_limit", "429"), 502),
            (GenerationError("timeout", "slow"), 504),
            (ConflictError(uuid4(), "locked"), 409),
            (WorkflowValidationError("reason", "required"), 422),
            (NotFoundError("Letter", uuid4()), 404),
            (PermissionDeniedError(None, "wrong role"), 403),
            (RenderingError("upload_failed", "s3 down"), 500),
        ],
    )
    def test_mapping(self, error, expected):
        assert status_code_for(error) == expected


class TestLoggingContext:
    def test_set_correlation_id_generates_one(self):
        cid = set_correlation_id()
        assert cid.startswith("corr-")
        assert get_correlation_id() == cid

    def test_log_context_restores_previous_values(self):
        set_correlation_id("outer")
        with LogContext(correlation_id="inner", letter_id="letter-1"):
            assert get_correlation_id() == "inner"
        assert get_correlation_id() == "outer"

    def test_json_formatter_includes_context_and_extra(self):
        formatter = StructuredJSONFormatter()
        with LogContext(correlation_id="corr-abc", letter_id="letter-1", template_id="tpl-1"):
            output = json.loads(
                formatter.format(make_record("generated", extra_data={"tokens_used": 42}))
            )

        assert output["message"] == "generated"
        assert output["correlation_id"] == "corr-abc"
        assert output["letter_id"] == "letter-1"
        assert output["template_id"] == "tpl-1"
        assert output["extra"] == {"tokens_used": 42}

    def test_json_formatter_stringifies_unserializable_attributes(self):
        letter_id = uuid4()
        output = json.loads(StructuredJSONFormatter().format(make_record("x", letter=letter_id)))
        assert output["letter"] == str(letter_id)
        assert "correlation_id" not in output
