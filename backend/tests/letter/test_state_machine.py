import uuid

import pytest

from backend.app.domains.letter.state_machine import (
    EDITABLE_STATUSES,
    GENERATION_STATUSES,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    LetterStatus,
    assert_mutable,
    assert_status_in,
    assert_transition,
    can_transition,
    is_terminal,
)
from backend.app.infrastructure.errors import ErrorCategory, StateError


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (LetterStatus.REQUESTED, LetterStatus.IN_PROGRESS),
            (LetterStatus.REQUESTED, LetterStatus.REJECTED),
            (LetterStatus.REQUESTED, LetterStatus.CANCELED),
            (LetterStatus.IN_PROGRESS, LetterStatus.DRAFT),
            (LetterStatus.IN_PROGRESS, LetterStatus.CANCELED),
            (LetterStatus.DRAFT, LetterStatus.IN_REVIEW),
            (LetterStatus.DRAFT, LetterStatus.COMPLETED),
            (LetterStatus.IN_REVIEW, LetterStatus.DRAFT),
            (LetterStatus.IN_REVIEW, LetterStatus.COMPLETED),
        ],
    )
    def test_allowed_transitions(self, current, target):
        assert can_transition(current, target)
        assert_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (LetterStatus.REQUESTED, LetterStatus.DRAFT),
            (LetterStatus.REQUESTED, LetterStatus.COMPLETED),
            (LetterStatus.IN_PROGRESS, LetterStatus.COMPLETED),
            (LetterStatus.IN_PROGRESS, LetterStatus.REQUESTED),
            (LetterStatus.DRAFT, LetterStatus.IN_PROGRESS),
            (LetterStatus.COMPLETED, LetterStatus.DRAFT),
            (LetterStatus.REJECTED, LetterStatus.IN_PROGRESS),
            (LetterStatus.CANCELED, LetterStatus.REQUESTED),
        ],
    )
    def test_illegal_transitions_raise_state_error(self, current, target):
        assert not can_transition(current, target)
        letter_id = uuid.uuid4()
        with pytest.raises(StateError) as exc_info:
            assert_transition(current, target, letter_id)

        error = exc_info.value
        assert error.current_status == current.value
        assert error.requested == target.value
        assert error.letter_id == letter_id
        assert error.code == "STATE_ILLEGAL_TRANSITION"

    def test_terminal_statuses_have_no_outgoing_edges(self):
        for status in TERMINAL_STATUSES:
            assert is_terminal(status)
            assert VALID_TRANSITIONS[status] == frozenset()

    def test_every_status_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(LetterStatus)

    def test_status_values_are_lowercase(self):
        assert [s.value for s in LetterStatus] == [
            "requested",
            "in_progress",
            "draft",
            "in_review",
            "completed",
            "rejected",
            "canceled",
        ]


class TestOperationGuards:
    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_assert_mutable_refuses_terminal(self, status):
        with pytest.raises(StateError) as exc_info:
            assert_mutable(status, "generate")

        assert exc_info.value.operation == "generate"
        assert exc_info.value.code == "STATE_OPERATION_NOT_ALLOWED"
        assert exc_info.value.category == ErrorCategory.STATE

    @pytest.mark.parametrize("status", [LetterStatus.IN_PROGRESS, LetterStatus.DRAFT])
    def test_assert_mutable_allows_open_statuses(self, status):
        assert_mutable(status, "generate")

    def test_assert_status_in_reports_allowed_set(self):
        with pytest.raises(StateError) as exc_info:
            assert_status_in(LetterStatus.REQUESTED, EDITABLE_STATUSES, "edit")

        assert exc_info.value.requested == "draft|in_review"
        assert "edit" in exc_info.value.message

    def test_generation_allowed_statuses(self):
        assert GENERATION_STATUSES == {
            LetterStatus.IN_PROGRESS,
            LetterStatus.DRAFT,
            LetterStatus.IN_REVIEW,
        }
