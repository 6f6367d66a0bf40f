"""Unit tests for the source status transition rules."""

import pytest

from app.domain.errors import ValidationError, InvalidStateTransitionError, ErrorCode
from app.domain.source_state import (
    SourceStatus,
    SourceType,
    allowed_predecessors,
    callback_target_status,
    can_transition,
    ensure_transition,
    is_terminal,
    parse_source_status,
    parse_source_type,
)


class TestTransitions:
    """Edges of the status graph."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (SourceStatus.PENDING, SourceStatus.PROCESSING),
            (SourceStatus.PENDING, SourceStatus.FAILED),
            (SourceStatus.UPLOADING, SourceStatus.PROCESSING),
            (SourceStatus.PROCESSING, SourceStatus.COMPLETED),
            (SourceStatus.PROCESSING, SourceStatus.FAILED),
            (SourceStatus.PROCESSING, SourceStatus.PROCESSING),
            (SourceStatus.COMPLETED, SourceStatus.COMPLETED),
            (SourceStatus.FAILED, SourceStatus.FAILED),
        ],
    )
    def test_allowed_edges(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (SourceStatus.PENDING, SourceStatus.COMPLETED),
            (SourceStatus.UPLOADING, SourceStatus.COMPLETED),
            (SourceStatus.PROCESSING, SourceStatus.PENDING),
            (SourceStatus.PROCESSING, SourceStatus.UPLOADING),
            (SourceStatus.COMPLETED, SourceStatus.FAILED),
            (SourceStatus.COMPLETED, SourceStatus.PROCESSING),
            (SourceStatus.FAILED, SourceStatus.COMPLETED),
            (SourceStatus.FAILED, SourceStatus.PENDING),
        ],
    )
    def test_rejected_edges(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            ensure_transition(current, target, source_id="s-1")
        assert exc_info.value.http_status_code == 409
        assert exc_info.value.details["source_id"] == "s-1"

    def test_uploading_only_for_file_backed_types(self):
        assert can_transition(SourceStatus.PENDING, SourceStatus.UPLOADING, SourceType.PDF)
        assert can_transition(SourceStatus.PENDING, SourceStatus.UPLOADING, SourceType.AUDIO)
        assert can_transition(SourceStatus.PENDING, SourceStatus.UPLOADING, SourceType.TEXT)
        assert not can_transition(SourceStatus.PENDING, SourceStatus.UPLOADING, SourceType.WEBSITE)
        assert not can_transition(SourceStatus.PENDING, SourceStatus.UPLOADING, SourceType.YOUTUBE)

    def test_allowed_predecessors(self):
        assert allowed_predecessors(SourceStatus.COMPLETED) == {SourceStatus.PROCESSING, SourceStatus.COMPLETED}
        assert allowed_predecessors(SourceStatus.FAILED) == {
            SourceStatus.PENDING,
            SourceStatus.UPLOADING,
            SourceStatus.PROCESSING,
            SourceStatus.FAILED,
        }
        assert SourceStatus.PENDING not in allowed_predecessors(SourceStatus.PENDING)

    def test_terminal_statuses(self):
        assert is_terminal(SourceStatus.COMPLETED)
        assert is_terminal(SourceStatus.FAILED)
        assert not is_terminal(SourceStatus.PROCESSING)


class TestParsing:
    def test_parse_source_type_rejects_unknown(self):
        assert parse_source_type("pdf") is SourceType.PDF
        with pytest.raises(ValidationError) as exc_info:
            parse_source_type("docx")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    def test_parse_source_status_rejects_unknown(self):
        assert parse_source_status("processing") is SourceStatus.PROCESSING
        with pytest.raises(ValidationError) as exc_info:
            parse_source_status("done")
        assert exc_info.value.code == ErrorCode.INVALID_STATUS
        assert exc_info.value.http_status_code == 400


class TestCallbackTargetStatus:
    def test_error_always_fails(self):
        assert callback_target_status("completed", error="boom") is SourceStatus.FAILED
        assert callback_target_status(None, error={"message": "boom"}) is SourceStatus.FAILED

    def test_missing_status_means_completed(self):
        assert callback_target_status(None) is SourceStatus.COMPLETED
        assert callback_target_status("") is SourceStatus.COMPLETED

    def test_explicit_status(self):
        assert callback_target_status("processing") is SourceStatus.PROCESSING

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            callback_target_status("finished")
