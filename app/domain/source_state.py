"""
Source processing lifecycle.

A source moves through a small closed set of statuses while the external
workflow engine extracts its text:

    pending -> uploading -> processing -> completed
                                      \-> failed

``uploading`` only applies to file-backed sources. Any non-terminal state
may fail. ``completed`` and ``failed`` are terminal for an attempt; the
only way out is an explicit resubmission, which starts a new attempt
back at ``pending``. Repeating the current status (a replayed callback,
a progress report while processing) is an allowed no-op edge.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from app.domain.errors import ValidationError, InvalidStateTransitionError, ErrorCode


class SourceType(str, Enum):
    PDF = "pdf"
    TEXT = "text"
    WEBSITE = "website"
    YOUTUBE = "youtube"
    AUDIO = "audio"


class SourceStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class NoteAuthor(str, Enum):
    USER = "user"
    AI_RESPONSE = "ai_response"


# Sources whose content arrives as a stored file
FILE_BACKED_TYPES: FrozenSet[SourceType] = frozenset({SourceType.PDF, SourceType.TEXT, SourceType.AUDIO})
# Sources whose content is fetched from a URL by the workflow engine
URL_TYPES: FrozenSet[SourceType] = frozenset({SourceType.WEBSITE, SourceType.YOUTUBE})

TERMINAL_STATUSES: FrozenSet[SourceStatus] = frozenset({SourceStatus.COMPLETED, SourceStatus.FAILED})

_TRANSITIONS: Dict[SourceStatus, FrozenSet[SourceStatus]] = {
    SourceStatus.PENDING: frozenset({SourceStatus.UPLOADING, SourceStatus.PROCESSING, SourceStatus.FAILED}),
    SourceStatus.UPLOADING: frozenset({SourceStatus.UPLOADING, SourceStatus.PROCESSING, SourceStatus.FAILED}),
    SourceStatus.PROCESSING: frozenset({SourceStatus.PROCESSING, SourceStatus.COMPLETED, SourceStatus.FAILED}),
    SourceStatus.COMPLETED: frozenset({SourceStatus.COMPLETED}),
    SourceStatus.FAILED: frozenset({SourceStatus.FAILED}),
}


def parse_source_type(value: Any) -> SourceType:
    """Coerce a client-supplied type, rejecting anything outside the closed set."""
    try:
        return SourceType(value)
    except ValueError:
        raise ValidationError(
            f"Unsupported source type: {value!r}",
            code=ErrorCode.INVALID_INPUT,
            details={"allowed": [t.value for t in SourceType]},
        )


def parse_source_status(value: Any) -> SourceStatus:
    try:
        return SourceStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown processing status: {value!r}",
            code=ErrorCode.INVALID_STATUS,
            details={"allowed": [s.value for s in SourceStatus]},
        )


def can_transition(
    current: SourceStatus,
    target: SourceStatus,
    source_type: Optional[SourceType] = None,
) -> bool:
    if target is SourceStatus.UPLOADING and source_type is not None and source_type not in FILE_BACKED_TYPES:
        return False
    return target in _TRANSITIONS[SourceStatus(current)]


def ensure_transition(
    current: SourceStatus,
    target: SourceStatus,
    source_type: Optional[SourceType] = None,
    source_id: Optional[str] = None,
) -> None:
    """Raise InvalidStateTransitionError unless ``current -> target`` is an edge."""
    if not can_transition(current, target, source_type):
        raise InvalidStateTransitionError(current, target, source_id=source_id)


def allowed_predecessors(target: SourceStatus) -> FrozenSet[SourceStatus]:
    """Statuses from which ``target`` may be entered.

    Used as the guard of conditional UPDATEs so the check and the write
    happen in one statement.
    """
    return frozenset(
        status for status, targets in _TRANSITIONS.items() if target in targets
    )


def is_terminal(status: SourceStatus) -> bool:
    return SourceStatus(status) in TERMINAL_STATUSES


def callback_target_status(status: Optional[str], error: Any = None) -> SourceStatus:
    """Status a processing callback asks for.

    An error report always fails the source, whatever status came with it.
    A missing status means the engine finished successfully.
    """
    if error:
        return SourceStatus.FAILED
    if not status:
        return SourceStatus.COMPLETED
    return parse_source_status(status)
