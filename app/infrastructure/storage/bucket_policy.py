"""Per-bucket upload limits: maximum size and accepted MIME types."""

from dataclasses import dataclass
from typing import Dict, FrozenSet

from app.domain.errors import ValidationError, ErrorCode
from app.domain.source_state import SourceType

MB = 1024 * 1024


def _mime(content_type: str) -> str:
    return (content_type or "").split(";")[0].strip().lower()


@dataclass(frozen=True)
class BucketPolicy:
    name: str
    max_bytes: int
    allowed_mime_types: FrozenSet[str]
    public: bool = False

    def validate(self, content_type: str, size: int) -> None:
        """Raise ValidationError when an upload does not fit this bucket."""
        mime = _mime(content_type)
        if mime not in self.allowed_mime_types:
            raise ValidationError(
                f"File type '{mime or 'unknown'}' is not accepted by bucket '{self.name}'",
                code=ErrorCode.UNSUPPORTED_MEDIA_TYPE,
                details={"allowed": sorted(self.allowed_mime_types)},
            )
        if size <= 0:
            raise ValidationError("Uploaded file is empty", code=ErrorCode.INVALID_INPUT)
        if size > self.max_bytes:
            raise ValidationError(
                f"File exceeds the {self.max_bytes // MB}MB limit of bucket '{self.name}'",
                code=ErrorCode.PAYLOAD_TOO_LARGE,
                details={"size": size, "max_bytes": self.max_bytes},
            )


AUDIO_MIME_TYPES = frozenset({"audio/mpeg", "audio/wav", "audio/mp4", "audio/m4a", "audio/x-m4a"})

TEXT_MIME_TYPES = frozenset({
    "text/plain",
    "text/csv",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

# File types each file-backed source accepts
SOURCE_TYPE_MIME_TYPES: Dict[SourceType, FrozenSet[str]] = {
    SourceType.PDF: frozenset({"application/pdf"}),
    SourceType.TEXT: TEXT_MIME_TYPES,
    SourceType.AUDIO: AUDIO_MIME_TYPES,
}


def validate_source_file_type(source_type: SourceType, content_type: str) -> None:
    """Raise ValidationError when a file does not match the kind of source it is uploaded to."""
    source_type = SourceType(source_type)
    allowed = SOURCE_TYPE_MIME_TYPES.get(source_type, frozenset())
    mime = _mime(content_type)
    if mime not in allowed:
        raise ValidationError(
            f"File type '{mime or 'unknown'}' does not match a {source_type.value} source",
            code=ErrorCode.UNSUPPORTED_MEDIA_TYPE,
            details={"source_type": source_type.value, "allowed": sorted(allowed)},
        )


SOURCES_BUCKET = BucketPolicy(
    name="sources",
    max_bytes=50 * MB,
    allowed_mime_types=frozenset({"application/pdf"}) | TEXT_MIME_TYPES | AUDIO_MIME_TYPES,
)

AUDIO_BUCKET = BucketPolicy(
    name="audio",
    max_bytes=100 * MB,
    allowed_mime_types=AUDIO_MIME_TYPES,
)

PUBLIC_IMAGES_BUCKET = BucketPolicy(
    name="public-images",
    max_bytes=10 * MB,
    allowed_mime_types=frozenset({"image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml"}),
    public=True,
)
