"""Domain exceptions shared across the ingest pipeline and the query engine."""

from __future__ import annotations


class LectureQAError(RuntimeError):
    """Base class for all pipeline errors."""


class MediaExtractionError(LectureQAError):
    """Video download, decode, audio or frame extraction failed (fatal)."""


class TranscriptionError(LectureQAError):
    """Speech-to-text transport or API failure (fatal)."""


class StorageError(LectureQAError):
    """Object store or key-value store operation failed."""


class LectureNotFoundError(LectureQAError):
    """No lecture record exists for the requested id."""

    def __init__(self, lecture_id: str) -> None:
        super().__init__(f"Lecture {lecture_id} not found")
        self.lecture_id = lecture_id


class InvalidRequestError(LectureQAError):
    """Caller supplied missing or malformed parameters."""


class PipelineCanceled(LectureQAError):
    """Raised when a running pipeline should stop early (cancel requested)."""
