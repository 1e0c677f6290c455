"""Shared data contracts enforced by Pydantic across all pipeline stages.

Persisted/wire JSON uses camelCase keys (``audioRef``, ``tStart`` ...); Python
code uses the snake_case attribute names. ``to_wire()`` produces the JSON form.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DocumentType = Literal["asr", "board"]

# keyword -> timestamps (seconds) at which it occurred; duplicates are kept.
KeywordIndex = Dict[str, List[float]]


class WireModel(BaseModel):
    """Base model: forbids unknown keys and (de)serializes camelCase aliases."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Lecture(WireModel):
    """A lecture registered by the media extractor."""

    id: str = Field(..., min_length=1)
    title: str
    audio_ref: str = Field(..., description="Object key of the mono 16 kHz WAV track.")
    frames_ref: str = Field(..., description="Object key prefix holding frame-NNNNNN.jpg files.")
    duration: float = Field(..., ge=0, description="Video duration in seconds.")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    created_at: int = Field(..., description="Creation time, epoch milliseconds.")


class TranscriptWord(WireModel):
    word: str
    start: float = Field(..., ge=0)
    end: float = Field(..., ge=0)


class TranscriptSegment(WireModel):
    """Represents a transcribed chunk of audio."""

    text: str = Field(..., min_length=1)
    start: float = Field(..., ge=0, description="Start time (seconds) of the segment.")
    end: float = Field(..., ge=0, description="End time (seconds) of the segment.")
    words: Optional[List[TranscriptWord]] = None

    @model_validator(mode="after")
    def validate_times(self) -> "TranscriptSegment":
        """Ensure end time is not before start time."""
        if self.end < self.start:
            raise ValueError("end must be greater than or equal to start")
        return self


class TranscriptResult(WireModel):
    """Speech-to-text output for one lecture.

    ``placeholder`` is True only for the offline demo transcript, which must
    never be taken for real recognition output.
    """

    segments: List[TranscriptSegment] = Field(default_factory=list)
    language: Optional[str] = None
    duration: Optional[float] = None
    source: str = "stt"
    placeholder: bool = False


class BoardEvent(WireModel):
    """A detected change of whiteboard/blackboard content."""

    t: float = Field(..., ge=0)
    frame_ref: str
    bbox: List[int] = Field(..., description="[x, y, width, height] in source-frame pixels.")
    score: float = Field(..., ge=0.0, le=1.0)

    @field_validator("bbox")
    @classmethod
    def validate_bbox(cls, value: List[int]) -> List[int]:
        if len(value) != 4:
            raise ValueError("bbox must be [x, y, width, height]")
        if value[0] < 0 or value[1] < 0 or value[2] <= 0 or value[3] <= 0:
            raise ValueError("bbox must have non-negative origin and positive size")
        return value


class OcrText(WireModel):
    """Raw output of an OCR engine for one image."""

    text: str = ""
    words: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None


class OcrResult(WireModel):
    """Recognized board text for one BoardEvent (never empty)."""

    t: float = Field(..., ge=0)
    text: str = Field(..., min_length=1)
    words: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None


class DocumentMeta(WireModel):
    type: DocumentType
    t: Optional[float] = None
    t_start: Optional[float] = None
    t_end: Optional[float] = None

    @model_validator(mode="after")
    def validate_times(self) -> "DocumentMeta":
        if self.t is None and self.t_start is None:
            raise ValueError("document meta needs t or tStart")
        if self.t_start is not None and self.t_end is not None and self.t_end < self.t_start:
            raise ValueError("tEnd must be >= tStart")
        return self

    @property
    def timestamp(self) -> float:
        """Representative time: point ``t``, else range start."""
        if self.t is not None:
            return self.t
        return self.t_start or 0.0


class Document(WireModel):
    """A unit of indexed text with timestamp metadata."""

    id: str
    text: str
    meta: DocumentMeta


class Flashcard(WireModel):
    question: str
    answer: str


class LlmAnswer(WireModel):
    """Language-model output for one question."""

    answer: str
    flashcards: Optional[List[Flashcard]] = None
    summary: Optional[str] = None
    source: Optional[str] = None


class JumpLink(WireModel):
    """Citation back to a moment in the video."""

    t: float
    timecode: str
    text: str
    type: DocumentType


class AnalysisResult(WireModel):
    answer: str
    links: List[JumpLink] = Field(default_factory=list)
    flashcards: Optional[List[Flashcard]] = None
    summary: Optional[str] = None


class IngestResult(WireModel):
    lecture_id: str
    segments: int = Field(..., ge=0)
    board_events: int = Field(..., ge=0)
    ocr_texts: int = Field(..., ge=0)
    placeholder_transcript: bool = False


class UploadResult(WireModel):
    file_id: str
    original_name: str
    size: int = Field(..., ge=0)


class LectureStatus(WireModel):
    """Run status of an ingest, stored beside the lecture record."""

    status: Literal["processing", "ready", "error", "canceled"]
    stage: Optional[str] = None
    error: Optional[str] = None
    updated_at: str
