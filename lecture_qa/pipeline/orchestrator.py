"""Runs the five ingest stages for one lecture and serves the pipeline-facing operations.

- run_ingest_pipeline(): media -> transcript -> board -> OCR -> index, with the
  run status kept at ``lecture:{id}:status``.
- run_ingest_async(): same, off the event loop (``asyncio.to_thread``).
- request_cancel(): cooperative abort of a running ingest.
- upload_video(): stores an uploaded video under ``uploads/{fileId}.mp4``.
- analyze(): question answering over an ingested lecture.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from lecture_qa.common.schemas import AnalysisResult, IngestResult, LectureStatus, UploadResult
from lecture_qa.db.keys import status_kv_key
from lecture_qa.errors import InvalidRequestError, PipelineCanceled
from lecture_qa.pipeline import cancel
from lecture_qa.pipeline.contracts import PipelineContext
from lecture_qa.pipeline.logger import pipeline_logger
from lecture_qa.pipeline.stages import (
    run_board_stage,
    run_index_stage,
    run_media_stage,
    run_ocr_stage,
    run_transcript_stage,
)
from lecture_qa.query.engine import QueryEngine

logger = logging.getLogger(__name__)

ALLOWED_VIDEO_EXTENSIONS = (".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm", ".mkv")

_default_context: Optional[PipelineContext] = None


def get_default_context() -> PipelineContext:
    global _default_context
    if _default_context is None:
        _default_context = PipelineContext.from_config()
    return _default_context


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def set_status(
    ctx: PipelineContext,
    lecture_id: str,
    status: str,
    *,
    stage: Optional[str] = None,
    error: Optional[str] = None,
) -> LectureStatus:
    record = LectureStatus(status=status, stage=stage, error=error, updated_at=_now_iso())
    ctx.kv_store.set(status_kv_key(lecture_id), record.to_wire())
    return record


def get_status(lecture_id: str, *, context: Optional[PipelineContext] = None) -> Optional[LectureStatus]:
    ctx = context or get_default_context()
    data = ctx.kv_store.get(status_kv_key(lecture_id))
    if data is None:
        return None
    return LectureStatus.model_validate(data)


def request_cancel(lecture_id: str) -> None:
    logger.info("Cancel requested for lecture %s", lecture_id)
    cancel.request_cancel(lecture_id)


def run_ingest_pipeline(
    *,
    video_url: Optional[str] = None,
    file_id: Optional[str] = None,
    video_path: Optional[Path] = None,
    title: Optional[str] = None,
    lecture_id: Optional[str] = None,
    context: Optional[PipelineContext] = None,
) -> IngestResult:
    """Run every ingest stage in order; any stage failure aborts the run.

    Raises:
        InvalidRequestError: no video source given.
        MediaExtractionError, TranscriptionError, StorageError: fatal stage failure.
        PipelineCanceled: request_cancel() was called for this lecture.
    """
    if not (video_url or file_id or video_path):
        raise InvalidRequestError("videoUrl or fileId is required")

    ctx = context or get_default_context()
    lecture_id = lecture_id or str(uuid.uuid4())
    pipeline_logger.reset(lecture_id)
    logger.info("Processing video for lecture %s", lecture_id)

    stage = "media"
    set_status(ctx, lecture_id, "processing", stage=stage)
    try:
        run_media_stage(
            ctx, lecture_id, video_url=video_url, file_id=file_id, video_path=video_path, title=title
        )

        stage = "transcript"
        set_status(ctx, lecture_id, "processing", stage=stage)
        transcript = run_transcript_stage(ctx, lecture_id)
        cancel.raise_if_cancel_requested(lecture_id)

        stage = "board"
        set_status(ctx, lecture_id, "processing", stage=stage)
        events = run_board_stage(ctx, lecture_id)

        stage = "ocr"
        set_status(ctx, lecture_id, "processing", stage=stage)
        ocr_results = run_ocr_stage(ctx, lecture_id)
        cancel.raise_if_cancel_requested(lecture_id)

        stage = "index"
        set_status(ctx, lecture_id, "processing", stage=stage)
        run_index_stage(ctx, lecture_id)
    except PipelineCanceled:
        set_status(ctx, lecture_id, "canceled", stage=stage)
        logger.warning("Lecture %s canceled during %s", lecture_id, stage)
        raise
    except Exception as exc:
        set_status(ctx, lecture_id, "error", stage=stage, error=str(exc))
        logger.error("Lecture %s failed during %s: %s", lecture_id, stage, exc)
        raise
    finally:
        cancel.clear_cancel(lecture_id)
        pipeline_logger.discard(lecture_id)

    set_status(ctx, lecture_id, "ready")
    result = IngestResult(
        lecture_id=lecture_id,
        segments=len(transcript.segments),
        board_events=len(events),
        ocr_texts=len(ocr_results),
        placeholder_transcript=transcript.placeholder,
    )
    logger.info(
        "Lecture %s ready: %d segments, %d board events, %d OCR texts",
        lecture_id,
        result.segments,
        result.board_events,
        result.ocr_texts,
    )
    return result


async def run_ingest_async(**kwargs: Any) -> IngestResult:
    return await asyncio.to_thread(run_ingest_pipeline, **kwargs)


def upload_video(
    data: bytes,
    filename: str,
    *,
    context: Optional[PipelineContext] = None,
) -> UploadResult:
    if not filename:
        raise InvalidRequestError("No video file uploaded")
    if Path(filename).suffix.lower() not in ALLOWED_VIDEO_EXTENSIONS:
        raise InvalidRequestError("Only video files are allowed")
    if not data:
        raise InvalidRequestError("Uploaded file is empty")

    ctx = context or get_default_context()
    file_id = f"upload-{uuid.uuid4().hex}"
    ctx.object_store.put(ctx.layout.upload_key(file_id), data)
    logger.info("Stored upload %s (%s, %d bytes)", file_id, filename, len(data))
    return UploadResult(file_id=file_id, original_name=filename, size=len(data))


def analyze(
    lecture_id: str,
    query: str,
    *,
    context: Optional[PipelineContext] = None,
) -> AnalysisResult:
    ctx = context or get_default_context()
    engine = QueryEngine(ctx.kv_store, ctx.get_answer_generator(), ctx.config.query)
    return engine.analyze(lecture_id, query)
