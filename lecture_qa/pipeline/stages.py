"""Ingest stage runners.

=============================================================================
Pipeline Flow
=============================================================================
1. run_media_stage()      video -> audio.wav + frames/ + Lecture record
2. run_transcript_stage() audio.wav -> transcript.json
3. run_board_stage()      frames/ -> board_events.json
4. run_ocr_stage()        board_events.json + frames/ -> board_ocr.json
5. run_index_stage()      transcript.json + board_ocr.json -> doc:*, keywords, docCount

Each stage reads only what the previous stages persisted, so any stage can be
re-run on its own for an existing lecture id.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional

from lecture_qa.audio.transcript_builder import TranscriptBuilder, load_transcript
from lecture_qa.capture.board_change import BoardChangeDetector, load_board_events
from lecture_qa.capture.media_extractor import MediaExtractor
from lecture_qa.common.schemas import BoardEvent, Lecture, OcrResult, TranscriptResult
from lecture_qa.db.keys import lecture_kv_key
from lecture_qa.errors import LectureNotFoundError
from lecture_qa.index.builder import IndexBuilder, LectureIndex
from lecture_qa.ocr.region_ocr import RegionOcrExtractor, load_ocr_results
from lecture_qa.pipeline.contracts import PipelineContext
from lecture_qa.pipeline.logger import pipeline_logger


def load_lecture(ctx: PipelineContext, lecture_id: str) -> Lecture:
    data = ctx.kv_store.get(lecture_kv_key(lecture_id))
    if data is None:
        raise LectureNotFoundError(lecture_id)
    return Lecture.model_validate(data)


class _StageTimer:
    """Reports RUNNING / DONE / ERROR for one column of the pipeline logger."""

    def __init__(self, column: str, lecture_id: str) -> None:
        self.column = column
        self.lecture_id = lecture_id
        self.started = 0.0

    def __enter__(self) -> "_StageTimer":
        self.started = time.perf_counter()
        pipeline_logger.log(self.column, "RUNNING", lecture_id=self.lecture_id)
        return self

    def done(self, summary: str) -> None:
        elapsed = time.perf_counter() - self.started
        pipeline_logger.log(self.column, f"DONE ({summary}, {elapsed:.1f}s)", lecture_id=self.lecture_id)

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            pipeline_logger.log(self.column, f"ERROR ({exc_type.__name__})", lecture_id=self.lecture_id)
        return False


def run_media_stage(
    ctx: PipelineContext,
    lecture_id: str,
    *,
    video_url: Optional[str] = None,
    file_id: Optional[str] = None,
    video_path: Optional[Path] = None,
    title: Optional[str] = None,
) -> Lecture:
    with _StageTimer("Media", lecture_id) as timer:
        extractor = MediaExtractor(
            ctx.object_store, ctx.kv_store, layout=ctx.layout, settings=ctx.capture_settings
        )
        lecture = extractor.extract(
            lecture_id, video_url=video_url, file_id=file_id, video_path=video_path, title=title
        )
        timer.done(f"{lecture.duration:.0f}s video")
    return lecture


def run_transcript_stage(ctx: PipelineContext, lecture_id: str) -> TranscriptResult:
    with _StageTimer("Transcript", lecture_id) as timer:
        lecture = load_lecture(ctx, lecture_id)
        builder = TranscriptBuilder(
            ctx.object_store, stt=ctx.stt, layout=ctx.layout, retry_cfg=ctx.config.retry
        )
        transcript = builder.build(lecture)
        tag = " PLACEHOLDER" if transcript.placeholder else ""
        timer.done(f"{len(transcript.segments)} segments{tag}")
    return transcript


def run_board_stage(ctx: PipelineContext, lecture_id: str) -> List[BoardEvent]:
    with _StageTimer("Board", lecture_id) as timer:
        lecture = load_lecture(ctx, lecture_id)
        detector = BoardChangeDetector(ctx.object_store, layout=ctx.layout, settings=ctx.capture_settings)
        events = detector.detect(lecture)
        timer.done(f"{len(events)} events")
    return events


def run_ocr_stage(ctx: PipelineContext, lecture_id: str) -> List[OcrResult]:
    with _StageTimer("OCR", lecture_id) as timer:
        lecture = load_lecture(ctx, lecture_id)
        events = load_board_events(ctx.object_store, ctx.layout, lecture_id)
        extractor = RegionOcrExtractor(
            ctx.object_store,
            ctx.ocr_engine_factory,
            layout=ctx.layout,
            workers=ctx.config.ocr.workers,
        )
        results = extractor.extract(lecture, events)
        timer.done(f"{len(results)} texts")
    return results


def run_index_stage(ctx: PipelineContext, lecture_id: str) -> LectureIndex:
    with _StageTimer("Index", lecture_id) as timer:
        transcript = load_transcript(ctx.object_store, ctx.layout, lecture_id)
        ocr_results = load_ocr_results(ctx.object_store, ctx.layout, lecture_id)
        index = IndexBuilder(ctx.kv_store).build(lecture_id, transcript, ocr_results)
        timer.done(f"{index.doc_count} docs")
    return index
