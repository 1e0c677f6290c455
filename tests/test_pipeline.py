from __future__ import annotations

import asyncio

import pytest

import lecture_qa.capture.media_extractor as media_extractor
from lecture_qa.audio.placeholder_stt import PlaceholderSTTClient
from lecture_qa.common.schemas import OcrText
from lecture_qa.db.keys import lecture_kv_key
from lecture_qa.errors import InvalidRequestError, PipelineCanceled, TranscriptionError
from lecture_qa.llm.answer_generator import OfflineAnswerGenerator
from lecture_qa.pipeline import cancel, orchestrator
from lecture_qa.pipeline.contracts import PipelineContext
from tests.synthetic import board_frame, encode_jpg


class StaticOcrEngine:
    thread_safe = True

    def __init__(self) -> None:
        self.closed = False

    def recognize(self, image_bytes: bytes) -> OcrText:
        return OcrText(text="graph algorithms", words=["graph", "algorithms"], confidence=88.0)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_media(monkeypatch):
    """Ten one-second frames: the board changes once, at t=5."""
    before = encode_jpg(board_frame([(20, 20, 60, 60)]))
    after = encode_jpg(board_frame([(20, 20, 60, 60), (180, 100, 100, 100)]))

    video_frames = {"images": [before] * 5 + [after] * 5, "before": before}

    def _frames(source, output_dir, **kwargs):
        output_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for i, image in enumerate(video_frames["images"]):
            path = output_dir / f"frame-{i:06d}.jpg"
            path.write_bytes(image)
            paths.append(path)
        return paths

    def _audio(source, output_path, **kwargs):
        output_path.write_bytes(b"RIFF....WAVE")
        return output_path

    monkeypatch.setattr(media_extractor, "read_video_info", lambda path, **kw: {"duration": 10.0, "width": 320, "height": 240})
    monkeypatch.setattr(media_extractor, "extract_audio", _audio)
    monkeypatch.setattr(media_extractor, "extract_frames", _frames)
    return video_frames


@pytest.fixture
def context(pipeline_config, object_store, kv_store):
    engines = []

    def _engine_factory():
        engine = StaticOcrEngine()
        engines.append(engine)
        return engine

    ctx = PipelineContext(
        config=pipeline_config,
        object_store=object_store,
        kv_store=kv_store,
        stt=PlaceholderSTTClient(),
        ocr_engine_factory=_engine_factory,
        answer_generator=OfflineAnswerGenerator(),
    )
    ctx.engines = engines
    return ctx


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "lecture.mp4"
    path.write_bytes(b"fake video")
    return path


def test_ingest_then_analyze(context, fake_media, video) -> None:
    result = orchestrator.run_ingest_pipeline(video_path=video, title="Algorithms", lecture_id="L", context=context)

    assert result.lecture_id == "L"
    assert result.segments == 2
    assert result.board_events == 2
    assert result.ocr_texts == 2
    assert result.placeholder_transcript is True
    assert orchestrator.get_status("L", context=context).status == "ready"
    assert all(engine.closed for engine in context.engines)

    analysis = orchestrator.analyze("L", "graph algorithms", context=context)

    assert analysis.answer
    assert analysis.flashcards
    assert {link.type for link in analysis.links} == {"asr", "board"}
    assert [link.t for link in analysis.links] == sorted(link.t for link in analysis.links)
    assert len(analysis.links) <= 10


def test_reingest_same_lecture_replaces_frames(context, fake_media, video) -> None:
    first = orchestrator.run_ingest_pipeline(video_path=video, lecture_id="R", context=context)
    assert first.board_events == 2

    fake_media["images"] = [fake_media["before"]] * 3
    second = orchestrator.run_ingest_pipeline(video_path=video, lecture_id="R", context=context)

    assert second.board_events == 1
    frames = context.object_store.list_prefix(context.layout.frames_prefix("R"))
    assert [entry.name for entry in frames] == ["frame-000000.jpg", "frame-000001.jpg", "frame-000002.jpg"]


def test_ingest_from_upload(context, fake_media) -> None:
    upload = orchestrator.upload_video(b"video bytes", "Lecture.MP4", context=context)

    assert upload.file_id.startswith("upload-")
    assert upload.size == len(b"video bytes")

    result = orchestrator.run_ingest_pipeline(file_id=upload.file_id, context=context)
    assert result.board_events == 2


def test_ingest_async_runs_off_the_event_loop(context, fake_media, video) -> None:
    result = asyncio.run(orchestrator.run_ingest_async(video_path=video, lecture_id="A", context=context))
    assert result.segments == 2


def test_canceled_ingest_records_status_and_no_lecture(context, fake_media, video) -> None:
    cancel.request_cancel("C")

    with pytest.raises(PipelineCanceled):
        orchestrator.run_ingest_pipeline(video_path=video, lecture_id="C", context=context)

    status = orchestrator.get_status("C", context=context)
    assert status.status == "canceled"
    assert status.stage == "media"
    assert context.kv_store.get(lecture_kv_key("C")) is None
    # the flag is cleared once the run ends
    assert not cancel.is_cancel_requested("C")


def test_stage_failure_records_error_status(context, fake_media, video) -> None:
    class BrokenSTT:
        def transcribe(self, path):
            raise RuntimeError("quota exceeded")

    context.stt = BrokenSTT()

    with pytest.raises(TranscriptionError):
        orchestrator.run_ingest_pipeline(video_path=video, lecture_id="E", context=context)

    status = orchestrator.get_status("E", context=context)
    assert status.status == "error"
    assert status.stage == "transcript"
    assert "quota exceeded" in status.error


def test_ingest_requires_a_source(context) -> None:
    with pytest.raises(InvalidRequestError):
        orchestrator.run_ingest_pipeline(context=context)


@pytest.mark.parametrize("filename, data", [("notes.pdf", b"%PDF"), ("lecture.mp4", b""), ("", b"x")])
def test_upload_rejects_bad_input(context, filename, data) -> None:
    with pytest.raises(InvalidRequestError):
        orchestrator.upload_video(data, filename, context=context)
