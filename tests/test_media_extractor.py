from __future__ import annotations

from pathlib import Path

import pytest

import lecture_qa.capture.media_extractor as media_extractor
from lecture_qa.capture.media_extractor import DEFAULT_TITLE, MediaExtractor
from lecture_qa.db.keys import StorageLayout, lecture_kv_key
from lecture_qa.errors import InvalidRequestError, MediaExtractionError
from tests.synthetic import board_frame, encode_jpg


@pytest.fixture
def fake_media(monkeypatch):
    """Replace ffprobe/ffmpeg with functions that write small synthetic outputs."""
    calls = {}

    def _video_info(path, **kwargs):
        calls["video_info"] = Path(path)
        return {"duration": 3.0, "width": 320, "height": 240}

    def _audio(source, output_path, **kwargs):
        output_path.write_bytes(b"RIFF....WAVE")
        return output_path

    def _frames(source, output_dir, **kwargs):
        output_dir.mkdir(parents=True, exist_ok=True)
        frame = encode_jpg(board_frame([(20, 20, 60, 60)]))
        paths = []
        for i in range(3):
            path = output_dir / f"frame-{i:06d}.jpg"
            path.write_bytes(frame)
            paths.append(path)
        return paths

    monkeypatch.setattr(media_extractor, "read_video_info", _video_info)
    monkeypatch.setattr(media_extractor, "extract_audio", _audio)
    monkeypatch.setattr(media_extractor, "extract_frames", _frames)
    return calls


def test_local_video_produces_artifacts_and_record(tmp_path, object_store, kv_store, fake_media) -> None:
    video = tmp_path / "lecture.mp4"
    video.write_bytes(b"fake video")

    lecture = MediaExtractor(object_store, kv_store).extract("L", video_path=video, title="  Graphs ")

    layout = StorageLayout()
    assert lecture.title == "Graphs"
    assert lecture.audio_ref == layout.audio_key("L")
    assert lecture.frames_ref == layout.frames_prefix("L")
    assert (lecture.width, lecture.height, lecture.duration) == (320, 240, 3.0)
    assert [entry.name for entry in object_store.list_prefix(lecture.frames_ref)] == [
        "frame-000000.jpg",
        "frame-000001.jpg",
        "frame-000002.jpg",
    ]
    assert object_store.get(lecture.audio_ref) == b"RIFF....WAVE"
    assert kv_store.get(lecture_kv_key("L"))["audioRef"] == lecture.audio_ref
    assert fake_media["video_info"] == video


def test_uploaded_file_id_is_read_from_store(object_store, kv_store, fake_media) -> None:
    object_store.put(StorageLayout().upload_key("upload-abc"), b"uploaded video")

    lecture = MediaExtractor(object_store, kv_store).extract("L", file_id="upload-abc")

    assert lecture.title == DEFAULT_TITLE
    assert fake_media["video_info"].name == "source.mp4"


def test_missing_source_is_rejected(object_store, kv_store) -> None:
    with pytest.raises(InvalidRequestError):
        MediaExtractor(object_store, kv_store).extract("L")


def test_missing_local_file_fails_without_record(tmp_path, object_store, kv_store, fake_media) -> None:
    with pytest.raises(MediaExtractionError):
        MediaExtractor(object_store, kv_store).extract("L", video_path=tmp_path / "nope.mp4")

    assert kv_store.get(lecture_kv_key("L")) is None


def test_unknown_upload_fails_without_record(object_store, kv_store, fake_media) -> None:
    with pytest.raises(MediaExtractionError):
        MediaExtractor(object_store, kv_store).extract("L", file_id="upload-missing")

    assert kv_store.get(lecture_kv_key("L")) is None


def test_video_without_frames_fails(tmp_path, monkeypatch, object_store, kv_store, fake_media) -> None:
    monkeypatch.setattr(media_extractor, "extract_frames", lambda source, output_dir, **kwargs: [])
    video = tmp_path / "empty.mp4"
    video.write_bytes(b"fake video")

    with pytest.raises(MediaExtractionError, match="no frames"):
        MediaExtractor(object_store, kv_store).extract("L", video_path=video)

    assert kv_store.get(lecture_kv_key("L")) is None


def test_decoder_failure_propagates(tmp_path, monkeypatch, object_store, kv_store, fake_media) -> None:
    def _broken(source, output_path, **kwargs):
        raise MediaExtractionError("FFmpeg failed: invalid data")

    monkeypatch.setattr(media_extractor, "extract_audio", _broken)
    video = tmp_path / "broken.mp4"
    video.write_bytes(b"garbage")

    with pytest.raises(MediaExtractionError, match="invalid data"):
        MediaExtractor(object_store, kv_store).extract("L", video_path=video)

    assert kv_store.get(lecture_kv_key("L")) is None
