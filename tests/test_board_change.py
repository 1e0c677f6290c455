from __future__ import annotations

import json

import cv2
import numpy as np
import pytest

from lecture_qa.capture.board_change import BoardChangeDetector, decode_image, load_board_events
from lecture_qa.capture.settings import get_capture_settings
from lecture_qa.capture.tools.ssim import comparison_buffer, compute_ssim
from lecture_qa.common.schemas import Lecture
from lecture_qa.db.keys import StorageLayout
from lecture_qa.errors import PipelineCanceled
from lecture_qa.pipeline import cancel
from tests.synthetic import board_frame, encode_jpg

FIRST = encode_jpg(board_frame([(20, 20, 60, 60)]))
SECOND = encode_jpg(board_frame([(20, 20, 60, 60), (180, 100, 100, 100)]))


def _frames(images):
    """(t, ref) entries plus a reader over an in-memory mapping."""
    store = {f"frame-{i:06d}.jpg": data for i, data in enumerate(images)}
    entries = [(float(i), name) for i, name in enumerate(store)]
    return entries, store.__getitem__


def test_single_change_emits_baseline_and_one_event() -> None:
    entries, read = _frames([FIRST] * 5 + [SECOND] * 5)

    events = BoardChangeDetector(settings=get_capture_settings()).scan(entries, read)

    assert [event.t for event in events] == [0.0, 5.0]
    assert events[0].score == 1.0
    assert 0.15 < events[1].score <= 1.0
    assert events[1].frame_ref == "frame-000005.jpg"


def test_static_board_emits_only_the_baseline() -> None:
    entries, read = _frames([FIRST] * 6)

    events = BoardChangeDetector().scan(entries, read)

    assert len(events) == 1
    assert events[0].t == 0.0


def test_undecodable_frames_are_skipped() -> None:
    entries, read = _frames([b"not an image", FIRST, FIRST, SECOND])

    events = BoardChangeDetector().scan(entries, read)

    # the baseline moves to the first frame that decodes
    assert [event.t for event in events] == [1.0, 3.0]


def test_change_back_is_detected_against_moved_reference() -> None:
    entries, read = _frames([FIRST, FIRST, SECOND, SECOND, FIRST])

    events = BoardChangeDetector().scan(entries, read)

    assert [event.t for event in events] == [0.0, 2.0, 4.0]


def test_no_frames_yields_no_events() -> None:
    assert BoardChangeDetector().scan([], lambda ref: b"") == []


def test_scan_stops_when_canceled() -> None:
    entries, read = _frames([FIRST] * 3)
    cancel.request_cancel("lec-cancel")
    try:
        with pytest.raises(PipelineCanceled):
            BoardChangeDetector().scan(entries, read, lecture_id="lec-cancel")
    finally:
        cancel.clear_cancel("lec-cancel")


def test_detect_lists_stored_frames_and_persists_events(object_store) -> None:
    layout = StorageLayout()
    prefix = layout.frames_prefix("lec-1")
    # stored out of order on purpose; listing is sorted by time
    for i in (2, 0, 3, 1):
        object_store.put(f"{prefix}frame-{i:06d}.jpg", SECOND if i >= 2 else FIRST)
    lecture = Lecture(
        id="lec-1",
        title="Graphs",
        audio_ref=layout.audio_key("lec-1"),
        frames_ref=prefix,
        duration=4.0,
        width=320,
        height=240,
        created_at=0,
    )

    events = BoardChangeDetector(object_store, layout=layout).detect(lecture)

    assert [event.t for event in events] == [0.0, 2.0]
    stored = json.loads(object_store.get(layout.board_events_key("lec-1")))
    assert stored[1]["frameRef"] == f"{prefix}frame-000002.jpg"
    assert load_board_events(object_store, layout, "lec-1") == events


def _stripe_png(rows: int) -> bytes:
    """White board with a full-width black band of ``rows`` rows starting at row 96."""
    frame = np.full((240, 320, 3), 255, dtype=np.uint8)
    frame[96 : 96 + rows] = 0
    ok, buf = cv2.imencode(".png", frame)
    assert ok
    return buf.tobytes()


def test_slow_drift_is_measured_from_last_recorded_state() -> None:
    settings = get_capture_settings()
    detector = BoardChangeDetector(settings=settings)
    # the band grows by 8 rows per second
    images = [_stripe_png(48 + 8 * k) for k in range(4)]
    buffers = []
    for data in images:
        image = decode_image(data)
        buffers.append(comparison_buffer(image, detector.region_detector.detect(image)))

    # every step on its own stays above the threshold
    for previous, current in zip(buffers, buffers[1:]):
        assert compute_ssim(previous, current) >= settings.ssim_threshold
    # but the accumulated drift crosses it
    assert compute_ssim(buffers[0], buffers[-1]) < settings.ssim_threshold

    entries, read = _frames(images)
    events = detector.scan(entries, read)

    assert len(events) == 2
    assert events[1].t >= 2.0
