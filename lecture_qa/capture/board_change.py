"""
[Intent]
Third ingest stage: walks the lecture frames in time order and emits a
BoardEvent whenever the board content differs enough from the last recorded
board state.

[Algorithm]
1. Locate the board region of each frame (BoardRegionDetector).
2. Crop, greyscale and stretch it to the comparison size (800x600).
3. The first successfully decoded frame is the baseline (score 1.0).
4. Later frames are compared against the reference buffer with SSIM; below
   the threshold an event with score 1 - similarity is emitted and the
   reference moves to the current frame. Otherwise the reference is kept.
5. Frames that fail to decode or crop are logged and skipped.

The loop is an ordered fold: each decision depends on the previous reference,
so frames are never processed in parallel.
"""

from __future__ import annotations

import json
import logging
from typing import Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from lecture_qa.capture.extract_frames import frame_time
from lecture_qa.capture.settings import CaptureSettings, get_capture_settings
from lecture_qa.capture.tools.board_region import BoardRegionDetector
from lecture_qa.capture.tools.ssim import comparison_buffer, compute_ssim
from lecture_qa.common.schemas import BoardEvent, Lecture
from lecture_qa.db.keys import StorageLayout
from lecture_qa.db.object_store import ObjectStore
from lecture_qa.errors import StorageError
from lecture_qa.pipeline.cancel import raise_if_cancel_requested

logger = logging.getLogger(__name__)

FrameEntry = Tuple[float, str]


def decode_image(data: bytes) -> np.ndarray:
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("could not decode image")
    return image


class BoardChangeDetector:
    """
    [Class Purpose]
    Holds the detection parameters and runs the ordered frame fold.
    """

    def __init__(
        self,
        object_store: Optional[ObjectStore] = None,
        *,
        layout: Optional[StorageLayout] = None,
        settings: Optional[CaptureSettings] = None,
    ) -> None:
        self.object_store = object_store
        self.layout = layout or StorageLayout()
        self.settings = settings or get_capture_settings()
        self.region_detector = BoardRegionDetector(
            bright_threshold=self.settings.bright_threshold,
            dark_threshold=self.settings.dark_threshold,
            padding=self.settings.region_padding,
            fallback_margin_ratio=self.settings.fallback_margin_ratio,
        )

    def list_frames(self, frames_ref: str) -> List[FrameEntry]:
        entries = self.object_store.list_prefix(frames_ref)
        frames = [
            (frame_time(entry.name, position, self.settings.frame_rate), entry.key)
            for position, entry in enumerate(entries)
        ]
        # stable: equal times keep listing order
        return sorted(frames, key=lambda item: item[0])

    def scan(
        self,
        frames: Sequence[FrameEntry],
        read_frame: Callable[[str], bytes],
        *,
        lecture_id: Optional[str] = None,
    ) -> List[BoardEvent]:
        """
        [Purpose] Ordered fold over ``(t, frame_ref)`` pairs.

        [Args]
        - frames: frames already sorted by time
        - read_frame: returns the encoded image bytes for a frame_ref
        - lecture_id: polled for cancellation between frames
        """
        size = (self.settings.compare_width, self.settings.compare_height)
        reference: Optional[np.ndarray] = None
        events: List[BoardEvent] = []

        for t, frame_ref in frames:
            raise_if_cancel_requested(lecture_id)
            try:
                image = decode_image(read_frame(frame_ref))
                bbox = self.region_detector.detect(image)
                buffer = comparison_buffer(image, bbox, size)
            except (StorageError, ValueError, cv2.error) as exc:
                logger.warning("[Board] skipping frame %s (t=%.1f): %s", frame_ref, t, exc)
                continue

            if reference is None:
                reference = buffer
                events.append(BoardEvent(t=t, frame_ref=frame_ref, bbox=list(bbox), score=1.0))
                continue

            similarity = compute_ssim(
                reference, buffer, c1=self.settings.ssim_c1, c2=self.settings.ssim_c2
            )
            if similarity < self.settings.ssim_threshold:
                score = min(1.0, max(0.0, 1.0 - similarity))
                events.append(BoardEvent(t=t, frame_ref=frame_ref, bbox=list(bbox), score=score))
                reference = buffer
                logger.info("[Board] change at %.0fs (similarity %.3f)", t, similarity)

        return events

    def detect(self, lecture: Lecture) -> List[BoardEvent]:
        """[Purpose] Run the fold over a lecture's stored frames and persist the events."""
        frames = self.list_frames(lecture.frames_ref)
        logger.info("[Board] %s: analyzing %d frames", lecture.id, len(frames))
        events = self.scan(frames, self.object_store.get, lecture_id=lecture.id)

        payload = json.dumps([event.to_wire() for event in events], ensure_ascii=False, indent=2)
        self.object_store.put(self.layout.board_events_key(lecture.id), payload.encode("utf-8"))
        logger.info("[Board] %s: %d board events", lecture.id, len(events))
        return events


def load_board_events(object_store: ObjectStore, layout: StorageLayout, lecture_id: str) -> List[BoardEvent]:
    data = json.loads(object_store.get(layout.board_events_key(lecture_id)).decode("utf-8"))
    return [BoardEvent.model_validate(item) for item in data]
