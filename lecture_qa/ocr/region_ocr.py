"""
[Intent]
Fourth ingest stage: recognizes board text for every BoardEvent.

[Flow]
- Crop the original-resolution frame to the event bbox, greyscale it and
  stretch its contrast (min-max normalization), encode as PNG.
- Run the shared OCR engine; per-event work is spread over a bounded thread
  pool. Engines that are not thread-safe are serialized with a lock.
- Events whose text is empty after trimming, or whose OCR failed, produce no
  result. Output order follows event order.
- The engine is closed when the stage ends, on success or failure.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing, nullcontext
from typing import Callable, List, Optional, Sequence

import cv2

from lecture_qa.capture.board_change import decode_image
from lecture_qa.common.schemas import BoardEvent, Lecture, OcrResult
from lecture_qa.db.keys import StorageLayout
from lecture_qa.db.object_store import ObjectStore
from lecture_qa.errors import PipelineCanceled
from lecture_qa.ocr.ocr_engine import OcrEngine
from lecture_qa.pipeline.cancel import raise_if_cancel_requested

logger = logging.getLogger(__name__)


def prepare_region(frame_bytes: bytes, bbox: Sequence[int]) -> bytes:
    """Crop + greyscale + contrast normalization, returned as PNG bytes."""
    image = decode_image(frame_bytes)
    height, width = image.shape[:2]
    x, y, w, h = (int(v) for v in bbox)
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(width, x + w), min(height, y + h)
    if x1 <= x0 or y1 <= y0:
        raise ValueError(f"bbox {list(bbox)} outside frame {width}x{height}")

    gray = cv2.cvtColor(image[y0:y1, x0:x1], cv2.COLOR_BGR2GRAY)
    enhanced = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)
    ok, encoded = cv2.imencode(".png", enhanced)
    if not ok:
        raise ValueError("could not encode board crop")
    return encoded.tobytes()


class RegionOcrExtractor:
    def __init__(
        self,
        object_store: ObjectStore,
        engine_factory: Callable[[], OcrEngine],
        *,
        layout: Optional[StorageLayout] = None,
        workers: int = 4,
    ) -> None:
        self.object_store = object_store
        self.engine_factory = engine_factory
        self.layout = layout or StorageLayout()
        self.workers = max(1, workers)

    def recognize_events(
        self,
        events: Sequence[BoardEvent],
        read_frame: Callable[[str], bytes],
        *,
        lecture_id: Optional[str] = None,
    ) -> List[OcrResult]:
        if not events:
            return []

        with closing(self.engine_factory()) as engine:
            lock = nullcontext() if getattr(engine, "thread_safe", False) else threading.Lock()

            def _run(event: BoardEvent) -> Optional[OcrResult]:
                raise_if_cancel_requested(lecture_id)
                try:
                    image_bytes = prepare_region(read_frame(event.frame_ref), event.bbox)
                    with lock:
                        recognized = engine.recognize(image_bytes)
                except PipelineCanceled:
                    raise
                except Exception as exc:
                    logger.warning("[OCR] failed for event at %.1fs (%s): %s", event.t, event.frame_ref, exc)
                    return None

                text = recognized.text.strip()
                if not text:
                    return None
                return OcrResult(t=event.t, text=text, words=recognized.words, confidence=recognized.confidence)

            max_workers = min(self.workers, len(events))
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ocr") as executor:
                results = list(executor.map(_run, events))

        return [result for result in results if result is not None]

    def extract(self, lecture: Lecture, events: Sequence[BoardEvent]) -> List[OcrResult]:
        logger.info("[OCR] %s: running OCR on %d board events", lecture.id, len(events))
        results = self.recognize_events(events, self.object_store.get, lecture_id=lecture.id)

        payload = json.dumps([result.to_wire() for result in results], ensure_ascii=False, indent=2)
        self.object_store.put(self.layout.board_ocr_key(lecture.id), payload.encode("utf-8"))
        logger.info("[OCR] %s: %d text extractions", lecture.id, len(results))
        return results


def load_ocr_results(object_store: ObjectStore, layout: StorageLayout, lecture_id: str) -> List[OcrResult]:
    data = json.loads(object_store.get(layout.board_ocr_key(lecture_id)).decode("utf-8"))
    return [OcrResult.model_validate(item) for item in data]
