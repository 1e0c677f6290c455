"""Second ingest stage: audio artifact -> time-coded transcript.

Downloads the lecture's WAV track, sends it through the STT router and
persists ``transcript.json`` under the lecture prefix. Re-running overwrites
the same key.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, List, Optional

from openai import APIConnectionError, APITimeoutError, RateLimitError

from lecture_qa.audio.stt_router import STTRouter
from lecture_qa.common.retry import call_with_retry
from lecture_qa.common.schemas import Lecture, TranscriptResult, TranscriptSegment
from lecture_qa.config import RetryConfig
from lecture_qa.db.keys import StorageLayout
from lecture_qa.db.object_store import ObjectStore
from lecture_qa.errors import PipelineCanceled, StorageError, TranscriptionError
from lecture_qa.pipeline.cancel import raise_if_cancel_requested, run_cancellable

logger = logging.getLogger(__name__)

# Transient transport errors worth another attempt; API/auth errors are not.
RETRYABLE_STT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError)


def normalize_segments(segments: List[TranscriptSegment]) -> List[TranscriptSegment]:
    """Drop empty segments and order by start. ``end >= start`` is enforced by TranscriptSegment."""
    cleaned = []
    for segment in segments:
        text = segment.text.strip()
        if not text:
            continue
        cleaned.append(segment.model_copy(update={"text": text}))
    return sorted(cleaned, key=lambda seg: seg.start)


class TranscriptBuilder:
    def __init__(
        self,
        object_store: ObjectStore,
        *,
        stt: Optional[Any] = None,
        layout: Optional[StorageLayout] = None,
        retry_cfg: Optional[RetryConfig] = None,
    ) -> None:
        self.object_store = object_store
        self.stt = stt or STTRouter()
        self.layout = layout or StorageLayout()
        self.retry_cfg = retry_cfg or RetryConfig()

    def build(self, lecture: Lecture) -> TranscriptResult:
        scratch = Path(tempfile.mkdtemp(prefix="lecture_qa_stt_"))
        try:
            audio_path = self.object_store.download_to_temp(key=lecture.audio_ref, dest_dir=scratch)
            raise_if_cancel_requested(lecture.id)
            try:
                # the provider call can run for minutes; cancel is honoured while it is in flight
                raw = run_cancellable(
                    call_with_retry,
                    self.stt.transcribe,
                    audio_path,
                    lecture_id=lecture.id,
                    retry_cfg=self.retry_cfg,
                    retry_on=RETRYABLE_STT_ERRORS,
                )
            except PipelineCanceled:
                raise
            except Exception as exc:
                # provider SDK errors (openai.APIError, whisper runtime) surface as one type
                raise TranscriptionError(f"speech-to-text failed for lecture {lecture.id}: {exc}") from exc
        except StorageError as exc:
            raise TranscriptionError(f"audio artifact unavailable for lecture {lecture.id}: {exc}") from exc
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        result = raw.model_copy(update={"segments": normalize_segments(raw.segments)})
        if result.placeholder:
            logger.warning(
                "[Transcript] %s: no speech-to-text provider configured, using the PLACEHOLDER transcript",
                lecture.id,
            )

        payload = json.dumps(result.to_wire(), ensure_ascii=False, indent=2).encode("utf-8")
        self.object_store.put(self.layout.transcript_key(lecture.id), payload)
        logger.info("[Transcript] %s: %d segments (source=%s)", lecture.id, len(result.segments), result.source)
        return result


def load_transcript(object_store: ObjectStore, layout: StorageLayout, lecture_id: str) -> TranscriptResult:
    data = json.loads(object_store.get(layout.transcript_key(lecture_id)).decode("utf-8"))
    return TranscriptResult.model_validate(data)
