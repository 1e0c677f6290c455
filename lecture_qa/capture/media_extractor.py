"""
[Intent]
First ingest stage: turns a source video (remote URL, uploaded file id or a
local path) into durable artifacts and a Lecture record.

[Flow]
1. Materialize the source video in a scratch directory.
2. Read duration and resolution with ffprobe (defaults 1920x1080 when that fails).
3. Extract the mono 16 kHz WAV track and one frame per second.
4. Persist audio and frames to the object store, replacing the frames of
   any earlier run under the same lecture id.
5. Only then write the Lecture record to the key-value store.

The scratch directory is removed on success and on failure. Any failure is
fatal for the run and leaves no Lecture record behind.
"""

from __future__ import annotations

import logging
import tempfile
import time
from pathlib import Path
from typing import Optional

from lecture_qa.audio.extract_audio import extract_audio
from lecture_qa.capture.extract_frames import extract_frames
from lecture_qa.capture.settings import CaptureSettings, get_capture_settings
from lecture_qa.common.ffmpeg_utils import read_video_info
from lecture_qa.common.schemas import Lecture
from lecture_qa.db.keys import StorageLayout, lecture_kv_key
from lecture_qa.db.kv_store import KeyValueStore
from lecture_qa.db.object_store import ObjectStore
from lecture_qa.errors import InvalidRequestError, MediaExtractionError, StorageError
from lecture_qa.pipeline.cancel import raise_if_cancel_requested

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Lecture"


class MediaExtractor:
    """
    [Class Purpose]
    Decodes a lecture video into audio + frames and registers the Lecture.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        kv_store: KeyValueStore,
        *,
        layout: Optional[StorageLayout] = None,
        settings: Optional[CaptureSettings] = None,
    ) -> None:
        self.object_store = object_store
        self.kv_store = kv_store
        self.layout = layout or StorageLayout()
        self.settings = settings or get_capture_settings()

    def extract(
        self,
        lecture_id: str,
        *,
        video_url: Optional[str] = None,
        file_id: Optional[str] = None,
        video_path: Optional[Path] = None,
        title: Optional[str] = None,
    ) -> Lecture:
        """
        [Purpose] Run the whole media stage for one lecture.

        [Raises]
        - InvalidRequestError: no source given.
        - MediaExtractionError: download, inspect, decode or persist failure.
        - PipelineCanceled: cancellation requested mid-run.
        """
        if not (video_url or file_id or video_path):
            raise InvalidRequestError("videoUrl or fileId is required")

        with tempfile.TemporaryDirectory(prefix="lecture_qa_media_") as scratch:
            scratch_dir = Path(scratch)
            try:
                source = self._resolve_source(
                    scratch_dir, video_url=video_url, file_id=file_id, video_path=video_path
                )
                raise_if_cancel_requested(lecture_id)

                info = read_video_info(
                    source,
                    lecture_id=lecture_id,
                    default_width=self.settings.default_width,
                    default_height=self.settings.default_height,
                )
                logger.info(
                    "[Media] %s video info: duration=%.1fs size=%sx%s",
                    lecture_id,
                    info["duration"],
                    info["width"],
                    info["height"],
                )

                audio_path = extract_audio(source, scratch_dir / "audio.wav", lecture_id=lecture_id)
                raise_if_cancel_requested(lecture_id)
                frames = extract_frames(
                    source, scratch_dir / "frames", settings=self.settings, lecture_id=lecture_id
                )
                if not frames:
                    raise MediaExtractionError(f"no frames extracted from {source.name}")
                raise_if_cancel_requested(lecture_id)

                audio_ref = self.object_store.put_file(self.layout.audio_key(lecture_id), audio_path)
                frames_ref = self.layout.frames_prefix(lecture_id)
                # a re-run must not inherit frames past the end of the new video
                removed = self.object_store.delete_prefix(frames_ref)
                if removed:
                    logger.info("[Media] %s removed %d frames of a previous run", lecture_id, removed)
                self.object_store.put_many(frames_ref, frames)
            except (StorageError, OSError) as exc:
                raise MediaExtractionError(f"media extraction failed: {exc}") from exc

        lecture = Lecture(
            id=lecture_id,
            title=(title or "").strip() or DEFAULT_TITLE,
            audio_ref=audio_ref,
            frames_ref=frames_ref,
            duration=info["duration"],
            width=info["width"],
            height=info["height"],
            created_at=int(time.time() * 1000),
        )
        self.kv_store.set(lecture_kv_key(lecture_id), lecture.to_wire())
        logger.info("[Media] %s stored %d frames + audio", lecture_id, len(frames))
        return lecture

    def _resolve_source(
        self,
        scratch_dir: Path,
        *,
        video_url: Optional[str],
        file_id: Optional[str],
        video_path: Optional[Path],
    ) -> Path:
        if video_path:
            path = Path(video_path).expanduser()
            if not path.is_file():
                raise MediaExtractionError(f"video file not found: {path}")
            return path
        if video_url:
            logger.info("[Media] downloading %s", video_url)
            return self.object_store.download_to_temp(
                url=video_url, dest_dir=scratch_dir, filename="source.mp4"
            )
        return self.object_store.download_to_temp(
            key=self.layout.upload_key(file_id), dest_dir=scratch_dir, filename="source.mp4"
        )
