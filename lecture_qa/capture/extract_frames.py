"""Sample one frame per second from a video with ffmpeg."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from lecture_qa.capture.settings import CaptureSettings, get_capture_settings
from lecture_qa.common.ffmpeg_utils import run_media_command

FRAME_INDEX_RE = re.compile(r"frame-(\d+)")


def extract_frames(
    video_path: Path,
    output_dir: Path,
    *,
    settings: Optional[CaptureSettings] = None,
    lecture_id: Optional[str] = None,
) -> List[Path]:
    """Write ``frame-000000.jpg, frame-000001.jpg ...`` and return them in order.

    Numbering starts at 0 so the file index equals the elapsed second at 1 fps.
    """
    settings = settings or get_capture_settings()
    output_dir.mkdir(parents=True, exist_ok=True)
    command = [
        "ffmpeg",
        "-y",
        "-i",
        str(video_path),
        "-r",
        str(settings.frame_rate),
        "-start_number",
        "0",
        "-q:v",
        "2",
        str(output_dir / settings.frame_pattern),
    ]
    run_media_command(command, lecture_id=lecture_id)
    return sorted(output_dir.glob("frame-*.jpg"))


def frame_time(name: str, position: int, frame_rate: int = 1) -> float:
    """Seconds for a frame file name; falls back to its listing position."""
    match = FRAME_INDEX_RE.search(name)
    index = int(match.group(1)) if match else position
    return index / float(frame_rate)
