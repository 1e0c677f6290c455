"""ffmpeg/ffprobe process helpers.

Processes are polled while they run so a canceled lecture kills its decoder
instead of leaking it.
"""

from __future__ import annotations

import json
import logging
import subprocess
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from lecture_qa.errors import MediaExtractionError, PipelineCanceled
from lecture_qa.pipeline.cancel import is_cancel_requested

logger = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 0.2


def run_media_command(
    command: List[str],
    *,
    lecture_id: Optional[str] = None,
    timeout: Optional[float] = None,
) -> str:
    """Run an ffmpeg/ffprobe command and return its stdout.

    Raises:
        MediaExtractionError: binary missing, non-zero exit or timeout.
        PipelineCanceled: cancellation requested for ``lecture_id`` mid-run.
    """
    tool = Path(command[0]).name
    try:
        proc = subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except FileNotFoundError as exc:
        name = "FFprobe" if tool.startswith("ffprobe") else "FFmpeg"
        raise MediaExtractionError(f"{name} executable not found. Please install FFmpeg.") from exc

    started = time.monotonic()
    try:
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=POLL_INTERVAL_SEC)
                break
            except subprocess.TimeoutExpired:
                if is_cancel_requested(lecture_id):
                    proc.kill()
                    proc.communicate()
                    raise PipelineCanceled(f"lecture {lecture_id} canceled during {tool}")
                if timeout is not None and time.monotonic() - started > timeout:
                    proc.kill()
                    proc.communicate()
                    raise MediaExtractionError(f"{tool} timed out after {timeout:.0f}s")
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.communicate()

    if proc.returncode != 0:
        message = stderr.strip() if stderr else "unknown error"
        label = "FFprobe" if tool.startswith("ffprobe") else "FFmpeg"
        raise MediaExtractionError(f"{label} failed: {message}")
    return stdout


def read_video_info(
    video_path: Path,
    *,
    lecture_id: Optional[str] = None,
    default_width: int = 1920,
    default_height: int = 1080,
) -> Dict[str, Any]:
    """Return ``{duration, width, height}``; resolution falls back to the defaults."""
    info: Dict[str, Any] = {"duration": 0.0, "width": default_width, "height": default_height}
    command = [
        "ffprobe",
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height",
        "-show_entries",
        "format=duration",
        "-of",
        "json",
        str(video_path),
    ]
    try:
        stdout = run_media_command(command, lecture_id=lecture_id, timeout=60)
        payload = json.loads(stdout or "{}")
    except (MediaExtractionError, json.JSONDecodeError) as exc:
        logger.warning("ffprobe failed for %s, using defaults: %s", video_path, exc)
        return info

    fmt = payload.get("format") or {}
    try:
        info["duration"] = float(fmt.get("duration") or 0.0)
    except (TypeError, ValueError):
        info["duration"] = 0.0

    streams = payload.get("streams") or []
    if streams and isinstance(streams[0], dict):
        width = streams[0].get("width")
        height = streams[0].get("height")
        if isinstance(width, int) and width > 0:
            info["width"] = width
        if isinstance(height, int) and height > 0:
            info["height"] = height
    return info
