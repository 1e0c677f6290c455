# Usage:
# from lecture_qa.audio.openai_stt import OpenAIWhisperClient
#
# client = OpenAIWhisperClient()          # reads OPENAI_API_KEY
# client.transcribe("audio.wav")
#
# Output: TranscriptResult {segments: [{text, start, end, words?}], language, duration}
# Options (config/audio/settings.yaml stt.openai): model, response_format,
#   timestamp_granularities, timeout
"""OpenAI audio transcription client (segment + word timestamps)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from openai import OpenAI

from lecture_qa.audio.settings import get_audio_settings, get_section
from lecture_qa.common.schemas import TranscriptResult, TranscriptSegment, TranscriptWord


def _as_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return dict(getattr(value, "__dict__", {}))


def _attach_words(segments: List[Dict[str, Any]], words: List[Dict[str, Any]]) -> None:
    """Distribute top-level word timestamps into the segment containing their start."""
    if not words:
        return
    for segment in segments:
        start = float(segment.get("start", 0.0))
        end = float(segment.get("end", start))
        inside = [w for w in words if start <= float(w.get("start", -1.0)) <= end]
        if inside:
            segment["words"] = inside


def parse_verbose_json(payload: Dict[str, Any]) -> TranscriptResult:
    segments_raw = [_as_dict(s) for s in payload.get("segments") or []]
    words_raw = [_as_dict(w) for w in payload.get("words") or []]
    _attach_words(segments_raw, words_raw)

    segments: List[TranscriptSegment] = []
    for segment in segments_raw:
        text = str(segment.get("text", "")).strip()
        if not text:
            continue
        start = max(0.0, float(segment.get("start", 0.0)))
        end = max(start, float(segment.get("end", start)))
        words = None
        if segment.get("words"):
            words = [
                TranscriptWord(
                    word=str(w.get("word", "")).strip(),
                    start=max(0.0, float(w.get("start", 0.0))),
                    end=max(0.0, float(w.get("end", 0.0))),
                )
                for w in segment["words"]
            ]
        segments.append(TranscriptSegment(text=text, start=start, end=end, words=words))

    duration = payload.get("duration")
    return TranscriptResult(
        segments=segments,
        language=payload.get("language"),
        duration=float(duration) if duration is not None else None,
        source="openai",
    )


class OpenAIWhisperClient:
    """Thin wrapper around ``client.audio.transcriptions.create``."""

    def __init__(self, api_key: Optional[str] = None, *, model: Optional[str] = None) -> None:
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not set in the environment.")

        defaults = get_section(get_audio_settings(), "stt", "openai")
        self.model = model or str(defaults.get("model", "whisper-1"))
        self.response_format = str(defaults.get("response_format", "verbose_json"))
        self.granularities = list(defaults.get("timestamp_granularities") or ["segment", "word"])
        self.client = OpenAI(api_key=api_key, timeout=float(defaults.get("timeout", 600)))

    def transcribe(self, audio_path: str | Path) -> TranscriptResult:
        audio_path = Path(audio_path).expanduser()
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        with audio_path.open("rb") as handle:
            response = self.client.audio.transcriptions.create(
                model=self.model,
                file=handle,
                response_format=self.response_format,
                timestamp_granularities=self.granularities,
            )
        return parse_verbose_json(_as_dict(response))
