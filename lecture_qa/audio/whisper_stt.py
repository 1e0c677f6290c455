# Usage:
# from lecture_qa.audio.whisper_stt import WhisperSTTClient
#
# client = WhisperSTTClient(model_size="base")
# client.transcribe("audio.wav", language="en")
#
# Note: pip install -e ".[whisper]"  (openai-whisper + torch)
"""Local Whisper STT client (audio input only)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from lecture_qa.audio.settings import get_audio_settings, get_section
from lecture_qa.common.schemas import TranscriptResult, TranscriptSegment, TranscriptWord


def _segment_words(segment: Dict[str, Any]) -> Optional[List[TranscriptWord]]:
    words = []
    for item in segment.get("words") or []:
        word = str(item.get("word", "")).strip()
        if not word:
            continue
        start = max(0.0, float(item.get("start", 0.0)))
        words.append(TranscriptWord(word=word, start=start, end=max(start, float(item.get("end", start)))))
    return words or None


class WhisperSTTClient:
    """Lightweight wrapper around openai-whisper."""

    def __init__(self, model_size: Optional[str] = None, device: Optional[str] = None) -> None:
        try:
            import torch
            import whisper
        except ModuleNotFoundError as exc:
            raise RuntimeError(
                "Whisper dependencies missing. Install with: pip install -U openai-whisper torch"
            ) from exc

        self.defaults = get_section(get_audio_settings(), "stt", "whisper")
        model_size = model_size or str(self.defaults.get("model_size", "base"))
        self.device = device or self.defaults.get("device") or ("cuda" if torch.cuda.is_available() else "cpu")
        self.model = whisper.load_model(model_size, device=self.device)

    def transcribe(
        self,
        audio_path: str | Path,
        *,
        language: Optional[str] = None,
        task: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> TranscriptResult:
        if language is None:
            language = self.defaults.get("language")
        if task is None:
            task = str(self.defaults.get("task", "transcribe"))
        if temperature is None:
            temperature = float(self.defaults.get("temperature", 0.0))

        audio_path = Path(audio_path).expanduser()
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        result = self.model.transcribe(
            str(audio_path),
            language=language,
            task=task,
            temperature=temperature,
            word_timestamps=True,
        )

        segments: List[TranscriptSegment] = []
        for segment in result.get("segments", []):
            if not isinstance(segment, dict):
                continue
            text = str(segment.get("text", "")).strip()
            if not text:
                continue
            start = max(0.0, float(segment.get("start", 0.0)))
            end = max(start, float(segment.get("end", start)))
            segments.append(TranscriptSegment(text=text, start=start, end=end, words=_segment_words(segment)))

        duration = segments[-1].end if segments else None
        return TranscriptResult(
            segments=segments,
            language=result.get("language") or language,
            duration=duration,
            source="whisper",
        )
