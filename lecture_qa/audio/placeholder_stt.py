# Usage:
# from lecture_qa.audio.placeholder_stt import PlaceholderSTTClient
#
# PlaceholderSTTClient().transcribe("audio.wav")
#
# Offline demo transcript used when no speech-to-text credential is configured.
# The result is tagged source="placeholder" / placeholder=True.
"""Fixed demo transcript for degraded (offline) runs."""

from __future__ import annotations

from pathlib import Path

from lecture_qa.common.schemas import TranscriptResult

PLACEHOLDER_SOURCE = "placeholder"

_DEMO_TRANSCRIPT = {
    "segments": [
        {
            "text": "Welcome to today's lecture on advanced algorithms.",
            "start": 0.0,
            "end": 3.5,
            "words": [
                {"word": "Welcome", "start": 0.0, "end": 0.8},
                {"word": "to", "start": 0.8, "end": 1.0},
                {"word": "today's", "start": 1.0, "end": 1.5},
                {"word": "lecture", "start": 1.5, "end": 2.0},
                {"word": "on", "start": 2.0, "end": 2.2},
                {"word": "advanced", "start": 2.2, "end": 2.8},
                {"word": "algorithms", "start": 2.8, "end": 3.5},
            ],
        },
        {
            "text": "Today we'll be covering dynamic programming and graph algorithms.",
            "start": 4.0,
            "end": 8.5,
        },
    ],
    "language": "en",
    "duration": 8.5,
}


class PlaceholderSTTClient:
    """Returns the same two-segment transcript for any input."""

    def transcribe(self, audio_path: str | Path) -> TranscriptResult:
        result = TranscriptResult.model_validate(_DEMO_TRANSCRIPT)
        return result.model_copy(update={"source": PLACEHOLDER_SOURCE, "placeholder": True})
