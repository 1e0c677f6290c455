# Usage:
# from lecture_qa.audio.stt_router import STTRouter
#
# router = STTRouter()  # STT_PROVIDER env, else config stt.provider (default auto)
# router.transcribe("audio.wav")
#
# Providers: openai | whisper | placeholder
# auto -> openai when OPENAI_API_KEY is set, otherwise placeholder
"""STT router that dispatches to provider-specific clients."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from lecture_qa.audio.openai_stt import OpenAIWhisperClient
from lecture_qa.audio.placeholder_stt import PlaceholderSTTClient
from lecture_qa.audio.settings import get_audio_settings, get_section
from lecture_qa.audio.whisper_stt import WhisperSTTClient
from lecture_qa.common.schemas import TranscriptResult

DEFAULT_PROVIDER = "auto"
SUPPORTED_PROVIDERS = ("auto", "openai", "whisper", "placeholder")


class STTRouter:
    """Routes STT calls to the configured provider."""

    def __init__(self, provider: Optional[str] = None) -> None:
        configured = get_section(get_audio_settings(), "stt").get("provider", DEFAULT_PROVIDER)
        self.provider = (provider or os.getenv("STT_PROVIDER") or str(configured)).lower()
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported STT provider: {self.provider}")
        self._client: Any = None

    def resolve_provider(self) -> str:
        if self.provider != "auto":
            return self.provider
        return "openai" if os.getenv("OPENAI_API_KEY") else "placeholder"

    def _get_client(self) -> Any:
        if self._client is None:
            provider_name = self.resolve_provider()
            if provider_name == "openai":
                self._client = OpenAIWhisperClient()
            elif provider_name == "whisper":
                self._client = WhisperSTTClient()
            else:
                self._client = PlaceholderSTTClient()
        return self._client

    def transcribe(self, audio_path: str | Path, **kwargs: Any) -> TranscriptResult:
        return self._get_client().transcribe(audio_path, **kwargs)
