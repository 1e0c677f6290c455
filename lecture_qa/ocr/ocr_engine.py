"""OCR engine interface, the offline null engine and the config-driven factory."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from lecture_qa.common.schemas import OcrText
from lecture_qa.config import OcrConfig, RetryConfig


@runtime_checkable
class OcrEngine(Protocol):
    """recognize(image_bytes) -> OcrText; close() releases the engine.

    ``thread_safe`` tells callers whether ``recognize`` may run concurrently.
    """

    thread_safe: bool

    def recognize(self, image_bytes: bytes) -> OcrText:
        ...

    def close(self) -> None:
        ...


class NullOcrEngine:
    """Offline engine: never recognizes anything."""

    thread_safe = True

    def recognize(self, image_bytes: bytes) -> OcrText:
        return OcrText()

    def close(self) -> None:
        return None


def filter_to_whitelist(text: str, whitelist: str) -> str:
    allowed = set(whitelist)
    return "".join(ch for ch in text if ch in allowed)


def create_ocr_engine(config: OcrConfig, retry_cfg: Optional[RetryConfig] = None) -> OcrEngine:
    if config.engine == "none":
        return NullOcrEngine()
    if config.engine == "openrouter":
        from lecture_qa.ocr.openrouter_engine import OpenRouterOcrEngine

        return OpenRouterOcrEngine(config, retry_cfg=retry_cfg)
    from lecture_qa.ocr.tesseract_engine import TesseractOcrEngine

    return TesseractOcrEngine(config)
