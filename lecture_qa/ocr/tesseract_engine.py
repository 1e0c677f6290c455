"""Tesseract OCR through pytesseract.

Configured for board text: restricted character whitelist, page segmentation
mode 6 (single uniform block of text) and preserved inter-word spacing.
Requires the ``tesseract`` binary on PATH.
"""

from __future__ import annotations

import logging
import shlex
from typing import Dict, List, Tuple

import cv2
import numpy as np
import pytesseract
from pytesseract import Output

from lecture_qa.common.schemas import OcrText
from lecture_qa.config import OcrConfig

logger = logging.getLogger(__name__)


def build_tesseract_config(config: OcrConfig) -> str:
    # newline is implicit in tesseract output and cannot be whitelisted
    whitelist = config.whitelist.replace("\n", "")
    parts = [f"--psm {config.psm}", "-c " + shlex.quote(f"tessedit_char_whitelist={whitelist}")]
    if config.preserve_interword_spaces:
        parts.append("-c preserve_interword_spaces=1")
    return " ".join(parts)


def _lines_from_data(data: Dict[str, List]) -> Tuple[str, List[str], List[float]]:
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    words: List[str] = []
    confidences: List[float] = []
    for i, raw in enumerate(data.get("text", [])):
        word = str(raw).strip()
        if not word:
            continue
        words.append(word)
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0
        if conf >= 0:
            confidences.append(conf)
        line_key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        lines.setdefault(line_key, []).append(word)
    text = "\n".join(" ".join(line_words) for _, line_words in sorted(lines.items()))
    return text, words, confidences


class TesseractOcrEngine:
    """One configured engine reused for every event of a run."""

    # each call spawns its own tesseract process
    thread_safe = True

    def __init__(self, config: OcrConfig) -> None:
        self.language = config.language
        self.tesseract_config = build_tesseract_config(config)
        self._closed = False
        logger.info("Tesseract %s ready (lang=%s)", pytesseract.get_tesseract_version(), self.language)

    def recognize(self, image_bytes: bytes) -> OcrText:
        if self._closed:
            raise RuntimeError("OCR engine already closed")
        image = cv2.imdecode(np.frombuffer(image_bytes, dtype=np.uint8), cv2.IMREAD_GRAYSCALE)
        if image is None:
            raise ValueError("could not decode image for OCR")

        data = pytesseract.image_to_data(
            image,
            lang=self.language,
            config=self.tesseract_config,
            output_type=Output.DICT,
        )
        text, words, confidences = _lines_from_data(data)
        confidence = sum(confidences) / len(confidences) if confidences else None
        return OcrText(text=text, words=words, confidence=confidence)

    def close(self) -> None:
        self._closed = True
