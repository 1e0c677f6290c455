"""
[Intent]
Loads the frame-extraction and board-change-detection parameters (frame rate,
brightness thresholds, SSIM threshold ...) from YAML, validates them and
exposes them as an immutable settings object.

[Usage]
- capture/media_extractor.py: frame rate, default resolution
- capture/board_change.py, capture/tools/*: thresholds and comparison size

[Usage Method]
- get_capture_settings() returns the cached settings object.
- load_capture_settings(settings_path=...) loads a specific YAML file.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# project root (lecture_qa/capture/settings.py -> 2 levels up)
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_SETTINGS_PATH = PROJECT_ROOT / "config" / "capture" / "settings.yaml"


@dataclass(frozen=True)
class CaptureSettings:
    """
    [Class Purpose]
    Immutable parameters controlling frame extraction and board diffing.
    """
    frame_rate: int               # frames per second (1 -> t == frame index)
    frame_pattern: str            # ffmpeg output pattern
    default_width: int            # fallback when probing fails
    default_height: int

    # --- board region ---
    bright_threshold: int
    dark_threshold: int
    region_padding: int
    fallback_margin_ratio: float

    # --- similarity ---
    compare_width: int
    compare_height: int
    ssim_threshold: float
    ssim_c1: float
    ssim_c2: float


def _coerce_str(settings: Dict[str, Any], key: str, default: str) -> str:
    value = settings.get(key, default)
    if not isinstance(value, str):
        return str(value)
    return value


def _coerce_float(settings: Dict[str, Any], key: str, default: float) -> float:
    value = settings.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid capture setting {key}: {value}") from exc


def _coerce_int(settings: Dict[str, Any], key: str, default: int) -> int:
    value = settings.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid capture setting {key}: {value}") from exc


def _validate(settings: CaptureSettings) -> CaptureSettings:
    if settings.frame_rate < 1:
        raise ValueError("frame_rate must be >= 1")
    if not 0 <= settings.dark_threshold < settings.bright_threshold <= 255:
        raise ValueError("thresholds must satisfy 0 <= dark_threshold < bright_threshold <= 255")
    if settings.region_padding < 0:
        raise ValueError("region_padding must be >= 0")
    if not 0.0 <= settings.fallback_margin_ratio < 0.5:
        raise ValueError("fallback_margin_ratio must be in [0, 0.5)")
    if settings.compare_width < 1 or settings.compare_height < 1:
        raise ValueError("compare size must be positive")
    if not 0.0 < settings.ssim_threshold <= 1.0:
        raise ValueError("ssim_threshold must be in (0, 1]")
    return settings


def load_capture_settings(*, settings_path: Optional[Path] = None) -> CaptureSettings:
    """
    [Purpose] Reads the YAML file and builds a validated CaptureSettings.

    [Args]
    - settings_path (Optional[Path]): YAML path; defaults to config/capture/settings.yaml.
    """
    path = settings_path or DEFAULT_SETTINGS_PATH
    if not path.exists():
        raise FileNotFoundError(f"capture settings file not found: {path}")

    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"failed to parse capture settings YAML: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValueError("capture settings must be a mapping.")

    return _validate(
        CaptureSettings(
            frame_rate=_coerce_int(payload, "frame_rate", 1),
            frame_pattern=_coerce_str(payload, "frame_pattern", "frame-%06d.jpg"),
            default_width=_coerce_int(payload, "default_width", 1920),
            default_height=_coerce_int(payload, "default_height", 1080),
            bright_threshold=_coerce_int(payload, "bright_threshold", 200),
            dark_threshold=_coerce_int(payload, "dark_threshold", 50),
            region_padding=_coerce_int(payload, "region_padding", 20),
            fallback_margin_ratio=_coerce_float(payload, "fallback_margin_ratio", 0.1),
            compare_width=_coerce_int(payload, "compare_width", 800),
            compare_height=_coerce_int(payload, "compare_height", 600),
            ssim_threshold=_coerce_float(payload, "ssim_threshold", 0.85),
            ssim_c1=_coerce_float(payload, "ssim_c1", 0.01 ** 2),
            ssim_c2=_coerce_float(payload, "ssim_c2", 0.03 ** 2),
        )
    )


@lru_cache(maxsize=1)
def get_capture_settings() -> CaptureSettings:
    """[Purpose] Process-wide cached capture settings (loaded on first call)."""
    return load_capture_settings()
