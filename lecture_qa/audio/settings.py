from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

SETTINGS_PATH = Path(__file__).resolve().parents[2] / "config" / "audio" / "settings.yaml"


def load_audio_settings(*, settings_path: Optional[Path] = None) -> Dict[str, Any]:
    path = settings_path or SETTINGS_PATH
    if not path.exists():
        raise FileNotFoundError(f"audio settings file not found: {path}")
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("audio settings must be a mapping.")
    return payload


@lru_cache(maxsize=1)
def get_audio_settings() -> Dict[str, Any]:
    return load_audio_settings()


def get_section(settings: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Walk nested mapping keys, failing loudly when a level is not a mapping."""
    current: Any = settings
    path = []
    for key in keys:
        path.append(key)
        current = current.get(key, {}) if isinstance(current, dict) else None
        if current is None:
            current = {}
        if not isinstance(current, dict):
            raise ValueError(f"audio setting {'.'.join(path)} must be a mapping.")
    return current
