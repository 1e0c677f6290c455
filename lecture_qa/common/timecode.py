"""Elapsed-seconds ↔ human timecode helpers."""

from __future__ import annotations


def to_timecode(seconds: float) -> str:
    """Render seconds as ``MM:SS`` or ``HH:MM:SS`` (hours > 0), zero padded."""
    total = int(max(seconds, 0))
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def parse_timecode(timecode: str) -> int:
    """Parse ``HH:MM:SS``, ``MM:SS`` or bare ``SS`` back into seconds."""
    raw = (timecode or "").strip()
    if not raw:
        raise ValueError("timecode is empty")
    try:
        parts = [int(part) for part in raw.split(":")]
    except ValueError as exc:
        raise ValueError(f"invalid timecode: {timecode!r}") from exc
    if any(part < 0 for part in parts):
        raise ValueError(f"invalid timecode: {timecode!r}")

    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 1:
        return parts[0]
    raise ValueError(f"invalid timecode: {timecode!r}")
