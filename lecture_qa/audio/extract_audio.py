# Run: python -m lecture_qa.audio.extract_audio --media-path lecture.mp4 --output-path audio.wav
# Options: --sample-rate 16000 --channels 1 --codec pcm_s16le
# Note: requires ffmpeg on PATH
"""Extract the mono 16 kHz WAV track consumed by the transcript builder."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from lecture_qa.audio.settings import get_audio_settings, get_section
from lecture_qa.common.ffmpeg_utils import run_media_command


def extract_audio(
    media_path: str | Path,
    output_path: str | Path,
    *,
    sample_rate: Optional[int] = None,
    channels: Optional[int] = None,
    codec: Optional[str] = None,
    lecture_id: Optional[str] = None,
) -> Path:
    media_path = Path(media_path).expanduser()
    if not media_path.exists():
        raise FileNotFoundError(f"Media file not found: {media_path}")

    extract_cfg = get_section(get_audio_settings(), "extract")
    sample_rate = int(sample_rate or extract_cfg.get("sample_rate", 16000))
    channels = int(channels or extract_cfg.get("channels", 1))
    codec = str(codec or extract_cfg.get("codec", "pcm_s16le"))

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    command = [
        "ffmpeg",
        "-y",
        "-i",
        str(media_path),
        "-vn",
        "-acodec",
        codec,
        "-ar",
        str(sample_rate),
        "-ac",
        str(channels),
        str(output_path),
    ]
    run_media_command(command, lecture_id=lecture_id)
    return output_path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract a mono WAV track from a media file.")
    parser.add_argument("--media-path", required=True, help="Path to local media file (video/audio).")
    parser.add_argument("--output-path", required=True, help="Output audio file path.")
    parser.add_argument("--sample-rate", type=int, help="Sample rate (Hz).")
    parser.add_argument("--channels", type=int, help="Audio channels.")
    parser.add_argument("--codec", help="Audio codec (ffmpeg).")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    output_path = extract_audio(
        args.media_path,
        args.output_path,
        sample_rate=args.sample_rate,
        channels=args.channels,
        codec=args.codec,
    )
    print(f"[OK] Audio saved to {output_path.resolve()}")


if __name__ == "__main__":
    main()
