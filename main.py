"""Command-line entry point for the lecture Q&A pipeline.

Examples:
    python main.py ingest --video-path data/input/lecture.mp4 --title "Graphs"
    python main.py ingest --video-url https://example.com/lecture.mp4
    python main.py analyze --lecture-id <id> --query "dynamic programming"
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import uuid
from pathlib import Path

from lecture_qa.errors import LectureQAError, PipelineCanceled
from lecture_qa.pipeline import orchestrator

logger = logging.getLogger("lecture_qa.cli")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for noisy in ("httpx", "httpcore", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lecture video Q&A pipeline")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Extract, transcribe, detect board changes, OCR and index a video.")
    source = ingest.add_mutually_exclusive_group(required=True)
    source.add_argument("--video-url", help="Remote video URL.")
    source.add_argument("--file-id", help="Id returned by a previous upload.")
    source.add_argument("--video-path", type=Path, help="Local video file.")
    ingest.add_argument("--title", help="Lecture title (default: Untitled Lecture).")
    ingest.add_argument("--lecture-id", help="Reuse a lecture id instead of generating one.")

    analyze = sub.add_parser("analyze", help="Ask a question about an ingested lecture.")
    analyze.add_argument("--lecture-id", required=True)
    analyze.add_argument("--query", required=True)
    return parser


def run_ingest(args: argparse.Namespace) -> int:
    lecture_id = args.lecture_id or str(uuid.uuid4())

    def _on_sigint(signum, frame) -> None:
        logger.warning("Interrupt received, canceling lecture %s", lecture_id)
        orchestrator.request_cancel(lecture_id)

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        result = orchestrator.run_ingest_pipeline(
            video_url=args.video_url,
            file_id=args.file_id,
            video_path=args.video_path,
            title=args.title,
            lecture_id=lecture_id,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    if result.placeholder_transcript:
        logger.warning("Transcript is a PLACEHOLDER (set OPENAI_API_KEY or STT_PROVIDER for real speech-to-text)")
    print(json.dumps(result.to_wire(), ensure_ascii=False, indent=2))
    return 0


def run_analyze(args: argparse.Namespace) -> int:
    result = orchestrator.analyze(args.lecture_id, args.query)
    print(json.dumps(result.to_wire(), ensure_ascii=False, indent=2))
    return 0


def main(argv=None) -> int:
    args = get_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        if args.command == "ingest":
            return run_ingest(args)
        return run_analyze(args)
    except PipelineCanceled as exc:
        logger.warning("%s", exc)
        return 130
    except LectureQAError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
