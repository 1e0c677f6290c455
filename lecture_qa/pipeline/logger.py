"""
[Intent]
Column-style status line for the ingest pipeline. Each of the five stages
(Media, Transcript, Board, OCR, Index) owns one column, and every state change
prints the whole row so the progress of a run reads as a single timeline.

[Usage]
- pipeline/stages.py: each stage reports "RUNNING", "DONE (...)" or "ERROR".
- pipeline/orchestrator.py: resets a lecture's row at the start of a run and
  discards it when the run ends.

[Usage Method]
- pipeline_logger.log("Board", "RUNNING", lecture_id="L1") updates one column
  of lecture L1 and prints that lecture's row.
- Output goes through the standard logging module (logger "lecture_qa.pipeline").
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

STAGE_COLUMNS = ("Media", "Transcript", "Board", "OCR", "Index")

_logger = logging.getLogger("lecture_qa.pipeline")


class _Row:
    def __init__(self, columns) -> None:
        self.states: Dict[str, str] = {name: "WAITING" for name in columns}
        self.last_printed: Dict[str, Optional[str]] = {name: None for name in columns}


class ColumnLogger:
    """
    [Class Purpose]
    Thread-safe single-line status logger with one row per lecture, so runs
    of different lectures in the same process do not overwrite each other.
    A "DONE" message that has already been printed for a column is not
    repeated on later rows of the same lecture.
    """

    def __init__(self, columns=STAGE_COLUMNS, max_content_width: int = 40) -> None:
        self.lock = threading.Lock()
        self.columns = tuple(columns)
        self.max_content_width = max_content_width
        self.rows: Dict[str, _Row] = {}

    def reset(self, lecture_id: str = "") -> None:
        """[Purpose] Put every column of one lecture back to WAITING (start of a new run)."""
        with self.lock:
            self.rows[lecture_id] = _Row(self.columns)

    def discard(self, lecture_id: str = "") -> None:
        """[Purpose] Forget a finished lecture's row."""
        with self.lock:
            self.rows.pop(lecture_id, None)

    def format_row(self, lecture_id: str = "") -> str:
        row = self.rows.get(lecture_id)
        if row is None:
            return ""
        parts = []
        for name in self.columns:
            curr_msg = row.states.get(name, "")
            last_msg = row.last_printed.get(name)

            if curr_msg.startswith("DONE") and last_msg == curr_msg:
                continue
            if curr_msg.startswith("DONE"):
                row.last_printed[name] = curr_msg

            if len(curr_msg) > self.max_content_width:
                curr_msg = curr_msg[: self.max_content_width - 3] + "..."
            parts.append(f"[{name}] {curr_msg}")
        line = "    ".join(parts)
        if line and lecture_id:
            line = f"<{lecture_id}> {line}"
        return line

    def log(self, component: str, message: str, lecture_id: str = "") -> None:
        """
        [Purpose] Update one column of a lecture's row and emit that row.

        [Args]
        - component (str): one of Media, Transcript, Board, OCR, Index
        - message (str): e.g. "RUNNING", "DONE (12 events, 3.1s)"
        - lecture_id (str): the run the update belongs to; a stage reporting
          before reset() starts a fresh row
        """
        with self.lock:
            row = self.rows.setdefault(lecture_id, _Row(self.columns))
            if component in row.states:
                row.states[component] = message
            line = self.format_row(lecture_id)
            if line:
                _logger.info(line)


# [Singleton] shared by every stage in the process
pipeline_logger = ColumnLogger()
