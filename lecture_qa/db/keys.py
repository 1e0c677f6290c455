"""Object-store and key-value key layout for lecture artifacts.

Object store:
    {lectures}/{lecture_id}/audio.wav
    {lectures}/{lecture_id}/frames/frame-000000.jpg ...
    {lectures}/{lecture_id}/transcript.json
    {lectures}/{lecture_id}/board_events.json
    {lectures}/{lecture_id}/board_ocr.json
    {uploads}/{file_id}.mp4

Key-value store:
    lecture:{id}            Lecture record
    lecture:{id}:status     LectureStatus
    lecture:{id}:keywords   KeywordIndex
    lecture:{id}:docCount   int
    lecture:{id}:docIds     list[str]
    doc:{doc_id}            Document
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StorageLayout:
    lectures_prefix: str = "lectures"
    uploads_prefix: str = "uploads"

    def lecture_root(self, lecture_id: str) -> str:
        return f"{self.lectures_prefix}/{lecture_id}"

    def audio_key(self, lecture_id: str) -> str:
        return f"{self.lecture_root(lecture_id)}/audio.wav"

    def frames_prefix(self, lecture_id: str) -> str:
        return f"{self.lecture_root(lecture_id)}/frames/"

    def transcript_key(self, lecture_id: str) -> str:
        return f"{self.lecture_root(lecture_id)}/transcript.json"

    def board_events_key(self, lecture_id: str) -> str:
        return f"{self.lecture_root(lecture_id)}/board_events.json"

    def board_ocr_key(self, lecture_id: str) -> str:
        return f"{self.lecture_root(lecture_id)}/board_ocr.json"

    def upload_key(self, file_id: str) -> str:
        return f"{self.uploads_prefix}/{file_id}.mp4"


def lecture_kv_key(lecture_id: str) -> str:
    return f"lecture:{lecture_id}"


def status_kv_key(lecture_id: str) -> str:
    return f"lecture:{lecture_id}:status"


def keywords_kv_key(lecture_id: str) -> str:
    return f"lecture:{lecture_id}:keywords"


def doc_count_kv_key(lecture_id: str) -> str:
    return f"lecture:{lecture_id}:docCount"


def doc_ids_kv_key(lecture_id: str) -> str:
    return f"lecture:{lecture_id}:docIds"


def doc_kv_key(doc_id: str) -> str:
    return f"doc:{doc_id}"
