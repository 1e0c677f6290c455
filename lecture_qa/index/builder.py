"""Fifth ingest stage: transcript segments + OCR results -> documents and keyword index.

Persisted to the key-value store:
    doc:{docId}                 one Document per segment / board text
    lecture:{id}:keywords       keyword -> [timestamps]
    lecture:{id}:docCount       number of documents
    lecture:{id}:docIds         document ids in scan order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from lecture_qa.common.schemas import Document, DocumentMeta, KeywordIndex, OcrResult, TranscriptResult
from lecture_qa.db.keys import (
    doc_count_kv_key,
    doc_ids_kv_key,
    doc_kv_key,
    keywords_kv_key,
)
from lecture_qa.db.kv_store import KeyValueStore
from lecture_qa.index.keywords import extract_keywords

logger = logging.getLogger(__name__)


def segment_doc_id(lecture_id: str, index: int) -> str:
    return f"{lecture_id}-seg-{index}"


def board_doc_id(lecture_id: str, index: int) -> str:
    return f"{lecture_id}-board-{index}"


@dataclass
class LectureIndex:
    documents: List[Document] = field(default_factory=list)
    keywords: KeywordIndex = field(default_factory=dict)

    @property
    def doc_count(self) -> int:
        return len(self.documents)


def build_documents(
    lecture_id: str,
    transcript: TranscriptResult,
    ocr_results: Sequence[OcrResult],
) -> List[Document]:
    """Segment documents first, then board documents (board ids keep the OCR list position)."""
    documents = [
        Document(
            id=segment_doc_id(lecture_id, i),
            text=segment.text,
            meta=DocumentMeta(type="asr", t_start=segment.start, t_end=segment.end),
        )
        for i, segment in enumerate(transcript.segments)
    ]
    for i, result in enumerate(ocr_results):
        if not result.text.strip():
            continue
        documents.append(
            Document(
                id=board_doc_id(lecture_id, i),
                text=result.text,
                meta=DocumentMeta(type="board", t=result.t),
            )
        )
    return documents


def build_keyword_index(documents: Sequence[Document]) -> KeywordIndex:
    index: KeywordIndex = {}
    for doc in documents:
        timestamp = doc.meta.timestamp
        for keyword in extract_keywords(doc.text):
            index.setdefault(keyword, []).append(timestamp)
    return index


def scan_order(documents: Sequence[Document]) -> List[str]:
    """Interleave seg-i / board-i, the order in which docCount probing visits ids."""
    segments = [doc.id for doc in documents if doc.meta.type == "asr"]
    boards = {doc.id for doc in documents if doc.meta.type == "board"}
    board_by_pos = {int(doc_id.rsplit("-", 1)[1]): doc_id for doc_id in boards}
    upper = max([len(segments)] + [pos + 1 for pos in board_by_pos])
    ordered: List[str] = []
    for i in range(upper):
        if i < len(segments):
            ordered.append(segments[i])
        if i in board_by_pos:
            ordered.append(board_by_pos[i])
    return ordered


class IndexBuilder:
    def __init__(self, kv_store: KeyValueStore) -> None:
        self.kv_store = kv_store

    def build(
        self,
        lecture_id: str,
        transcript: TranscriptResult,
        ocr_results: Sequence[OcrResult],
    ) -> LectureIndex:
        documents = build_documents(lecture_id, transcript, ocr_results)
        index = LectureIndex(documents=documents, keywords=build_keyword_index(documents))
        self.persist(lecture_id, index)
        logger.info(
            "[Index] %s: %d documents, %d unique keywords",
            lecture_id,
            index.doc_count,
            len(index.keywords),
        )
        return index

    def persist(self, lecture_id: str, index: LectureIndex) -> None:
        for doc in index.documents:
            self.kv_store.set(doc_kv_key(doc.id), doc.to_wire())
        self.kv_store.set(keywords_kv_key(lecture_id), index.keywords)
        self.kv_store.set(doc_ids_kv_key(lecture_id), scan_order(index.documents))
        self.kv_store.set(doc_count_kv_key(lecture_id), index.doc_count)


def load_document(kv_store: KeyValueStore, doc_id: str) -> Optional[Document]:
    data = kv_store.get(doc_kv_key(doc_id))
    if data is None:
        return None
    return Document.model_validate(data)
