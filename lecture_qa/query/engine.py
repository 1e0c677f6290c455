"""Timestamp-aware retrieval and answer assembly for one lecture.

Scoring: for every query keyword, every timestamp in its postings list adds
one point to each document whose time metadata matches that timestamp
(point documents within ``match_window_sec``, range documents when the
timestamp falls inside ``[tStart, tEnd]``). The ``top_k`` best documents are
kept, ties in encounter order, then re-sorted by time.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from lecture_qa.common.schemas import AnalysisResult, Document, DocumentMeta, JumpLink, KeywordIndex
from lecture_qa.common.timecode import to_timecode
from lecture_qa.config import QueryConfig
from lecture_qa.db.keys import doc_count_kv_key, doc_ids_kv_key, keywords_kv_key, lecture_kv_key
from lecture_qa.db.kv_store import KeyValueStore
from lecture_qa.errors import InvalidRequestError, LectureNotFoundError
from lecture_qa.index.builder import board_doc_id, load_document, segment_doc_id
from lecture_qa.index.keywords import extract_query_keywords
from lecture_qa.llm.answer_generator import AnswerGenerator

logger = logging.getLogger(__name__)


def matches_timestamp(meta: DocumentMeta, timestamp: float, window: float = 2.0) -> bool:
    if meta.t is not None:
        return abs(meta.t - timestamp) < window
    if meta.t_start is not None and meta.t_end is not None:
        return meta.t_start <= timestamp <= meta.t_end
    return False


def format_context(documents: List[Document]) -> str:
    return "\n".join(
        f"[{to_timecode(doc.meta.timestamp)}] ({doc.meta.type}) {doc.text}" for doc in documents
    )


def build_links(documents: List[Document], *, max_links: int = 10, snippet_chars: int = 100) -> List[JumpLink]:
    links = []
    for doc in documents[:max_links]:
        text = doc.text[:snippet_chars] + ("…" if len(doc.text) > snippet_chars else "")
        links.append(
            JumpLink(
                t=doc.meta.timestamp,
                timecode=to_timecode(doc.meta.timestamp),
                text=text,
                type=doc.meta.type,
            )
        )
    return links


class QueryEngine:
    def __init__(
        self,
        kv_store: KeyValueStore,
        answer_generator: AnswerGenerator,
        config: Optional[QueryConfig] = None,
    ) -> None:
        self.kv_store = kv_store
        self.answer_generator = answer_generator
        self.config = config or QueryConfig()

    def load_documents(self, lecture_id: str) -> List[Document]:
        """All documents in scan order: the stored id list, else seg-i/board-i probing."""
        doc_ids = self.kv_store.get(doc_ids_kv_key(lecture_id))
        if doc_ids is None:
            doc_count = int(self.kv_store.get(doc_count_kv_key(lecture_id)) or 0)
            doc_ids = []
            for i in range(doc_count):
                doc_ids.append(segment_doc_id(lecture_id, i))
                doc_ids.append(board_doc_id(lecture_id, i))

        documents = []
        for doc_id in doc_ids:
            doc = load_document(self.kv_store, doc_id)
            if doc is not None:
                documents.append(doc)
        return documents

    def search(self, lecture_id: str, query: str) -> List[Document]:
        keyword_index: KeywordIndex = self.kv_store.get(keywords_kv_key(lecture_id)) or {}
        keywords = extract_query_keywords(query)
        if not keywords:
            return []

        documents = self.load_documents(lecture_id)
        scores: Dict[str, int] = {}
        by_id: Dict[str, Document] = {}
        window = self.config.match_window_sec
        for keyword in keywords:
            for timestamp in keyword_index.get(keyword, []):
                for doc in documents:
                    if matches_timestamp(doc.meta, timestamp, window):
                        # dict insertion order records first encounter
                        scores[doc.id] = scores.get(doc.id, 0) + 1
                        by_id[doc.id] = doc

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)[: self.config.top_k]
        selected = [by_id[doc_id] for doc_id, _ in ranked]
        return sorted(selected, key=lambda doc: doc.meta.timestamp)

    def analyze(self, lecture_id: str, query: str) -> AnalysisResult:
        if not lecture_id or not query or not query.strip():
            raise InvalidRequestError("lectureId and query are required")
        if self.kv_store.get(lecture_kv_key(lecture_id)) is None:
            raise LectureNotFoundError(lecture_id)

        logger.info('Analyzing query "%s" for lecture %s', query, lecture_id)
        documents = self.search(lecture_id, query)
        answer = self.answer_generator.complete(query, format_context(documents))
        return AnalysisResult(
            answer=answer.answer,
            links=build_links(
                documents,
                max_links=self.config.max_links,
                snippet_chars=self.config.snippet_chars,
            ),
            flashcards=answer.flashcards,
            summary=answer.summary,
        )
