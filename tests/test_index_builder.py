from __future__ import annotations

from lecture_qa.common.schemas import OcrResult, TranscriptResult, TranscriptSegment
from lecture_qa.db.keys import doc_count_kv_key, doc_ids_kv_key, keywords_kv_key
from lecture_qa.index.builder import IndexBuilder, build_documents, load_document, scan_order


def _transcript(*segments) -> TranscriptResult:
    return TranscriptResult(
        segments=[TranscriptSegment(text=text, start=start, end=end) for text, start, end in segments]
    )


def test_documents_and_keywords_for_one_segment_and_one_board_text(kv_store) -> None:
    transcript = _transcript(("graph traversal uses queues", 10, 14))
    ocr = [OcrResult(t=12, text="BFS queue graph")]

    index = IndexBuilder(kv_store).build("L", transcript, ocr)

    assert [doc.id for doc in index.documents] == ["L-seg-0", "L-board-0"]
    assert index.keywords["graph"] == [10, 12]
    assert index.keywords["bfs"] == [12]
    assert index.keywords["queues"] == [10]
    assert kv_store.get(doc_count_kv_key("L")) == 2
    assert kv_store.get(keywords_kv_key("L"))["graph"] == [10, 12]

    board = load_document(kv_store, "L-board-0")
    assert board.meta.type == "board"
    assert board.meta.t == 12
    segment = load_document(kv_store, "L-seg-0")
    assert (segment.meta.t_start, segment.meta.t_end) == (10, 14)


def test_segment_documents_store_camel_case_meta(kv_store) -> None:
    IndexBuilder(kv_store).build("L", _transcript(("intro", 0, 3)), [])

    stored = kv_store.get("doc:L-seg-0")
    assert stored == {"id": "L-seg-0", "text": "intro", "meta": {"type": "asr", "tStart": 0.0, "tEnd": 3.0}}


def test_repeated_keyword_keeps_duplicate_timestamps(kv_store) -> None:
    index = IndexBuilder(kv_store).build("L", _transcript(("graph graph graph", 5, 6)), [])

    assert index.keywords == {"graph": [5, 5, 5]}


def test_empty_inputs_build_an_empty_index(kv_store) -> None:
    index = IndexBuilder(kv_store).build("L", TranscriptResult(), [])

    assert index.doc_count == 0
    assert index.keywords == {}
    assert kv_store.get(doc_count_kv_key("L")) == 0
    assert kv_store.get(doc_ids_kv_key("L")) == []


def test_board_ids_keep_ocr_positions_and_scan_order_interleaves() -> None:
    transcript = _transcript(("one", 0, 1), ("two", 1, 2), ("three", 2, 3))
    ocr = [OcrResult(t=0, text="alpha"), OcrResult(t=5, text="beta")]

    documents = build_documents("L", transcript, ocr)

    assert [doc.id for doc in documents] == ["L-seg-0", "L-seg-1", "L-seg-2", "L-board-0", "L-board-1"]
    assert scan_order(documents) == ["L-seg-0", "L-board-0", "L-seg-1", "L-board-1", "L-seg-2"]


def test_scan_order_with_more_boards_than_segments() -> None:
    ocr = [OcrResult(t=i, text=f"text {i}") for i in range(3)]
    documents = build_documents("L", _transcript(("only segment", 0, 1)), ocr)

    assert scan_order(documents) == ["L-seg-0", "L-board-0", "L-board-1", "L-board-2"]


def test_rebuild_overwrites_previous_index(kv_store) -> None:
    builder = IndexBuilder(kv_store)
    builder.build("L", _transcript(("first version", 0, 1)), [])
    builder.build("L", _transcript(("second version", 0, 1)), [])

    assert "first" not in kv_store.get(keywords_kv_key("L"))
    assert load_document(kv_store, "L-seg-0").text == "second version"
