"""Shared run context handed to every ingest stage and the query engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from lecture_qa.capture.settings import CaptureSettings, get_capture_settings
from lecture_qa.config import PipelineConfig, get_pipeline_config
from lecture_qa.db import get_kv_store, get_layout, get_object_store
from lecture_qa.db.keys import StorageLayout
from lecture_qa.db.kv_store import KeyValueStore
from lecture_qa.db.object_store import ObjectStore
from lecture_qa.llm.answer_generator import AnswerGenerator, create_answer_generator
from lecture_qa.ocr.ocr_engine import OcrEngine, create_ocr_engine


@dataclass
class PipelineContext:
    """Collaborators for one process. Stages share nothing else."""

    config: PipelineConfig
    object_store: ObjectStore
    kv_store: KeyValueStore
    layout: StorageLayout = field(default_factory=StorageLayout)
    capture_settings: CaptureSettings = field(default_factory=get_capture_settings)
    stt: Optional[Any] = None
    ocr_engine_factory: Optional[Callable[[], OcrEngine]] = None
    answer_generator: Optional[AnswerGenerator] = None

    def __post_init__(self) -> None:
        if self.ocr_engine_factory is None:
            ocr_cfg, retry_cfg = self.config.ocr, self.config.retry
            self.ocr_engine_factory = lambda: create_ocr_engine(ocr_cfg, retry_cfg)

    def get_answer_generator(self) -> AnswerGenerator:
        if self.answer_generator is None:
            self.answer_generator = create_answer_generator(self.config.llm, self.config.retry)
        return self.answer_generator

    @classmethod
    def from_config(cls, config: Optional[PipelineConfig] = None) -> "PipelineContext":
        config = config or get_pipeline_config()
        return cls(
            config=config,
            object_store=get_object_store(config),
            kv_store=get_kv_store(config),
            layout=get_layout(config),
        )
