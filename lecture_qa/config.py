"""Pipeline settings loader (storage, OCR, LLM, query, retry)."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "pipeline" / "settings.yaml"
ENV_PATH = PROJECT_ROOT / ".env"


class StorageConfig(BaseModel):
    """Which object/key-value backends to use and how keys are laid out."""
    model_config = ConfigDict(extra="forbid")

    object_backend: Literal["local", "r2"] = "local"
    kv_backend: Literal["local", "supabase"] = "local"
    local_root: str = "data/store"
    lectures_prefix: str = "lectures"
    uploads_prefix: str = "uploads"
    supabase_table: str = "kv_store"


class OcrConfig(BaseModel):
    """OCR engine selection and recognition parameters."""
    model_config = ConfigDict(extra="forbid")

    engine: Literal["tesseract", "openrouter", "none"] = "tesseract"
    language: str = "eng"
    psm: int = Field(6, ge=0, le=13)
    preserve_interword_spaces: bool = True
    whitelist: str
    workers: int = Field(4, ge=1)
    openrouter_model: str = "qwen/qwen3-vl-32b-instruct"


class LlmConfig(BaseModel):
    """Language-model collaborator used to answer questions."""
    model_config = ConfigDict(extra="forbid")

    provider: Literal["auto", "gemini", "offline"] = "auto"
    model: str
    temperature: float = Field(0.2, ge=0.0, le=2.0)
    timeout_sec: int = Field(60, ge=1)
    api_key_env_candidates: List[str] = Field(default_factory=lambda: ["GOOGLE_API_KEY", "GEMINI_API_KEY"])


class QueryConfig(BaseModel):
    """Retrieval cut-offs for the query engine."""
    model_config = ConfigDict(extra="forbid")

    top_k: int = Field(8, ge=1)
    max_links: int = Field(10, ge=1)
    snippet_chars: int = Field(100, ge=1)
    match_window_sec: float = Field(2.0, gt=0)


class RetryConfig(BaseModel):
    """Bounded exponential backoff for storage/STT/LLM calls."""
    model_config = ConfigDict(extra="forbid")

    attempts: int = Field(3, ge=1)
    backoff_min_sec: float = Field(1, ge=0)
    backoff_max_sec: float = Field(10, ge=0)


class PipelineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    storage: StorageConfig
    ocr: OcrConfig
    llm: LlmConfig
    query: QueryConfig = Field(default_factory=QueryConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    def resolve_path(self, value: str) -> Path:
        path = Path(value)
        if path.is_absolute():
            return path
        return PROJECT_ROOT / path

    @property
    def data_root(self) -> Path:
        override = os.getenv("LECTURE_QA_DATA_ROOT")
        return self.resolve_path(override or self.storage.local_root)


def load_pipeline_config(config_path: Optional[Path] = None) -> PipelineConfig:
    """Read config/pipeline/settings.yaml (and .env) into a validated PipelineConfig."""
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)
    else:
        load_dotenv()

    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"pipeline config not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle)
    if not isinstance(payload, dict):
        raise ValueError("pipeline config must be a mapping.")
    try:
        return PipelineConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"invalid pipeline config {path}: {exc}") from exc


@lru_cache(maxsize=1)
def get_pipeline_config() -> PipelineConfig:
    return load_pipeline_config()
