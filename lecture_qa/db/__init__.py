"""Storage collaborators and their configuration-driven factories."""

from __future__ import annotations

from typing import Optional

from lecture_qa.config import PipelineConfig, get_pipeline_config
from lecture_qa.db.keys import StorageLayout
from lecture_qa.db.kv_store import KeyValueStore, LocalKeyValueStore, SupabaseKeyValueStore
from lecture_qa.db.object_store import LocalObjectStore, ObjectEntry, ObjectStore, R2ObjectStore


def get_object_store(config: Optional[PipelineConfig] = None) -> ObjectStore:
    config = config or get_pipeline_config()
    if config.storage.object_backend == "r2":
        return R2ObjectStore.from_env(config.retry)
    return LocalObjectStore(config.data_root, config.retry)


def get_kv_store(config: Optional[PipelineConfig] = None) -> KeyValueStore:
    config = config or get_pipeline_config()
    if config.storage.kv_backend == "supabase":
        return SupabaseKeyValueStore.from_env(config.storage.supabase_table, config.retry)
    return LocalKeyValueStore(config.data_root)


def get_layout(config: Optional[PipelineConfig] = None) -> StorageLayout:
    config = config or get_pipeline_config()
    return StorageLayout(
        lectures_prefix=config.storage.lectures_prefix,
        uploads_prefix=config.storage.uploads_prefix,
    )


__all__ = [
    "KeyValueStore",
    "LocalKeyValueStore",
    "LocalObjectStore",
    "ObjectEntry",
    "ObjectStore",
    "R2ObjectStore",
    "StorageLayout",
    "SupabaseKeyValueStore",
    "get_kv_store",
    "get_layout",
    "get_object_store",
]
