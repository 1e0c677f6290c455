"""Key-value store collaborators.

Values are JSON-serializable Python objects (dicts, lists, numbers). Stages
store pydantic models in their wire form (``model.to_wire()``).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable
from urllib.parse import quote

import httpx
from supabase import Client, create_client

from lecture_qa.common.retry import build_retrying
from lecture_qa.config import RetryConfig
from lecture_qa.errors import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None when the key is absent."""

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` (overwrite)."""


class LocalKeyValueStore:
    """One JSON file per key under ``{root}/kv``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root) / "kv"
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        if not key:
            raise StorageError("empty key")
        return self.root / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"failed to read key {key}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(value, handle, ensure_ascii=False)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"failed to write key {key}: {exc}") from exc


class SupabaseKeyValueStore:
    """Supabase table ``(key text primary key, value jsonb)``."""

    def __init__(
        self,
        client: Client,
        table: str = "kv_store",
        retry_cfg: Optional[RetryConfig] = None,
    ) -> None:
        self.client = client
        self.table = table
        # only transport failures are retried; PostgREST errors are final
        self._retrying = build_retrying(retry_cfg or RetryConfig(), retry_on=(httpx.TransportError,), log=logger)

    @classmethod
    def from_env(cls, table: str = "kv_store", retry_cfg: Optional[RetryConfig] = None) -> "SupabaseKeyValueStore":
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")
        if not url or not key:
            raise StorageError("SUPABASE_URL and SUPABASE_KEY are required for the supabase kv backend")
        return cls(create_client(url, key), table, retry_cfg)

    def get(self, key: str) -> Optional[Any]:
        def _select():
            return self.client.table(self.table).select("value").eq("key", key).limit(1).execute()

        try:
            result = self._retrying(_select)
        except Exception as exc:
            raise StorageError(f"supabase get failed for {key}: {exc}") from exc
        rows = result.data or []
        if not rows:
            return None
        return rows[0].get("value")

    def set(self, key: str, value: Any) -> None:
        row = {"key": key, "value": value}

        def _upsert():
            return self.client.table(self.table).upsert(row, on_conflict="key").execute()

        try:
            self._retrying(_upsert)
        except Exception as exc:
            raise StorageError(f"supabase set failed for {key}: {exc}") from exc
