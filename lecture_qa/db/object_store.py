"""Object storage collaborators (local filesystem and Cloudflare R2).

=============================================================================
Purpose
=============================================================================
Binary artifacts of a lecture run (audio track, frames, stage JSON) live in
an object store addressed by string keys. Stages only talk to the
``ObjectStore`` interface so the backend can be swapped by configuration.

=============================================================================
Backends
=============================================================================
- LocalObjectStore: files under a data root (default data/store).
- R2ObjectStore: S3-compatible Cloudflare R2 bucket through boto3.
  Required env: R2_ENDPOINT_URL, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY,
  R2_BUCKET (default: lecture-qa).
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, runtime_checkable

import boto3
import requests
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from lecture_qa.common.retry import build_retrying
from lecture_qa.config import RetryConfig
from lecture_qa.errors import StorageError

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_BYTES = 1024 * 1024
DOWNLOAD_TIMEOUT_SEC = 60


@dataclass(frozen=True)
class ObjectEntry:
    key: str
    name: str


@runtime_checkable
class ObjectStore(Protocol):
    """Interface consumed by the pipeline stages."""

    def get(self, key: str) -> bytes:
        """Return the object body; raise StorageError when missing."""

    def put(self, key: str, data: bytes) -> str:
        """Store ``data`` under ``key`` (overwrite) and return the key."""

    def put_file(self, key: str, path: Path) -> str:
        """Upload a local file under ``key``."""

    def put_many(self, prefix: str, files: Iterable[Path]) -> List[str]:
        """Upload files as ``{prefix}{file.name}``; return the keys."""

    def list_prefix(self, prefix: str) -> List[ObjectEntry]:
        """List objects under ``prefix`` sorted by key."""

    def download_to_temp(
        self,
        *,
        url: Optional[str] = None,
        key: Optional[str] = None,
        dest_dir: Optional[Path] = None,
        filename: Optional[str] = None,
    ) -> Path:
        """Materialize a remote URL or stored object as a local file."""

    def delete_prefix(self, prefix: str) -> int:
        """Delete every object under ``prefix``; return the count."""


class BaseObjectStore:
    """Shared helpers: multi-file upload and download-to-temp."""

    def __init__(self, retry_cfg: Optional[RetryConfig] = None) -> None:
        self.retry_cfg = retry_cfg or RetryConfig()

    def get(self, key: str) -> bytes:  # pragma: no cover - implemented by backends
        raise NotImplementedError

    def put(self, key: str, data: bytes) -> str:  # pragma: no cover - implemented by backends
        raise NotImplementedError

    def put_file(self, key: str, path: Path) -> str:
        return self.put(key, Path(path).read_bytes())

    def put_many(self, prefix: str, files: Iterable[Path]) -> List[str]:
        keys = []
        for path in sorted(Path(p) for p in files):
            keys.append(self.put_file(f"{prefix}{path.name}", path))
        return keys

    def download_to_temp(
        self,
        *,
        url: Optional[str] = None,
        key: Optional[str] = None,
        dest_dir: Optional[Path] = None,
        filename: Optional[str] = None,
    ) -> Path:
        if not url and not key:
            raise ValueError("Either url or key is required")

        if dest_dir is None:
            dest_dir = Path(tempfile.mkdtemp(prefix="lecture_qa_"))
        dest_dir.mkdir(parents=True, exist_ok=True)
        name = filename or Path(key or url.split("?", 1)[0]).name or "download.bin"
        local_path = dest_dir / name

        if key:
            local_path.write_bytes(self.get(key))
            return local_path

        retrying = build_retrying(
            self.retry_cfg,
            retry_on=(requests.ConnectionError, requests.Timeout),
            log=logger,
        )
        try:
            retrying(_stream_url_to_file, url, local_path)
        except requests.RequestException as exc:
            local_path.unlink(missing_ok=True)
            raise StorageError(f"download failed for {url}: {exc}") from exc
        return local_path


def _stream_url_to_file(url: str, local_path: Path) -> None:
    with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SEC) as response:
        response.raise_for_status()
        with local_path.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                if chunk:
                    handle.write(chunk)


class LocalObjectStore(BaseObjectStore):
    """Object store backed by a directory tree (key == relative path)."""

    def __init__(self, root: Path, retry_cfg: Optional[RetryConfig] = None) -> None:
        super().__init__(retry_cfg)
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        if not key or key.startswith("/"):
            raise StorageError(f"invalid object key: {key!r}")
        path = (self.root / key).resolve()
        try:
            path.relative_to(self.root)
        except ValueError as exc:
            raise StorageError(f"object key escapes store root: {key!r}") from exc
        return path

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise StorageError(f"object not found: {key}")
        return path.read_bytes()

    def put(self, key: str, data: bytes) -> str:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=path.suffix)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"failed to write object {key}: {exc}") from exc
        return key

    def put_file(self, key: str, path: Path) -> str:
        target = self._path_for(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(path, target)
        return key

    def list_prefix(self, prefix: str) -> List[ObjectEntry]:
        base = self.root / prefix
        search_root = base if prefix.endswith("/") else base.parent
        if not search_root.exists():
            return []
        entries = []
        for path in search_root.rglob("*"):
            if not path.is_file() or path.name.startswith(".tmp_"):
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                entries.append(ObjectEntry(key=key, name=path.name))
        return sorted(entries, key=lambda entry: entry.key)

    def delete_prefix(self, prefix: str) -> int:
        entries = self.list_prefix(prefix)
        for entry in entries:
            self._path_for(entry.key).unlink(missing_ok=True)
        return len(entries)


TRANSIENT_S3_CODES = frozenset(
    {"InternalError", "RequestTimeout", "ServiceUnavailable", "SlowDown", "Throttling", "ThrottlingException"}
)


def is_transient_r2_error(exc: BaseException) -> bool:
    """Connection-level failures, throttling and 5xx are retried; 4xx such as NoSuchKey or 403 are not."""
    if isinstance(exc, BotoCoreError):
        return True
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        return error.get("Code") in TRANSIENT_S3_CODES or status >= 500
    return False


class R2ObjectStore(BaseObjectStore):
    """Cloudflare R2 (S3-compatible) object store."""

    def __init__(self, client, bucket: str, retry_cfg: Optional[RetryConfig] = None) -> None:
        super().__init__(retry_cfg)
        self.s3_client = client
        self.bucket = bucket
        self._retrying = build_retrying(self.retry_cfg, retry_if=is_transient_r2_error, log=logger)

    @classmethod
    def from_env(cls, retry_cfg: Optional[RetryConfig] = None) -> "R2ObjectStore":
        endpoint = os.getenv("R2_ENDPOINT_URL")
        access_key = os.getenv("R2_ACCESS_KEY_ID")
        secret_key = os.getenv("R2_SECRET_ACCESS_KEY")
        if not (endpoint and access_key and secret_key):
            raise StorageError("R2 storage requires R2_ENDPOINT_URL, R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY")
        client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=Config(signature_version="s3v4"),
            region_name="auto",
        )
        return cls(client, os.getenv("R2_BUCKET", "lecture-qa"), retry_cfg)

    def get(self, key: str) -> bytes:
        def _get() -> bytes:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        try:
            return self._retrying(_get)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                raise StorageError(f"object not found: {key}") from exc
            raise StorageError(f"R2 get failed for {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"R2 get failed for {key}: {exc}") from exc

    def put(self, key: str, data: bytes) -> str:
        try:
            self._retrying(self.s3_client.put_object, Bucket=self.bucket, Key=key, Body=data)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"R2 put failed for {key}: {exc}") from exc
        return key

    def list_prefix(self, prefix: str) -> List[ObjectEntry]:
        def _list() -> List[ObjectEntry]:
            entries = []
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents") or []:
                    key = obj.get("Key")
                    if key:
                        entries.append(ObjectEntry(key=key, name=key.rsplit("/", 1)[-1]))
            return entries

        try:
            entries = self._retrying(_list)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"R2 list failed for {prefix}: {exc}") from exc
        return sorted(entries, key=lambda entry: entry.key)

    def delete_prefix(self, prefix: str) -> int:
        keys = [entry.key for entry in self.list_prefix(prefix)]
        deleted = 0
        # delete_objects accepts at most 1000 keys per call.
        for i in range(0, len(keys), 1000):
            chunk = [{"Key": key} for key in keys[i : i + 1000]]
            try:
                response = self._retrying(
                    self.s3_client.delete_objects,
                    Bucket=self.bucket,
                    Delete={"Objects": chunk},
                )
            except (BotoCoreError, ClientError) as exc:
                raise StorageError(f"R2 delete failed for {prefix}: {exc}") from exc
            errors = response.get("Errors") or []
            deleted += len(chunk) - len(errors)
            for error in errors:
                logger.warning("R2 delete error key=%s code=%s", error.get("Key"), error.get("Code"))
        return deleted
