from __future__ import annotations

import io
from types import SimpleNamespace

import httpx
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from lecture_qa.config import RetryConfig
from lecture_qa.db.kv_store import LocalKeyValueStore, SupabaseKeyValueStore
from lecture_qa.db.object_store import LocalObjectStore, R2ObjectStore
from lecture_qa.errors import StorageError

NO_WAIT = RetryConfig(attempts=1, backoff_min_sec=0, backoff_max_sec=0)
THREE_TRIES = RetryConfig(attempts=3, backoff_min_sec=0, backoff_max_sec=0)


# ---------------------------------------------------------------------------
# Local backends
# ---------------------------------------------------------------------------


def test_local_object_roundtrip_and_overwrite(object_store) -> None:
    object_store.put("lectures/L/transcript.json", b"v1")
    object_store.put("lectures/L/transcript.json", b"v2")

    assert object_store.get("lectures/L/transcript.json") == b"v2"


def test_local_missing_object_raises(object_store) -> None:
    with pytest.raises(StorageError):
        object_store.get("lectures/L/nothing.json")


def test_local_rejects_keys_escaping_root(object_store) -> None:
    with pytest.raises(StorageError):
        object_store.put("../outside.txt", b"x")


def test_local_list_prefix_is_sorted_and_scoped(object_store) -> None:
    for name in ("frame-000002.jpg", "frame-000000.jpg", "frame-000001.jpg"):
        object_store.put(f"lectures/L/frames/{name}", b"jpg")
    object_store.put("lectures/L2/frames/frame-000000.jpg", b"jpg")

    entries = object_store.list_prefix("lectures/L/frames/")

    assert [entry.name for entry in entries] == ["frame-000000.jpg", "frame-000001.jpg", "frame-000002.jpg"]
    assert object_store.list_prefix("lectures/none/") == []


def test_local_put_many_and_delete_prefix(tmp_path, object_store) -> None:
    files = []
    for name in ("b.jpg", "a.jpg"):
        path = tmp_path / name
        path.write_bytes(name.encode())
        files.append(path)

    keys = object_store.put_many("lectures/L/frames/", files)

    assert keys == ["lectures/L/frames/a.jpg", "lectures/L/frames/b.jpg"]
    assert object_store.delete_prefix("lectures/L/") == 2
    assert object_store.list_prefix("lectures/L/") == []


def test_download_to_temp_from_key(tmp_path, object_store) -> None:
    object_store.put("uploads/upload-1.mp4", b"video")

    path = object_store.download_to_temp(key="uploads/upload-1.mp4", dest_dir=tmp_path / "scratch")

    assert path.name == "upload-1.mp4"
    assert path.read_bytes() == b"video"


def test_download_to_temp_requires_a_source(object_store) -> None:
    with pytest.raises(ValueError):
        object_store.download_to_temp()


def test_local_kv_roundtrip(kv_store) -> None:
    assert kv_store.get("lecture:L") is None

    kv_store.set("lecture:L", {"id": "L", "title": "Graphs"})
    kv_store.set("lecture:L:docCount", 3)

    assert kv_store.get("lecture:L") == {"id": "L", "title": "Graphs"}
    assert kv_store.get("lecture:L:docCount") == 3


def test_local_kv_keys_with_separators_do_not_collide(tmp_path) -> None:
    store = LocalKeyValueStore(tmp_path)
    store.set("doc:L-seg-0", "a")
    store.set("doc/L-seg-0", "b")

    assert store.get("doc:L-seg-0") == "a"
    assert store.get("doc/L-seg-0") == "b"


def test_local_kv_unserializable_value_raises(kv_store) -> None:
    with pytest.raises(StorageError):
        kv_store.set("bad", object())


# ---------------------------------------------------------------------------
# R2 with a fake S3 client
# ---------------------------------------------------------------------------


class FakePaginator:
    def __init__(self, objects) -> None:
        self.objects = objects

    def paginate(self, Bucket, Prefix):
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        # two pages to exercise pagination
        yield {"Contents": [{"Key": k} for k in keys[:1]]}
        yield {"Contents": [{"Key": k} for k in keys[1:]]}


class FakeS3Client:
    def __init__(self, get_errors=()) -> None:
        self.objects = {}
        self.get_errors = list(get_errors)
        self.get_calls = 0

    def put_object(self, Bucket, Key, Body):
        self.objects[Key] = Body

    def get_object(self, Bucket, Key):
        self.get_calls += 1
        if self.get_errors:
            raise self.get_errors.pop(0)
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return FakePaginator(self.objects)

    def delete_objects(self, Bucket, Delete):
        for item in Delete["Objects"]:
            self.objects.pop(item["Key"], None)
        return {"Deleted": Delete["Objects"]}


def test_r2_store_operations() -> None:
    store = R2ObjectStore(FakeS3Client(), "bucket", NO_WAIT)
    store.put("lectures/L/frames/frame-000001.jpg", b"1")
    store.put("lectures/L/frames/frame-000000.jpg", b"0")

    assert store.get("lectures/L/frames/frame-000000.jpg") == b"0"
    assert [e.name for e in store.list_prefix("lectures/L/frames/")] == ["frame-000000.jpg", "frame-000001.jpg"]
    assert store.delete_prefix("lectures/L/") == 2
    with pytest.raises(StorageError, match="not found"):
        store.get("lectures/L/frames/frame-000000.jpg")


def test_r2_missing_object_is_not_retried() -> None:
    client = FakeS3Client()
    store = R2ObjectStore(client, "bucket", THREE_TRIES)

    with pytest.raises(StorageError, match="not found"):
        store.get("lectures/L/absent.json")
    assert client.get_calls == 1


def test_r2_forbidden_is_not_retried() -> None:
    forbidden = ClientError(
        {"Error": {"Code": "AccessDenied"}, "ResponseMetadata": {"HTTPStatusCode": 403}}, "GetObject"
    )
    client = FakeS3Client(get_errors=[forbidden])

    with pytest.raises(StorageError):
        R2ObjectStore(client, "bucket", THREE_TRIES).get("lectures/L/a.json")
    assert client.get_calls == 1


def test_r2_transient_errors_are_retried() -> None:
    client = FakeS3Client(
        get_errors=[
            EndpointConnectionError(endpoint_url="https://r2.example"),
            ClientError({"Error": {"Code": "SlowDown"}, "ResponseMetadata": {"HTTPStatusCode": 503}}, "GetObject"),
        ]
    )
    client.objects["lectures/L/a.json"] = b"{}"

    assert R2ObjectStore(client, "bucket", THREE_TRIES).get("lectures/L/a.json") == b"{}"
    assert client.get_calls == 3


def test_r2_from_env_requires_credentials(monkeypatch) -> None:
    for name in ("R2_ENDPOINT_URL", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(StorageError):
        R2ObjectStore.from_env(NO_WAIT)


# ---------------------------------------------------------------------------
# Supabase with a fake client
# ---------------------------------------------------------------------------


class FakeTableQuery:
    def __init__(self, client: "FakeSupabaseClient") -> None:
        self.client = client
        self.rows = client.rows
        self._eq = {}
        self._upsert = None

    def select(self, _fields: str):
        return self

    def eq(self, col: str, value: str):
        self._eq[col] = value
        return self

    def limit(self, _n: int):
        return self

    def upsert(self, row: dict, on_conflict: str):
        assert on_conflict == "key"
        self._upsert = row
        return self

    def execute(self):
        self.client.executes += 1
        if self.client.errors:
            raise self.client.errors.pop(0)
        if self.client.fail:
            raise RuntimeError("supabase unavailable")
        if self._upsert is not None:
            self.rows[self._upsert["key"]] = self._upsert["value"]
            return SimpleNamespace(data=[self._upsert])
        key = self._eq.get("key")
        if key not in self.rows:
            return SimpleNamespace(data=[])
        return SimpleNamespace(data=[{"value": self.rows[key]}])


class FakeSupabaseClient:
    def __init__(self, *, fail: bool = False, errors=()) -> None:
        self.rows = {}
        self.fail = fail
        self.errors = list(errors)
        self.executes = 0
        self.tables = []

    def table(self, name: str):
        self.tables.append(name)
        return FakeTableQuery(self)


def test_supabase_kv_roundtrip() -> None:
    client = FakeSupabaseClient()
    store = SupabaseKeyValueStore(client, "kv_store", NO_WAIT)

    assert store.get("lecture:L") is None
    store.set("lecture:L", {"id": "L"})

    assert store.get("lecture:L") == {"id": "L"}
    assert set(client.tables) == {"kv_store"}


def test_supabase_failure_becomes_storage_error() -> None:
    store = SupabaseKeyValueStore(FakeSupabaseClient(fail=True), "kv_store", NO_WAIT)

    with pytest.raises(StorageError):
        store.get("lecture:L")
    with pytest.raises(StorageError):
        store.set("lecture:L", {"id": "L"})


def test_supabase_request_errors_are_not_retried() -> None:
    client = FakeSupabaseClient(fail=True)
    store = SupabaseKeyValueStore(client, "kv_store", THREE_TRIES)

    with pytest.raises(StorageError):
        store.get("lecture:L")
    assert client.executes == 1


def test_supabase_transport_errors_are_retried() -> None:
    client = FakeSupabaseClient(errors=[httpx.ConnectError("boom"), httpx.ReadTimeout("slow")])
    client.rows["lecture:L"] = {"id": "L"}
    store = SupabaseKeyValueStore(client, "kv_store", THREE_TRIES)

    assert store.get("lecture:L") == {"id": "L"}
    assert client.executes == 3
