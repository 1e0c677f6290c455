import sys
from pathlib import Path

import pytest


# Ensure `import lecture_qa...` works under pytest importlib mode by putting the
# repo root on sys.path.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def object_store(store_root: Path):
    from lecture_qa.db.object_store import LocalObjectStore

    return LocalObjectStore(store_root)


@pytest.fixture
def kv_store(store_root: Path):
    from lecture_qa.db.kv_store import LocalKeyValueStore

    return LocalKeyValueStore(store_root)


@pytest.fixture
def pipeline_config():
    from lecture_qa.config import load_pipeline_config

    return load_pipeline_config()
