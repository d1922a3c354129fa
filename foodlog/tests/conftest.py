import sys
from pathlib import Path

import pytest

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from foodlog.db import open_store
from foodlog.repository import FoodDao, FoodEntryDao


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    # never pick up a developer's config.yaml or FOODLOG_DB_PATH
    monkeypatch.setenv("FOODLOG_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("FOODLOG_DB_PATH", raising=False)


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / "foodlog_test.db")


@pytest.fixture()
def store(db_path):
    s = open_store(db_path, config={"worker_threads": 2})
    yield s
    s.close()


@pytest.fixture()
def foods(store):
    return FoodDao(store)


@pytest.fixture()
def entries(store):
    return FoodEntryDao(store)
