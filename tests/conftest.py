"""Pytest configuration helpers for test collection.

Ensure the project root is on sys.path so tests can import the package
without requiring PYTHONPATH to be set externally.
"""
import sys
from pathlib import Path

import pytest


def pytest_configure(config):
    # Insert repo root (one level up from tests/) to sys.path
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


@pytest.fixture
def store(tmp_path):
    from bucketmap_lib.storage import open_store

    s = open_store(tmp_path / "store.db")
    yield s
    s.close()


@pytest.fixture
def db(tmp_path):
    from bucketmap_lib import DB

    d = DB.open(tmp_path / "test.db")
    yield d
    d.close()
