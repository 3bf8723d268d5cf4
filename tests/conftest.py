"""Shared pytest fixtures for store tests."""

import pytest

from healthanalyzer import Store, open_store


@pytest.fixture
def db_path(tmp_path):
    """Path to a fresh database file."""
    return str(tmp_path / "healthanalyzer.db")


@pytest.fixture
def store(db_path):
    """An open store on a temporary database file."""
    s = open_store(db_path)
    yield s
    s.close()


@pytest.fixture
def memory_store():
    """An open in-memory store."""
    s = Store(":memory:").open()
    yield s
    s.close()
