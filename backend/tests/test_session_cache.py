"""
Client session cache: round-trip, clear, and tolerance of bad data.
"""
from __future__ import annotations

import json

import pytest

from backend.identity_access.domain import AuthUser
from backend.identity_access.stores import STORAGE_KEY, MemorySessionCache, SessionCache


USER = AuthUser(id="u1", email="jane@example.com", name="Jane", role="manager")


@pytest.fixture(params=["memory", "file"])
def cache(request, tmp_path):
    if request.param == "memory":
        return MemorySessionCache()
    return SessionCache(tmp_path / "session.json")


def test_round_trip_and_clear(cache):
    assert cache.load() is None
    cache.save(USER)
    assert cache.load() == USER
    cache.clear()
    assert cache.load() is None


def test_saving_none_clears(cache):
    cache.save(USER)
    cache.save(None)
    assert cache.load() is None


def test_file_cache_keeps_unrelated_keys(tmp_path):
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")
    cache = SessionCache(path)
    cache.save(USER)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["theme"] == "dark"
    assert data[STORAGE_KEY]["role"] == "manager"
    cache.clear()
    assert json.loads(path.read_text(encoding="utf-8")) == {"theme": "dark"}


def test_corrupt_or_partial_file_reads_as_no_session(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    assert SessionCache(path).load() is None
    path.write_text(json.dumps({STORAGE_KEY: {"id": "u1", "email": "a@b.c"}}), encoding="utf-8")
    assert SessionCache(path).load() is None
