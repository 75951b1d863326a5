import fnmatch
import logging

import pytest
import redis

from regcheck.errors import MissingStoreEnvironmentError, StoreUnavailableError
from regcheck.jobs import JobManager
from regcheck.storage import factory
from regcheck.storage.factory import open_store
from regcheck.storage.stores import FileRecordStore, MemoryRecordStore, RedisRecordStore


class FakeRedis:
    def __init__(self, fail_ping=False):
        self.data = {}
        self.fail_ping = fail_ping

    def ping(self):
        if self.fail_ping:
            raise redis.ConnectionError("connection refused")
        return True

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    def scan_iter(self, match=None):
        return [k for k in list(self.data) if match is None or fnmatch.fnmatch(k, match)]


@pytest.fixture(autouse=True)
def reset_memory_warning(monkeypatch):
    monkeypatch.setattr(factory, "_memory_warning_logged", False)


def test_memory_store_round_trip_returns_copies():
    store = MemoryRecordStore()
    record = {"jobId": "a", "status": "pending"}
    store.set("a", record)
    record["status"] = "mutated"

    assert store.get("a") == {"jobId": "a", "status": "pending"}
    assert store.get("missing") is None
    assert store.list_keys() == ["a"]


def test_file_store_round_trip(tmp_path):
    store = FileRecordStore.open(tmp_path / "nested" / "jobs.json")
    store.set("a", {"jobId": "a", "status": "pending"})
    store.set("b", {"jobId": "b", "status": "running"})
    store.delete("a")
    store.delete("does-not-exist")

    reopened = FileRecordStore.open(tmp_path / "nested" / "jobs.json")
    assert reopened.get("a") is None
    assert reopened.get("b") == {"jobId": "b", "status": "running"}
    assert reopened.list_keys() == ["b"]


def test_file_store_treats_corrupt_file_as_empty(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text("{not json")
    store = FileRecordStore.open(path)

    assert store.get("a") is None
    store.set("a", {"jobId": "a"})
    assert store.get("a") == {"jobId": "a"}


def test_redis_store_uses_prefixed_keys():
    client = FakeRedis()
    store = RedisRecordStore(client, prefix="rc:")
    store.set("job-1", {"jobId": "job-1", "status": "pending"})

    assert "rc:job-1" in client.data
    assert store.get("job-1")["status"] == "pending"
    assert store.list_keys() == ["job-1"]
    store.delete("job-1")
    assert store.get("job-1") is None


def test_redis_store_requires_url():
    with pytest.raises(MissingStoreEnvironmentError):
        RedisRecordStore.from_url(None)


def test_redis_store_wraps_connection_errors(monkeypatch):
    monkeypatch.setattr(redis, "from_url", lambda url, **kwargs: FakeRedis(fail_ping=True))
    with pytest.raises(StoreUnavailableError):
        RedisRecordStore.from_url("redis://nowhere:6379/0")


def test_open_store_prefers_redis_when_configured(monkeypatch, settings):
    monkeypatch.setattr(redis, "from_url", lambda url, **kwargs: FakeRedis())
    settings.redis_url = "redis://cache:6379/0"

    assert isinstance(open_store(settings), RedisRecordStore)


def test_missing_redis_environment_falls_back_to_file_store(settings, clock):
    store = open_store(settings)
    assert isinstance(store, FileRecordStore)

    jobs = JobManager(store, clock=clock)
    jobs.merge("job-1", {"status": "running", "request": {"endpoint": "/x"}})
    record = JobManager(open_store(settings)).get("job-1")
    assert record.status == "running"
    assert record.request.endpoint == "/x"


def test_unreachable_redis_falls_back_to_file_store(monkeypatch, settings):
    monkeypatch.setattr(redis, "from_url", lambda url, **kwargs: FakeRedis(fail_ping=True))
    settings.redis_url = "redis://nowhere:6379/0"

    assert isinstance(open_store(settings), FileRecordStore)


def test_unusable_file_path_falls_back_to_memory_and_warns_once(tmp_path, settings, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    settings.job_store_path = str(blocker / "jobs.json")

    with caplog.at_level(logging.WARNING, logger="regcheck.storage.factory"):
        first = open_store(settings)
        second = open_store(settings)

    assert isinstance(first, MemoryRecordStore)
    assert isinstance(second, MemoryRecordStore)
    warnings = [r for r in caplog.records if "in-memory job store" in r.getMessage()]
    assert len(warnings) == 1


def test_backend_setting_starts_lower_in_the_list(settings):
    settings.job_store_backend = "memory"
    assert isinstance(open_store(settings), MemoryRecordStore)

    settings.job_store_backend = "bogus"
    with pytest.raises(ValueError):
        open_store(settings)
