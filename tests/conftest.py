from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from regcheck.config import Settings
from regcheck.jobs import JobManager
from regcheck.storage.stores import MemoryRecordStore


class FixedClock:
    def __init__(self, start=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class RecordingDispatcher:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def dispatch(self, payload, headers, executor_url=None):
        self.calls.append((payload, headers, executor_url))
        if self.error is not None:
            raise self.error


@pytest.fixture
def settings(tmp_path):
    return Settings(
        redis_url=None,
        job_store_backend=None,
        job_store_path=str(tmp_path / "jobs.json"),
        upstream_base_url="https://upstream.test",
        internal_token=None,
        cleanup_on_terminal_read=False,
        log_level="DEBUG",
    )


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def jobs(store, clock):
    return JobManager(store, clock=clock)
