from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List, Optional

from .logger import get_logger
from .models import TERMINAL_STATUSES, JobPatch, JobRecord
from .storage.stores import RecordStore

logger = get_logger(__name__)

# merged key by key instead of replaced
_DEEP_MERGE_FIELDS = ("request", "metrics")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class JobManager:
    """Read-modify-write operations over job records in a ``RecordStore``.

    Transition legality is not enforced: the launcher and the executor run in
    separate processes and the store offers no conditional write, so callers
    are trusted to move a job forward only.
    """

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def get(self, job_id: str) -> Optional[JobRecord]:
        if not job_id:
            return None
        data = self.store.get(job_id)
        if data is None:
            return None
        return JobRecord.model_validate(data)

    def write(self, record: JobRecord) -> None:
        self.store.set(record.job_id, record.to_json_dict())

    def _skeleton(self, job_id: str, now: str) -> dict:
        return {
            "jobId": job_id,
            "status": "pending",
            "startedAt": now,
            "updatedAt": now,
            "request": {"endpoint": "unknown", "method": "POST"},
        }

    def merge(self, job_id: str, patch: JobPatch | dict) -> JobRecord:
        if isinstance(patch, dict):
            patch = JobPatch.model_validate(patch)
        changes = patch.to_patch_dict()

        now_dt = self.clock()
        now = isoformat(now_dt)
        existing = self.store.get(job_id) or self._skeleton(job_id, now)

        if existing.get("status") in TERMINAL_STATUSES:
            logger.warning("Job %s is already %s; applying patch anyway", job_id, existing["status"])

        merged = dict(existing)
        for field, value in changes.items():
            if field in _DEEP_MERGE_FIELDS:
                if value is not None:
                    merged[field] = {**(existing.get(field) or {}), **value}
            elif value is None:
                merged.pop(field, None)
            else:
                merged[field] = value
        merged["jobId"] = job_id

        previous = existing.get("updatedAt")
        if previous and _parse_iso(previous) > now_dt:
            now = previous
        merged["updatedAt"] = now

        if merged.get("status") in TERMINAL_STATUSES and not merged.get("completedAt"):
            merged["completedAt"] = now

        record = JobRecord.model_validate(merged)
        self.write(record)
        if record.status != existing.get("status"):
            logger.info("Job %s %s -> %s", job_id, existing.get("status"), record.status)
        return record

    def delete(self, job_id: str) -> None:
        self.store.delete(job_id)

    def list(self) -> List[JobRecord]:
        records = []
        for key in self.store.list_keys():
            record = self.get(key)
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: r.started_at, reverse=True)
        return records

    def delete_all(self) -> int:
        keys = self.store.list_keys()
        for key in keys:
            self.store.delete(key)
        logger.info("Deleted %d job records", len(keys))
        return len(keys)
