"""
Record store backends.

Every backend speaks the same four calls over plain JSON-able dicts keyed by
job id. The store is the only channel between the launcher, the executor and
the status endpoint, so nothing here may rely on process memory except the
in-memory fallback.
"""

from __future__ import annotations

import os
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
import redis

from ..errors import MissingStoreEnvironmentError, StoreUnavailableError


class RecordStore(ABC):
    name: str = "abstract"

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, key: str, record: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def list_keys(self) -> List[str]:
        ...


class RedisRecordStore(RecordStore):
    name = "redis"

    def __init__(self, client: "redis.Redis", prefix: str = "regcheck-jobs:"):
        self.r = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str | None, prefix: str = "regcheck-jobs:") -> "RedisRecordStore":
        if not url:
            raise MissingStoreEnvironmentError("REDIS_URL is not configured")
        try:
            client = redis.from_url(url, decode_responses=True)
            client.ping()
        except redis.RedisError as exc:
            raise StoreUnavailableError(f"Redis at {url} is unreachable: {exc}") from exc
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self.r.get(self._key(key))
        if not raw:
            return None
        return orjson.loads(raw)

    def set(self, key: str, record: Dict[str, Any]) -> None:
        self.r.set(self._key(key), orjson.dumps(record).decode())

    def delete(self, key: str) -> None:
        self.r.delete(self._key(key))

    def list_keys(self) -> List[str]:
        return [k[len(self.prefix):] for k in self.r.scan_iter(match=f"{self.prefix}*")]


class FileRecordStore(RecordStore):
    """Single JSON object on disk, keyed by job id.

    Writers in other processes can race on the read-modify-write; only
    writers sharing this handle are serialized.
    """

    name = "file"

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: str | Path) -> "FileRecordStore":
        store = cls(path)
        try:
            store.path.parent.mkdir(parents=True, exist_ok=True)
            if not store.path.exists():
                store._write_all({})
            elif not os.access(store.path, os.R_OK | os.W_OK):
                raise StoreUnavailableError(f"{store.path} is not readable and writable")
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot use {store.path}: {exc}") from exc
        return store

    def _read_all(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        tmp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._read_all().get(key)

    def set(self, key: str, record: Dict[str, Any]) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = record
            self._write_all(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)

    def list_keys(self) -> List[str]:
        return list(self._read_all().keys())


class MemoryRecordStore(RecordStore):
    name = "memory"

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        return orjson.loads(raw) if raw is not None else None

    def set(self, key: str, record: Dict[str, Any]) -> None:
        # stored encoded so callers never share a mutable dict with the store
        self._data[key] = orjson.dumps(record)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def list_keys(self) -> List[str]:
        return list(self._data.keys())
