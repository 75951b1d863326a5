from __future__ import annotations

import threading

from ..config import Settings
from ..errors import MissingStoreEnvironmentError, StoreUnavailableError
from ..logger import get_logger
from .stores import FileRecordStore, MemoryRecordStore, RecordStore, RedisRecordStore

logger = get_logger(__name__)

TIERS = ("redis", "file", "memory")

_fallback_lock = threading.Lock()
_memory_warning_logged = False


def _warn_memory_fallback(reason: str) -> None:
    global _memory_warning_logged
    with _fallback_lock:
        if _memory_warning_logged:
            return
        _memory_warning_logged = True
    logger.warning(
        "Falling back to in-memory job store: %s. Jobs are lost on restart and are not "
        "visible to other processes.",
        reason,
    )


def _open_tier(tier: str, settings: Settings) -> RecordStore:
    if tier == "redis":
        return RedisRecordStore.from_url(settings.redis_url, prefix=settings.job_store_prefix)
    return FileRecordStore.open(settings.job_store_path)


def open_store(settings: Settings) -> RecordStore:
    """Open the first record store tier that initializes.

    Tiers are tried in order redis, file, memory. ``job_store_backend`` moves
    the starting point down the list. The caller owns the returned handle and
    is expected to keep it for the process lifetime.
    """
    start = settings.job_store_backend or TIERS[0]
    if start not in TIERS:
        raise ValueError(f"Unknown job store backend: {start!r}")

    reason = f"{start} backend requested"
    for tier in TIERS[TIERS.index(start):-1]:
        try:
            store = _open_tier(tier, settings)
        except MissingStoreEnvironmentError as exc:
            logger.info("Skipping %s job store: %s", tier, exc)
            reason = str(exc)
            continue
        except StoreUnavailableError as exc:
            logger.warning("Skipping %s job store: %s", tier, exc)
            reason = str(exc)
            continue
        logger.info("Using %s job store", store.name)
        return store

    _warn_memory_fallback(reason)
    return MemoryRecordStore()
