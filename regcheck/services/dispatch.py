"""
Fire-and-forget triggers for the background executor.

A dispatcher only confirms that the executor *accepted* the job. The outcome
of the upstream call is written to the record store by the executor itself.
"""

from __future__ import annotations

from typing import Dict, Optional, Protocol

import httpx

from ..config import Settings
from ..errors import DispatchError
from ..logger import get_logger

logger = get_logger(__name__)


class Dispatcher(Protocol):
    async def dispatch(self, payload: dict, headers: Dict[str, str], executor_url: Optional[str] = None) -> None:
        ...


class HttpDispatcher:
    def __init__(self, executor_url: Optional[str] = None, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.executor_url = executor_url
        self.timeout = timeout
        self.transport = transport

    async def dispatch(self, payload: dict, headers: Dict[str, str], executor_url: Optional[str] = None) -> None:
        url = self.executor_url or executor_url
        if not url:
            raise DispatchError("No executor URL configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise DispatchError(f"Failed to enqueue background job ({exc})") from exc

        if not r.is_success:
            raise DispatchError(
                f"Failed to enqueue background job (status {r.status_code})",
                status_code=r.status_code,
            )
        logger.debug("Executor accepted job %s with status %d", payload.get("jobId"), r.status_code)


class CeleryDispatcher:
    async def dispatch(self, payload: dict, headers: Dict[str, str], executor_url: Optional[str] = None) -> None:
        from worker.celery_app import execute_job
        try:
            async_result = execute_job.delay(payload, headers)
        except Exception as exc:  # kombu raises its own OperationalError family
            raise DispatchError(f"Failed to enqueue background job ({exc})") from exc
        logger.debug("Queued job %s as celery task %s", payload.get("jobId"), async_result.id)


def build_dispatcher(settings: Settings) -> Dispatcher:
    mode = settings.dispatch_mode.lower()
    if mode == "celery":
        return CeleryDispatcher()
    if mode == "http":
        return HttpDispatcher(settings.executor_url, timeout=settings.dispatch_timeout_seconds)
    raise ValueError(f"Unknown dispatch mode: {settings.dispatch_mode!r}")
