"""
Client side of the job flow: submit a job, then poll until it is terminal.

``run_validation_job`` is the single call the rest of an application needs.
It raises ``SubmissionError`` when the launcher refuses the job,
``PollingError`` when the status endpoint misbehaves, and
``JobTimeoutError``/``JobCancelledError`` when the caller stops waiting. A job
that failed upstream is *returned*, as a record with ``status == "failed"``.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional

import httpx
from pydantic import ValidationError

from .config import settings
from .errors import JobCancelledError, JobTimeoutError, PollingError, SubmissionError
from .logger import get_logger
from .models import TERMINAL_STATUSES, PolledJobRecord

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL_MS = 1500
MIN_POLL_INTERVAL_MS = 500
MAX_POLL_INTERVAL_MS = 5000
BACKOFF_FACTOR = 1.4
# stays under the executor's own 15 minute ceiling
DEFAULT_TIMEOUT_MS = 14 * 60 * 1000

DECERNIS_API_BASE_URL = "https://api.decernis.com"
INGREDIENT_ENDPOINT_PATH = "/v5/ingredient-analysis/transaction?report=tabular"
RECIPE_ENDPOINT_PATH = "/v5/recipe-analysis/transaction"


def next_poll_interval(interval: float, factor: float = BACKOFF_FACTOR, cap: float = MAX_POLL_INTERVAL_MS) -> float:
    return min(cap, interval * factor)


def poll_intervals(initial: float = DEFAULT_POLL_INTERVAL_MS, factor: float = BACKOFF_FACTOR,
                   cap: float = MAX_POLL_INTERVAL_MS) -> Iterator[float]:
    interval = min(cap, max(MIN_POLL_INTERVAL_MS, initial))
    while True:
        yield interval
        interval = next_poll_interval(interval, factor, cap)


def _start_headers(api_key: str) -> Dict[str, str]:
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    key = (api_key or "").strip()
    if key:
        headers["Authorization"] = f"Bearer {key}"
        headers["x-api-key"] = key
    return headers


def _message_from(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return default


def _status_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise PollingError("Status response is not valid JSON", status_code=response.status_code) from exc
    if not isinstance(data, dict) or not isinstance(data.get("status"), str):
        raise PollingError("Status response carries no job status", status_code=response.status_code)
    return data


async def run_validation_job(
    endpoint_path: str,
    payload: Any,
    api_key: str,
    metadata: Optional[Dict[str, Any]] = None,
    poll_interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    cancel: Optional[asyncio.Event] = None,
    *,
    base_url: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> PolledJobRecord:
    if not endpoint_path:
        raise ValueError("endpoint_path is required")

    base = (base_url or settings.functions_base_url).rstrip("/")
    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=30.0)

    started = clock()
    try:
        job_id = await _submit(client, base, endpoint_path, payload, api_key, metadata)
        return await _poll(client, base, job_id, started, poll_interval_ms, timeout_ms, cancel, sleep, clock)
    finally:
        if own_client:
            await client.aclose()


async def _submit(client: httpx.AsyncClient, base: str, endpoint_path: str, payload: Any,
                  api_key: str, metadata: Optional[Dict[str, Any]]) -> str:
    local_job_id = str(uuid.uuid4())
    body = {
        "jobId": local_job_id,
        "request": {"endpoint": endpoint_path, "method": "POST", "body": payload},
        "metadata": metadata,
    }
    r = await client.post(f"{base}/start", json=body, headers=_start_headers(api_key))
    if not r.is_success:
        default = f"Failed to start validation job (status {r.status_code})"
        raise SubmissionError(_message_from(r, default), status_code=r.status_code)

    try:
        data = r.json()
    except ValueError:
        data = None
    # some deployments answer 202 without a body
    if isinstance(data, dict) and data.get("jobId"):
        return str(data["jobId"])
    return local_job_id


async def _poll(client: httpx.AsyncClient, base: str, job_id: str, started: float,
                poll_interval_ms: float, timeout_ms: float, cancel: Optional[asyncio.Event],
                sleep: Callable[[float], Awaitable[Any]], clock: Callable[[], float]) -> PolledJobRecord:
    intervals = poll_intervals(poll_interval_ms)

    while True:
        if cancel is not None and cancel.is_set():
            raise JobCancelledError("Validation job polling aborted", job_id)
        if (clock() - started) * 1000 > timeout_ms:
            raise JobTimeoutError("Timed out while waiting for validation job to complete", job_id)

        r = await client.get(f"{base}/status", params={"jobId": job_id}, headers={"Accept": "application/json"})

        if r.status_code != 404:
            if not r.is_success:
                raise PollingError(r.text or f"Unexpected status response ({r.status_code})", status_code=r.status_code)
            data = _status_body(r)
            if data["status"] in TERMINAL_STATUSES:
                try:
                    record = PolledJobRecord.model_validate(data)
                except ValidationError as exc:
                    raise PollingError(f"Malformed job record: {exc}", status_code=r.status_code) from exc
                logger.info("Validation job %s finished as %s", job_id, record.status)
                return record

        await sleep(next(intervals) / 1000)
