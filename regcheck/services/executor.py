from __future__ import annotations

import time
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin

import httpx
import orjson

from ..headers import ALLOWED_FORWARD_HEADERS, JOB_ID_HEADER, pick_headers
from ..jobs import JobManager
from ..logger import get_logger
from ..models import ExecuteRequest, JobError, JobPatch, JobRecord, JobResult

logger = get_logger(__name__)

_NO_BODY_METHODS = {"GET", "HEAD"}


def normalize_endpoint(endpoint: str, base_url: str) -> str:
    if endpoint.startswith("http://") or endpoint.startswith("https://"):
        return endpoint
    base = base_url if base_url.endswith("/") else f"{base_url}/"
    return urljoin(base, endpoint)


def _parse_json(text: str) -> Any:
    """Parsed body, or ``None`` when the body is empty or not JSON."""
    if not text:
        return None
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return None


def _error_message(parsed: Any, status_code: int) -> str:
    if isinstance(parsed, dict) and parsed.get("message") is not None:
        return str(parsed["message"])
    return f"Upstream request failed with status {status_code}"


class Executor:
    """Performs the upstream call for one job and records the outcome.

    ``run`` never raises: every failure ends up in the job record so that a
    poller always reaches a terminal state.
    """

    def __init__(self, jobs: JobManager, base_url: str, timeout: float = 900.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.jobs = jobs
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def run(self, payload: ExecuteRequest | dict, headers: Mapping[str, str]) -> Optional[JobRecord]:
        if isinstance(payload, dict):
            payload = ExecuteRequest.model_validate(payload)
        lowered = {k.lower(): v for k, v in headers.items()}
        job_id = payload.job_id or lowered.get(JOB_ID_HEADER)
        endpoint = payload.request.endpoint if payload.request else None
        if not job_id or not endpoint:
            logger.error("Background job missing jobId or endpoint (jobId=%s, endpoint=%s)", job_id, endpoint)
            return None

        try:
            self.jobs.merge(job_id, JobPatch(job_id=job_id, status="running"))
        except Exception:
            logger.exception("Could not mark job %s as running", job_id)
            return None

        started = time.perf_counter()
        try:
            patch = self._call_upstream(payload, lowered)
        except Exception as exc:
            logger.exception("Upstream call for job %s raised", job_id)
            patch = JobPatch(status="failed", error=JobError(message=str(exc) or type(exc).__name__))
        patch.metrics = {"durationMs": round((time.perf_counter() - started) * 1000, 3)}

        try:
            record = self.jobs.merge(job_id, patch)
        except Exception:
            logger.exception("Could not record outcome of job %s", job_id)
            return None
        logger.info("Job %s finished as %s in %.0f ms", job_id, record.status, record.metrics.duration_ms)
        return record

    def _call_upstream(self, payload: ExecuteRequest, headers: Dict[str, str]) -> JobPatch:
        descriptor = payload.request
        method = (descriptor.method or "POST").upper()
        url = normalize_endpoint(descriptor.endpoint, self.base_url)

        out_headers = pick_headers(headers, ALLOWED_FORWARD_HEADERS + ("content-type",))
        out_headers.setdefault("content-type", "application/json")

        content = None
        if descriptor.body is not None and method not in _NO_BODY_METHODS:
            content = orjson.dumps(descriptor.body)

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            r = client.request(method, url, headers=out_headers, content=content)
            text = r.text

        parsed = _parse_json(text)
        result = JobResult(
            status=r.status_code,
            status_text=r.reason_phrase or None,
            body=parsed,
            raw_body=text or None,
            weight_bytes=len(text.encode("utf-8")) if text else None,
        )

        if not r.is_success:
            details = parsed if parsed is not None else (text or None)
            return JobPatch(
                status="failed",
                error=JobError(message=_error_message(parsed, r.status_code), details=details),
                result=result,
            )
        return JobPatch(status="completed", result=result)
