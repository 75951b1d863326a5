from __future__ import annotations

import uuid
from typing import Mapping, Optional

from ..errors import DispatchError
from ..headers import INTERNAL_TOKEN_HEADER, JOB_ID_HEADER, pick_headers
from ..jobs import JobManager
from ..logger import get_logger
from ..models import JobError, JobPatch, StartRequest
from .dispatch import Dispatcher

logger = get_logger(__name__)


class Launcher:
    def __init__(self, jobs: JobManager, dispatcher: Dispatcher, internal_token: Optional[str] = None):
        self.jobs = jobs
        self.dispatcher = dispatcher
        self.internal_token = internal_token

    async def start(self, req: StartRequest, headers: Mapping[str, str], executor_url: Optional[str] = None) -> str:
        """Record the job as pending and hand it to the executor.

        Returns the job id once the executor has accepted the trigger. Raises
        ``DispatchError`` after marking the job failed when it has not.
        """
        job_id = req.job_id.strip() if req.job_id and req.job_id.strip() else str(uuid.uuid4())
        method = (req.request.method or "POST").upper()

        self.jobs.merge(job_id, JobPatch(
            job_id=job_id,
            status="pending",
            request={"endpoint": req.request.endpoint, "method": method, "metadata": req.metadata},
            result=None,
            error=None,
        ))

        trigger_headers = {"content-type": "application/json", JOB_ID_HEADER: job_id}
        trigger_headers.update(pick_headers(headers))
        if self.internal_token:
            trigger_headers[INTERNAL_TOKEN_HEADER] = self.internal_token

        payload = {
            "jobId": job_id,
            "request": {"endpoint": req.request.endpoint, "method": method, "body": req.request.body},
            "metadata": req.metadata,
        }

        try:
            await self.dispatcher.dispatch(payload, trigger_headers, executor_url)
        except DispatchError as exc:
            logger.error("Job %s was not accepted by the executor: %s", job_id, exc)
            self.jobs.merge(job_id, JobPatch(job_id=job_id, status="failed", error=JobError(message=str(exc))))
            exc.job_id = job_id
            raise

        logger.info("Job %s dispatched to %s", job_id, req.request.endpoint)
        return job_id
