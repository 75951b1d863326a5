from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from ..auth import require_internal_token
from ..config import Settings
from ..deps import get_executor, get_jobs, get_launcher, get_settings
from ..errors import ApiError, DispatchError
from ..headers import JOB_ID_HEADER
from ..jobs import JobManager
from ..models import DeleteAllResponse, ExecuteRequest, ExecuteResponse, ListResponse, StartRequest, StartResponse
from ..services.executor import Executor
from ..services.launcher import Launcher

router = APIRouter(prefix="/jobs", tags=["jobs"])

@router.post("/start", status_code=202, response_model=StartResponse)
async def start_job(payload: StartRequest, request: Request, launcher: Launcher = Depends(get_launcher)):
    executor_url = str(request.url_for("execute_job"))
    try:
        job_id = await launcher.start(payload, request.headers, executor_url=executor_url)
    except DispatchError as exc:
        raise ApiError(502, "Failed to enqueue background job", jobId=exc.job_id) from exc
    return StartResponse(jobId=job_id)

@router.post("/execute", name="execute_job", response_model=ExecuteResponse,
             dependencies=[Depends(require_internal_token)])
async def execute_job(payload: ExecuteRequest, request: Request, background: BackgroundTasks,
                      executor: Executor = Depends(get_executor)):
    job_id = payload.job_id or request.headers.get(JOB_ID_HEADER)
    if not job_id or not payload.request or not payload.request.endpoint:
        raise ApiError(400, "jobId and request.endpoint are required")
    payload.job_id = job_id
    # runs after the response is sent; the outcome is only visible through the store
    background.add_task(executor.run, payload, dict(request.headers))
    return ExecuteResponse(jobId=job_id)

@router.get("/status")
async def job_status(job_id: str | None = Query(default=None, alias="jobId"), cleanup: bool | None = None,
                     jobs: JobManager = Depends(get_jobs), settings: Settings = Depends(get_settings)):
    job_id = (job_id or "").strip()
    if not job_id:
        raise ApiError(400, "jobId query parameter is required")
    record = jobs.get(job_id)
    if record is None:
        raise ApiError(404, "Job not found", jobId=job_id)

    if record.is_terminal and (cleanup if cleanup is not None else settings.cleanup_on_terminal_read):
        jobs.delete(job_id)
    return record.to_json_dict()

@router.get("/list", response_model=ListResponse)
async def list_jobs(jobs: JobManager = Depends(get_jobs)):
    return ListResponse(jobs=[r.to_json_dict() for r in jobs.list()])

@router.delete("/all", response_model=DeleteAllResponse)
async def delete_all_jobs(jobs: JobManager = Depends(get_jobs)):
    return DeleteAllResponse(deleted=jobs.delete_all())
