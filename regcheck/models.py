from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

JobStatus = Literal["pending", "running", "completed", "failed"]
TERMINAL_STATUSES = frozenset({"completed", "failed"})


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class JobRequestInfo(_CamelModel):
    endpoint: str
    method: str = "POST"
    metadata: Optional[Dict[str, Any]] = None


class JobResult(_CamelModel):
    status: int
    status_text: Optional[str] = None
    body: Any = None
    raw_body: Optional[str] = None
    weight_bytes: Optional[int] = None


class JobError(_CamelModel):
    message: str
    details: Any = None


class JobMetrics(_CamelModel):
    duration_ms: Optional[float] = None


class JobRecord(_CamelModel):
    job_id: str
    status: JobStatus
    started_at: str
    updated_at: str
    completed_at: Optional[str] = None
    request: JobRequestInfo
    result: Optional[JobResult] = None
    error: Optional[JobError] = None
    metrics: Optional[JobMetrics] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class PolledJobRecord(_CamelModel):
    """A record as seen by the client poller; only ``status`` is guaranteed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    job_id: Optional[str] = None
    status: str
    started_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None
    request: Optional[Dict[str, Any]] = None
    result: Optional[JobResult] = None
    error: Optional[JobError] = None
    metrics: Optional[JobMetrics] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class JobPatch(_CamelModel):
    """Partial record for merge-patch.

    Only fields that were explicitly set take part in the merge; a field set
    to ``None`` clears it (``request`` and ``metrics`` are deep-merged instead).
    """

    job_id: Optional[str] = None
    status: Optional[JobStatus] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    request: Optional[Dict[str, Any]] = None
    result: Optional[JobResult] = None
    error: Optional[JobError] = None
    metrics: Optional[Dict[str, Any]] = None

    def to_patch_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class RequestDescriptor(BaseModel):
    endpoint: str
    method: Optional[str] = None
    body: Any = None


class StartRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: Optional[str] = Field(default=None, alias="jobId")
    request: RequestDescriptor
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("job_id", mode="before")
    @classmethod
    def _ignore_non_string_job_id(cls, value):
        # a fresh id is generated instead
        return value if isinstance(value, str) else None


class ExecuteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: Optional[str] = Field(default=None, alias="jobId")
    request: Optional[RequestDescriptor] = None
    metadata: Optional[Dict[str, Any]] = None


class StartResponse(BaseModel):
    jobId: str


class ExecuteResponse(BaseModel):
    jobId: str
    accepted: bool = True


class ListResponse(BaseModel):
    jobs: List[Dict[str, Any]]


class DeleteAllResponse(BaseModel):
    deleted: int
