from pydantic import BaseModel
import os

def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}

class Settings(BaseModel):
    redis_url: str | None = os.getenv("REDIS_URL") or None
    job_store_backend: str | None = os.getenv("JOB_STORE_BACKEND") or None
    job_store_path: str = os.getenv("JOB_STORE_PATH", ".regcheck/jobs.json")
    job_store_prefix: str = os.getenv("JOB_STORE_PREFIX", "regcheck-jobs:")
    upstream_base_url: str = os.getenv("UPSTREAM_BASE_URL", "https://api.decernis.com")
    upstream_timeout_seconds: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", 900))
    dispatch_mode: str = os.getenv("DISPATCH_MODE", "http")
    executor_url: str | None = os.getenv("EXECUTOR_URL") or None
    dispatch_timeout_seconds: float = float(os.getenv("DISPATCH_TIMEOUT_SECONDS", 10))
    internal_token: str | None = os.getenv("INTERNAL_TOKEN") or None
    cleanup_on_terminal_read: bool = _flag("CLEANUP_ON_TERMINAL_READ")
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    functions_base_url: str = os.getenv("REGCHECK_FUNCTIONS_BASE_URL", "http://localhost:8000/jobs")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
