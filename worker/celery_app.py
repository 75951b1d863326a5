from functools import lru_cache

from celery import Celery
from celery.signals import setup_logging

from regcheck.config import settings

celery_app = Celery(
    "regcheck",
    broker=settings.celery_broker_url,
)
# acked on receipt: a lost worker must not hand the job to a second executor
celery_app.conf.update(task_ignore_result=True, task_acks_late=False)

@setup_logging.connect
def _configure_worker_logging(**kwargs):
    from regcheck.logger import configure_logging
    configure_logging(settings.log_level)

@lru_cache(maxsize=1)
def _executor():
    # one store handle per worker process
    from regcheck.jobs import JobManager
    from regcheck.services.executor import Executor
    from regcheck.storage.factory import open_store
    return Executor(
        JobManager(open_store(settings)),
        base_url=settings.upstream_base_url,
        timeout=settings.upstream_timeout_seconds,
    )

@celery_app.task(name="execute_job")
def execute_job(payload: dict, headers: dict) -> str | None:
    record = _executor().run(payload, headers)
    return record.status if record else None
