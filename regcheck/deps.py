import threading

from fastapi import Request

from .config import Settings
from .jobs import JobManager
from .services.dispatch import Dispatcher, build_dispatcher
from .services.executor import Executor
from .services.launcher import Launcher
from .storage.factory import open_store
from .storage.stores import RecordStore

_store_lock = threading.Lock()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> RecordStore:
    state = request.app.state
    if state.store is None:
        with _store_lock:
            if state.store is None:
                state.store = open_store(state.settings)
    return state.store


def get_jobs(request: Request) -> JobManager:
    return JobManager(get_store(request))


def get_dispatcher(request: Request) -> Dispatcher:
    state = request.app.state
    if state.dispatcher is None:
        state.dispatcher = build_dispatcher(state.settings)
    return state.dispatcher


def get_launcher(request: Request) -> Launcher:
    return Launcher(get_jobs(request), get_dispatcher(request), internal_token=get_settings(request).internal_token)


def get_executor(request: Request) -> Executor:
    settings = get_settings(request)
    return Executor(
        get_jobs(request),
        base_url=settings.upstream_base_url,
        timeout=settings.upstream_timeout_seconds,
        transport=request.app.state.upstream_transport,
    )
