from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, settings as default_settings
from .errors import ApiError
from .logger import configure_logging
from .routers import jobs
from .services.dispatch import Dispatcher
from .storage.stores import RecordStore


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        return "Invalid JSON payload"
    if any(tuple(e.get("loc", ()))[1:2] == ("request",) for e in errors):
        return "Request endpoint is required"
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ())[1:])
    return f"Invalid request: {loc} {first.get('msg', '')}".strip()


def create_app(settings: Optional[Settings] = None, store: Optional[RecordStore] = None,
               dispatcher: Optional[Dispatcher] = None,
               upstream_transport: Optional[httpx.BaseTransport] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # only when served; importing the app leaves logging alone
        configure_logging(settings.log_level)
        yield

    app = FastAPI(title="RegCheck Jobs API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.upstream_transport = upstream_transport

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.include_router(jobs.router)

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message, **exc.extra})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": _validation_message(exc)})

    return app


app = create_app()
