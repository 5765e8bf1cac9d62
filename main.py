from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core.errors import StorageError
from core.response_envelope import (
    apply_response_documentation,
    document_response,
    error_response,
    http_exception_response,
    request_id_from_request,
)
from core.settings import collect_missing_storage_credentials, get_settings
from core.storage import StorageManager
from core.validation_errors import format_validation_error_details

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response


def _log_configuration() -> None:
    missing = collect_missing_storage_credentials()
    logger.info("Storage bucket: %s", settings.b2_bucket_name or "not configured")
    logger.info("Storage key id: %s", "configured" if settings.b2_key_id else "not configured")
    logger.info("Storage application key: %s", "configured" if settings.b2_application_key else "not configured")
    if missing:
        logger.warning("Storage requests will fail until these are set: %s", ", ".join(missing))


@asynccontextmanager
async def lifespan(app: FastAPI):
    StorageManager.configure_from_settings()
    _log_configuration()
    try:
        yield
    finally:
        await StorageManager.shutdown()


app = FastAPI(lifespan=lifespan, title="Bucket Browser API")
app.add_middleware(RequestIdMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins) if settings.cors_origins else ["*"],
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc, StorageError):
        logger.warning(
            "%s %s failed with %s: %s (cause: %r)",
            request.method,
            request.url.path,
            exc.code.value,
            exc,
            exc.__cause__,
        )
    return http_exception_response(exc=exc, request=request)


@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
    details = format_validation_error_details(list(exc.errors()))
    return error_response(
        status_code=422,
        message="Validation error",
        data={"code": "VALIDATION_FAILED", "details": details},
        error=details["summary"],
        request_id=request_id_from_request(request),
    )


@app.exception_handler(Exception)
async def custom_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    details = str(exc) if (settings.debug_include_error_details and not settings.is_production) else None
    return error_response(
        status_code=500,
        message="Internal Server Error",
        data={"code": "INTERNAL_ERROR", "details": details},
        error=details,
        request_id=request_id_from_request(request),
    )


@app.get("/", tags=["Health"], include_in_schema=False)
@document_response(
    message="Bucket browser API is running",
    success_example={"status": "authorized"},
)
def read_root():
    manager = StorageManager.get_instance()
    return {
        "status": "authorized" if manager.session.is_authorized else "unauthorized",
    }


from api.diagnostics_route import router as diagnostics_router
from api.files_route import router as files_router

app.include_router(files_router)
app.include_router(diagnostics_router)

apply_response_documentation(app)


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
