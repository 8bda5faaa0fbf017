import logging
import os
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from sports_api.api.auth import router as auth_router
from sports_api.api.onboarding import router as onboarding_router
from sports_api.api.sms import router as sms_router
from sports_api.core.api_response import error_response_payload, get_request_id, success_response_payload
from sports_api.core.errors import ApiError, DependencyFailure
from sports_api.core.metrics import increment_counter, prometheus_text, snapshot_metrics
from sports_api.core.settings import Settings
from sports_api.db.session import Database, get_database
from sports_api.services.sms import SmsSender, build_sms_sender

logger = logging.getLogger(__name__)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.settings is None:
        app.state.settings = Settings.from_env()
    settings: Settings = app.state.settings

    owns_database = app.state.database is None
    if owns_database:
        app.state.database = Database(settings.database_url)
    app.state.database.open()

    if app.state.sms_sender is None:
        app.state.sms_sender = build_sms_sender(settings)

    logger.info(
        "startup env=%s sms_provider=%s",
        settings.app_env,
        app.state.sms_sender.provider,
    )
    yield

    if owns_database:
        app.state.database.close()
        app.state.database = None


def _error_response(request: Request, status_code: int, *, code: str, message: str, details=None) -> JSONResponse:
    increment_counter(
        "http_errors_total",
        code=str(status_code),
        path=request.url.path,
        method=request.method.upper(),
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response_payload(request, code=code, message=message, details=details),
    )


def _validation_details(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    sms_sender: SmsSender | None = None,
) -> FastAPI:
    app = FastAPI(title="Sports API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.sms_sender = sms_sender

    app.include_router(auth_router)
    app.include_router(onboarding_router)
    app.include_router(sms_router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        started_at = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started_at) * 1000
        response.headers["X-Request-ID"] = request_id
        if request.url.path not in {"/metrics", "/metrics/prometheus"}:
            increment_counter(
                "http_requests_total",
                method=request.method.upper(),
                path=request.url.path,
                status=str(response.status_code),
            )
        logger.info(
            "http_request request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return _error_response(request, exc.status_code, code=exc.code, message=exc.message, details=exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        message = detail if isinstance(detail, str) else "Request failed"
        return _error_response(request, exc.status_code, code=f"http_{exc.status_code}", message=message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = _validation_details(exc)
        first = details[0] if details else {}
        field = next((part for part in reversed(first.get("loc", [])) if part not in {"body", "query"}), None)
        message = f"{field}: {first.get('msg')}" if field and first.get("msg") else "Invalid request"
        return _error_response(request, 400, code="validation_error", message=message, details=details)

    @app.exception_handler(OperationalError)
    async def database_error_handler(request: Request, exc: OperationalError):
        logger.error("database_unavailable request_id=%s error=%s", get_request_id(request), exc.orig)
        failure = DependencyFailure("Database is unavailable")
        return _error_response(request, failure.status_code, code=failure.code, message=failure.message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error request_id=%s", get_request_id(request), exc_info=exc)
        return _error_response(request, 500, code="internal_error", message="Internal server error")

    @app.get("/health")
    def health(request: Request):
        return success_response_payload(request, status="ok")

    @app.get("/health/db")
    def health_db(request: Request, database: Database = Depends(get_database)):
        database.ping()
        return success_response_payload(request, connected=True)

    @app.get("/metrics")
    def metrics(request: Request):
        return success_response_payload(request, counters=snapshot_metrics())

    @app.get("/metrics/prometheus")
    def metrics_prometheus():
        return PlainTextResponse(content=prometheus_text(), media_type="text/plain; version=0.0.4; charset=utf-8")

    return app


app = create_app()
