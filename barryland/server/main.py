"""FastAPI application implementing the BarryLand REST contract in memory.

Run it with ``uvicorn barryland.server.main:app --port 5000`` and point the
client at ``http://localhost:5000/api``.
"""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from barryland import __version__
from barryland.schemas.error import ErrorType, ValidationErrorDetail
from barryland.server.api import auth, messages, properties
from barryland.server.repository import DocumentStore
from barryland.server.security import TokenSigner
from barryland.server.utils.error_responses import (
    build_error_response,
    build_validation_error_response,
)
from barryland.server.utils.request_context import (
    REQUEST_ID_HEADER,
    get_request_id,
    resolve_request_id,
    set_request_id,
)
from barryland.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def _default_origins() -> list[str]:
    origins: list[str] = []
    for host in ("localhost", "127.0.0.1"):
        origins.extend(f"http://{host}:{port}" for port in (3000, 5173))
    return origins


def validate_environment(settings: AppSettings) -> None:
    """Log a warning for every optional setting left unset."""

    warnings = settings.optional_config_warnings()
    if not warnings:
        return
    logger.warning("Environment Configuration Warnings:")
    for warning in warnings:
        logger.warning("  - %s", warning)


def _validation_details(errors: list[dict]) -> list[ValidationErrorDetail]:
    return [
        ValidationErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in errors
    ]


def _validation_response(request: Request, errors: list[dict], message: str) -> JSONResponse:
    details = _validation_details(errors)
    logger.warning(
        "Validation error for request %s to %s: %s errors",
        get_request_id(),
        request.url.path,
        len(details),
    )
    payload = build_validation_error_response(
        message=message,
        detail=f"{len(details)} validation error(s)",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        path=str(request.url.path),
        errors=details,
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=payload.model_dump(mode="json"),
    )


def create_app(
    store: DocumentStore | None = None,
    *,
    settings: AppSettings | None = None,
) -> FastAPI:
    """Build the application around ``store`` (a fresh one when omitted)."""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        validate_environment(settings)
        logger.info("BarryLand reference API ready (%d properties)", len(app.state.store.properties))
        yield
        logger.info("Shutting down BarryLand reference API")

    app = FastAPI(
        title="BarryLand API",
        version=__version__,
        description="In-memory reference implementation of the BarryLand REST API.",
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.store = store or DocumentStore()
    app.state.tokens = TokenSigner(
        settings.jwt_secret, expires_in=timedelta(days=settings.jwt_expire_days)
    )

    allow_origins = _default_origins() + [
        origin for origin in settings.cors_allow_origins if origin not in _default_origins()
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Tag every request with an id echoed in ``X-Request-ID``."""
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        set_request_id(request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _validation_response(request, list(exc.errors()), "Données invalides")

    @app.exception_handler(ValidationError)
    async def pydantic_validation_handler(request: Request, exc: ValidationError):
        return _validation_response(request, list(exc.errors()), "Données invalides")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Erreur"
        if exc.status_code >= 500:
            logger.error("HTTP %s for %s: %s", exc.status_code, request.url.path, message)
        else:
            logger.debug("HTTP %s for %s: %s", exc.status_code, request.url.path, message)
        payload = build_error_response(
            message=message,
            status_code=exc.status_code,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=payload.model_dump(mode="json"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception for request %s to %s: %s",
            get_request_id(),
            request.url.path,
            type(exc).__name__,
        )
        payload = build_error_response(
            error_type=ErrorType.INTERNAL_ERROR,
            message="Erreur serveur",
            detail=f"An unexpected error occurred: {type(exc).__name__}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=payload.model_dump(mode="json"),
        )

    @app.get("/health", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(auth.router, prefix=f"{API_PREFIX}/auth", tags=["auth"])
    app.include_router(properties.router, prefix=f"{API_PREFIX}/properties", tags=["properties"])
    app.include_router(messages.router, prefix=f"{API_PREFIX}/messages", tags=["messages"])
    return app


logging.basicConfig(
    level=get_settings().log_level_numeric,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = create_app()
