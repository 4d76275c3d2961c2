"""FastAPI service exposing Formie forms and submissions behind API keys.

This module implements the REST surface of the gateway. Every protected
endpoint declares the permission it needs through ``require_permission``;
admission (key lookup, permission, IP whitelist, request signature, per-key
sliding-window quota) is decided by the ``RequestAuthorizer`` held in the
service container. Field values are normalized by the ``FieldValueTransformer``
and every body is wrapped in the success / error envelope.

API Endpoints:
    - GET /: Service identification (no authentication)
    - GET /healthz: Service health (any valid key)
    - GET /api/v1/formie/forms: List forms (read_forms)
    - GET /api/v1/formie/forms/{ref}: Form detail by numeric ID or handle (read_forms)
    - GET /api/v1/formie/submissions: List submissions (read_submissions)
    - GET /api/v1/formie/submissions/{id}: Submission detail (read_submissions)
    - GET /api/test/formie/auth: Echo the authenticated key's metadata (any valid key)
    - OPTIONS *: CORS preflight

Cross-Cutting Behaviour:
    - CORS headers selected per environment from the request Origin
    - X-RateLimit-* headers on every authenticated response
    - Coarse per-client-IP ceiling via slowapi, ahead of key authentication
    - Structured access log for every request presenting an API key
    - Errors rendered as envelopes; debug detail only in dev mode

Concurrency:
    Endpoints are plain ``def`` functions and run in the server threadpool.
    The only shared mutable state is inside the RateLimiter, which serializes
    access per key.
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, time
from typing import Optional

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request, Security
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..auth import READ_FORMS, READ_SUBMISSIONS, ApiKeyRecord, require_permission
from ..config import get_settings
from ..container import Container, configure_services
from ..errors import ApiError, BadRequestError, NotFoundError
from ..models.envelope import error, success
from ..models.forms import SubmissionQuery
from ..security.audit import log_api_access
from ..security.cors import cors_headers
from .transform import transform_form, transform_submission

# Load environment variables
load_dotenv()

# Configure logging
logger = structlog.get_logger()

API_PREFIX = "/api/v1/formie"
HANDLE_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-")
MAX_PAGE_SIZE = 1000


def _container(request: Request) -> Container:
    return request.app.state.container


def _debug(request: Request) -> bool:
    container = getattr(request.app.state, "container", None)
    if container is None:
        return False
    return container.get("settings").dev_mode


def _parse_date_bound(raw: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO date/datetime query parameter.

    Date-only upper bounds are extended to the end of that day.
    """
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw)
    except ValueError as e:
        raise BadRequestError(f"Invalid {name}: expected an ISO-8601 date", detail=str(e)) from e
    if end_of_day and len(raw) == 10:
        value = datetime.combine(value.date(), time(23, 59, 59))
    return value


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the service container on startup and dispose of it on shutdown."""
    if getattr(app.state, "container", None) is None:
        app.state.container = configure_services()

    logger.info("formgate service started")

    yield

    logger.info("Shutting down services...")
    app.state.container.dispose()


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error(exc.code, exc.message, exc.detail, debug=_debug(request)),
        headers=exc.headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error("BAD_REQUEST", "Invalid request parameters", str(exc.errors()), debug=_debug(request)),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
    return JSONResponse(
        status_code=exc.status_code,
        content=error(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


# Invoked directly by SlowAPIMiddleware, which does not await handlers
def ip_rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Per-IP request ceiling exceeded",
        client_ip=get_remote_address(request),
        extra={"security_event": True},
    )
    return JSONResponse(
        status_code=429,
        content=error("IP_RATE_LIMITED", "Too many requests from this address", str(exc.detail), debug=_debug(request)),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", path=request.url.path, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error("INTERNAL_ERROR", "An unexpected error occurred", str(exc), debug=_debug(request)),
    )


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        container: Pre-configured service container. When omitted the
            container is built from the environment during startup.
    """
    app = FastAPI(
        title="Formie REST API",
        version=__version__,
        description="Authenticated read API for Formie forms and submissions",
        lifespan=lifespan,
    )
    app.state.container = container

    settings = container.get("settings") if container is not None else get_settings()

    # Per-client-IP ceiling, applied before key authentication
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.ip_rate_limit],
        enabled=settings.ip_rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RateLimitExceeded, ip_rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.middleware("http")
    async def cors_and_access_log(request: Request, call_next):
        settings = _container(request).get("settings")
        headers = cors_headers(
            request.headers.get("Origin"),
            settings.environment,
            settings.cors_origins,
        )

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        response = await call_next(request)
        for name, value in headers.items():
            response.headers[name] = value

        decision = getattr(request.state, "auth", None)
        if decision is not None and decision.rate_limit is not None:
            for name, value in decision.rate_limit.as_headers().items():
                response.headers.setdefault(name, value)

        api_key = request.headers.get("X-API-Key")
        if api_key:
            log_api_access(
                api_key,
                request.url.path,
                request.method,
                dict(request.query_params),
                response.status_code,
                settings.environment,
                ip=request.client.host if request.client else None,
                user_agent=request.headers.get("User-Agent"),
            )
        return response

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    """Attach every endpoint to ``app``."""

    @app.get("/")
    def root():
        """Service identification, no authentication required."""
        return success(
            {"service": "Formie REST API", "version": __version__, "status": "running"},
            {"version": "1.0"},
        )

    @app.get("/healthz")
    def health(request: Request, key: ApiKeyRecord = Security(require_permission(None))):
        """Report service health and container state to any valid key."""
        container = _container(request)
        return success(
            {
                "status": "healthy",
                "environment": container.get("settings").environment,
                "services": container.get_service_info(),
            },
            {"endpoint": "healthz"},
        )

    @app.get(f"{API_PREFIX}/forms")
    def list_forms(
        request: Request,
        limit: int = Query(100, ge=0, le=MAX_PAGE_SIZE),
        offset: int = Query(0, ge=0),
        status: str = Query("enabled"),
        key: ApiKeyRecord = Security(require_permission(READ_FORMS)),
    ):
        """List forms, optionally filtered by status ("all" disables the filter)."""
        store = _container(request).get("store")
        forms, total = store.list_forms(status, limit, offset)

        return success(
            [transform_form(form, store) for form in forms],
            {"total": total, "limit": limit, "offset": offset},
        )

    @app.get(f"{API_PREFIX}/forms/{{form_ref}}")
    def get_form(
        request: Request,
        form_ref: str,
        key: ApiKeyRecord = Security(require_permission(READ_FORMS)),
    ):
        """Form detail with fields and pages; numeric refs are IDs, others handles."""
        store = _container(request).get("store")

        if form_ref.isascii() and form_ref.isdigit():
            form = store.get_form(int(form_ref))
            if form is None:
                raise NotFoundError(f"Form with ID {form_ref} not found")
        else:
            if not set(form_ref) <= HANDLE_CHARS:
                raise BadRequestError(f"Invalid form handle '{form_ref}'")
            form = store.get_form_by_handle(form_ref)
            if form is None:
                raise NotFoundError(f"Form with handle '{form_ref}' not found")

        return success(transform_form(form, store, include_fields=True))

    @app.get(f"{API_PREFIX}/submissions")
    def list_submissions(
        request: Request,
        form_id: Optional[int] = Query(None, alias="formId"),
        form_handle: Optional[str] = Query(None, alias="formHandle"),
        status: str = Query("live"),
        limit: int = Query(100, ge=0, le=MAX_PAGE_SIZE),
        offset: int = Query(0, ge=0),
        date_from: Optional[str] = Query(None, alias="dateFrom"),
        date_to: Optional[str] = Query(None, alias="dateTo"),
        key: ApiKeyRecord = Security(require_permission(READ_SUBMISSIONS)),
    ):
        """List submissions newest first with form, status and date filters."""
        container = _container(request)
        store = container.get("store")
        transformer = container.get("transformer")

        if form_handle:
            form = store.get_form_by_handle(form_handle)
            if form is None:
                raise BadRequestError(f"Form with handle '{form_handle}' not found")
            form_id = form.id

        query = SubmissionQuery(
            form_id=form_id,
            status=status,
            date_from=_parse_date_bound(date_from, "dateFrom"),
            date_to=_parse_date_bound(date_to, "dateTo", end_of_day=True),
            limit=limit,
            offset=offset,
        )
        submissions, total = store.list_submissions(query)

        return success(
            [transform_submission(s, store, transformer) for s in submissions],
            {"total": total, "limit": limit, "offset": offset},
        )

    @app.get(f"{API_PREFIX}/submissions/{{submission_id}}")
    def get_submission(
        request: Request,
        submission_id: int,
        key: ApiKeyRecord = Security(require_permission(READ_SUBMISSIONS)),
    ):
        """Submission detail including the owning form."""
        container = _container(request)
        store = container.get("store")

        submission = store.get_submission(submission_id)
        if submission is None:
            raise NotFoundError(f"Submission with ID {submission_id} not found")

        return success(
            transform_submission(submission, store, container.get("transformer"), include_form=True)
        )

    @app.get("/api/test/formie/auth")
    def test_auth(key: ApiKeyRecord = Security(require_permission(None))):
        """Echo metadata of the presented key; any valid key is accepted."""
        return success(
            {
                "authenticated": True,
                "apiKeyInfo": {
                    "name": key.name,
                    "permissions": sorted(key.permissions),
                    "rateLimit": key.rate_limit,
                },
            },
            {"version": "1.0", "endpoint": "auth"},
        )


# Create FastAPI app
app = create_app()


def run() -> None:
    """Run the service with uvicorn and console structured logging."""
    import uvicorn

    # Configure structured logging
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Run the server
    uvicorn.run(
        "formgate.service.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "false").lower() == "true",
    )


if __name__ == "__main__":
    run()
