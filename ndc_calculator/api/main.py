"""FastAPI application entry point for NDC Calculator.

Builds the calculation orchestrator around a shared httpx client for the
lifetime of the app.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ndc_calculator.api.calculate import router as calculate_router
from ndc_calculator.config.settings import get_settings
from ndc_calculator.errors import AppError, ErrorCode, to_error_response
from ndc_calculator.orchestrator import build_orchestrator

APP_VERSION = "0.1.0"

settings = get_settings()

_LOG_NAME_TO_LEVEL: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# --- Structured logging ---
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if settings.ENVIRONMENT == "dev"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value],
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)
logging.basicConfig(level=_LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value])

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    async with httpx.AsyncClient(
        headers={"Accept": "application/json"},
        follow_redirects=True,
    ) as client:
        app.state.orchestrator = build_orchestrator(settings, client)
        logger.info(
            "startup",
            environment=settings.ENVIRONMENT.value,
            llm_configured=settings.has_openai,
        )
        yield
        app.state.orchestrator = None


# --- FastAPI app ---
app = FastAPI(
    title="NDC Calculator API",
    description="Prescription quantity to dispensable NDC package selection.",
    version=APP_VERSION,
    lifespan=lifespan,
)

# --- CORS middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.ENVIRONMENT == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """Malformed request bodies are client errors with a typed code."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request format")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": f"{location}: {message}" if location else message,
            "code": ErrorCode.VALIDATION_ERROR.value,
        },
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Typed errors raised outside a route body (e.g. in dependencies)."""
    logger.warning("request_failed", path=request.url.path, code=exc.code.value, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=to_error_response(exc))


# --- Routers ---
app.include_router(calculate_router)


# --- Infrastructure Endpoints ---


@app.get("/health")
async def health_check() -> dict:
    """Liveness probe with configuration checks.

    Returns 200 always (degraded status if the LLM is not configured).
    """
    checks: dict[str, bool] = {
        "api": True,
        "llm_configured": settings.has_openai,
    }
    all_ok = all(checks.values())
    return {
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "checks": checks,
    }


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    """Return application name, version, and environment."""
    return {
        "name": "NDC Calculator",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
