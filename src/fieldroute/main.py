"""FastAPI application entry point."""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routes import health, jobs, optimization, work_estimates
from .config import settings
from .errors import RouteEngineError
from .schemas.common import format_error_entry, format_validation_error

logger = logging.getLogger(__name__)


def _error_response(status_code: int, detail: str, code: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code, **extra})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RouteEngineError)
    async def route_engine_error_handler(request: Request, exc: RouteEngineError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
        return _error_response(exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Body and path validation failures are client errors (400), not 422."""
        errors = [format_error_entry(error) for error in exc.errors()]
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            format_validation_error(exc),
            "validation_error",
            errors=errors,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown methods on known paths are reported like unknown paths.
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return _error_response(status.HTTP_404_NOT_FOUND, "Not found", "not_found")
        return _error_response(exc.status_code, str(exc.detail), "http_error")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "internal_error")


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title=settings.app_name)
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    _register_exception_handlers(app)

    # Root endpoint for diagnostics
    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(optimization.router, prefix=settings.api_prefix)
    app.include_router(jobs.router, prefix=settings.api_prefix)
    app.include_router(work_estimates.router, prefix=settings.api_prefix)
    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn, honouring the platform's PORT variable."""
    import uvicorn

    port = os.environ.get("PORT", "8000")
    try:
        port_int = int(port)
    except ValueError:
        logger.warning(f"Invalid PORT value '{port}', using default 8000")
        port_int = 8000
    uvicorn.run(
        "fieldroute.main:app",
        host="0.0.0.0",
        port=port_int,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
