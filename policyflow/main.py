# policyflow/main.py
"""
PolicyFlow - Main Application

Turns policy documents into structured workflows, decision trees and
checklists, and validates case data against policy rules.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .settings import settings
from .errors import PolicyFlowError, RateLimitError
from .logging import get_api_logger
from .db.engine import check_connection, init_db
from .api import generate_router, policies_router, cases_router

logger = get_api_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Creates missing tables on startup.
    """
    logger.info("startup", service="policyflow")
    try:
        init_db()
        logger.info("database_ready")
    except Exception:
        logger.exception("database_init_failed")

    yield

    logger.info("shutdown", service="policyflow")


app = FastAPI(
    title="PolicyFlow",
    description="""
    Policy-to-workflow engine.

    - Generates workflows, bounded yes/no decision trees, checklists and
      validation rules from policy text or PDFs
    - Validates case data (JSON or extracted from a PDF) against policy rules
      with approved / rejected / needs_review verdicts
    """,
    version="0.1.0",
    lifespan=lifespan,
)

allowed_origins = settings.allowed_origins.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add basic security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Server"] = "PolicyFlow"
        return response


app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(PolicyFlowError)
async def policyflow_error_handler(request: Request, exc: PolicyFlowError):
    """Report pipeline errors with their own status code."""
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
    else:
        logger.warning(
            "request_rejected",
            path=request.url.path,
            error_type=type(exc).__name__,
            status_code=exc.status_code,
        )

    headers = {}
    if isinstance(exc, RateLimitError) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are bad input, not unprocessable entities."""
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unexpected_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(generate_router)
app.include_router(policies_router)
app.include_router(cases_router)


@app.get("/health")
async def health_check():
    """Basic health check."""
    return {"status": "ok", "service": "policyflow"}


@app.get("/health/db")
async def db_health_check():
    """Database health check."""
    if check_connection():
        return {"status": "ok", "database": "connected"}
    raise HTTPException(status_code=503, detail="Database connection failed")


def run():
    """Run the server (entry point for CLI)."""
    import uvicorn
    uvicorn.run(
        "policyflow.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    run()
