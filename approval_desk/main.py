"""Approval Desk: Main FastAPI Application.

Numbers proposals, issues approval tickets to board directors or general
members, pushes approval requests over LINE and records their answers.
"""

import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .api import api_router
from .core import (
    ApprovalDeskError,
    ConfigurationError,
    InvalidDecision,
    MissingRequiredField,
    NotFound,
    UpstreamUnavailable,
    get_settings,
)
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)
settings = get_settings()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Approval Desk API

    - **Issue numbers**: sequential per month, audience and category.
    - **Approval tickets**: one per eligible member, never duplicated.
    - **Decisions**: approve/deny, recorded once per ticket.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
)


ERROR_STATUS = {
    MissingRequiredField: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidDecision: status.HTTP_400_BAD_REQUEST,
    UpstreamUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: ApprovalDeskError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(ApprovalDeskError)
async def approval_desk_exception_handler(request: Request, exc: ApprovalDeskError):
    """Map the error taxonomy onto HTTP responses."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

    headers = {"Retry-After": "30"} if isinstance(exc, UpstreamUnavailable) else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=exc.error_code,
            message=exc.message,
            details=exc.details(),
        ).model_dump(),
        headers=headers,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last-resort 500 for anything outside the error taxonomy."""
    if settings.debug or settings.environment != "production":
        logger.error(
            f"{request.method} {request.url.path} crashed: {exc}\n{traceback.format_exc()}"
        )
    else:
        logger.error(f"{request.method} {request.url.path} crashed: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message="Approval Desk hit an unexpected error",
        ).model_dump(),
    )


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "record_store": settings.record_store_backend,
        "notion_enabled": settings.notion_enabled,
        "line_enabled": settings.line_enabled,
    }


app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "approval_desk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
