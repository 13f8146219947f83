"""Translate domain exceptions into HTTP responses"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from app.errors import DomainError, ExternalServiceError

logger = structlog.get_logger()


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, ExternalServiceError):
        logger.warning("External service failure", path=request.url.path, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
