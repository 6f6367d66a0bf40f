import logging
from typing import Dict, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from app.core.config import settings
from app.domain.errors.exceptions import DomainError, ErrorCode

logger = logging.getLogger(__name__)


def domain_error_response(exc: DomainError, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Render a DomainError in the API error shape."""
    if exc.http_status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {**(headers or {}), "WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.http_status_code,
        content={
            "error": {
                "code": exc.code.value,
                "message": exc.message,
                "details": jsonable_encoder(exc.details) if exc.details else None,
            }
        },
        headers=headers,
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Handle all domain-level exceptions."""
    exc.log(logger)
    return domain_error_response(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": ErrorCode.VALIDATION_FAILED.value,
                "message": "The request payload is invalid.",
                "details": jsonable_encoder(exc.errors()),
            }
        },
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    # Runs outside the CORS middleware
    headers = {"Access-Control-Allow-Origin": "*"} if "*" in settings.BACKEND_CORS_ORIGINS else None
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": ErrorCode.INTERNAL_SERVER_ERROR.value,
                "message": "An unexpected error occurred.",
                "details": None,
            }
        },
        headers=headers,
    )
