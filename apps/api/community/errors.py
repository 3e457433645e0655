"""
Domain errors raised by the data-access layer and rendered by the API
"""
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .logging_config import setup_logging

logger = setup_logging(__name__)


class CommunityError(Exception):
    """Base class for expected, user-facing failures"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"

    def __init__(self, message: str, code: Optional[str] = None, **details: Any):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.details}


class ValidationError(CommunityError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class NotFoundError(CommunityError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class PermissionDeniedError(CommunityError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class ConflictError(CommunityError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class InsufficientPointsError(CommunityError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "INSUFFICIENT_POINTS"

    def __init__(self, current: int, required: int):
        super().__init__("Insufficient points", current=current, required=required)
        self.current = current
        self.required = required


async def community_error_handler(request: Request, exc: CommunityError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Render domain and HTTP errors as {"error": ...} envelopes"""
    app.add_exception_handler(CommunityError, community_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
