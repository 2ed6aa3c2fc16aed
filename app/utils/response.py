import logging

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Cache-Control": "no-cache",
}


def create_response(
    message: str,
    data=None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Return a consistent success payload and status code."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": status_code < 400,
            "message": message,
            "data": jsonable_encoder(data),
        },
    )


def error_response(
    error: str,
    code: str,
    status_code: int,
    message: str | None = None,
    **extra,
) -> JSONResponse:
    """Return the shared ``{error, code, message}`` error payload."""
    content = {"error": error, "code": code}
    if message is not None:
        content["message"] = message
    content.update(jsonable_encoder(extra))
    return JSONResponse(status_code=status_code, content=content)


def handle_exception(error: Exception, fallback_message: str = "Internal server error") -> JSONResponse:
    """Coerce raised errors into the shared error structure."""
    if isinstance(error, HTTPException):
        detail = error.detail if isinstance(error.detail, str) else str(error.detail)
        return error_response(detail, f"HTTP_{error.status_code}", error.status_code)

    code = getattr(error, "code", None)
    return error_response(
        fallback_message,
        code if isinstance(code, str) else "INTERNAL_ERROR",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        message=str(error),
    )
