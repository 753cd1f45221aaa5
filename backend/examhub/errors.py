"""API error taxonomy and the FastAPI handlers that render it.

Services raise these exceptions; `install_exception_handlers` maps each
one to its HTTP status and the JSON envelope `{"message": ...}` (plus
`"errors"` for validation failures). Unexpected exceptions become a 500
with a generic message; their details only go to the log.
"""

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("examhub.errors")


class ApiError(Exception):
    status_code = 500
    message = "Server error."

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.headers = headers

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationError(ApiError):
    """Field-level validation failure; `errors` maps field -> messages."""
    status_code = 422
    message = "The given data was invalid."

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    @classmethod
    def single(cls, field: str, msg: str) -> "ValidationError":
        return cls({field: [msg]})

    def to_dict(self) -> dict:
        return {"message": self.message, "errors": self.errors}


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class Unauthenticated(ApiError):
    status_code = 401
    message = "Unauthenticated."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class InvalidCredentials(ApiError):
    status_code = 401
    message = "Invalid credentials"


class Conflict(ApiError):
    status_code = 409
    message = "The request conflicts with an existing record."


class RateLimited(ApiError):
    status_code = 429
    message = "Too many requests."

    def __init__(self, retry_after: int):
        super().__init__(f"Too many requests; retry after {retry_after}s", headers={"Retry-After": str(retry_after)})


class InternalError(ApiError):
    status_code = 500
    message = "Server error."


def _field_name(loc) -> str:
    # loc looks like ("body", "email") or ("query", "per_page")
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def request_validation_errors(exc: RequestValidationError) -> Dict[str, List[str]]:
    """Group pydantic error entries by field name."""
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        errors.setdefault(_field_name(err.get("loc", ())), []).append(err.get("msg", "Invalid value."))
    return errors


async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("api_error path=%s message=%s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    err = ValidationError(request_validation_errors(exc))
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        # router miss, not a handler-raised 404
        return JSONResponse(status_code=404, content={"message": "Endpoint not found."})
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return JSONResponse(status_code=500, content=InternalError().to_dict())


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
