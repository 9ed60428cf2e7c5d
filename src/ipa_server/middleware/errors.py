# SPDX-License-Identifier: MIT
"""Error handling middleware and exception classes."""

import logging
from dataclasses import dataclass, field

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode:
    """Standard API error codes."""

    INVALID_ARCHIVE = "INVALID_ARCHIVE"
    MISSING_DESCRIPTOR = "MISSING_DESCRIPTOR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_REQUEST = "INVALID_REQUEST"
    APP_NOT_FOUND = "APP_NOT_FOUND"
    BLOB_NOT_FOUND = "BLOB_NOT_FOUND"
    DUPLICATE_ID = "DUPLICATE_ID"
    STORAGE_FAILURE = "STORAGE_FAILURE"
    INDEX_CORRUPTION = "INDEX_CORRUPTION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# HTTP status codes for each error
ERROR_STATUS_CODES = {
    ErrorCode.INVALID_ARCHIVE: 400,
    ErrorCode.MISSING_DESCRIPTOR: 400,
    ErrorCode.MISSING_REQUIRED_FIELD: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.APP_NOT_FOUND: 404,
    ErrorCode.BLOB_NOT_FOUND: 404,
    ErrorCode.DUPLICATE_ID: 409,
    ErrorCode.STORAGE_FAILURE: 500,
    ErrorCode.INDEX_CORRUPTION: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


@dataclass
class ErrorDetail:
    """Detailed error information for a specific field or issue."""

    field: str
    error: str


@dataclass
class APIError(Exception):
    """Base API exception with structured error response.

    Attributes:
        code: Error code from ErrorCode class
        message: Human-readable error message
        details: List of detailed error information
    """

    code: str
    message: str
    details: list[ErrorDetail] = field(default_factory=list)

    def __str__(self) -> str:
        return self.message

    @property
    def status_code(self) -> int:
        """Get HTTP status code for this error."""
        return ERROR_STATUS_CODES.get(self.code, 500)

    def to_response(self) -> dict:
        """Convert to API response format."""
        response = {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }
        if self.details:
            response["error"]["details"] = [
                {"field": d.field, "error": d.error} for d in self.details
            ]
        return response


class InvalidArchiveError(APIError):
    """Upload is not a readable archive or its descriptor is malformed."""

    def __init__(self, message: str):
        super().__init__(
            code=ErrorCode.INVALID_ARCHIVE,
            message=message,
        )


class MissingDescriptorError(APIError):
    """No Payload/*.app/Info.plist inside the archive."""

    def __init__(self, message: str = "No application bundle descriptor found in archive"):
        super().__init__(
            code=ErrorCode.MISSING_DESCRIPTOR,
            message=message,
        )


class MissingRequiredFieldError(APIError):
    """Descriptor parsed but lacks the bundle identifier or version."""

    def __init__(self, fields: list[str]):
        super().__init__(
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            message=f"Bundle descriptor is missing required field(s): {', '.join(fields)}",
            details=[ErrorDetail(field=f, error="Required field missing") for f in fields],
        )
        self.fields = fields


class InvalidRequestError(APIError):
    """Malformed request."""

    def __init__(self, message: str):
        super().__init__(
            code=ErrorCode.INVALID_REQUEST,
            message=message,
        )


class AppNotFoundError(APIError):
    """Application record does not exist."""

    def __init__(self, app_id: str):
        super().__init__(
            code=ErrorCode.APP_NOT_FOUND,
            message=f"Application '{app_id}' not found",
        )
        self.app_id = app_id


class BlobNotFoundError(APIError):
    """Storage backend has no blob under the key."""

    def __init__(self, key: str):
        super().__init__(
            code=ErrorCode.BLOB_NOT_FOUND,
            message=f"Blob '{key}' not found",
        )
        self.key = key


class DuplicateIDError(APIError):
    """Record id already present in the index."""

    def __init__(self, app_id: str):
        super().__init__(
            code=ErrorCode.DUPLICATE_ID,
            message=f"Application id '{app_id}' already exists",
        )
        self.app_id = app_id


class StorageError(APIError):
    """Blob store or index snapshot I/O failed."""

    def __init__(self, message: str):
        super().__init__(
            code=ErrorCode.STORAGE_FAILURE,
            message=message,
        )


class IndexCorruptionError(APIError):
    """Persisted index snapshot cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code=ErrorCode.INDEX_CORRUPTION,
            message=f"Metadata index '{path}' is corrupt: {reason}",
        )
        self.path = path


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(),
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred",
            }
        },
    )


def add_error_handlers(app: FastAPI, catch_all: bool = True) -> None:
    """Register error handlers with the FastAPI application."""
    app.add_exception_handler(APIError, api_error_handler)
    if catch_all:
        app.add_exception_handler(Exception, generic_error_handler)
