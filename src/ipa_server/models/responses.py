# SPDX-License-Identifier: MIT
"""Pydantic models for API response wrappers."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Detailed error information for a specific field."""

    field: str
    error: str


class ErrorBody(BaseModel):
    code: str = Field(description="Machine-readable error code, e.g. APP_NOT_FOUND")
    message: str
    details: list[ErrorDetail] | None = None


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorBody


# OpenAPI documentation for routes that raise APIError
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Rejected archive or request"},
    404: {"model": ErrorResponse, "description": "Unknown application or file"},
    500: {"model": ErrorResponse, "description": "Storage or index failure"},
}


class AppResponse(BaseModel):
    """Application entry with resolved download and install URLs."""

    id: str
    bundle_identifier: str
    version: str
    build: str | None = None
    display_name: str
    size: int
    sha256: str
    created_at: datetime
    archive_url: str
    icon_url: str | None = None
    manifest_url: str = Field(description="URL of the install manifest (plist)")
    install_url: str = Field(description="itms-services link that starts the install")


class AppListResponse(BaseModel):
    """Response for the listing endpoint, most recent first."""

    apps: list[AppResponse]
    total: int


class DeleteResponse(BaseModel):
    """Response for a successful delete."""

    deleted: str
