# SPDX-License-Identifier: MIT
"""Pydantic models for records, requests and responses."""

from .record import ApplicationRecord, generate_id
from .responses import (
    ERROR_RESPONSES,
    AppListResponse,
    AppResponse,
    DeleteResponse,
    ErrorBody,
    ErrorDetail,
    ErrorResponse,
)

__all__ = [
    # Record models
    "ApplicationRecord",
    "generate_id",
    # Response models
    "AppListResponse",
    "AppResponse",
    "DeleteResponse",
    "ErrorBody",
    "ErrorDetail",
    "ErrorResponse",
    "ERROR_RESPONSES",
]
