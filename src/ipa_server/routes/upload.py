# SPDX-License-Identifier: MIT
"""Archive upload endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, UploadFile

from ..dependencies import get_service
from ..middleware.errors import InvalidRequestError
from ..models import ERROR_RESPONSES, AppResponse
from ..service import DistributionService
from .apps import to_app_response

router = APIRouter(responses=ERROR_RESPONSES)

ARCHIVE_SUFFIX = ".ipa"


@router.post("/upload", response_model=AppResponse)
def upload_app(
    file: UploadFile,
    request: Request,
    service: Annotated[DistributionService, Depends(get_service)],
) -> AppResponse:
    """Upload an .ipa archive.

    The archive is inspected before anything is stored; rejected uploads
    leave no trace in storage or the index.
    """
    if file.filename and not file.filename.lower().endswith(ARCHIVE_SUFFIX):
        raise InvalidRequestError(f"File must be an {ARCHIVE_SUFFIX} archive")

    # Spooled to disk by the multipart parser, so seekable
    record = service.ingest(file.file)
    return to_app_response(record, service, request)
