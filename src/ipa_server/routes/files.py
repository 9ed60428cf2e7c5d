# SPDX-License-Identifier: MIT
"""Blob download endpoint for the local storage backend."""

from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from ..config import APIConfig
from ..dependencies import get_config, get_service
from ..middleware.errors import BlobNotFoundError
from ..models import ERROR_RESPONSES
from ..service import DistributionService
from ..storage import FILES_ROUTE, LocalStorage

router = APIRouter(responses=ERROR_RESPONSES)

MEDIA_TYPES = {
    ".ipa": "application/octet-stream",
    ".png": "image/png",
}


@router.get(FILES_ROUTE + "/{key:path}")
def download_file(
    key: str,
    config: Annotated[APIConfig, Depends(get_config)],
    service: Annotated[DistributionService, Depends(get_service)],
) -> FileResponse:
    """Download an archive or icon stored on the local filesystem.

    The metadata index is never served, even when it lives inside the
    storage directory.
    """
    storage = service.storage
    if not isinstance(storage, LocalStorage):
        raise BlobNotFoundError(key)

    path = storage.path_for(key)
    if path == Path(config.index.path).resolve() or not path.is_file():
        raise BlobNotFoundError(key)

    return FileResponse(
        path=path,
        filename=path.name,
        media_type=MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream"),
    )
