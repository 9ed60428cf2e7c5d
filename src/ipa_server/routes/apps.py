# SPDX-License-Identifier: MIT
"""Application listing, lookup and delete endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from ..dependencies import base_url, get_service
from ..manifest import absolute_url, install_url
from ..middleware.errors import AppNotFoundError
from ..models import ERROR_RESPONSES, AppListResponse, AppResponse, DeleteResponse
from ..models.record import ApplicationRecord
from ..service import DistributionService

router = APIRouter(responses=ERROR_RESPONSES)


def to_app_response(
    record: ApplicationRecord, service: DistributionService, request: Request
) -> AppResponse:
    """Attach download, manifest and install URLs to a record."""
    base = base_url(request)
    storage = service.storage
    manifest_url = f"{base}/plist/{record.id}.plist"
    return AppResponse(
        id=record.id,
        bundle_identifier=record.bundle_identifier,
        version=record.version,
        build=record.build,
        display_name=record.display_name,
        size=record.size,
        sha256=record.sha256,
        created_at=record.created_at,
        archive_url=absolute_url(storage.public_url(record.archive_path), base),
        icon_url=(
            absolute_url(storage.public_url(record.icon_path), base) if record.icon_path else None
        ),
        manifest_url=manifest_url,
        install_url=install_url(manifest_url),
    )


@router.get("/list", response_model=AppListResponse)
def list_apps(
    request: Request,
    service: Annotated[DistributionService, Depends(get_service)],
) -> AppListResponse:
    """List every stored application, most recent first."""
    records = service.list()
    return AppListResponse(
        apps=[to_app_response(r, service, request) for r in records],
        total=len(records),
    )


@router.get("/info/{app_id}", response_model=AppResponse)
def get_app(
    app_id: str,
    request: Request,
    service: Annotated[DistributionService, Depends(get_service)],
) -> AppResponse:
    """Get one application by id."""
    record = service.find(app_id)
    if record is None:
        raise AppNotFoundError(app_id)
    return to_app_response(record, service, request)


@router.delete("/delete/{app_id}", response_model=DeleteResponse)
def delete_app(
    app_id: str,
    service: Annotated[DistributionService, Depends(get_service)],
) -> DeleteResponse:
    """Delete an application and its files.

    Deleting an unknown id answers 404, so repeating a delete is safe.
    """
    if not service.remove(app_id):
        raise AppNotFoundError(app_id)
    return DeleteResponse(deleted=app_id)
