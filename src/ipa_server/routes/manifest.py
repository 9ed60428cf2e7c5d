# SPDX-License-Identifier: MIT
"""Install manifest endpoint consumed by the device installer."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from ..dependencies import base_url, get_manifest_generator
from ..manifest import ManifestGenerator
from ..middleware.errors import AppNotFoundError
from ..models import ERROR_RESPONSES

router = APIRouter(responses=ERROR_RESPONSES)

PLIST_MEDIA_TYPE = "application/x-plist"


@router.get("/plist/{app_id}.plist")
def get_manifest(
    app_id: str,
    request: Request,
    generator: Annotated[ManifestGenerator, Depends(get_manifest_generator)],
) -> Response:
    """Return the itms-services manifest of an application."""
    document = generator.generate(app_id, base_url=base_url(request))
    if document is None:
        raise AppNotFoundError(app_id)
    return Response(content=document, media_type=PLIST_MEDIA_TYPE)
