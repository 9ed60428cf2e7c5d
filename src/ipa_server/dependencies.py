# SPDX-License-Identifier: MIT
"""Request dependencies resolving the objects built at startup."""

from fastapi import Request

from .config import APIConfig
from .manifest import ManifestGenerator
from .service import DistributionService


def get_config(request: Request) -> APIConfig:
    return request.app.state.config


def get_service(request: Request) -> DistributionService:
    return request.app.state.service


def get_manifest_generator(request: Request) -> ManifestGenerator:
    return request.app.state.manifest_generator


def base_url(request: Request) -> str:
    """External base URL: configured public URL, else the request's own."""
    config: APIConfig = request.app.state.config
    if config.public_url:
        return config.public_url.rstrip("/")
    return str(request.base_url).rstrip("/")
