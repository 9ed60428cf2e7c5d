# SPDX-License-Identifier: MIT
"""API route modules."""

from . import apps, files, manifest, upload

__all__ = ["apps", "files", "manifest", "upload"]
