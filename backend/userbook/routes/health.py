"""
Userbook Backend - Health Check Route
=====================================

What:  Health check endpoint for monitoring and container probes.
How:   Loads the record document and checks the upload directory is writable.

    Status levels:
    - healthy:   both checks pass
    - unhealthy: the document can't be read/parsed or uploads can't be written
"""

import logging
import os
import time

from fastapi import APIRouter

from userbook import __version__
from userbook.exceptions import StoreUnavailableError
from userbook.schemas.user import HealthResponse
from userbook.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    """
    Probe the record store and the upload directory.

    A full document load is the only way to know the document parses, so the
    check costs one read of users.json.
    """
    store_status = "available"
    asset_status = "writable"
    overall = "healthy"

    try:
        await user_service.records.get_all()
    except StoreUnavailableError as e:
        store_status = "unavailable"
        overall = "unhealthy"
        logger.warning("Health check: record store unavailable: %s", e.context)

    upload_root = user_service.assets.upload_root
    if not (upload_root.is_dir() and os.access(upload_root, os.W_OK)):
        asset_status = "unwritable"
        overall = "unhealthy"
        logger.warning("Health check: upload directory not writable: %s", upload_root)

    return HealthResponse(
        status=overall,
        version=__version__,
        record_store=store_status,
        asset_storage=asset_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
