"""
Pinpoint Backend — Service Info Route
======================================

What:  GET /api, a public description of the running service.
Who:   Clients checking which server they talk to; deployment smoke tests.

The database version is probed on every call, so a reachable database is
visible in the response; an unreachable one yields `databaseVersion: null`
rather than an error.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from pinpoint import __description__, __version__
from pinpoint.dependencies import get_registry
from pinpoint.registry import ServiceRegistry
from pinpoint.schemas.common import ApiInfoResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Info"])


@router.get(
    "",
    response_model=ApiInfoResponse,
    summary="Service name, version and database version",
)
async def api_info(registry: ServiceRegistry = Depends(get_registry)) -> ApiInfoResponse:
    database = registry.database
    try:
        database_version = await database.server_version()
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database version probe failed: %s", e)
        database_version = None

    return ApiInfoResponse(
        name=registry.settings.service_name,
        description=__description__,
        version=__version__,
        database=database.engine.dialect.name,
        database_version=database_version,
    )
