"""
HTTP endpoints for location ingestion, queries and track export.

Handlers receive their service through FastAPI dependencies built on the
record store held in ``app.state``; tests swap the store, not the code.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from errors.exceptions import store_error
from ingestion.service import IngestionService, LocationSubmission
from location_queries.service import LocationQueryService
from middleware.rate_limiter import ingest_rate_limit, limiter
from record_store.base import RecordStore
from record_store.models import LocationFilter, LocationRecord
from track_export.service import TrackExportService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_record_store(request: Request) -> RecordStore:
    """The process-wide record store opened at startup."""
    record_store = getattr(request.app.state, "record_store", None)
    if record_store is None:
        raise store_error("Record store is not initialized")
    return record_store


def get_ingestion_service(
    record_store: RecordStore = Depends(get_record_store),
) -> IngestionService:
    return IngestionService(record_store)


def get_query_service(
    record_store: RecordStore = Depends(get_record_store),
) -> LocationQueryService:
    return LocationQueryService(record_store)


def get_track_export_service(
    record_store: RecordStore = Depends(get_record_store),
) -> TrackExportService:
    return TrackExportService(record_store)


@router.post("/api/data")
@limiter.limit(ingest_rate_limit)
async def submit_location(
    request: Request,
    submission: LocationSubmission,
    service: IngestionService = Depends(get_ingestion_service),
):
    """
    Accept one location reading from a field platform.

    Returns ``{"status": "success"}`` once the record is stored. Missing or
    mistyped fields are rejected with 400 before anything is written.
    """
    await service.ingest(submission)
    return {"status": "success"}


@router.get("/api/locations", response_model=List[LocationRecord])
async def list_locations(
    deployment: Optional[str] = None,
    platform: Optional[str] = None,
    service: LocationQueryService = Depends(get_query_service),
):
    """
    All records matching the optional deployment/platform filters,
    ascending by timestamp.
    """
    return await service.list_locations(
        LocationFilter(deployment=deployment, platform=platform)
    )


@router.get("/api/deployments", response_model=List[str])
async def list_deployments(
    service: LocationQueryService = Depends(get_query_service),
):
    """Every deployment that has at least one record."""
    return await service.list_deployments()


@router.get("/api/platforms/{deployment}", response_model=List[str])
async def list_platforms(
    deployment: str,
    service: LocationQueryService = Depends(get_query_service),
):
    """Platforms seen within a deployment; an unknown deployment gives []."""
    return await service.list_platforms(deployment)


@router.get("/download_kml/{deployment}")
async def download_kml(
    deployment: str,
    service: TrackExportService = Depends(get_track_export_service),
):
    """KML document with every platform track and waypoint of a deployment."""
    export = await service.export(deployment)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": export.content_disposition},
    )
