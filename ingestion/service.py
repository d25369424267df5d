"""
Ingestion of location submissions from field platforms.

This module provides the LocationSubmission payload model and the
IngestionService that turns one valid submission into one stored record.
Values are stored exactly as submitted: no range checks, no timestamp
parsing, no deduplication.
"""

import logging
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from record_store.base import RecordStore
from record_store.models import LocationRecord
from telemetry.service import TelemetryService, get_telemetry_service


logger = logging.getLogger(__name__)


class LocationSubmission(BaseModel):
    """
    Payload of ``POST /api/data``.

    Types are strict: a coordinate sent as a string or an identifier sent
    as a number is rejected rather than coerced. Unknown fields are ignored.

    Attributes:
        deployment: Campaign or mission name
        platform: Submitting unit identifier
        latitude: Latitude in degrees, not range checked
        longitude: Longitude in degrees, not range checked
        timestamp: ISO-8601 reading time, kept verbatim
        source: Optional ingestion channel name
    """

    model_config = ConfigDict(strict=True, extra="ignore")

    deployment: str
    platform: str
    latitude: float
    longitude: float
    timestamp: str
    source: Optional[str] = None

    @field_validator("deployment", "platform", "timestamp")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """
        Reject empty identifiers.

        Raises:
            ValueError: If the value is empty or only whitespace
        """
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    def to_record(self) -> LocationRecord:
        """Build the record to store; ``created_at`` is left for the store."""
        return LocationRecord(**self.model_dump())


class IngestionService:
    """
    Validates-then-stores handler for single location submissions.

    Payload validation happens in LocationSubmission before this service is
    reached; the service performs exactly one insert per call and nothing
    else.

    Attributes:
        store: Record store receiving the insert
        telemetry: Telemetry service for metric and audit lines
    """

    def __init__(
        self,
        store: RecordStore,
        telemetry: Optional[TelemetryService] = None
    ):
        """
        Initialize the IngestionService.

        Args:
            store: Record store instance
            telemetry: Optional telemetry service (uses global if not provided)
        """
        self.store = store
        self.telemetry = telemetry or get_telemetry_service()

    async def ingest(self, submission: LocationSubmission) -> LocationRecord:
        """
        Store one submission.

        Args:
            submission: The validated payload

        Returns:
            The stored record, including its assigned ``created_at``

        Raises:
            AppException: STORE_ERROR if the insert fails
        """
        start_time = time.perf_counter()

        stored = await self.store.insert(submission.to_record())

        duration_ms = (time.perf_counter() - start_time) * 1000
        if self.telemetry:
            self.telemetry.record_metric(
                "location_ingest_duration_ms",
                duration_ms,
                tags={"deployment": stored.deployment}
            )
            self.telemetry.log_audit_event(
                event_type="location_ingest",
                resource_type="location_record",
                resource_id=f"{stored.deployment}/{stored.platform}",
                action="create",
                details={"timestamp": stored.timestamp, "source": stored.source}
            )

        logger.info(
            f"Location stored for {stored.deployment}/{stored.platform}",
            extra={"extra_data": {
                "deployment": stored.deployment,
                "platform": stored.platform,
                "timestamp": stored.timestamp,
                "duration_ms": round(duration_ms, 2)
            }}
        )

        return stored
