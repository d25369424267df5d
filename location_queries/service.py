"""
Read-only views over the location record store.
"""

import logging
from typing import List

from record_store.base import RecordStore
from record_store.models import LocationFilter, LocationRecord

logger = logging.getLogger(__name__)


class LocationQueryService:
    """
    Query handlers: location history, deployments and platforms.

    Every method is a single store read with no side effects, so all of them
    are idempotent and safe to retry. Unknown deployments produce empty
    lists, never errors.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def list_locations(self, location_filter: LocationFilter) -> List[LocationRecord]:
        """Records matching the filter, ascending by timestamp, unchanged."""
        records = await self.store.query_all(location_filter)
        logger.debug(
            f"Listed {len(records)} locations",
            extra={"extra_data": {
                "deployment": location_filter.deployment,
                "platform": location_filter.platform,
                "count": len(records)
            }}
        )
        return records

    async def list_deployments(self) -> List[str]:
        return list(await self.store.distinct_deployments())

    async def list_platforms(self, deployment: str) -> List[str]:
        return list(await self.store.distinct_platforms(deployment))
