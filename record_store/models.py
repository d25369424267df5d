"""
Record types shared by the record store and the handlers.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Tuple

from pydantic import BaseModel


class LocationRecord(BaseModel):
    """
    One geolocation reading from a field platform.

    Records are append-only: nothing in the gateway updates or deletes them,
    and duplicates of the same (deployment, platform, timestamp) are kept.

    Attributes:
        deployment: Campaign or mission the platform belongs to
        platform: Identifier of the robotic or sensing unit
        latitude: Latitude as reported, no range check
        longitude: Longitude as reported, no range check
        timestamp: ISO-8601 reading time, stored verbatim and sorted as a string
        source: Optional ingestion channel name
        created_at: Insertion time assigned by the store
    """

    deployment: str
    platform: str
    latitude: float
    longitude: float
    timestamp: str
    source: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class LocationFilter:
    """
    Optional equality filters for location queries.

    An empty string counts as "not filtered", matching how an empty query
    parameter (``?deployment=``) is treated.
    """

    deployment: Optional[str] = None
    platform: Optional[str] = None

    def terms(self) -> List[Tuple[str, str]]:
        """Active (field, value) equality filters, in index key order."""
        active = []
        if self.deployment:
            active.append(("deployment", self.deployment))
        if self.platform:
            active.append(("platform", self.platform))
        return active

    def matches(self, record: LocationRecord) -> bool:
        """Whether a record satisfies every active filter."""
        return all(getattr(record, field) == value for field, value in self.terms())
