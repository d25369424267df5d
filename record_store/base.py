"""
Record store interface.

Handlers depend on this interface only; the running application uses the
Elasticsearch adapter and tests substitute an in-memory implementation.
"""

from abc import ABC, abstractmethod
from typing import List

from record_store.models import LocationFilter, LocationRecord


class RecordStore(ABC):
    """Durable append-only storage and filtered retrieval of location records."""

    @abstractmethod
    async def insert(self, record: LocationRecord) -> LocationRecord:
        """
        Append a record, assigning ``created_at``.

        Returns:
            The record as stored

        Raises:
            AppException: STORE_ERROR on connectivity or write failure
        """

    @abstractmethod
    async def query_all(self, location_filter: LocationFilter) -> List[LocationRecord]:
        """
        Return every record matching the filter, ascending by timestamp.

        Records with equal timestamps keep insertion order. An empty filter
        returns the whole store.
        """

    @abstractmethod
    async def distinct_deployments(self) -> List[str]:
        """Return each deployment value once, in no particular order."""

    @abstractmethod
    async def distinct_platforms(self, deployment: str) -> List[str]:
        """Return each platform seen within a deployment once; empty if unknown."""

    async def ping(self) -> bool:
        """Report whether the backing store is reachable."""
        return True

    def close(self) -> None:
        """Release the store connection."""
