"""
In-memory record store used in place of Elasticsearch by the tests.
"""

from datetime import datetime, timezone
from typing import List, Optional

from errors.exceptions import store_error
from record_store.base import RecordStore
from record_store.models import LocationFilter, LocationRecord


class InMemoryRecordStore(RecordStore):
    """
    List-backed RecordStore with the same ordering contract as the real one.

    Set ``fail_with`` to make every data operation raise STORE_ERROR, and
    ``reachable`` to control what ``ping`` reports.
    """

    def __init__(self, records: Optional[List[LocationRecord]] = None):
        self.records: List[LocationRecord] = list(records or [])
        self.fail_with: Optional[str] = None
        self.reachable = True
        self.closed = False

    def _check(self, operation: str) -> None:
        if self.fail_with:
            raise store_error(
                message=f"Record store operation failed: {operation}: {self.fail_with}",
                details={"operation": operation, "error": self.fail_with},
            )

    async def insert(self, record: LocationRecord) -> LocationRecord:
        self._check("insert")
        stored = record.model_copy(update={"created_at": datetime.now(timezone.utc)})
        self.records.append(stored)
        return stored

    async def query_all(self, location_filter: LocationFilter) -> List[LocationRecord]:
        self._check("query_all")
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(
            (r for r in self.records if location_filter.matches(r)),
            key=lambda r: r.timestamp,
        )

    async def distinct_deployments(self) -> List[str]:
        self._check("distinct_deployments")
        return list(dict.fromkeys(r.deployment for r in self.records))

    async def distinct_platforms(self, deployment: str) -> List[str]:
        self._check("distinct_platforms")
        return list(dict.fromkeys(
            r.platform for r in self.records if r.deployment == deployment
        ))

    async def ping(self) -> bool:
        return self.reachable

    def close(self) -> None:
        self.closed = True
