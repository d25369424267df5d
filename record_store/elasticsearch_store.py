"""
Elasticsearch-backed record store.

Location records live in a single index. The index is sorted on
(deployment, platform, timestamp), which serves as the composite index for
the filtered, time-ordered queries the handlers issue. ``timestamp`` is
mapped as a keyword so ordering is plain string order of the submitted
value, which is never parsed.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

from elasticsearch import Elasticsearch
from elasticsearch.helpers import scan
from starlette.concurrency import run_in_threadpool

from config.settings import Settings
from errors.exceptions import store_error
from record_store.base import RecordStore
from record_store.models import LocationFilter, LocationRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

INDEX_KEY_FIELDS = ["deployment", "platform", "timestamp"]

# Equal timestamps fall back to insertion time, mapped as date_nanos so
# sub-millisecond inserts keep their order
QUERY_SORT = [
    {"timestamp": {"order": "asc"}},
    {"created_at": {"order": "asc"}},
]

SCROLL_PAGE_SIZE = 1000
DISTINCT_PAGE_SIZE = 1000


def get_locations_index_body() -> Dict[str, Any]:
    """Settings and mappings for the location records index."""
    return {
        "settings": {
            "index": {
                "sort.field": INDEX_KEY_FIELDS,
                "sort.order": ["asc", "asc", "asc"],
            }
        },
        "mappings": {
            "dynamic": False,
            "properties": {
                "deployment": {"type": "keyword"},
                "platform": {"type": "keyword"},
                "latitude": {"type": "double"},
                "longitude": {"type": "double"},
                "timestamp": {"type": "keyword"},
                "source": {"type": "keyword"},
                "created_at": {"type": "date_nanos"},
            }
        }
    }


def build_query(location_filter: LocationFilter) -> Dict[str, Any]:
    """Translate a LocationFilter into an Elasticsearch query clause."""
    clauses = [{"term": {field: value}} for field, value in location_filter.terms()]
    if not clauses:
        return {"match_all": {}}
    return {"bool": {"filter": clauses}}


class ElasticsearchRecordStore(RecordStore):
    """
    Record store on a single Elasticsearch index.

    The client is created once at startup and shared by every request;
    nothing mutates it afterwards. Each failure surfaces as a STORE_ERROR
    AppException carrying the underlying message. Nothing is retried.

    Attributes:
        client: The Elasticsearch client
        index: Name of the index holding location records
    """

    def __init__(self, client: Elasticsearch, index: str):
        self.client = client
        self.index = index
        self._last_created_at: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ElasticsearchRecordStore":
        """
        Connect to Elasticsearch, verify the connection and prepare the index.

        Raises:
            ConnectionError: If the cluster does not answer a ping
        """
        client_kwargs: Dict[str, Any] = {
            "verify_certs": settings.elastic_verify_certs,
            "request_timeout": settings.elastic_request_timeout,
        }
        if settings.elastic_api_key:
            client_kwargs["api_key"] = settings.elastic_api_key

        client = Elasticsearch(settings.elastic_endpoint, **client_kwargs)

        if not client.ping():
            logger.error(f"❌ Failed to ping Elasticsearch at {settings.elastic_endpoint}")
            raise ConnectionError("Failed to ping Elasticsearch")

        logger.info("✅ Connected to Elasticsearch successfully")
        record_store = cls(client, settings.store_index)
        record_store.ensure_index()
        record_store.validate_index_schema()
        return record_store

    def ensure_index(self) -> None:
        """Create the records index with its mapping and sort if it does not exist."""
        if self.client.indices.exists(index=self.index):
            logger.info(f"📋 Index already exists: {self.index}")
            return

        self.client.indices.create(index=self.index, **get_locations_index_body())
        logger.info(f"✅ Created index: {self.index}")

    def validate_index_schema(self) -> List[str]:
        """
        Compare the live mapping with the expected one and log mismatches.

        An index created by an older build keeps working, but sorting or term
        filters on a field mapped as ``text`` would silently misbehave, so
        every difference is reported at startup.

        Returns:
            Human-readable mismatch descriptions, empty when the mapping matches
        """
        expected = get_locations_index_body()["mappings"]["properties"]
        try:
            response = self.client.indices.get_mapping(index=self.index)
        except Exception as e:
            logger.warning(f"⚠️ Could not read mapping for {self.index}: {e}")
            return []

        actual = response.get(self.index, {}).get("mappings", {}).get("properties", {})

        mismatches = []
        for field_name, field_mapping in expected.items():
            if field_name not in actual:
                mismatches.append(f"{field_name}: missing")
            elif actual[field_name].get("type") != field_mapping["type"]:
                mismatches.append(
                    f"{field_name}: expected {field_mapping['type']}, "
                    f"found {actual[field_name].get('type')}"
                )

        for mismatch in mismatches:
            logger.warning(f"⚠️ Index {self.index} mapping mismatch - {mismatch}")
        return mismatches

    async def _execute(self, operation: str, func: Callable[[], T]) -> T:
        """
        Run a blocking client call off the event loop, translating failures.

        Raises:
            AppException: STORE_ERROR with the underlying message
        """
        try:
            return await run_in_threadpool(func)
        except Exception as e:
            logger.error(f"Elasticsearch {operation} failed: {e}")
            raise store_error(
                message=f"Record store operation failed: {operation}: {e}",
                details={"operation": operation, "error": str(e)}
            ) from e

    def _next_created_at(self) -> datetime:
        """Insertion time, strictly increasing across inserts from this process."""
        now = datetime.now(timezone.utc)
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now

    async def insert(self, record: LocationRecord) -> LocationRecord:
        stored = record.model_copy(update={"created_at": self._next_created_at()})
        document = stored.model_dump(mode="json")

        def _do_index():
            # Refresh so an immediate read sees the new record
            return self.client.index(index=self.index, document=document, refresh=True)

        await self._execute("insert", _do_index)
        return stored

    async def query_all(self, location_filter: LocationFilter) -> List[LocationRecord]:
        body = {"query": build_query(location_filter), "sort": QUERY_SORT}

        def _do_scan() -> List[Dict[str, Any]]:
            return [
                hit["_source"]
                for hit in scan(
                    self.client,
                    index=self.index,
                    query=body,
                    preserve_order=True,
                    size=SCROLL_PAGE_SIZE,
                )
            ]

        sources = await self._execute("query_all", _do_scan)
        return [LocationRecord.model_validate(source) for source in sources]

    async def _distinct(
        self, operation: str, field: str, location_filter: LocationFilter
    ) -> List[str]:
        """
        Collect every distinct value of a keyword field.

        Uses a composite aggregation paged by ``after_key`` so the result is
        complete however many values exist.
        """
        query = build_query(location_filter)

        def _do_aggregate() -> List[str]:
            values: List[str] = []
            after_key: Optional[Dict[str, Any]] = None
            while True:
                composite: Dict[str, Any] = {
                    "size": DISTINCT_PAGE_SIZE,
                    "sources": [{field: {"terms": {"field": field}}}],
                }
                if after_key:
                    composite["after"] = after_key

                response = self.client.search(
                    index=self.index,
                    size=0,
                    query=query,
                    aggs={"distinct_values": {"composite": composite}},
                )
                aggregation = response["aggregations"]["distinct_values"]
                buckets = aggregation["buckets"]
                values.extend(bucket["key"][field] for bucket in buckets)

                after_key = aggregation.get("after_key")
                if not buckets or not after_key:
                    return values

        return await self._execute(operation, _do_aggregate)

    async def distinct_deployments(self) -> List[str]:
        return await self._distinct("distinct_deployments", "deployment", LocationFilter())

    async def distinct_platforms(self, deployment: str) -> List[str]:
        return await self._distinct(
            "distinct_platforms", "platform", LocationFilter(deployment=deployment)
        )

    async def ping(self) -> bool:
        return await run_in_threadpool(self.client.ping)

    def close(self) -> None:
        self.client.close()
        logger.info("👋 Elasticsearch connection closed")
