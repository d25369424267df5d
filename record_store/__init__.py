"""
Record store for location records.

Provides the record types, the RecordStore interface the handlers depend
on, and the Elasticsearch implementation used in production.
"""

from record_store.models import LocationFilter, LocationRecord
from record_store.base import RecordStore
from record_store.elasticsearch_store import ElasticsearchRecordStore

__all__ = [
    "LocationFilter",
    "LocationRecord",
    "RecordStore",
    "ElasticsearchRecordStore",
]
