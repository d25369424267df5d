"""
Query handlers deriving views from the location record store.
"""

from location_queries.service import LocationQueryService

__all__ = ["LocationQueryService"]
