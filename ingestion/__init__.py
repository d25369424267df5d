"""
Data ingestion module for field platform location submissions.
"""

from ingestion.service import IngestionService, LocationSubmission

__all__ = [
    "IngestionService",
    "LocationSubmission",
]
