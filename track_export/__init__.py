"""
KML track export of deployment location histories.
"""

from track_export.kml import KML_MEDIA_TYPE, KML_NAMESPACE, build_track_document, serialize_kml
from track_export.service import TrackExport, TrackExportService

__all__ = [
    "KML_MEDIA_TYPE",
    "KML_NAMESPACE",
    "build_track_document",
    "serialize_kml",
    "TrackExport",
    "TrackExportService",
]
