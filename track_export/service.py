"""
Track export handler.
"""

import logging
import re
from dataclasses import dataclass
from urllib.parse import quote

from record_store.base import RecordStore
from record_store.models import LocationFilter
from track_export.kml import (
    KML_MEDIA_TYPE,
    build_track_document,
    group_by_platform,
    serialize_kml,
)

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _is_plain_header_value(value: str) -> bool:
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        return False
    return not any(
        char in '"\\;' or ord(char) < 0x20 or ord(char) == 0x7F for char in value
    )


@dataclass
class TrackExport:
    """A rendered track document ready to be sent as a download."""

    content: bytes
    filename: str
    media_type: str = KML_MEDIA_TYPE

    @property
    def content_disposition(self) -> str:
        """
        Attachment header for the download.

        Header values go out as latin-1, so a filename that does not fit, or
        that carries quotes or control characters, is sent in the RFC 5987
        ``filename*`` form with an ASCII fallback ``filename``.
        """
        if _is_plain_header_value(self.filename):
            return f"attachment; filename={self.filename}"

        ascii_filename = _UNSAFE_FILENAME_CHARS.sub("_", self.filename)
        return (
            f'attachment; filename="{ascii_filename}"; '
            f"filename*=UTF-8''{quote(self.filename, safe='')}"
        )


def track_filename(deployment: str) -> str:
    return f"{deployment}_track.kml"


class TrackExportService:
    """
    Builds the KML track export for one deployment.

    Reads the deployment's records once, in timestamp order, and hands them
    to the KML builder. The order of platform groups in the output follows
    first appearance in that read and is not otherwise defined.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def export(self, deployment: str) -> TrackExport:
        """
        Render every platform track of a deployment.

        An unknown deployment renders an empty document, not an error.

        Raises:
            AppException: STORE_ERROR if the read fails
        """
        records = await self.store.query_all(LocationFilter(deployment=deployment))

        content = serialize_kml(build_track_document(deployment, records))

        logger.info(
            f"Exported KML track for deployment {deployment}",
            extra={"extra_data": {
                "deployment": deployment,
                "platforms": len(group_by_platform(records)),
                "points": len(records),
                "bytes": len(content)
            }}
        )

        return TrackExport(content=content, filename=track_filename(deployment))
