"""
KML document building for platform tracks.

The document is assembled as an ElementTree and serialized once at the end,
so every text value is escaped by the serializer. A deployment without
records is simply a Document with its Style and no Placemarks.

Layout::

    kml
      Document
        name             deployment
        Style#trackStyle line and icon style shared by every placemark
        Placemark        "<platform> track", LineString of lon,lat pairs
        Placemark        one per reading, named by its timestamp
        ...
"""

import xml.etree.ElementTree as ET
from typing import Dict, Iterable, List

from record_store.models import LocationRecord

KML_NAMESPACE = "http://www.opengis.net/kml/2.2"
KML_MEDIA_TYPE = "application/vnd.google-earth.kml+xml"

TRACK_STYLE_ID = "trackStyle"
# KML colors are aabbggrr
TRACK_LINE_COLOR = "ff0000ff"
TRACK_LINE_WIDTH = "3"
WAYPOINT_ICON_HREF = "http://maps.google.com/mapfiles/kml/shapes/placemark_circle.png"
WAYPOINT_ICON_SCALE = "0.6"


def group_by_platform(records: Iterable[LocationRecord]) -> Dict[str, List[LocationRecord]]:
    """
    Stable partition of records by platform.

    Each group keeps the order the records arrived in; groups appear in the
    order their platform was first seen. Nothing is re-sorted.
    """
    groups: Dict[str, List[LocationRecord]] = {}
    for record in records:
        groups.setdefault(record.platform, []).append(record)
    return groups


def format_coordinate(record: LocationRecord) -> str:
    """KML coordinate tuple, longitude first."""
    return f"{record.longitude},{record.latitude}"


def _text_element(parent: ET.Element, tag: str, text: str) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = text
    return element


def build_track_style(document: ET.Element) -> ET.Element:
    style = ET.SubElement(document, "Style", id=TRACK_STYLE_ID)

    line_style = ET.SubElement(style, "LineStyle")
    _text_element(line_style, "color", TRACK_LINE_COLOR)
    _text_element(line_style, "width", TRACK_LINE_WIDTH)

    icon_style = ET.SubElement(style, "IconStyle")
    _text_element(icon_style, "scale", WAYPOINT_ICON_SCALE)
    icon = ET.SubElement(icon_style, "Icon")
    _text_element(icon, "href", WAYPOINT_ICON_HREF)
    return style


def build_track_placemark(platform: str, records: List[LocationRecord]) -> ET.Element:
    """Placemark with one LineString through every reading of the platform."""
    placemark = ET.Element("Placemark")
    _text_element(placemark, "name", f"{platform} track")
    _text_element(placemark, "styleUrl", f"#{TRACK_STYLE_ID}")

    line_string = ET.SubElement(placemark, "LineString")
    _text_element(line_string, "tessellate", "1")
    _text_element(
        line_string,
        "coordinates",
        " ".join(format_coordinate(record) for record in records),
    )
    return placemark


def build_waypoint_placemark(record: LocationRecord) -> ET.Element:
    """Placemark for a single reading, labelled with its timestamp."""
    placemark = ET.Element("Placemark")
    _text_element(placemark, "name", record.timestamp)
    _text_element(
        placemark,
        "description",
        f"Platform: {record.platform}\nTime: {record.timestamp}",
    )
    _text_element(placemark, "styleUrl", f"#{TRACK_STYLE_ID}")

    time_stamp = ET.SubElement(placemark, "TimeStamp")
    _text_element(time_stamp, "when", record.timestamp)

    point = ET.SubElement(placemark, "Point")
    _text_element(point, "coordinates", format_coordinate(record))
    return placemark


def build_track_document(deployment: str, records: Iterable[LocationRecord]) -> ET.Element:
    """
    Build the KML tree for every platform track within a deployment.

    Args:
        deployment: Deployment name, used as the document name
        records: The deployment's records, ascending by timestamp

    Returns:
        The root ``kml`` element
    """
    root = ET.Element("kml", xmlns=KML_NAMESPACE)
    document = ET.SubElement(root, "Document")
    _text_element(document, "name", deployment)
    build_track_style(document)

    for platform, platform_records in group_by_platform(records).items():
        document.append(build_track_placemark(platform, platform_records))
        for record in platform_records:
            document.append(build_waypoint_placemark(record))

    return root


def serialize_kml(root: ET.Element) -> bytes:
    """Serialize a KML tree as UTF-8 with an XML declaration."""
    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
