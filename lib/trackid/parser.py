"""
Rekordbox XML parser: reads a collection export into LibraryRecord snapshots.
"""
from __future__ import annotations

import logging
import time as time_module
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

from lib.trackid import config
from lib.trackid.cache_manager import build_library_cache_key, get_library_cache
from lib.trackid.models import LibraryRecord
from lib.trackid.normalizer import format_tag, normalize_isrc

logger = logging.getLogger(__name__)


def _get_file_hash(path: Path) -> str:
    """Use file size and mtime as a cheap cache key."""
    stat = path.stat()
    return f"{stat.st_size}_{stat.st_mtime_ns}"


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def location_to_path(location: Optional[str]) -> str:
    """
    Rekordbox stores paths as URL-encoded file URLs:
    "file://localhost/Users/me/Music/A%20B.mp3" -> "/Users/me/Music/A B.mp3"
    """
    if not location:
        return ""
    if not location.startswith("file:"):
        return unquote(location)
    path = unquote(urlparse(location).path)
    # Windows drive letters come through as "/C:/..."
    if len(path) > 2 and path[0] == "/" and path[2] == ":":
        path = path[1:]
    return path


def load_rekordbox_library_xml(
    path: str | Path,
    timeout_sec: float = 30.0,
) -> Tuple[LibraryRecord, ...]:
    """
    Parse a Rekordbox XML collection file.

    Args:
        path: Path to the XML file
        timeout_sec: Max seconds to spend parsing (prevents hang on huge XML)

    Raises:
        FileNotFoundError: XML file not found
        ValueError: Invalid XML structure
        TimeoutError: Parsing exceeded timeout
        OverflowError: File size exceeds TRACKID_MAX_XML_MB

    Returns:
        LibraryRecord tuple in document order
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Rekordbox XML not found: {path}")

    xml_bytes = path.stat().st_size

    # File size guard
    if xml_bytes > config.MAX_XML_SIZE_BYTES:
        raise OverflowError(
            f"Rekordbox XML exceeds {config.MAX_XML_SIZE_BYTES / (1024 * 1024):.0f}MB limit "
            f"({xml_bytes / (1024 * 1024):.1f}MB)."
        )

    t0 = time_module.time()

    # Cache lookup
    cache = get_library_cache()
    cache_key = build_library_cache_key(f"{path.resolve()}:{_get_file_hash(path)}")
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        tree = ET.parse(path)
    except ET.ParseError as e:
        raise ValueError(f"Invalid Rekordbox XML: {e}") from e
    parse_ms = int((time_module.time() - t0) * 1000)

    xml_mb = xml_bytes / (1024 * 1024)
    logger.info(f"[trackid] parsed {xml_mb:.1f}MB XML in {parse_ms}ms")

    if parse_ms > timeout_sec * 1000:
        raise TimeoutError(f"XML parsing exceeded {timeout_sec}s timeout")

    collection = tree.getroot().find("COLLECTION")
    if collection is None:
        raise ValueError("Invalid Rekordbox XML: COLLECTION not found")

    records: List[LibraryRecord] = []
    seen_ids: set[int] = set()
    next_id = 1

    for track_elem in collection.findall("TRACK"):
        track_id = _to_int(track_elem.get("TrackID"))
        if track_id is None or track_id in seen_ids:
            # Sequential ids for tracks without a usable TrackID
            while next_id in seen_ids:
                next_id += 1
            track_id = next_id
        seen_ids.add(track_id)

        records.append(
            LibraryRecord(
                id=track_id,
                artist=(track_elem.get("Artist") or "").strip(),
                title=(track_elem.get("Name") or "").strip(),
                album=(track_elem.get("Album") or "").strip(),
                format=format_tag(track_elem.get("Kind")),
                file_size_bytes=_to_int(track_elem.get("Size")) or 0,
                bitrate_kbps=_to_int(track_elem.get("BitRate")),
                isrc=normalize_isrc(track_elem.get("ISRC")),
                file_path=location_to_path(track_elem.get("Location")),
            )
        )

    library = tuple(records)

    # Cache the parsed library
    cache[cache_key] = library

    return library
