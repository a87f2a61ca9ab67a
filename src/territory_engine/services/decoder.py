"""Encoded-polyline route decoding.

Activity providers ship GPS tracks as Google encoded polylines: a lossy,
fixed-precision delta encoding of latitude/longitude pairs. The engine works
longitude-first throughout, so decoded pairs are swapped on the way in.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

import polyline
from shapely.geometry import LineString

from ..config import settings
from ..exceptions import DecodeError
from ..models.domain import Coordinate

logger = logging.getLogger(__name__)

# Encoded polylines only use printable characters from '?' (63) to '~' (126).
_MIN_CHAR = 63
_MAX_CHAR = 126


def decode_route(encoded: str, precision: int | None = None) -> List[Coordinate]:
    """Decode an encoded polyline into (longitude, latitude) pairs.

    Raises:
        DecodeError: if the string is empty, malformed, decodes to fewer than
            two points or to coordinates outside the valid lon/lat range.
    """
    if not isinstance(encoded, str) or not encoded.strip():
        raise DecodeError("Encoded route is empty.")

    encoded = encoded.strip()
    bad = next((ch for ch in encoded if not _MIN_CHAR <= ord(ch) <= _MAX_CHAR), None)
    if bad is not None:
        raise DecodeError(f"Encoded route contains invalid character {bad!r}.")

    precision = precision if precision is not None else settings.polyline_precision
    try:
        decoded = polyline.decode(encoded, precision)
    except (IndexError, ValueError, TypeError) as exc:
        raise DecodeError(f"Malformed encoded route: {exc}") from exc

    coordinates = [(float(lng), float(lat)) for lat, lng in decoded]
    if len(coordinates) < 2:
        raise DecodeError(f"Route must contain at least 2 points, got {len(coordinates)}.")

    for lng, lat in coordinates:
        if not (-180.0 <= lng <= 180.0 and -90.0 <= lat <= 90.0):
            raise DecodeError(f"Decoded coordinate out of range: ({lng}, {lat}).")

    logger.debug(f"Decoded route with {len(coordinates)} points")
    return coordinates


def encode_route(coordinates: Sequence[Coordinate], precision: int | None = None) -> str:
    """Encode (longitude, latitude) pairs as a polyline string."""

    precision = precision if precision is not None else settings.polyline_precision
    return polyline.encode([(lat, lng) for lng, lat in coordinates], precision)


def route_to_linestring(encoded: str, precision: int | None = None) -> LineString:
    return LineString(decode_route(encoded, precision=precision))
