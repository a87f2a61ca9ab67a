"""Export services."""

from .geojson import (
    change_set_to_geojson,
    save_geojson,
    simplify_for_zoom,
    territories_to_geojson,
)
from .wkt import polygon_from_wkt, polygon_to_wkt, route_to_wkt

__all__ = [
    "change_set_to_geojson",
    "save_geojson",
    "simplify_for_zoom",
    "territories_to_geojson",
    "polygon_from_wkt",
    "polygon_to_wkt",
    "route_to_wkt",
]
