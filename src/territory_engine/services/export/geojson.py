"""GeoJSON export and zoom-level simplification of territories."""

from __future__ import annotations

import colorsys
import hashlib
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Sequence

from shapely.geometry import mapping

from ...models.domain import ChangeSet, Territory
from ..geospatial import geodesic_area_sqm


def owner_color(owner_id: str) -> str:
    """Stable hex colour for an owner, the same on every map and in every export."""

    digest = hashlib.sha1(owner_id.encode("utf-8")).digest()
    hue = int.from_bytes(digest[:2], "big") / 0xFFFF
    red, green, blue = colorsys.hls_to_rgb(hue, 0.45, 0.85)
    return f"#{round(red * 255):02x}{round(green * 255):02x}{round(blue * 255):02x}"


def zoom_tolerance(zoom: float) -> float:
    """Simplification tolerance in degrees for a map zoom level."""

    if zoom > 14:
        return 0.00001
    if zoom > 12:
        return 0.0001
    return 0.0005


def simplify_for_zoom(territories: Sequence[Territory], zoom: float) -> List[Territory]:
    """Return copies of *territories* with geometry simplified for *zoom*.

    Lower zoom levels simplify more aggressively.
    """
    tolerance = zoom_tolerance(zoom)
    simplified: List[Territory] = []
    for territory in territories:
        geometry = territory.geometry.simplify(tolerance, preserve_topology=True)
        simplified.append(replace(territory, geometry=geometry))
    return simplified


def territory_feature(territory: Territory, color: str | None = None) -> Dict[str, Any]:
    area_sqm = territory.area_sqm if territory.area_sqm is not None else geodesic_area_sqm(territory.geometry)
    properties: Dict[str, Any] = {
        "id": territory.territory_id,
        "userId": territory.owner_id,
        "territoryType": territory.kind,
        "areaSqm": area_sqm,
        "capturedAt": territory.captured_at.isoformat() if territory.captured_at else None,
        "lastDefendedAt": territory.last_defended_at.isoformat() if territory.last_defended_at else None,
    }
    if color:
        properties["color"] = color
    return {"type": "Feature", "geometry": mapping(territory.geometry), "properties": properties}


def territories_to_geojson(territories: Sequence[Territory]) -> Dict[str, Any]:
    """Build a FeatureCollection with each territory coloured by its owner."""

    features = [territory_feature(territory, color=owner_color(territory.owner_id)) for territory in territories]
    return {"type": "FeatureCollection", "features": features}


def change_set_to_geojson(change_set: ChangeSet) -> Dict[str, Any]:
    """FeatureCollection of the geometries a change-set creates or replaces."""

    features: List[Dict[str, Any]] = []
    for claim in change_set.new_claims:
        features.append(
            {
                "type": "Feature",
                "geometry": mapping(claim.geometry),
                "properties": {
                    "change": "new_claim",
                    "userId": claim.owner_id,
                    "territoryType": claim.kind,
                    "areaSqm": claim.area_sqm,
                    "capturedAt": claim.captured_at.isoformat(),
                },
            }
        )
    for update in change_set.updates:
        features.append(
            {
                "type": "Feature",
                "geometry": mapping(update.geometry),
                "properties": {"change": "update", "id": update.territory_id, "areaSqm": update.area_sqm},
            }
        )
    return {"type": "FeatureCollection", "features": features}


def save_geojson(collection: Dict[str, Any], output_path: Path) -> None:
    """Save a FeatureCollection to disk."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(collection, f, indent=2, ensure_ascii=False)
