"""Pydantic models for data crossing the storage boundary."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, Field, field_validator, model_validator
from shapely.geometry import Polygon

from ..models.domain import Bounds, ChangeSet, Territory
from ..services.export.wkt import polygon_from_wkt, polygon_to_wkt


class TerritoryIn(BaseModel):
    """A stored territory as returned by the spatial query."""

    id: str
    user_id: str
    coordinates: Optional[Sequence[tuple[float, float]]] = Field(
        default=None, description="Closed exterior ring as (lng, lat) pairs."
    )
    wkt: Optional[str] = Field(default=None, description="POLYGON geometry as Well-Known-Text.")
    territory_type: Literal["polygon", "loop", "corridor"] = "corridor"
    captured_at: Optional[datetime] = None
    last_defended_at: Optional[datetime] = None
    area_sqm: Optional[float] = Field(default=None, ge=0.0)

    @field_validator("coordinates")
    @classmethod
    def validate_ring(cls, value: Optional[Sequence[tuple[float, float]]]):
        if value is None:
            return value
        ring = [tuple(point) for point in value]
        if len(ring) >= 3 and ring[0] != ring[-1]:
            ring.append(ring[0])
        if len(ring) < 4:
            raise ValueError("territory ring must have at least 4 coordinates (3 distinct + closure)")
        return ring

    @model_validator(mode="after")
    def require_geometry(self) -> "TerritoryIn":
        if (self.coordinates is None) == (self.wkt is None):
            raise ValueError("exactly one of 'coordinates' or 'wkt' must be provided")
        return self

    def polygon(self) -> Polygon:
        if self.wkt is not None:
            return polygon_from_wkt(self.wkt)
        return Polygon(self.coordinates)

    def to_domain(self) -> Territory:
        return Territory(
            territory_id=self.id,
            owner_id=self.user_id,
            geometry=self.polygon(),
            kind=self.territory_type,
            captured_at=self.captured_at,
            last_defended_at=self.last_defended_at,
            area_sqm=self.area_sqm,
        )


class ClaimRequest(BaseModel):
    owner_id: str = Field(..., description="User claiming the territory.")
    encoded_route: str = Field(..., min_length=1, description="Encoded polyline of the activity.")
    activity_type: str = Field(default="Run", description="Run, Ride, or any other activity kind.")
    captured_at: datetime
    activity_id: Optional[str] = None


class BoundsModel(BaseModel):
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    @classmethod
    def from_bounds(cls, bounds: Bounds) -> "BoundsModel":
        return cls(
            min_lng=bounds.min_lng,
            min_lat=bounds.min_lat,
            max_lng=bounds.max_lng,
            max_lat=bounds.max_lat,
        )


class NewClaimOut(BaseModel):
    owner_id: Optional[str] = None
    wkt: str
    captured_at: datetime
    area_sqm: float
    territory_type: str


class UpdateOut(BaseModel):
    territory_id: str
    wkt: str
    area_sqm: float


class TransferOut(BaseModel):
    previous_owner_id: str
    new_owner_id: str
    territory_id: str
    area_sqm: float


class SkippedOut(BaseModel):
    territory_id: str
    reason: str
    detail: str = ""


class ChangeSetOut(BaseModel):
    new_claims: List[NewClaimOut] = Field(default_factory=list)
    updates: List[UpdateOut] = Field(default_factory=list)
    deletes: List[str] = Field(default_factory=list)
    transfers: List[TransferOut] = Field(default_factory=list)
    skipped: List[SkippedOut] = Field(default_factory=list)

    @classmethod
    def from_change_set(cls, change_set: ChangeSet) -> "ChangeSetOut":
        return cls(
            new_claims=[
                NewClaimOut(
                    owner_id=claim.owner_id,
                    wkt=polygon_to_wkt(claim.geometry),
                    captured_at=claim.captured_at,
                    area_sqm=claim.area_sqm,
                    territory_type=claim.kind,
                )
                for claim in change_set.new_claims
            ],
            updates=[
                UpdateOut(
                    territory_id=update.territory_id,
                    wkt=polygon_to_wkt(update.geometry),
                    area_sqm=update.area_sqm,
                )
                for update in change_set.updates
            ],
            deletes=list(change_set.deletes),
            transfers=[
                TransferOut(
                    previous_owner_id=transfer.previous_owner_id,
                    new_owner_id=transfer.new_owner_id,
                    territory_id=transfer.territory_id,
                    area_sqm=transfer.area_sqm,
                )
                for transfer in change_set.transfers
            ],
            skipped=[
                SkippedOut(territory_id=item.territory_id, reason=item.reason, detail=item.detail)
                for item in change_set.skipped
            ],
        )
