"""Domain models for territories, claims and resolver output."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional, Tuple, Union

from shapely.geometry import LineString, Polygon

TerritoryKind = Literal["polygon", "loop", "corridor"]
Coordinate = Tuple[float, float]


@dataclass(slots=True)
class Territory:
    """A persisted claimed polygon with a single owner."""

    territory_id: str
    owner_id: str
    geometry: Polygon
    kind: TerritoryKind = "corridor"
    captured_at: Optional[datetime] = None
    last_defended_at: Optional[datetime] = None
    area_sqm: Optional[float] = None


@dataclass(slots=True, frozen=True)
class Bounds:
    """Axis-aligned bounding box in degrees, longitude first."""

    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    def intersects(self, other: "Bounds") -> bool:
        return not (
            other.min_lng > self.max_lng
            or other.max_lng < self.min_lng
            or other.min_lat > self.max_lat
            or other.max_lat < self.min_lat
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_lng, self.min_lat, self.max_lng, self.max_lat)


@dataclass(slots=True)
class CandidateClaim:
    """Polygon produced from one activity, before conflict resolution."""

    polygon: Polygon
    area_sqm: float
    buffer_meters: float
    kind: TerritoryKind
    route: LineString


@dataclass(slots=True)
class NewClaim:
    """A territory to create.

    Most new claims belong to the claimant. When a steal cuts another owner's
    territory into several parts, the parts beyond the one kept under the
    original id are created here for that owner, keeping its timestamps.
    """

    geometry: Polygon
    captured_at: datetime
    area_sqm: float
    kind: TerritoryKind
    owner_id: Optional[str] = None
    last_defended_at: Optional[datetime] = None


@dataclass(slots=True)
class TerritoryUpdate:
    territory_id: str
    geometry: Polygon
    area_sqm: float


@dataclass(slots=True)
class TransferRecord:
    previous_owner_id: str
    new_owner_id: str
    territory_id: str
    area_sqm: float


@dataclass(slots=True)
class Applied:
    """An existing territory that produced changes during resolution."""

    territory_id: str
    action: Literal["merged", "stolen", "overtaken"]


@dataclass(slots=True)
class Skipped:
    """An existing territory the resolver passed over, with the reason."""

    territory_id: str
    reason: Literal["no_overlap", "invalid_input", "degenerate_geometry", "duplicate"]
    detail: str = ""


StepOutcome = Union[Applied, Skipped]


@dataclass(slots=True)
class ChangeSet:
    """Pure description of the mutations one claim requires."""

    new_claims: List[NewClaim] = field(default_factory=list)
    updates: List[TerritoryUpdate] = field(default_factory=list)
    deletes: List[str] = field(default_factory=list)
    transfers: List[TransferRecord] = field(default_factory=list)
    outcomes: List[StepOutcome] = field(default_factory=list)

    @property
    def skipped(self) -> List[Skipped]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Skipped)]

    @property
    def transferred_area_sqm(self) -> float:
        return sum(transfer.area_sqm for transfer in self.transfers)

    def touched_ids(self) -> set[str]:
        return {update.territory_id for update in self.updates} | set(self.deletes)

    def new_claims_for(self, owner_id: str) -> List[NewClaim]:
        return [claim for claim in self.new_claims if claim.owner_id == owner_id]


@dataclass(slots=True)
class TerritoryMembership:
    in_territory: bool
    owner_id: Optional[str] = None
    territory_id: Optional[str] = None


@dataclass(slots=True)
class DecayResult:
    """Outcome of decaying one territory; ``shrink_distance_m`` is the inward offset applied."""

    territory_id: str
    action: Literal["unchanged", "shrunk", "deleted"]
    decay_factor: float
    geometry: Optional[Polygon] = None
    area_sqm: Optional[float] = None
    shrink_distance_m: float = 0.0
