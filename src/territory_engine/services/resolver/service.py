"""Conflict resolution between a new claim and existing territories.

The resolver folds over the caller-ordered territories that may overlap the
claim, threading the part of the claim that is still unassigned. Each step
either applies (merge into the claimant's own territory, or steal from another
owner) or is skipped with a reason. Two conditions end the fold early:

* the claimant already owns an overlapping territory, which absorbs the
  remaining claim;
* stealing consumed the remaining claim entirely.

The result depends on the order of ``existing``. A same-owner merge reached
before a steal means that steal never happens.

A steal can cut either side in pieces. The remaining claim is then carried as
a MultiPolygon and ends up as one new claim per part. A cut territory keeps
its largest part under its own id; the other parts become new territories
for the same owner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from shapely.geometry import Polygon

from ...config import settings
from ...exceptions import DegenerateGeometryError, InputInvariantViolation
from ...models.domain import (
    Applied,
    CandidateClaim,
    ChangeSet,
    NewClaim,
    Skipped,
    StepOutcome,
    Territory,
    TerritoryKind,
    TerritoryUpdate,
    TransferRecord,
)
from ..algebra import Areal, area, difference, ensure_valid, intersect, polygon_parts, union

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FoldState:
    """Accumulator threaded through the fold."""

    remaining: Optional[Areal]
    updates: Tuple[TerritoryUpdate, ...] = ()
    deletes: Tuple[str, ...] = ()
    transfers: Tuple[TransferRecord, ...] = ()
    new_claims: Tuple[NewClaim, ...] = ()
    outcomes: Tuple[StepOutcome, ...] = ()
    seen: frozenset = frozenset()


@dataclass(slots=True, frozen=True)
class FoldStep:
    state: FoldState
    stop: bool = False


def validate_territory(territory: Territory) -> Polygon:
    """Check the stored-polygon invariants for one existing territory."""

    geometry = territory.geometry
    if not isinstance(geometry, Polygon) or geometry.is_empty:
        raise InputInvariantViolation(
            f"territory {territory.territory_id} has no polygon geometry",
            territory_id=territory.territory_id,
        )
    if len(geometry.exterior.coords) < 4:
        raise InputInvariantViolation(
            f"territory {territory.territory_id} ring has fewer than 4 points",
            territory_id=territory.territory_id,
        )
    if not geometry.is_valid:
        raise InputInvariantViolation(
            f"territory {territory.territory_id} polygon is not simple",
            territory_id=territory.territory_id,
        )
    return geometry


def _skip(state: FoldState, territory_id: str, reason: str, detail: str = "") -> FoldStep:
    outcome = Skipped(territory_id=territory_id, reason=reason, detail=detail)
    return FoldStep(replace(state, outcomes=state.outcomes + (outcome,)))


def _claims_from_parts(
    parts: Iterable[Polygon],
    *,
    owner_id: str,
    captured_at: datetime,
    kind: TerritoryKind,
    last_defended_at: Optional[datetime] = None,
    min_area_sqm: float,
) -> List[NewClaim]:
    claims = []
    for part in parts:
        part_area = area(part)
        if part_area >= min_area_sqm:
            claims.append(
                NewClaim(
                    geometry=part,
                    captured_at=captured_at,
                    area_sqm=part_area,
                    kind=kind,
                    owner_id=owner_id,
                    last_defended_at=last_defended_at,
                )
            )
    return claims


def _merge(remaining: Areal, existing: Polygon) -> Tuple[Polygon, List[Polygon]]:
    """Union *existing* with the parts of *remaining* that overlap it.

    Returns the merged polygon and the parts of the claim that do not reach
    the territory.
    """
    merged = existing
    apart: List[Polygon] = []
    for part in polygon_parts(remaining):
        if intersect(part, existing, min_area_sqm=0.0) is None:
            apart.append(part)
        else:
            merged = union(merged, part)
    return merged, apart


def resolve_step(
    state: FoldState,
    territory: Territory,
    owner_id: str,
    *,
    captured_at: datetime,
    kind: TerritoryKind,
    min_area_sqm: float,
) -> FoldStep:
    """Process one existing territory against the remaining claim."""

    territory_id = territory.territory_id
    if territory_id in state.seen:
        return _skip(state, territory_id, "duplicate", "territory already processed")
    state = replace(state, seen=state.seen | {territory_id})

    try:
        existing = validate_territory(territory)
    except InputInvariantViolation as exc:
        logger.warning(f"Skipping territory {territory_id}: {exc}")
        return _skip(state, territory_id, "invalid_input", str(exc))

    remaining = state.remaining
    try:
        overlap = intersect(remaining, existing, min_area_sqm=min_area_sqm)
        if overlap is None:
            return _skip(state, territory_id, "no_overlap")

        if territory.owner_id == owner_id:
            merged, apart = _merge(remaining, existing)
            update = TerritoryUpdate(territory_id=territory_id, geometry=merged, area_sqm=area(merged))
            claims = _claims_from_parts(
                apart, owner_id=owner_id, captured_at=captured_at, kind=kind, min_area_sqm=min_area_sqm
            )
            return FoldStep(
                replace(
                    state,
                    remaining=None,
                    updates=state.updates + (update,),
                    new_claims=state.new_claims + tuple(claims),
                    outcomes=state.outcomes + (Applied(territory_id, "merged"),),
                ),
                stop=True,
            )

        leftover = difference(existing, overlap, min_area_sqm=min_area_sqm)
        next_remaining = difference(remaining, overlap, min_area_sqm=min_area_sqm)
        overlap_area = area(overlap)
    except DegenerateGeometryError as exc:
        logger.warning(f"Skipping territory {territory_id} after geometry failure: {exc}")
        return _skip(state, territory_id, "degenerate_geometry", str(exc))

    transfer = TransferRecord(
        previous_owner_id=territory.owner_id,
        new_owner_id=owner_id,
        territory_id=territory_id,
        area_sqm=overlap_area,
    )
    parts = polygon_parts(leftover)
    if not parts:
        state = replace(
            state,
            deletes=state.deletes + (territory_id,),
            outcomes=state.outcomes + (Applied(territory_id, "overtaken"),),
        )
    else:
        kept, detached = parts[0], parts[1:]
        update = TerritoryUpdate(territory_id=territory_id, geometry=kept, area_sqm=area(kept))
        split_off = _claims_from_parts(
            detached,
            owner_id=territory.owner_id,
            captured_at=territory.captured_at or captured_at,
            kind=territory.kind,
            last_defended_at=territory.last_defended_at,
            min_area_sqm=min_area_sqm,
        )
        if split_off:
            logger.info(f"Territory {territory_id} was cut into {len(split_off) + 1} parts")
        state = replace(
            state,
            updates=state.updates + (update,),
            new_claims=state.new_claims + tuple(split_off),
            outcomes=state.outcomes + (Applied(territory_id, "stolen"),),
        )

    state = replace(state, remaining=next_remaining, transfers=state.transfers + (transfer,))
    return FoldStep(state, stop=next_remaining is None)


def resolve_overlaps(
    candidate: CandidateClaim | Polygon,
    existing: Iterable[Territory],
    owner_id: str,
    captured_at: datetime,
    *,
    kind: TerritoryKind | None = None,
    min_area_sqm: float | None = None,
) -> ChangeSet:
    """Compute the change-set for one claim against overlapping territories.

    Args:
        candidate: Buffered claim polygon (or the CandidateClaim carrying it).
        existing: Territories that may overlap the claim, in the order they
            should be considered.
        owner_id: Claimant.
        captured_at: Capture time recorded on any new claim.
        kind: Territory kind for a new claim; defaults to the candidate's kind.
        min_area_sqm: Area under which results are treated as empty.

    Raises:
        DegenerateGeometryError: if the candidate polygon itself is unusable.
    """
    if isinstance(candidate, CandidateClaim):
        polygon = candidate.polygon
        kind = kind or candidate.kind
    else:
        polygon = candidate
    kind = kind or "corridor"
    min_area_sqm = min_area_sqm if min_area_sqm is not None else settings.min_area_sqm
    ensure_valid(polygon, "candidate claim")

    state = FoldState(remaining=polygon)
    for territory in existing:
        step = resolve_step(
            state,
            territory,
            owner_id,
            captured_at=captured_at,
            kind=kind,
            min_area_sqm=min_area_sqm,
        )
        state = step.state
        if step.stop:
            break

    new_claims = list(state.new_claims)
    new_claims.extend(
        _claims_from_parts(
            polygon_parts(state.remaining),
            owner_id=owner_id,
            captured_at=captured_at,
            kind=kind,
            min_area_sqm=min_area_sqm,
        )
    )

    change_set = ChangeSet(
        new_claims=new_claims,
        updates=list(state.updates),
        deletes=list(state.deletes),
        transfers=list(state.transfers),
        outcomes=list(state.outcomes),
    )
    logger.info(
        f"Resolved claim for {owner_id}: {len(change_set.new_claims)} new, "
        f"{len(change_set.updates)} updated, {len(change_set.deletes)} deleted, "
        f"{len(change_set.transfers)} transfers, {len(change_set.skipped)} skipped"
    )
    return change_set
