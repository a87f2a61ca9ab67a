"""High-level orchestration for territory claims and decay runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List

from pydantic import ValidationError

from ...config import Settings, settings
from ...exceptions import InputInvariantViolation
from ...models.domain import ChangeSet, DecayResult, Territory, TerritoryUpdate
from ...persistence.repository import TerritoryRepository
from ...schemas.claims import ClaimRequest, TerritoryIn
from ..buffering.service import candidate_from_encoded
from ..decay import apply_decay
from ..geospatial import bounds_of
from ..resolver.service import resolve_overlaps
from .models import ClaimResult, DecayRun

logger = logging.getLogger(__name__)


def territories_from_records(records: Iterable[dict]) -> List[Territory]:
    """Validate raw storage rows, dropping the ones that break polygon invariants."""

    territories: List[Territory] = []
    for record in records:
        try:
            territories.append(TerritoryIn.model_validate(record).to_domain())
        except (ValidationError, InputInvariantViolation, ValueError) as exc:
            logger.warning(f"Skipping stored territory {record.get('id')!r}: {exc}")
    return territories


def process_claim(
    request: ClaimRequest,
    repository: TerritoryRepository,
    *,
    config: Settings | None = None,
) -> ClaimResult:
    """Decode, buffer, resolve and persist one activity claim.

    Decoding and buffering failures propagate; problems with individual
    stored territories are absorbed by the resolver. A claim that ends up
    fully merged or fully stolen is a success with no created territory.
    ``created_ids`` also lists the pieces of cut territories kept by their
    previous owners.
    """
    config = config or settings
    candidate = candidate_from_encoded(request.encoded_route, request.activity_type, config=config)
    bounds = bounds_of(candidate.polygon)
    logger.info(
        f"Claiming {candidate.kind} of {candidate.area_sqm:.0f} sqm for user {request.owner_id}"
        + (f" (activity {request.activity_id})" if request.activity_id else "")
    )

    with repository.region_lock(bounds):
        existing = repository.find_overlapping(bounds)
        change_set = resolve_overlaps(
            candidate,
            existing,
            request.owner_id,
            request.captured_at,
            min_area_sqm=config.min_area_sqm,
        )
        created_ids = repository.apply_change_set(
            change_set,
            owner_id=request.owner_id,
            captured_at=request.captured_at,
        )

    for skipped in change_set.skipped:
        if skipped.reason != "no_overlap":
            logger.warning(f"Territory {skipped.territory_id} skipped ({skipped.reason}): {skipped.detail}")

    return ClaimResult(
        change_set=change_set,
        territory_kind=candidate.kind,
        candidate_area_sqm=candidate.area_sqm,
        buffer_meters=candidate.buffer_meters,
        created_ids=created_ids,
    )


def decay_change_set(results: Iterable[DecayResult]) -> ChangeSet:
    change_set = ChangeSet()
    for result in results:
        if result.action == "deleted":
            change_set.deletes.append(result.territory_id)
        elif result.action == "shrunk":
            change_set.updates.append(
                TerritoryUpdate(
                    territory_id=result.territory_id,
                    geometry=result.geometry,
                    area_sqm=result.area_sqm,
                )
            )
    return change_set


def run_decay(
    repository: TerritoryRepository,
    *,
    now: datetime | None = None,
    decay_rate_per_day: float | None = None,
    config: Settings | None = None,
) -> DecayRun:
    """Apply the decay model to every stored territory and persist the outcome."""

    config = config or settings
    now = now or datetime.now(timezone.utc)

    results: List[DecayResult] = []
    for territory in repository.all_territories():
        try:
            results.append(
                apply_decay(territory, decay_rate_per_day=decay_rate_per_day, now=now, config=config)
            )
        except (InputInvariantViolation, ValueError) as exc:
            logger.warning(f"Decay skipped for territory {territory.territory_id}: {exc}")

    change_set = decay_change_set(results)
    if change_set.updates or change_set.deletes:
        repository.apply_change_set(change_set)
    logger.info(
        f"Decay run: {len(change_set.updates)} shrunk, {len(change_set.deletes)} deleted "
        f"out of {len(results)} territories"
    )
    return DecayRun(results=results, change_set=change_set)
