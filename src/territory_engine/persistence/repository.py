"""Territory storage contract and an in-memory implementation."""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import ContextManager, Dict, Iterator, List, Optional, Protocol

from ..models.domain import Bounds, ChangeSet, Territory
from ..services.geospatial import bounds_of

logger = logging.getLogger(__name__)


class TerritoryRepository(Protocol):
    """What the claim workflow needs from territory storage.

    ``apply_change_set`` must be atomic. ``region_lock`` must serialize the
    read-resolve-write sequence for any two claims whose bounds intersect.
    """

    def find_overlapping(self, bounds: Bounds) -> List[Territory]: ...

    def all_territories(self) -> List[Territory]: ...

    def apply_change_set(
        self,
        change_set: ChangeSet,
        *,
        owner_id: Optional[str] = None,
        captured_at: Optional[datetime] = None,
    ) -> List[str]: ...

    def region_lock(self, bounds: Bounds) -> ContextManager[None]: ...


class InMemoryTerritoryRepository:
    """Dictionary-backed repository guarded by one global lock."""

    def __init__(self, territories: Optional[List[Territory]] = None) -> None:
        self._territories: Dict[str, Territory] = {}
        self._lock = threading.RLock()
        for territory in territories or []:
            self._territories[territory.territory_id] = territory

    def __len__(self) -> int:
        return len(self._territories)

    def get(self, territory_id: str) -> Optional[Territory]:
        return self._territories.get(territory_id)

    def add(self, territory: Territory) -> None:
        with self._lock:
            self._territories[territory.territory_id] = territory

    @contextmanager
    def region_lock(self, bounds: Bounds) -> Iterator[None]:
        with self._lock:
            yield

    def find_overlapping(self, bounds: Bounds) -> List[Territory]:
        """Territories whose bounding box intersects *bounds*, in insertion order."""

        with self._lock:
            return [
                territory
                for territory in self._territories.values()
                if bounds_of(territory.geometry).intersects(bounds)
            ]

    def all_territories(self) -> List[Territory]:
        with self._lock:
            return list(self._territories.values())

    def apply_change_set(
        self,
        change_set: ChangeSet,
        *,
        owner_id: Optional[str] = None,
        captured_at: Optional[datetime] = None,
    ) -> List[str]:
        """Apply all mutations or none; return ids of the created territories.

        Updates to territories owned by *owner_id* count as a defence and
        refresh ``last_defended_at``.
        """
        with self._lock:
            staged = dict(self._territories)

            for update in change_set.updates:
                current = staged.get(update.territory_id)
                if current is None:
                    raise KeyError(f"Cannot update unknown territory '{update.territory_id}'")
                changes = {"geometry": update.geometry, "area_sqm": update.area_sqm}
                if owner_id is not None and current.owner_id == owner_id and captured_at is not None:
                    changes["last_defended_at"] = captured_at
                staged[update.territory_id] = replace(current, **changes)

            for territory_id in change_set.deletes:
                if staged.pop(territory_id, None) is None:
                    raise KeyError(f"Cannot delete unknown territory '{territory_id}'")

            created: List[str] = []
            for claim in change_set.new_claims:
                claim_owner = claim.owner_id or owner_id
                if claim_owner is None:
                    raise ValueError("owner_id is required to apply new claims")
                territory_id = str(uuid.uuid4())
                staged[territory_id] = Territory(
                    territory_id=territory_id,
                    owner_id=claim_owner,
                    geometry=claim.geometry,
                    kind=claim.kind,
                    captured_at=claim.captured_at,
                    last_defended_at=claim.last_defended_at or claim.captured_at,
                    area_sqm=claim.area_sqm,
                )
                created.append(territory_id)

            self._territories = staged

        logger.debug(
            f"Applied change-set: {len(created)} created, {len(change_set.updates)} updated, "
            f"{len(change_set.deletes)} deleted"
        )
        return created
