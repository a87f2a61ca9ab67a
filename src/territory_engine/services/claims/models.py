"""Claim workflow result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ...models.domain import ChangeSet, DecayResult, TerritoryKind


@dataclass(slots=True)
class ClaimResult:
    change_set: ChangeSet
    territory_kind: TerritoryKind
    candidate_area_sqm: float
    buffer_meters: float
    created_ids: List[str] = field(default_factory=list)

    @property
    def created(self) -> bool:
        return bool(self.created_ids)


@dataclass(slots=True)
class DecayRun:
    results: List[DecayResult]
    change_set: ChangeSet

    @property
    def deleted_ids(self) -> List[str]:
        return [result.territory_id for result in self.results if result.action == "deleted"]
