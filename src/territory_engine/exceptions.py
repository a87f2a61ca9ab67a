"""Error types raised by the territory engine."""

from __future__ import annotations


class TerritoryEngineError(Exception):
    """Base class for engine errors."""


class DecodeError(TerritoryEngineError, ValueError):
    """The encoded route could not be turned into a usable coordinate sequence."""


class DegenerateGeometryError(TerritoryEngineError, ValueError):
    """A geometric operation produced, or was given, an unusable shape."""


class InputInvariantViolation(TerritoryEngineError, ValueError):
    """A supplied territory does not satisfy the polygon invariants."""

    def __init__(self, message: str, territory_id: str | None = None) -> None:
        super().__init__(message)
        self.territory_id = territory_id
