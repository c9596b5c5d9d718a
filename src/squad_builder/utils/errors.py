"""
Exceptions raised by the squad builder.
"""


class SquadBuilderError(Exception):
    """Base class for everything the builder raises on purpose."""


class ConfigError(SquadBuilderError, ValueError):
    """Raised when the run configuration cannot be used (bad budget, counts...)."""


class CatalogueError(SquadBuilderError, ValueError):
    """Raised when a catalogue row or file violates the expected schema."""


class RoleUnsatisfiable(SquadBuilderError):
    """A role's pool cannot fill its headcount inside its spend band."""

    def __init__(self, role: str, need: int, band, reason: str):
        self.role = role
        self.need = need
        self.band = band
        self.reason = reason
        super().__init__(f"{role}: cannot pick {need} in [{band.lo}, {band.hi}] ({reason})")


class AttemptExhausted(SquadBuilderError):
    """No attempt produced a fully feasible, novel squad (strict mode only)."""

    def __init__(self, message: str, best=None):
        self.best = best
        super().__init__(message)


class Infeasible(SquadBuilderError):
    """No attempt produced even a best-effort squad."""


class SearchCancelled(SquadBuilderError):
    """The caller's stop predicate fired before the search finished."""
