from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List

from .errors import CatalogueError, ConfigError

# Squad constraints
SQUAD_SIZE = 25

# roles, in the order the builder visits them
# 1=GK, 2=DEF, 3=MID, 4=FWD (FPL element_type)
ROLE_ORDER = ("GK", "DEF", "MID", "FWD")
POSITION_NAMES = {1: "GK", 2: "DEF", 3: "MID", 4: "FWD"}

REQUIRED_COUNTS = {"GK": 3, "DEF": 8, "MID": 8, "FWD": 6}
DEFAULT_TARGETS = {"GK": 9.0, "DEF": 15.0, "MID": 30.0, "FWD": 46.0}

ROLE_TOLERANCE = 0.05
LEFTOVER_MAX = 3
ATTEMPTS = 32
SAMPLER_ROUNDS = 200
BALANCER_ROUNDS = 400
MEMORY_SIZE = 5
TIER_TOP_PCT = 0.30
TIER_MID_PCT = 0.70


@dataclass(frozen=True)
class Item:
    """
    A priced player in the catalogue.

    Attributes
    ----------
    id : str
        Unique key.
    role : str
        One of ROLE_ORDER.
    price : int
        Positive credit cost.
    name, team : str
        Display only; the search never looks at them.
    """
    id: str
    role: str
    price: int
    name: str = ""
    team: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise CatalogueError("Item.id must be non-empty.")
        if self.role not in ROLE_ORDER:
            raise CatalogueError(f"Item[{self.id}] has unknown role {self.role!r}.")
        if not isinstance(self.price, int) or self.price <= 0:
            raise CatalogueError(f"Item[{self.id}] price must be a positive integer.")

    def to_dict(self) -> Dict[str, object]:
        return {"id": self.id, "name": self.name, "team": self.team, "role": self.role, "price": self.price}


@dataclass(frozen=True)
class Band:
    role: str
    lo: int
    hi: int

    def contains(self, spend: int) -> bool:
        return self.lo <= spend <= self.hi


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


@dataclass
class BuilderConfig:
    budget: int                                    # total credits available (e.g., 500)
    role_requirements: Dict[str, int] = field(default_factory=lambda: dict(REQUIRED_COUNTS))
    role_targets: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TARGETS))  # % of budget per role
    squad_size: int = SQUAD_SIZE
    tolerance: float = ROLE_TOLERANCE              # ± fraction around each role target
    leftover_tolerance: int = LEFTOVER_MAX         # max credits left unspent
    attempts: int = ATTEMPTS
    sampler_rounds: int = SAMPLER_ROUNDS
    balancer_rounds: int = BALANCER_ROUNDS
    memory_size: int = MEMORY_SIZE
    tier_top_pct: float = TIER_TOP_PCT
    tier_mid_pct: float = TIER_MID_PCT

    def validate(self) -> "BuilderConfig":
        """Raise ConfigError for inputs that cannot be clamped into shape."""
        if isinstance(self.budget, bool) or not isinstance(self.budget, int) or self.budget <= 0:
            raise ConfigError(f"budget must be a positive integer, got {self.budget!r}")
        unknown = set(self.role_requirements) - set(ROLE_ORDER)
        if unknown:
            raise ConfigError(f"unknown roles in requirements: {sorted(unknown)}")
        unknown = set(self.role_targets) - set(ROLE_ORDER)
        if unknown:
            raise ConfigError(f"unknown roles in targets: {sorted(unknown)}")
        for role, count in self.role_requirements.items():
            if count < 0:
                raise ConfigError(f"{role} count must be >= 0, got {count}")
        total = sum(self.role_requirements.values())
        if total != self.squad_size:
            raise ConfigError(
                f"role counts sum to {total}, expected squad size {self.squad_size}"
            )
        return self

    def normalized(self) -> "BuilderConfig":
        """
        Validated copy with numeric knobs clamped to usable ranges.
        Missing roles get a zero count / zero target.
        """
        self.validate()
        top = _clamp(float(self.tier_top_pct), 0.01, 1.0)
        mid = _clamp(float(self.tier_mid_pct), top, 1.0)
        return replace(
            self,
            role_requirements={r: int(self.role_requirements.get(r, 0)) for r in ROLE_ORDER},
            role_targets={r: _clamp(float(self.role_targets.get(r, 0.0)), 0.0, 100.0) for r in ROLE_ORDER},
            tolerance=_clamp(float(self.tolerance), 0.0, 1.0),
            leftover_tolerance=max(0, int(self.leftover_tolerance)),
            attempts=max(1, int(self.attempts)),
            sampler_rounds=max(0, int(self.sampler_rounds)),
            balancer_rounds=max(0, int(self.balancer_rounds)),
            memory_size=max(1, int(self.memory_size)),
            tier_top_pct=top,
            tier_mid_pct=mid,
        )


def squad_signature(items: Iterable[Item]) -> str:
    """Order-independent key of a squad: sorted ids joined by '|'."""
    return "|".join(sorted(p.id for p in items))


def split_by_role(items: Iterable[Item]) -> Dict[str, List[Item]]:
    out: Dict[str, List[Item]] = {r: [] for r in ROLE_ORDER}
    for p in items:
        out[p.role].append(p)
    return out


def parse_role_map(s: str, cast=int) -> Dict[str, float]:
    """
    Example: "GK:3,DEF:8,MID:8,FWD:6" (counts) or "GK:9,DEF:15" (percentages).
    FPL element types (1..4) are accepted in place of role names.
    """
    out: Dict[str, float] = {}
    if not s:
        return out
    for chunk in s.replace(";", ",").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        if ":" not in chunk:
            raise ConfigError(f"expected ROLE:VALUE, got {chunk!r}")
        k, v = chunk.split(":", 1)
        k = k.strip().upper()
        if k.isdigit():
            k = POSITION_NAMES.get(int(k), k)
        try:
            out[k] = cast(float(v.strip())) if cast is int else cast(v.strip())
        except ValueError as e:
            raise ConfigError(f"bad value for {k}: {v!r}") from e
    return out
