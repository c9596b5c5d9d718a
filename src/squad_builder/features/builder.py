from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..utils.errors import AttemptExhausted, Infeasible, RoleUnsatisfiable, SearchCancelled
from ..utils.rules import ROLE_ORDER, Band, BuilderConfig, Item, split_by_role, squad_signature
from .balancer import DECREASE, INCREASE, balance, per_role_spend
from .bands import bands_for
from .memory import ProposalMemory
from .sampler import sample_role

log = logging.getLogger("squad.builder")

# score penalty for a squad that misses any band
BAND_PENALTY = 10_000

ACCEPTED = "accepted"
DEGRADED = "degraded"


@dataclass
class BuildResult:
    squad: Tuple[Item, ...]
    total_spend: int
    budget: int
    per_role_spend: Dict[str, int]
    bands: Dict[str, Band]
    feasible: bool
    novel: bool
    signature: str
    attempts_used: int
    failed_attempts: int = 0
    status: str = DEGRADED

    @property
    def leftover(self) -> int:
        return self.budget - self.total_spend

    @property
    def accepted(self) -> bool:
        return self.status == ACCEPTED

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame([p.to_dict() for p in self.squad], columns=["id", "name", "team", "role", "price"])
        if not df.empty:
            df["cum_spend"] = df["price"].cumsum()
        return df

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "feasible": self.feasible,
            "novel": self.novel,
            "budget": self.budget,
            "total_spend": self.total_spend,
            "leftover": self.leftover,
            "per_role_spend": dict(self.per_role_spend),
            "bands": {r: {"lo": b.lo, "hi": b.hi} for r, b in self.bands.items()},
            "signature": self.signature,
            "attempts_used": self.attempts_used,
            "failed_attempts": self.failed_attempts,
            "squad": [p.to_dict() for p in self.squad],
        }


def _ordered(squad: Iterable[Item]) -> Tuple[Item, ...]:
    rank = {r: i for i, r in enumerate(ROLE_ORDER)}
    return tuple(sorted(squad, key=lambda p: (rank[p.role], -p.price, p.id)))


def deadline_predicate(seconds: Optional[float]) -> Optional[Callable[[], bool]]:
    """Stop predicate that fires `seconds` from now (None disables it)."""
    if seconds is None:
        return None
    stop_at = time.monotonic() + seconds
    return lambda: time.monotonic() >= stop_at


def build_squad(catalogue: Iterable[Item],
                config: BuilderConfig,
                memory: Optional[ProposalMemory] = None,
                rng: Optional[np.random.Generator] = None,
                seed: Optional[int] = None,
                allow_degraded: bool = True,
                should_stop: Optional[Callable[[], bool]] = None) -> BuildResult:
    """
    Assemble a squad: per attempt, sample every role inside its band, balance
    the total toward the budget, and score. The first feasible squad whose
    signature is not in `memory` wins and is recorded there; otherwise the
    best-scoring attempt comes back flagged as degraded.

    Raises ConfigError before sampling on a bad config, Infeasible when no
    attempt yields a candidate, AttemptExhausted when `allow_degraded` is
    False and nothing was accepted, SearchCancelled when `should_stop` fires.
    """
    cfg = config.normalized()
    if rng is None:
        rng = np.random.default_rng(seed)
    if memory is None:
        memory = ProposalMemory(cfg.memory_size)

    pools = split_by_role(catalogue)
    bands = bands_for(cfg)
    budget = cfg.budget

    best: Optional[BuildResult] = None
    best_score = None
    failed = 0
    attempt = 0

    for attempt in range(1, cfg.attempts + 1):
        if should_stop is not None and should_stop():
            raise SearchCancelled(f"search cancelled before attempt {attempt}")

        squad: List[Item] = []
        try:
            for role in ROLE_ORDER:
                chosen, _spent = sample_role(
                    role, pools[role], cfg.role_requirements[role], bands[role], rng,
                    rounds=cfg.sampler_rounds,
                    top_pct=cfg.tier_top_pct,
                    mid_pct=cfg.tier_mid_pct,
                    should_stop=should_stop,
                )
                squad.extend(chosen)
        except RoleUnsatisfiable as e:
            failed += 1
            log.debug("attempt %d discarded: %s", attempt, e)
            continue

        total = sum(p.price for p in squad)
        if total > budget:
            total = balance(squad, bands, budget, DECREASE, pools,
                            leftover_tolerance=cfg.leftover_tolerance,
                            rounds=cfg.balancer_rounds, should_stop=should_stop)
        if total <= budget and budget - total > cfg.leftover_tolerance:
            total = balance(squad, bands, budget, INCREASE, pools,
                            leftover_tolerance=cfg.leftover_tolerance,
                            rounds=cfg.balancer_rounds, should_stop=should_stop)

        spend = per_role_spend(squad)
        bands_ok = all(bands[r].contains(spend[r]) for r in ROLE_ORDER)
        left = budget - total
        feasible = bands_ok and 0 <= left <= cfg.leftover_tolerance
        sig = squad_signature(squad)

        if feasible and memory.claim(sig):
            log.info("attempt %d accepted: total=%d leftover=%d", attempt, total, left)
            return BuildResult(
                squad=_ordered(squad), total_spend=total, budget=budget,
                per_role_spend=spend, bands=bands, feasible=True, novel=True,
                signature=sig, attempts_used=attempt, failed_attempts=failed,
                status=ACCEPTED,
            )

        # over-budget squads are never returned; balance() could not bring them down
        if total > budget:
            log.debug("attempt %d over budget after balancing (%d)", attempt, total)
            continue

        score = (0 if bands_ok else BAND_PENALTY) + abs(budget - total)
        log.debug("attempt %d: feasible=%s total=%d score=%d", attempt, feasible, total, score)
        if best_score is None or score < best_score:
            best_score = score
            best = BuildResult(
                squad=_ordered(squad), total_spend=total, budget=budget,
                per_role_spend=spend, bands=bands, feasible=feasible, novel=sig not in memory,
                signature=sig, attempts_used=attempt, failed_attempts=failed,
            )

    if best is None:
        raise Infeasible(
            f"infeasible pool/budget combination ({failed} of {cfg.attempts} attempts failed role sampling)"
        )

    best.attempts_used = attempt
    best.failed_attempts = failed
    if not allow_degraded:
        raise AttemptExhausted(f"no feasible, novel squad in {cfg.attempts} attempts", best=best)
    log.warning(
        "returning degraded squad: total=%d leftover=%d feasible=%s",
        best.total_spend, best.leftover, best.feasible,
    )
    return best
