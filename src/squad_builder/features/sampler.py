from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..utils.errors import RoleUnsatisfiable, SearchCancelled
from ..utils.rules import Band, Item, SAMPLER_ROUNDS, TIER_MID_PCT, TIER_TOP_PCT

log = logging.getLogger("squad.sampler")

# --- Helpers ------------------------------------------------------------------

def by_price_desc(pool: Sequence[Item]) -> List[Item]:
    # id breaks ties so the order never depends on how the catalogue was loaded
    return sorted(pool, key=lambda p: (-p.price, p.id))


def split_tiers(sorted_pool: Sequence[Item],
                top_pct: float = TIER_TOP_PCT,
                mid_pct: float = TIER_MID_PCT) -> Tuple[List[Item], List[Item], List[Item]]:
    """
    Rank tiers of a price-descending pool: top ~30%, mid up to the 70th
    percentile, low the rest. Top and mid keep at least one item each.
    """
    n = len(sorted_pool)
    n_top = max(1, int(n * top_pct))
    n_mid_end = max(n_top + 1, int(n * mid_pct))
    top = list(sorted_pool[:n_top])
    mid = list(sorted_pool[n_top:n_mid_end])
    low = list(sorted_pool[n_mid_end:])
    return top, mid, low


def _shuffled(items: List[Item], rng: np.random.Generator) -> List[Item]:
    return [items[i] for i in rng.permutation(len(items))]


def _check(should_stop: Optional[Callable[[], bool]]) -> None:
    if should_stop is not None and should_stop():
        raise SearchCancelled("search cancelled during role repair")


# --- Repair ------------------------------------------------------------------

def _swap(chosen: List[Item], taken: set, i: int, cand: Item) -> int:
    cur = chosen[i]
    chosen[i] = cand
    taken.discard(cur.id)
    taken.add(cand.id)
    return cand.price - cur.price


def _raise_spend(chosen, taken, spent, sorted_pool, band, rounds, should_stop) -> int:
    """Under lo: swap the cheapest pick for the cheapest dearer spare that keeps spend <= hi."""
    guard = 0
    while spent < band.lo and guard < rounds:
        guard += 1
        _check(should_stop)
        i = min(range(len(chosen)), key=lambda k: chosen[k].price)
        cur = chosen[i]
        cand = next((p for p in reversed(sorted_pool)
                     if p.id not in taken and p.price > cur.price
                     and spent - cur.price + p.price <= band.hi), None)
        if cand is None:
            break
        spent += _swap(chosen, taken, i, cand)
    return spent


def _lower_spend(chosen, taken, spent, sorted_pool, band, rounds, should_stop) -> int:
    """Over hi: swap the dearest pick for the cheapest spare priced below it."""
    guard = 0
    while spent > band.hi and guard < rounds:
        guard += 1
        _check(should_stop)
        i = max(range(len(chosen)), key=lambda k: chosen[k].price)
        cur = chosen[i]
        cand = next((p for p in reversed(sorted_pool)
                     if p.id not in taken and p.price < cur.price), None)
        if cand is None:
            break
        spent += _swap(chosen, taken, i, cand)
    return spent


# --- Sampler ------------------------------------------------------------------

def sample_role(role: str,
                pool: Sequence[Item],
                need: int,
                band: Band,
                rng: np.random.Generator,
                rounds: int = SAMPLER_ROUNDS,
                top_pct: float = TIER_TOP_PCT,
                mid_pct: float = TIER_MID_PCT,
                should_stop: Optional[Callable[[], bool]] = None) -> Tuple[List[Item], int]:
    """
    Draw `need` items of one role whose total price lands in [band.lo, band.hi].

    Fill mid tier first, then low, both under the hi cap; top the count up with
    the cheapest leftovers; then repair upward or downward with single swaps.
    Raises RoleUnsatisfiable when the pool cannot do it.
    """
    if need == 0:
        if band.contains(0):
            return [], 0
        raise RoleUnsatisfiable(role, need, band, "no slots to fill but band excludes zero")
    if len(pool) < need:
        raise RoleUnsatisfiable(role, need, band, f"pool has only {len(pool)} items")

    sorted_pool = by_price_desc(pool)
    _top, mid, low = split_tiers(sorted_pool, top_pct, mid_pct)

    chosen: List[Item] = []
    taken = set()
    spent = 0

    # 1) mid first, then low; both capped by hi
    for tier in (mid, low):
        for p in _shuffled(tier, rng):
            if len(chosen) >= need:
                break
            if spent + p.price <= band.hi:
                chosen.append(p)
                taken.add(p.id)
                spent += p.price

    # 2) still short: cheapest remaining, over the cap if it must
    for p in reversed(sorted_pool):
        if len(chosen) >= need:
            break
        if p.id in taken:
            continue
        chosen.append(p)
        taken.add(p.id)
        spent += p.price

    if len(chosen) != need:
        raise RoleUnsatisfiable(role, need, band, "could not fill headcount")

    spent = _raise_spend(chosen, taken, spent, sorted_pool, band, rounds, should_stop)
    if spent > band.hi:
        spent = _lower_spend(chosen, taken, spent, sorted_pool, band, rounds, should_stop)
        # the cheapest cheaper spare can overshoot below lo
        spent = _raise_spend(chosen, taken, spent, sorted_pool, band, rounds, should_stop)

    if not band.contains(spent):
        raise RoleUnsatisfiable(role, need, band, f"repair ended at {spent}")

    log.debug("%s: picked %d for %d credits (band %d-%d)", role, need, spent, band.lo, band.hi)
    return chosen, spent
