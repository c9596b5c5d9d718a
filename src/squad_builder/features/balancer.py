from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..utils.errors import SearchCancelled
from ..utils.rules import BALANCER_ROUNDS, LEFTOVER_MAX, ROLE_ORDER, Band, Item

log = logging.getLogger("squad.balancer")

INCREASE = "increase"
DECREASE = "decrease"


def _role_spend(squad: Sequence[Item], role: str) -> int:
    return sum(p.price for p in squad if p.role == role)


def _swap_down(squad: List[Item], role: str, band: Band, pool: Sequence[Item], taken: set) -> Optional[int]:
    """Dearest pick -> cheapest cheaper spare, if the role stays >= lo. Returns price delta."""
    in_role = [i for i, p in enumerate(squad) if p.role == role]
    if not in_role:
        return None
    spend = sum(squad[i].price for i in in_role)
    idx = max(in_role, key=lambda i: (squad[i].price, squad[i].id))
    cur = squad[idx]
    spares = [p for p in pool if p.id not in taken and p.price < cur.price]
    if not spares:
        return None
    cand = min(spares, key=lambda p: (p.price, p.id))
    if spend - cur.price + cand.price < band.lo:
        return None
    squad[idx] = cand
    taken.discard(cur.id)
    taken.add(cand.id)
    return cand.price - cur.price


def _swap_up(squad: List[Item], role: str, band: Band, pool: Sequence[Item], taken: set,
             total: int, budget: int) -> Optional[int]:
    """Cheapest pick -> dearest spare that keeps role <= hi and total <= budget."""
    in_role = [i for i, p in enumerate(squad) if p.role == role]
    if not in_role:
        return None
    spend = sum(squad[i].price for i in in_role)
    idx = min(in_role, key=lambda i: (squad[i].price, squad[i].id))
    cur = squad[idx]
    spares = sorted((p for p in pool if p.id not in taken and p.price > cur.price),
                    key=lambda p: (-p.price, p.id))
    for cand in spares:
        delta = cand.price - cur.price
        if spend + delta <= band.hi and total + delta <= budget:
            squad[idx] = cand
            taken.discard(cur.id)
            taken.add(cand.id)
            return delta
    return None


def balance(squad: List[Item],
            bands: Mapping[str, Band],
            budget: int,
            direction: str,
            pools: Mapping[str, Sequence[Item]],
            leftover_tolerance: int = LEFTOVER_MAX,
            rounds: int = BALANCER_ROUNDS,
            should_stop: Optional[Callable[[], bool]] = None) -> int:
    """
    Nudge total spend toward the budget with one same-role swap per round,
    in place. `decrease` stops once total <= budget, `increase` once the
    leftover is within tolerance; either stops when no role admits a swap.
    Role counts never change and no role leaves its band.
    """
    if direction not in (INCREASE, DECREASE):
        raise ValueError(f"direction must be {INCREASE!r} or {DECREASE!r}")

    total = sum(p.price for p in squad)
    taken = {p.id for p in squad}
    guard = 0
    while guard < rounds:
        guard += 1
        if should_stop is not None and should_stop():
            raise SearchCancelled("search cancelled during balancing")
        if direction == DECREASE and total <= budget:
            break
        if direction == INCREASE and budget - total <= leftover_tolerance:
            break

        delta = None
        for role in ROLE_ORDER:
            if role not in bands:
                continue
            b = bands[role]
            spend = _role_spend(squad, role)
            if direction == DECREASE:
                if spend <= b.lo:
                    continue
                delta = _swap_down(squad, role, b, pools.get(role, ()), taken)
            else:
                if spend >= b.hi:
                    continue
                delta = _swap_up(squad, role, b, pools.get(role, ()), taken, total, budget)
            if delta is not None:
                break
        if delta is None:
            break
        total += delta

    log.debug("balance(%s): total=%d after %d rounds", direction, total, guard)
    return total


def per_role_spend(squad: Sequence[Item]) -> Dict[str, int]:
    return {role: _role_spend(squad, role) for role in ROLE_ORDER}
