from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, TypeVar

from ..utils.errors import ConfigError
from ..utils.rules import ROLE_ORDER, Item

T = TypeVar("T")

# shirt numbers per line, in the order the slots are filled
NUMBER_LAYOUTS: Dict[str, Dict[str, List[int]]] = {
    "4-3-3": {"DEF": [2, 4, 5, 3], "MID": [6, 8, 10], "FWD": [7, 9, 11]},
    "3-4-3": {"DEF": [3, 4, 2], "MID": [6, 8, 10, 5], "FWD": [7, 9, 11]},
    "3-5-2": {"DEF": [2, 4, 5], "MID": [7, 6, 10, 8, 3], "FWD": [9, 11]},
    "4-4-2": {"DEF": [2, 4, 5, 3], "MID": [7, 6, 8, 11], "FWD": [9, 10]},
    "4-5-1": {"DEF": [2, 4, 5, 3], "MID": [7, 6, 8, 10, 11], "FWD": [9]},
    "5-3-2": {"DEF": [2, 4, 5, 6, 3], "MID": [8, 10, 7], "FWD": [9, 11]},
    "5-4-1": {"DEF": [2, 4, 5, 6, 3], "MID": [7, 8, 10, 11], "FWD": [9]},
}
FORMATIONS = tuple(NUMBER_LAYOUTS)
DEFAULT_FORMATION = "3-4-3"


def parse_formation(key: str) -> Tuple[int, int, int]:
    """'4-3-3' -> (4, 3, 3): defenders, midfielders, forwards."""
    if key not in NUMBER_LAYOUTS:
        raise ConfigError(f"unknown formation {key!r}; choose from {', '.join(FORMATIONS)}")
    d, c, a = (int(n) for n in key.split("-"))
    return d, c, a


@dataclass
class Lineup:
    formation: str
    slots: List[Tuple[int, Item]]   # (shirt number, player), GK first
    bench: List[Item]

    @property
    def starting_xi(self) -> List[Item]:
        return [p for _, p in self.slots]

    def to_dict(self) -> Dict[str, object]:
        return {
            "formation": self.formation,
            "xi": [{"number": n, **p.to_dict()} for n, p in self.slots],
            "bench": [p.to_dict() for p in self.bench],
        }


def reorder(seq: Sequence[T], src: int, dst: int) -> List[T]:
    """Move seq[src] to position dst (drag-and-drop within a line or the bench)."""
    out = list(seq)
    moved = out.pop(src)
    out.insert(dst, moved)
    return out


def place_lineup(squad: Sequence[Item], formation: str = DEFAULT_FORMATION) -> Lineup:
    """
    Fill the XI with the dearest players of each role and number them per
    the formation layout; everyone else goes to the bench.
    """
    d, c, a = parse_formation(formation)
    layout = NUMBER_LAYOUTS[formation]
    need = {"GK": 1, "DEF": d, "MID": c, "FWD": a}
    numbers = {"GK": [1], **layout}

    slots: List[Tuple[int, Item]] = []
    used = set()
    for role in ROLE_ORDER:
        avail = sorted((p for p in squad if p.role == role), key=lambda p: (-p.price, p.id))
        if len(avail) < need[role]:
            raise ConfigError(f"{formation} needs {need[role]} {role}, squad has {len(avail)}")
        for number, p in zip(numbers[role], avail[:need[role]]):
            slots.append((number, p))
            used.add(p.id)

    rank = {r: i for i, r in enumerate(ROLE_ORDER)}
    bench = sorted((p for p in squad if p.id not in used), key=lambda p: (rank[p.role], -p.price, p.id))
    return Lineup(formation=formation, slots=slots, bench=bench)
