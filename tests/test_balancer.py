import pytest

from squad_builder.features.balancer import DECREASE, INCREASE, balance
from squad_builder.utils.rules import Band, Item


def _gk(prices):
    return [Item(id=f"g{p}", role="GK", price=p) for p in prices]


POOL = _gk([15, 14, 12, 8, 6, 4])
BY_ID = {p.id: p for p in POOL}


def test_decrease_swaps_dearest_for_cheapest():
    squad = [BY_ID["g15"], BY_ID["g14"]]
    total = balance(squad, {"GK": Band("GK", 10, 30)}, 20, DECREASE, {"GK": POOL})
    assert total == 18
    assert sorted(p.price for p in squad) == [4, 14]


def test_decrease_respects_band_floor():
    squad = [BY_ID["g15"], BY_ID["g14"]]
    total = balance(squad, {"GK": Band("GK", 27, 30)}, 20, DECREASE, {"GK": POOL})
    assert total == 29
    assert [p.id for p in squad] == ["g15", "g14"]


def test_increase_closes_leftover():
    squad = [BY_ID["g4"], BY_ID["g6"]]
    total = balance(squad, {"GK": Band("GK", 5, 25)}, 24, INCREASE, {"GK": POOL}, leftover_tolerance=1)
    assert total == 23
    assert sorted(p.price for p in squad) == [8, 15]


def test_increase_never_passes_budget_or_band():
    squad = [BY_ID["g4"], BY_ID["g6"]]
    total = balance(squad, {"GK": Band("GK", 5, 12)}, 100, INCREASE, {"GK": POOL}, leftover_tolerance=0)
    assert total <= 12
    assert len({p.id for p in squad}) == 2


def test_zero_rounds_is_a_no_op():
    squad = [BY_ID["g15"], BY_ID["g14"]]
    assert balance(squad, {"GK": Band("GK", 10, 30)}, 20, DECREASE, {"GK": POOL}, rounds=0) == 29


def test_bad_direction():
    with pytest.raises(ValueError):
        balance([], {}, 10, "sideways", {})
