import pytest

from squad_builder.features.builder import build_squad
from squad_builder.features.placement import FORMATIONS, parse_formation, place_lineup, reorder
from squad_builder.utils.errors import ConfigError
from squad_builder.utils.rules import ROLE_ORDER


@pytest.fixture
def squad(catalogue, config):
    return build_squad(catalogue, config, seed=6).squad


def test_parse_formation():
    assert parse_formation("4-3-3") == (4, 3, 3)
    with pytest.raises(ConfigError):
        parse_formation("4-2-4")


@pytest.mark.parametrize("formation", FORMATIONS)
def test_every_formation_numbers_one_to_eleven(squad, formation):
    lineup = place_lineup(squad, formation)
    assert sorted(n for n, _ in lineup.slots) == list(range(1, 12))
    assert len(lineup.bench) == len(squad) - 11
    assert {p.id for p in lineup.starting_xi}.isdisjoint(p.id for p in lineup.bench)


def test_xi_takes_dearest_per_role(squad):
    lineup = place_lineup(squad, "4-4-2")
    gk = [p for p in squad if p.role == "GK"]
    number, keeper = lineup.slots[0]
    assert number == 1
    assert keeper.price == max(p.price for p in gk)
    ranks = [ROLE_ORDER.index(p.role) for p in lineup.bench]
    assert ranks == sorted(ranks)


def test_short_squad_is_rejected(squad):
    no_fwd = [p for p in squad if p.role != "FWD"]
    with pytest.raises(ConfigError):
        place_lineup(no_fwd, "3-4-3")


def test_reorder():
    assert reorder(["a", "b", "c", "d"], 0, 2) == ["b", "c", "a", "d"]
    assert reorder(["a", "b", "c"], 2, 0) == ["c", "a", "b"]
