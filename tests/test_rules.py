import pytest

from squad_builder.utils.errors import CatalogueError, ConfigError
from squad_builder.utils.rules import BuilderConfig, Item, parse_role_map, squad_signature


def test_item_rejects_bad_rows():
    with pytest.raises(CatalogueError):
        Item(id="", role="GK", price=5)
    with pytest.raises(CatalogueError):
        Item(id="x", role="KEEPER", price=5)
    with pytest.raises(CatalogueError):
        Item(id="x", role="GK", price=0)


@pytest.mark.parametrize("budget", [0, -10])
def test_non_positive_budget_is_config_error(budget):
    with pytest.raises(ConfigError):
        BuilderConfig(budget=budget).validate()


def test_counts_must_match_squad_size():
    cfg = BuilderConfig(budget=500, role_requirements={"GK": 3, "DEF": 8, "MID": 8, "FWD": 5})
    with pytest.raises(ConfigError, match="expected squad size 25"):
        cfg.validate()


def test_unknown_role_is_config_error():
    with pytest.raises(ConfigError):
        BuilderConfig(budget=500, role_targets={"GK": 10, "LIBERO": 5}).validate()


def test_normalized_clamps_numeric_knobs():
    cfg = BuilderConfig(
        budget=500,
        role_targets={"GK": -5, "DEF": 150, "MID": 30},
        tolerance=3.0,
        leftover_tolerance=-1,
        attempts=0,
    ).normalized()
    assert cfg.role_targets == {"GK": 0.0, "DEF": 100.0, "MID": 30.0, "FWD": 0.0}
    assert cfg.tolerance == 1.0
    assert cfg.leftover_tolerance == 0
    assert cfg.attempts == 1


def test_signature_ignores_order():
    a = Item(id="a", role="GK", price=1)
    b = Item(id="b", role="DEF", price=2)
    assert squad_signature([a, b]) == squad_signature([b, a]) == "a|b"


def test_parse_role_map_accepts_element_types():
    assert parse_role_map("1:3, 2:8;MID:8,fwd:6") == {"GK": 3, "DEF": 8, "MID": 8, "FWD": 6}
    assert parse_role_map("GK:9.5", cast=float) == {"GK": 9.5}
    with pytest.raises(ConfigError):
        parse_role_map("GK=3")
