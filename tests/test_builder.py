import numpy as np
import pytest

from conftest import make_catalogue
from squad_builder.features import builder as builder_mod
from squad_builder.features.builder import ACCEPTED, DEGRADED, build_squad
from squad_builder.features.memory import ProposalMemory
from squad_builder.utils.errors import AttemptExhausted, ConfigError, Infeasible, SearchCancelled
from squad_builder.utils.rules import REQUIRED_COUNTS, ROLE_ORDER, BuilderConfig, Item


def _check_squad(res, config):
    ids = [p.id for p in res.squad]
    assert len(ids) == sum(config.role_requirements.values())
    assert len(set(ids)) == len(ids)
    for role in ROLE_ORDER:
        assert sum(1 for p in res.squad if p.role == role) == config.role_requirements[role]
    assert res.total_spend == sum(p.price for p in res.squad)
    assert res.total_spend <= config.budget


def test_abundant_catalogue_is_feasible(catalogue, config):
    res = build_squad(catalogue, config, seed=3)
    _check_squad(res, config)
    assert res.feasible is True
    assert res.status == ACCEPTED
    assert 0 <= 500 - res.total_spend <= 3
    for role in ROLE_ORDER:
        assert res.bands[role].contains(res.per_role_spend[role])


def test_fixed_seed_is_reproducible(catalogue, config):
    a = build_squad(catalogue, config, seed=42)
    b = build_squad(catalogue, config, seed=42)
    assert [p.id for p in a.squad] == [p.id for p in b.squad]
    assert a.signature == b.signature


def test_shared_memory_avoids_repeats(catalogue, config):
    memory = ProposalMemory(5)
    first = build_squad(catalogue, config, memory=memory, seed=9)
    second = build_squad(catalogue, config, memory=memory, seed=9)
    assert first.accepted and second.accepted
    assert first.signature != second.signature
    assert memory.to_list()[:2] == [second.signature, first.signature]


def test_catalogue_order_does_not_matter(catalogue, config):
    a = build_squad(catalogue, config, seed=5)
    b = build_squad(list(reversed(catalogue)), config, seed=5)
    assert a.signature == b.signature


def test_goalkeepers_above_band_is_infeasible(catalogue, config):
    # GK band at 9% of 500 is [42, 48]; three keepers at 100 can never fit
    pool = [p for p in catalogue if p.role != "GK"]
    pool += [Item(id=f"GK-x{i}", role="GK", price=100) for i in range(3)]
    memory = ProposalMemory(5)
    with pytest.raises(Infeasible, match="infeasible pool/budget combination"):
        build_squad(pool, config, memory=memory, seed=1)
    assert len(memory) == 0


def test_empty_catalogue_is_infeasible(config):
    with pytest.raises(Infeasible):
        build_squad([], config, seed=1)


def test_zero_budget_is_config_error(catalogue):
    with pytest.raises(ConfigError):
        build_squad(catalogue, BuilderConfig(budget=0), seed=1)


def test_count_mismatch_fails_before_sampling(catalogue, monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError("sampling should not start")

    monkeypatch.setattr(builder_mod, "sample_role", boom)
    counts = dict(REQUIRED_COUNTS, FWD=5)
    with pytest.raises(ConfigError):
        build_squad(catalogue, BuilderConfig(budget=500, role_requirements=counts), seed=1)


def test_unreachable_leftover_returns_degraded(catalogue):
    # targets add up to 80%, so at least ~78 credits stay unspent
    cfg = BuilderConfig(budget=500, role_targets={"GK": 9, "DEF": 15, "MID": 30, "FWD": 26})
    memory = ProposalMemory(5)
    res = build_squad(catalogue, cfg, memory=memory, seed=2)
    _check_squad(res, cfg)
    assert res.status == DEGRADED
    assert res.feasible is False
    assert res.leftover > 3
    assert len(memory) == 0


def test_strict_mode_raises_with_best(catalogue):
    cfg = BuilderConfig(budget=500, role_targets={"GK": 9, "DEF": 15, "MID": 30, "FWD": 26}, attempts=4)
    with pytest.raises(AttemptExhausted) as exc:
        build_squad(catalogue, cfg, seed=2, allow_degraded=False)
    assert exc.value.best is not None
    assert exc.value.best.total_spend <= 500


def test_over_budget_targets_never_return_a_squad(catalogue):
    # floors alone exceed the budget, so nothing can be within budget and band
    cfg = BuilderConfig(budget=500, role_targets={"GK": 20, "DEF": 30, "MID": 40, "FWD": 50}, attempts=4)
    with pytest.raises(Infeasible):
        build_squad(catalogue, cfg, seed=2)


def test_cancellation_leaves_memory_untouched(catalogue, config):
    memory = ProposalMemory(5)
    with pytest.raises(SearchCancelled):
        build_squad(catalogue, config, memory=memory, seed=1, should_stop=lambda: True)
    assert len(memory) == 0


def test_injected_rng_is_used(catalogue, config):
    a = build_squad(catalogue, config, rng=np.random.default_rng(17))
    b = build_squad(catalogue, config, seed=17)
    assert a.signature == b.signature


def test_result_frame_and_dict(catalogue, config):
    res = build_squad(catalogue, config, seed=4)
    df = res.to_frame()
    assert list(df["role"].unique()) == list(ROLE_ORDER)
    assert df["cum_spend"].iloc[-1] == res.total_spend
    d = res.to_dict()
    assert d["leftover"] == 500 - res.total_spend
    assert len(d["squad"]) == 25


def test_other_squad_shapes():
    items = make_catalogue(per_role=60, avg={"GK": 12, "DEF": 12, "MID": 12, "FWD": 12})
    cfg = BuilderConfig(
        budget=200,
        role_requirements={"GK": 2, "DEF": 5, "MID": 5, "FWD": 3},
        role_targets={"GK": 12, "DEF": 33, "MID": 35, "FWD": 20},
        squad_size=15,
        leftover_tolerance=5,
    )
    res = build_squad(items, cfg, seed=8)
    _check_squad(res, cfg)
