from squad_builder.features.bands import band, bands_for, role_target
from squad_builder.utils.rules import BuilderConfig


def test_band_rounds_outward():
    b = band("GK", 9, 500, 0.05)
    assert role_target(500, 9) == 45
    assert (b.lo, b.hi) == (42, 48)


def test_band_is_pure():
    assert band("MID", 30, 500, 0.05) == band("MID", 30, 500, 0.05)


def test_zero_tolerance_collapses_to_target():
    b = band("DEF", 15, 500, 0.0)
    assert b.lo == b.hi == 75


def test_bands_for_default_config():
    bands = bands_for(BuilderConfig(budget=500).normalized())
    assert {r: (b.lo, b.hi) for r, b in bands.items()} == {
        "GK": (42, 48),
        "DEF": (71, 79),
        "MID": (142, 158),
        "FWD": (218, 242),
    }
