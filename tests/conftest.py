import pytest

from squad_builder.utils.rules import BuilderConfig, Item

# rough per-player price for the default targets on a 500 budget
AVG_PRICE = {"GK": 15, "DEF": 10, "MID": 19, "FWD": 38}


def make_catalogue(per_role: int = 120, avg=AVG_PRICE):
    """Smooth prices from 1 up to ~2.5x the role's average, evenly spaced."""
    items = []
    for role, mean in avg.items():
        top = int(mean * 2.5)
        for i in range(per_role):
            price = 1 + round(i * (top - 1) / (per_role - 1))
            items.append(Item(id=f"{role}-{i:03d}", role=role, price=price, name=f"{role} {i}", team=f"T{i % 20}"))
    return items


@pytest.fixture
def catalogue():
    return make_catalogue()


@pytest.fixture
def config():
    return BuilderConfig(budget=500)
