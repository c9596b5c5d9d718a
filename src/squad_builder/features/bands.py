import math
from typing import Dict

from ..utils.rules import Band


def role_target(budget: int, target_percent: float) -> int:
    return int(round(budget * target_percent / 100))


def band(role: str, target_percent: float, budget: int, tolerance: float) -> Band:
    """
    Admissible spend interval for one role: target ± tolerance, widened outward
    to whole credits. Pure; percent is expected already clamped to [0, 100].
    """
    target = role_target(budget, target_percent)
    lo = math.floor(target * (1 - tolerance))
    hi = math.ceil(target * (1 + tolerance))
    return Band(role=role, lo=lo, hi=hi)


def bands_for(config) -> Dict[str, Band]:
    return {
        role: band(role, config.role_targets[role], config.budget, config.tolerance)
        for role in config.role_targets
    }
