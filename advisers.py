"""
Adviser registry.

Appointed advisers are held as a frozenset of ids. Whatever shape the caller hands
over is normalised once here; the models only ever see the typed effects.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable

from logger import setup_logger

logger = setup_logger()


@dataclass(frozen=True)
class AdviserEffects:
    revenue_multiplier: float = 1.0
    spending_efficiency: float = 1.0
    gdp_growth_bonus: float = 0.0  # Annual pp
    debt_interest_reduction: float = 0.0  # % of the interest bill
    credibility: float = 0.0  # Annual points, spread across twelve months
    backbench: float = 0.0
    pm_trust: float = 0.0


ADVISERS: Dict[str, AdviserEffects] = {
    "treasury_mandarin": AdviserEffects(revenue_multiplier=1.03, credibility=5),
    "political_operator": AdviserEffects(backbench=3, pm_trust=2),
    "heterodox_economist": AdviserEffects(gdp_growth_bonus=0.15),
    "fiscal_hawk": AdviserEffects(debt_interest_reduction=8, credibility=8),
    "social_democrat": AdviserEffects(spending_efficiency=1.12),
    "technocratic_centrist": AdviserEffects(
        credibility=6, spending_efficiency=1.05, revenue_multiplier=1.02
    ),
}


def get_adviser(adviser_id: str) -> AdviserEffects:
    if adviser_id not in ADVISERS:
        raise ValueError(f"Unknown adviser '{adviser_id}', expected one of {sorted(ADVISERS)}")
    return ADVISERS[adviser_id]


def normalise_advisers(raw) -> FrozenSet[str]:
    """
    Reduce adviser data to a set of known adviser ids.

    Accepts None, a mapping of id -> anything, a list of (id, value) pairs or a plain
    iterable of ids. Anything else yields no advisers.
    """
    if raw is None:
        return frozenset()

    if isinstance(raw, dict):
        candidates = list(raw.keys())
    elif isinstance(raw, str):
        candidates = [raw]
    elif isinstance(raw, Iterable):
        candidates = []
        for item in raw:
            if isinstance(item, str):
                candidates.append(item)
            elif isinstance(item, (tuple, list)) and item and isinstance(item[0], str):
                candidates.append(item[0])
            else:
                logger.warning(f"Ignoring adviser entry of unexpected shape: {item!r}")
    else:
        logger.warning(f"Unrecognised adviser data {type(raw).__name__}, assuming no advisers")
        return frozenset()

    known = frozenset(c for c in candidates if c in ADVISERS)
    for unknown in set(candidates) - known:
        logger.warning(f"Ignoring unknown adviser '{unknown}'")
    return known


def adviser_bonuses(advisers: Iterable[str]) -> AdviserEffects:
    """Combine the effects of every appointed adviser."""
    revenue = 1.0
    efficiency = 1.0
    gdp = interest = credibility = backbench = pm_trust = 0.0
    for adviser_id in sorted(advisers):
        effects = get_adviser(adviser_id)
        revenue *= effects.revenue_multiplier
        efficiency *= effects.spending_efficiency
        gdp += effects.gdp_growth_bonus
        interest += effects.debt_interest_reduction
        credibility += effects.credibility
        backbench += effects.backbench
        pm_trust += effects.pm_trust
    return AdviserEffects(
        revenue_multiplier=revenue,
        spending_efficiency=efficiency,
        gdp_growth_bonus=gdp,
        debt_interest_reduction=interest,
        credibility=credibility,
        backbench=backbench,
        pm_trust=pm_trust,
    )
