"""
Public service quality. Each index moves with real spending measured against a
baseline that grows with demand, so standing still in cash terms means decline.
"""

from __future__ import annotations
from dataclasses import replace
from typing import TYPE_CHECKING
import math

import numpy as np

from advisers import adviser_bonuses
from config import (
    EDUCATION_DEMAND_GROWTH, GRANULAR_SERVICES, INFRASTRUCTURE_DEMAND_GROWTH,
    NHS_DEMAND_GROWTH, get_difficulty,
)
from logger import setup_logger

if TYPE_CHECKING:
    from state import GameState
    from turn import TurnContext

logger = setup_logger()

IMPROVEMENT_LAG = 0.30
DETERIORATION_LAG = 0.50


def demand_multiplier(annual_growth: float, months: int) -> float:
    return (1 + annual_growth / 100) ** (months / 12)


def evolve_service_metric(current: float, budget: float, baseline_budget: float,
                          demand_growth: float, inflation_cpi: float, months: int) -> float:
    """Step a programme-level index from its real funding ratio."""
    adjusted = baseline_budget * demand_multiplier(demand_growth, months)
    real = budget / (1 + inflation_cpi / 100)
    ratio = real / adjusted if adjusted > 0 else 1.0

    if ratio > 1.08:
        current += 0.55
    elif ratio > 1.01:
        current += 0.22
    elif ratio > 0.95:
        current -= 0.08
    elif ratio > 0.88:
        current -= 0.35
    else:
        current -= 0.75
    return float(np.clip(current, 0, 100))


def _scale_change(change: float, efficiency: float, degradation: float) -> float:
    return change * efficiency if change > 0 else change * degradation


def _lagged(quality: float, change: float) -> float:
    return quality + change * (IMPROVEMENT_LAG if change > 0 else DETERIORATION_LAG)


def update_service_quality(state: GameState, ctx: TurnContext) -> GameState:
    services, fiscal = state.services, state.fiscal
    base_spending = ctx.baseline.fiscal.spending
    months = state.metadata.turn
    cpi = state.economic.inflation_cpi
    difficulty = get_difficulty(state.metadata.difficulty)
    efficiency = difficulty.spending_efficiency * adviser_bonuses(state.advisers).spending_efficiency
    degradation = difficulty.service_degradation

    # NHS: real growth against demand-adjusted baseline
    nhs_baseline = base_spending.nhs.total * demand_multiplier(NHS_DEMAND_GROWTH, months)
    nhs_real = fiscal.spending.nhs.total / (1 + cpi / 100)
    nhs_growth = (nhs_real - nhs_baseline) / nhs_baseline * 100
    if nhs_growth > 10:
        change = 0.5 + math.log(nhs_growth / 10 + 1) * 0.15
    elif nhs_growth > 0:
        change = 0.5
    elif nhs_growth > -1.5:
        change = 0.1
    elif nhs_growth > -3.5:
        change = -0.3
    else:
        change = -0.8
    change = _scale_change(change, efficiency, degradation)
    if services.nhs > 75 and change > 0:
        change *= 0.4
    nhs = _lagged(services.nhs, change)

    # Education
    edu_baseline = base_spending.education.total * demand_multiplier(EDUCATION_DEMAND_GROWTH, months)
    edu_real = fiscal.spending.education.total / (1 + cpi / 100)
    edu_ratio = edu_real / edu_baseline
    if edu_ratio > 1.3:
        change = 0.3 + math.log(edu_ratio / 1.3 + 1) * 0.1
    elif edu_ratio > 125 / 116:
        change = 0.3
    elif edu_ratio > 1.0:
        change = 0.1
    elif edu_ratio > 110 / 116:
        change = -0.1
    else:
        change = -0.4
    change = _scale_change(change, efficiency, degradation)
    if services.education > 80 and change > 0:
        change *= 0.5
    education = _lagged(services.education, change)

    # Infrastructure responds to cash spending against demand and 2% assumed inflation
    scaler = demand_multiplier(INFRASTRUCTURE_DEMAND_GROWTH, months) * demand_multiplier(2.0, months)
    infra_ratio = fiscal.spending.infrastructure.total / (base_spending.infrastructure.total * scaler)
    infrastructure = services.infrastructure
    if infra_ratio > 1.15:
        infrastructure += 0.4
    elif infra_ratio > 1.0:
        infrastructure += 0.1
    elif infra_ratio > 0.9:
        infrastructure -= 0.1
    else:
        infrastructure -= 0.5
    infrastructure -= 0.05

    granular = {}
    for name, (programmes, demand_growth) in GRANULAR_SERVICES.items():
        granular[name] = evolve_service_metric(
            getattr(services, name),
            fiscal.programme_total(programmes),
            ctx.baseline.fiscal.programme_baseline(programmes),
            demand_growth,
            cpi,
            months,
        )

    logger.debug(f"Services: NHS {nhs:.1f}, education {education:.1f}, infrastructure {infrastructure:.1f}")

    return replace(state, services=replace(
        services,
        nhs=float(np.clip(nhs, 0, 100)),
        education=float(np.clip(education, 0, 100)),
        infrastructure=float(np.clip(infrastructure, 0, 100)),
        **granular,
    ))
