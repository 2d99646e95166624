"""
Macroeconomic engine: productivity, GDP, employment, inflation, wages and Bank Rate.
Each step takes the current state and turn context and returns a new state.
"""

from __future__ import annotations
from dataclasses import replace
from typing import TYPE_CHECKING
import math
import numpy as np

from advisers import adviser_bonuses
from config import get_difficulty
from logger import setup_logger

if TYPE_CHECKING:
    from state import GameState
    from turn import TurnContext

logger = setup_logger()

RESEARCH_PROGRAMMES = ("ukri", "aiAndDigital")


def levers_at_baseline(state: GameState, baseline: GameState, tolerance: float = 1e-9) -> bool:
    """True when no tax rate, tax parameter, budget line or programme has moved from game start."""
    fiscal, base = state.fiscal, baseline.fiscal
    if fiscal.rates != base.rates:
        return False
    if fiscal.spending != base.spending:
        return False
    base_taxes = {t.id: t.baseline for t in base.taxes}
    if any(abs(t.rate - base_taxes.get(t.id, t.baseline)) > tolerance for t in fiscal.taxes):
        return False
    base_programmes = {p.id: p.baseline for p in base.programmes}
    return all(abs(p.budget - base_programmes.get(p.id, p.baseline)) <= tolerance
               for p in fiscal.programmes)


def trend_growth_annual(state: GameState, ctx: TurnContext) -> float:
    return state.economic.productivity_growth + ctx.config.labour_force_growth


def monthly_rate(annual: float) -> float:
    """Convert an annual percentage rate to its compounded monthly equivalent."""
    return ((1 + annual / 100) ** (1 / 12) - 1) * 100


def update_productivity(state: GameState, ctx: TurnContext) -> GameState:
    """
    Productivity growth drifts toward a target set by public investment,
    research funding and the corporation tax rate.
    """
    economic, fiscal = state.economic, state.fiscal
    base = ctx.baseline

    base_capital = base.fiscal.spending.capital_total()
    capital_effect = (fiscal.spending.capital_total() - base_capital) / base_capital * 0.5

    base_research = base.fiscal.programme_baseline(RESEARCH_PROGRAMMES)
    research_effect = (fiscal.programme_total(RESEARCH_PROGRAMMES) / base_research - 1) * 0.3

    ct_penalty = max(0.0, fiscal.rates.corporation - 30) * 0.02

    target = base.economic.productivity_growth + capital_effect + research_effect - ct_penalty
    growth = economic.productivity_growth + (target - economic.productivity_growth) * ctx.config.productivity_adjustment
    growth = float(np.clip(growth, -2.0, 4.0))
    level = economic.productivity_level * (1 + growth / 100) ** (1 / 12)

    return replace(state, economic=replace(economic, productivity_growth=growth, productivity_level=level))


def _tax_demand_effect(state: GameState, ctx: TurnContext) -> float:
    cfg = ctx.config
    rates, base = state.fiscal.rates, ctx.baseline.fiscal.rates

    income = ((rates.income_basic - base.income_basic) * 7.0
              + (rates.income_higher - base.income_higher) * 2.0
              + (rates.income_additional - base.income_additional) * 0.2) * cfg.income_tax_mpc
    payroll = ((rates.ni_employee - base.ni_employee) * 6.0
               + (rates.ni_employer - base.ni_employer) * 8.5) * cfg.ni_mpc
    consumption = (rates.vat - base.vat) * 7.5 * cfg.vat_mpc
    investment = (rates.corporation - base.corporation) * 3.2 * cfg.corporation_investment_mpc

    return -(income + payroll + consumption + investment) * cfg.fiscal_multiplier_scale


def _supply_side_tax_effect(state: GameState) -> float:
    rates = state.fiscal.rates
    penalty = 0.0
    # Base erosion accelerates the further the rate climbs above 30%
    if rates.corporation > 30:
        penalty -= (rates.corporation - 30) ** 2 * 0.0016
    if rates.income_additional > 50:
        penalty -= (rates.income_additional - 50) * 0.004
    return penalty / 12


def _fiscal_demand_effect(state: GameState, ctx: TurnContext) -> float:
    cfg = ctx.config
    economic = state.economic
    spending, base = state.fiscal.spending, ctx.baseline.fiscal.spending

    current_change = ((spending.current_total() - spending.welfare.current)
                      - (base.current_total() - base.welfare.current))
    capital_change = spending.capital_total() - base.capital_total()
    welfare_change = spending.welfare.current - base.welfare.current

    unemployment_gap = economic.unemployment_rate - cfg.nairu
    slack = float(np.clip(1 + unemployment_gap * 0.15, 0.8, 1.5))
    current_mult = cfg.current_multiplier * slack
    capital_mult = cfg.capital_multiplier * slack
    welfare_mult = (cfg.welfare_multiplier + max(0.0, unemployment_gap) * 0.1) * slack

    # Supply constraints blunt demand stimulus
    dampener = 1.0
    if economic.inflation_cpi > 3:
        dampener = max(0.6, 1 - (economic.inflation_cpi - 3) * 0.08)
    output_gap = (economic.real_output_index / economic.potential_output_index - 1) * 100
    if output_gap > 1:
        dampener *= max(0.6, 1 - (output_gap - 1) * 0.1)

    impact = (current_change * current_mult
              + capital_change * capital_mult
              + welfare_change * welfare_mult) * dampener
    return impact * cfg.fiscal_multiplier_scale


def calculate_gdp_growth(state: GameState, ctx: TurnContext) -> GameState:
    """Monthly real growth from trend plus fiscal, tax, monetary and supply-side effects."""
    cfg = ctx.config
    economic, markets = state.economic, state.markets
    base = ctx.baseline
    difficulty = get_difficulty(state.metadata.difficulty)
    bonuses = adviser_bonuses(state.advisers)

    trend = monthly_rate(trend_growth_annual(state, ctx))
    output_gap = (economic.real_output_index / economic.potential_output_index - 1) * 100
    growth = trend - output_gap * cfg.potential_pull

    growth += _fiscal_demand_effect(state, ctx)
    growth += _tax_demand_effect(state, ctx)
    growth += _supply_side_tax_effect(state)
    growth += (markets.gilt_10y - base.markets.gilt_10y) * -0.02
    growth += (markets.sterling_index - base.markets.sterling_index) * -0.001
    growth += (state.services.infrastructure - base.services.infrastructure) * 0.003
    growth += bonuses.gdp_growth_bonus / 12
    growth += (ctx.rng.random() - 0.5) * cfg.macro_shock_width * difficulty.macro_shock

    if levers_at_baseline(state, base) and not state.advisers:
        growth = float(np.clip(growth, trend - cfg.baseline_band, trend + cfg.baseline_band))

    growth = float(np.clip(growth, -1.5, 1.5))

    nominal_growth = growth + economic.inflation_cpi / 12
    gdp = economic.gdp_nominal_bn * (1 + nominal_growth / 100)
    annual = ((1 + growth / 100) ** 12 - 1) * 100

    logger.debug(f"GDP: monthly {growth:.3f}%, annualised {annual:.2f}%, nominal £{gdp:.0f}bn")

    return replace(state, economic=replace(
        economic,
        gdp_growth_monthly=growth,
        gdp_growth_annual=annual,
        gdp_nominal_bn=gdp,
        real_output_index=economic.real_output_index * (1 + growth / 100),
        potential_output_index=economic.potential_output_index * (1 + trend / 100),
    ))


def natural_rate(state: GameState, ctx: TurnContext) -> float:
    """NAIRU shifted by payroll tax, corporation tax and the poverty trap."""
    cfg = ctx.config
    rates, base = state.fiscal.rates, ctx.baseline.fiscal.rates
    rate = cfg.nairu
    if rates.ni_employer > 15:
        rate += (rates.ni_employer - 15) * 0.003
    if rates.corporation > 30:
        rate += (rates.corporation - 30) * 0.002
    marginal = rates.income_basic + rates.ni_employee + cfg.benefit_taper_rate
    base_marginal = base.income_basic + base.ni_employee + cfg.benefit_taper_rate
    rate += max(0.0, marginal - base_marginal) * 0.06
    return rate


def calculate_employment(state: GameState, ctx: TurnContext) -> GameState:
    cfg = ctx.config
    economic, services = state.economic, state.services

    trend = trend_growth_annual(state, ctx)
    unemployment = economic.unemployment_rate
    unemployment += (economic.gdp_growth_annual - trend) * cfg.okun_coefficient / 12

    nat = natural_rate(state, ctx)
    unemployment += (nat - unemployment) * cfg.nairu_drift

    # Staff shortages and exits in failing public services
    if services.nhs < 40:
        unemployment += (40 - services.nhs) * 0.002
    if services.education < 50:
        unemployment += (50 - services.education) * 0.001

    unemployment = float(np.clip(unemployment, 3.0, 12.0))

    return replace(state, economic=replace(economic, unemployment_rate=unemployment, natural_rate=nat))


def calculate_inflation(state: GameState, ctx: TurnContext) -> GameState:
    """Hybrid Phillips curve with expectations that de-anchor when inflation runs hot."""
    cfg = ctx.config
    economic, markets, rates = state.economic, state.markets, state.fiscal.rates
    difficulty = get_difficulty(state.metadata.difficulty)
    cpi = economic.inflation_cpi

    anchor = economic.inflation_anchor_health
    if cpi > 8.0:
        anchor -= 4.0
    elif cpi > 5.0:
        anchor -= 2.0
    elif cpi > 3.5:
        anchor -= 0.5

    real_rate = markets.bank_rate - cpi
    if cpi < 3.0 and real_rate > 1.0:
        anchor += 1.5
    elif cpi < 2.5:
        anchor += 0.5
    anchor = float(np.clip(anchor, 0, 100))

    weight = anchor / 100
    target = cfg.inflation_target
    expectations = (target * weight + cpi * (1 - weight)) * cfg.expectations_weight
    persistence = cpi * cfg.persistence_weight
    domestic = (target + (economic.natural_rate - economic.unemployment_rate) * 2.0) * cfg.phillips_weight
    depreciation = (100 - markets.sterling_index) / 100
    imports = (target + depreciation * 8.0) * cfg.import_weight
    vat = (rates.vat - ctx.baseline.fiscal.rates.vat) * cfg.vat_pass_through

    real_wage_gap = economic.wage_growth - cpi
    spiral = (real_wage_gap - 2.0) * 0.1 if real_wage_gap > 2.0 else 0.0

    inflation = persistence + expectations + domestic + imports + vat + spiral
    inflation += (ctx.rng.random() - 0.5) * cfg.inflation_shock_width * difficulty.inflation_shock

    ceiling = 20.0 if anchor < 50 else 12.0
    inflation = float(np.clip(inflation, -2.0, ceiling))

    logger.debug(f"Inflation: {inflation:.2f}% (anchor health {anchor:.1f})")

    return replace(state, economic=replace(economic, inflation_cpi=inflation, inflation_anchor_health=anchor))


def calculate_wage_growth(state: GameState, ctx: TurnContext) -> GameState:
    cfg = ctx.config
    economic = state.economic
    tightness = max(0.0, cfg.nairu - economic.unemployment_rate)
    target = economic.inflation_cpi * 0.6 + cfg.trend_productivity_wages + tightness * 0.8
    wages = economic.wage_growth + (target - economic.wage_growth) * cfg.wage_adjustment
    wages = float(np.clip(wages, 0.0, 15.0))
    return replace(state, economic=replace(economic, wage_growth=wages))


def set_bank_rate(state: GameState, ctx: TurnContext) -> GameState:
    """Taylor rule with interest-rate inertia, rounded to the nearest quarter point."""
    cfg = ctx.config
    economic, markets = state.economic, state.markets

    taylor = (cfg.neutral_rate
              + cfg.taylor_inflation * (economic.inflation_cpi - cfg.inflation_target)
              + cfg.taylor_output * (economic.gdp_growth_annual - trend_growth_annual(state, ctx)))
    rate = markets.bank_rate + (taylor - markets.bank_rate) * cfg.rate_smoothing
    rate = math.floor(rate / cfg.rate_tick + 0.5) * cfg.rate_tick
    rate = float(np.clip(rate, 0.1, 8.0))

    if rate != markets.bank_rate:
        logger.info(f"Bank Rate moves {markets.bank_rate:.2f}% -> {rate:.2f}%")

    return replace(state, markets=replace(markets, bank_rate=rate))
