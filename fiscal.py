"""
Fiscal engine: tax receipts, debt service, deficit and debt, and compliance with the
chosen fiscal rule. Also the player-facing budget operations that change the levers.
"""

from __future__ import annotations
from dataclasses import replace
from typing import TYPE_CHECKING, Dict, Optional

import numpy as np

from advisers import adviser_bonuses
from config import (
    ADDITIONAL_RATE_BASE, AVOIDANCE_CURVES, DEPARTMENTS, RATE_YIELDS, REVENUE_BASES,
    TAX_RECKONERS, FiscalRule, get_difficulty, get_fiscal_rule,
)
from logger import setup_logger
from manifesto import PolicyChange, apply_manifesto_violations, check_policy_for_violations
from state import BASELINE

if TYPE_CHECKING:
    from state import FiscalState, GameState, TaxRates
    from turn import TurnContext

logger = setup_logger()

START_RATES = BASELINE.fiscal.rates


def avoidance_rate(tax: str, rate: float) -> float:
    """Share of the base lost to behaviour; zero at or below the tax's threshold."""
    threshold, base = AVOIDANCE_CURVES[tax]
    if rate <= threshold:
        return 0.0
    return base ** (rate - threshold) - 1


def income_tax_avoidance(rates: TaxRates, scale: float = 1.0) -> float:
    return ADDITIONAL_RATE_BASE * avoidance_rate("income_additional", rates.income_additional) * scale


def ni_avoidance(rates: TaxRates, scale: float = 1.0) -> float:
    base, _ = REVENUE_BASES["national_insurance"]
    employee_effect = (rates.ni_employee - START_RATES.ni_employee) * RATE_YIELDS["ni_employee"]
    employer_effect = (rates.ni_employer - START_RATES.ni_employer) * RATE_YIELDS["ni_employer"]
    employee = (base * 0.6 + employee_effect) * avoidance_rate("ni_employee", rates.ni_employee)
    employer = (base * 0.4 + employer_effect) * avoidance_rate("ni_employer", rates.ni_employer)
    return (employee + employer) * scale


def vat_avoidance(rates: TaxRates, scale: float = 1.0) -> float:
    base, _ = REVENUE_BASES["vat"]
    effective = base + (rates.vat - START_RATES.vat) * RATE_YIELDS["vat"]
    return effective * avoidance_rate("vat", rates.vat) * scale


def corporation_tax_avoidance(rates: TaxRates, scale: float = 1.0) -> float:
    base, _ = REVENUE_BASES["corporation_tax"]
    effective = base + (rates.corporation - START_RATES.corporation) * RATE_YIELDS["corporation_tax"]
    return effective * avoidance_rate("corporation_tax", rates.corporation) * scale


def revenue_adjustment(fiscal: FiscalState) -> float:
    """Receipts from detailed tax parameters moved away from their game-start values."""
    total = 0.0
    for tax in fiscal.taxes:
        change = tax.rate - tax.baseline
        if change == 0:
            continue
        reckoner = TAX_RECKONERS.get(tax.id, 0.0)
        total += reckoner * (change / 1000 if tax.unit == "£" else change)
    return total


def calculate_tax_revenue(state: GameState, ctx: TurnContext) -> GameState:
    """
    Annual receipts by tax base. Each base scales with nominal GDP relative to game
    start, raised to its own elasticity, after rate effects and avoidance losses.
    """
    fiscal = state.fiscal
    rates, base_rates = fiscal.rates, ctx.baseline.fiscal.rates
    scale = get_difficulty(state.metadata.difficulty).tax_avoidance
    bonuses = adviser_bonuses(state.advisers)
    ratio = state.economic.gdp_nominal_bn / ctx.baseline.economic.gdp_nominal_bn

    income_base, income_elasticity = REVENUE_BASES["income_tax"]
    income_effect = ((rates.income_basic - base_rates.income_basic) * RATE_YIELDS["income_basic"]
                     + (rates.income_higher - base_rates.income_higher) * RATE_YIELDS["income_higher"]
                     + (rates.income_additional - base_rates.income_additional) * RATE_YIELDS["income_additional"])
    income_tax = (income_base + income_effect - income_tax_avoidance(rates, scale)) * ratio ** income_elasticity

    ni_base, ni_elasticity = REVENUE_BASES["national_insurance"]
    ni_effect = ((rates.ni_employee - base_rates.ni_employee) * RATE_YIELDS["ni_employee"]
                 + (rates.ni_employer - base_rates.ni_employer) * RATE_YIELDS["ni_employer"])
    ni = (ni_base + ni_effect - ni_avoidance(rates, scale)) * ratio ** ni_elasticity

    vat_base, vat_elasticity = REVENUE_BASES["vat"]
    vat_effect = (rates.vat - base_rates.vat) * RATE_YIELDS["vat"]
    vat = max(0.0, vat_base + vat_effect - vat_avoidance(rates, scale)) * ratio ** vat_elasticity

    ct_base, ct_elasticity = REVENUE_BASES["corporation_tax"]
    ct_effect = (rates.corporation - base_rates.corporation) * RATE_YIELDS["corporation_tax"]
    ct = max(0.0, ct_base + ct_effect - corporation_tax_avoidance(rates, scale)) * ratio ** ct_elasticity

    other_base, other_elasticity = REVENUE_BASES["other"]
    other = other_base * ratio ** other_elasticity

    adjustment = revenue_adjustment(fiscal)
    revenue = (income_tax + ni + vat + ct + other + adjustment) * bonuses.revenue_multiplier

    logger.debug(f"Revenue £{revenue:.1f}bn (IT {income_tax:.1f}, NI {ni:.1f}, VAT {vat:.1f}, CT {ct:.1f})")

    return replace(state, fiscal=replace(fiscal, revenue_bn=revenue, revenue_adjustment_bn=adjustment))


def calculate_spending_effects(state: GameState, ctx: TurnContext) -> GameState:
    """Debt interest on a slowly refinancing gilt stock, plus automatic stabilisers."""
    cfg = ctx.config
    fiscal = state.fiscal
    bonuses = adviser_bonuses(state.advisers)

    debt = fiscal.debt_bn
    blended = (cfg.historical_coupon * (1 - cfg.rollover_fraction)
               + state.markets.gilt_10y * cfg.rollover_fraction)
    previous = fiscal.debt_interest_bn / debt * 100 if fiscal.debt_interest_bn > 0 else cfg.historical_coupon
    effective = previous + (blended - previous) * cfg.interest_adjustment
    interest = debt * effective * (1 - bonuses.debt_interest_reduction / 100) / 100

    excess_unemployment = max(0.0, state.economic.unemployment_rate - ctx.baseline.economic.unemployment_rate)
    stabilisers = excess_unemployment * cfg.stabiliser_per_point

    return replace(state, fiscal=replace(
        fiscal,
        debt_interest_bn=interest,
        departmental_spending_bn=fiscal.spending.total() + stabilisers,
    ))


def rule_headroom(rule: FiscalRule, fiscal: FiscalState, gdp_nominal_bn: float,
                  buffer_bn: float = 14.8) -> float:
    """Margin against the rule's binding test, in £bn."""
    if rule.overall_balance:
        return (fiscal.revenue_bn - fiscal.departmental_spending_bn
                - fiscal.debt_interest_bn - fiscal.emergency_costs_bn)
    if rule.deficit_ceiling is not None:
        return (rule.deficit_ceiling - fiscal.deficit_pct_gdp) * gdp_nominal_bn / 100
    if rule.current_budget:
        return fiscal.current_budget_balance_bn - buffer_bn
    return 0.0


def calculate_fiscal_balance(state: GameState, ctx: TurnContext) -> GameState:
    """Deficit, debt stock and current budget. Debt accrues one twelfth of the deficit."""
    fiscal = state.fiscal
    gdp = state.economic.gdp_nominal_bn

    emergency = sum(p.monthly_cost_bn for p in state.emergency_programmes if p.remaining_months > 0) * 12
    tme = fiscal.departmental_spending_bn + fiscal.debt_interest_bn + emergency
    deficit = tme - fiscal.revenue_bn
    debt = fiscal.debt_bn + deficit / 12

    capital = fiscal.spending.capital_total()
    current_budget = (fiscal.revenue_bn - (fiscal.departmental_spending_bn - capital)
                      - fiscal.debt_interest_bn - emergency)

    fiscal = replace(
        fiscal,
        emergency_costs_bn=emergency,
        total_managed_expenditure_bn=tme,
        deficit_bn=deficit,
        deficit_pct_gdp=deficit / gdp * 100,
        debt_bn=debt,
        debt_pct_gdp=debt / gdp * 100,
        current_budget_balance_bn=current_budget,
    )
    rule = get_fiscal_rule(state.political.fiscal_rule)
    fiscal = replace(fiscal, headroom_bn=rule_headroom(rule, fiscal, gdp, ctx.config.current_budget_buffer_bn))

    logger.debug(f"Deficit £{deficit:.1f}bn ({fiscal.deficit_pct_gdp:.2f}% GDP), debt {fiscal.debt_pct_gdp:.1f}% GDP")

    return replace(state, fiscal=fiscal)


def debt_falling_met(state: GameState, rule: FiscalRule, tolerance: float = 0.5) -> bool:
    """
    Long-horizon rules take a balanced current budget (or a met deficit ceiling) as
    evidence debt will fall. Short horizons need an observed fall in debt/GDP.
    """
    fiscal = state.fiscal
    if not rule.debt_falling:
        return True

    if rule.horizon >= 4:
        if rule.current_budget:
            return fiscal.current_budget_balance_bn >= -tolerance
        if rule.deficit_ceiling is not None:
            return fiscal.deficit_pct_gdp <= rule.deficit_ceiling

    history = state.history
    if len(history) < 6:
        return True
    lookback = 12 if len(history) >= 12 else 6
    return fiscal.debt_pct_gdp < history[-lookback].debt


def evaluate_compliance(state: GameState, ctx: TurnContext) -> GameState:
    fiscal, political = state.fiscal, state.political
    rule = get_fiscal_rule(political.fiscal_rule)
    tolerance = ctx.config.compliance_tolerance_bn
    bonuses = adviser_bonuses(state.advisers)

    current_budget_met = not rule.current_budget or fiscal.current_budget_balance_bn >= -tolerance
    overall = fiscal.revenue_bn - fiscal.departmental_spending_bn - fiscal.debt_interest_bn - fiscal.emergency_costs_bn
    overall_met = not rule.overall_balance or overall >= -tolerance
    ceiling_met = rule.deficit_ceiling is None or fiscal.deficit_pct_gdp <= rule.deficit_ceiling
    target_met = rule.debt_target is None or fiscal.debt_pct_gdp <= rule.debt_target
    falling_met = debt_falling_met(state, rule, tolerance)

    compliant = current_budget_met and overall_met and ceiling_met and target_met and falling_met
    previous = political.compliance.consecutive_breaches
    breaches = 0 if compliant else previous + 1

    if not compliant:
        if breaches >= 6:
            change = -2.0
        elif breaches >= 3:
            change = -1.0
        else:
            change = -0.5
        if breaches in (1, 3, 6):
            logger.warning(f"{rule.name} breached for {breaches} consecutive month(s)")
    elif previous > 0:
        change = 1.0
        logger.info(f"Back within the {rule.name} after {previous} month(s) of breach")
    else:
        change = 0.0

    credibility = float(np.clip(political.credibility + change + bonuses.credibility / 12, 0, 100))
    compliance = replace(
        political.compliance,
        current_budget_met=current_budget_met,
        overall_balance_met=overall_met,
        deficit_ceiling_met=ceiling_met,
        debt_target_met=target_met,
        debt_falling_met=falling_met,
        compliant=compliant,
        consecutive_breaches=breaches,
        current_budget_gap=max(0.0, -fiscal.current_budget_balance_bn),
        capital_investment=fiscal.spending.capital_total(),
    )

    return replace(state, political=replace(political, compliance=compliance, credibility=credibility))


def enforce_investment_exemption(state: GameState, ctx: TurnContext) -> GameState:
    """Rules that borrow only to invest lose credibility when borrowing outruns investment."""
    rule = get_fiscal_rule(state.political.fiscal_rule)
    if not rule.investment_exempt or rule.id == "mmt-inspired":
        return state

    base = ctx.baseline.fiscal
    deficit_increase = state.fiscal.deficit_bn - base.deficit_bn
    capital_increase = state.fiscal.spending.capital_total() - base.spending.capital_total()
    if deficit_increase <= capital_increase + 1.0:
        return state

    logger.debug(f"Borrowing up £{deficit_increase:.1f}bn against investment up £{capital_increase:.1f}bn")
    political = state.political
    return replace(state, political=replace(political, credibility=max(0.0, political.credibility - 2)))


def select_fiscal_rule(state: GameState, rule_id: str) -> GameState:
    """Adopt a fiscal framework and apply the one-off market and political reaction."""
    rule = get_fiscal_rule(rule_id)
    political, markets = state.political, state.markets

    political = replace(
        political,
        fiscal_rule=rule.id,
        credibility=float(np.clip(political.credibility + rule.credibility, 0, 100)),
        pm_trust=float(np.clip(political.pm_trust + rule.pm_trust, 0, 100)),
        backbench=float(np.clip(political.backbench + rule.backbench, 0, 100)),
        approval=float(np.clip(political.approval + rule.approval, 0, 100)),
        compliance=replace(political.compliance, consecutive_breaches=0),
    )
    markets = replace(
        markets,
        gilt_10y=float(np.clip(markets.gilt_10y + rule.gilt_bps / 100, 0.5, 20)),
        sterling_index=float(np.clip(markets.sterling_index * (1 + rule.sterling_pct / 100), 70, 130)),
    )
    logger.info(f"Fiscal framework set to {rule.name} ({', '.join(rule.tests) or 'no binding tests'})")

    return replace(state, political=political, markets=markets)


def apply_budget(
    state: GameState,
    rates: Optional[Dict[str, float]] = None,
    taxes: Optional[Dict[str, float]] = None,
    current: Optional[Dict[str, float]] = None,
    capital: Optional[Dict[str, float]] = None,
    programmes: Optional[Dict[str, float]] = None,
) -> GameState:
    """
    Apply a budget and return the new state.

    rates: headline rate name -> new rate (e.g. {"vat": 22.5})
    taxes: detailed tax parameter id -> new value
    current, capital: department -> change in £bn
    programmes: programme id -> new budget in £bn; the owning department line moves with it
    """
    fiscal = state.fiscal
    old_rates = fiscal.rates
    old_spending = fiscal.spending

    new_rates = old_rates
    for name, value in (rates or {}).items():
        if not hasattr(old_rates, name):
            raise ValueError(f"Unknown tax rate '{name}'")
        new_rates = replace(new_rates, **{name: float(np.clip(value, 0, 100))})

    tax_updates = dict(taxes or {})
    for tax_id in tax_updates:
        fiscal.tax(tax_id)
    new_taxes = tuple(
        replace(t, rate=max(0.0, float(tax_updates[t.id]))) if t.id in tax_updates else t
        for t in fiscal.taxes
    )

    spending = old_spending
    for name, delta in (current or {}).items():
        spending = spending.with_department(name, current=spending.department(name).current + delta)
    for name, delta in (capital or {}).items():
        spending = spending.with_department(name, capital=spending.department(name).capital + delta)

    programme_updates = dict(programmes or {})
    new_programmes = []
    for programme in fiscal.programmes:
        if programme.id not in programme_updates:
            new_programmes.append(programme)
            continue
        budget = max(0.0, float(programme_updates.pop(programme.id)))
        delta = budget - programme.budget
        line = spending.department(programme.spending_line)
        if programme.capital:
            spending = spending.with_department(programme.spending_line, capital=line.capital + delta)
        else:
            spending = spending.with_department(programme.spending_line, current=line.current + delta)
        new_programmes.append(replace(programme, budget=budget))
    if programme_updates:
        raise ValueError(f"Unknown spending programme(s): {sorted(programme_updates)}")

    new_fiscal = replace(fiscal, rates=new_rates, taxes=new_taxes, spending=spending,
                         programmes=tuple(new_programmes))
    new_fiscal = replace(new_fiscal, revenue_adjustment_bn=revenue_adjustment(new_fiscal))

    cpi = state.economic.inflation_cpi
    deflator = 1 + cpi / 100
    change = PolicyChange(
        income_basic=new_rates.income_basic - old_rates.income_basic,
        income_higher=new_rates.income_higher - old_rates.income_higher,
        income_additional=new_rates.income_additional - old_rates.income_additional,
        ni_employee=new_rates.ni_employee - old_rates.ni_employee,
        ni_employer=new_rates.ni_employer - old_rates.ni_employer,
        vat=new_rates.vat - old_rates.vat,
        corporation=new_rates.corporation - old_rates.corporation,
        fiscal_rule_breached=not state.political.compliance.compliant,
        nhs_real_cut=(spending.nhs != old_spending.nhs
                      and spending.nhs.total / deflator < old_spending.nhs.total),
        education_real_cut=(spending.education != old_spending.education
                            and spending.education.total / deflator < old_spending.education.total),
    )
    check = check_policy_for_violations(state.manifesto, change)
    for warning in check.warnings:
        logger.warning(warning)
    manifesto = state.manifesto
    if check.violated:
        manifesto = apply_manifesto_violations(manifesto, check.violated, state.metadata.turn)

    moved = [d for d in DEPARTMENTS if spending.department(d) != old_spending.department(d)]
    logger.info(f"Budget applied: rates {new_rates}, departments changed {moved or 'none'}")

    return replace(state, fiscal=new_fiscal, manifesto=manifesto)
