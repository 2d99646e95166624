"""
Tests for the macroeconomic engine: growth, employment, inflation, wages and Bank Rate.
"""

import random
from dataclasses import replace

import pytest

from config import SimulationConfig
from economy import (
    calculate_employment, calculate_gdp_growth, calculate_inflation, calculate_wage_growth,
    levers_at_baseline, monthly_rate, natural_rate, set_bank_rate, update_productivity,
)
from fiscal import apply_budget
from state import BASELINE, create_initial_state
from turn import TurnContext, process_turn


class FixedRandom(random.Random):
    """Every centred shock is zero and every roll below 0.5 fails."""

    def random(self):
        return 0.5


@pytest.fixture
def state():
    """Fresh July 2024 starting position."""
    return create_initial_state()


@pytest.fixture
def ctx():
    """Turn context with shocks disabled and no collaborators."""
    return TurnContext(config=SimulationConfig(), rng=FixedRandom())


class TestGrowth:
    """GDP growth around trend."""

    def test_levers_at_baseline(self, state):
        assert levers_at_baseline(state, BASELINE), "Fresh state should sit at baseline"
        moved = apply_budget(state, rates={"vat": 21})
        assert not levers_at_baseline(moved, BASELINE), "A VAT change moves a lever"

    def test_programme_edit_moves_lever(self, state):
        programme = state.fiscal.programme("nhsEngland")
        moved = apply_budget(state, programmes={"nhsEngland": programme.budget + 1})
        assert not levers_at_baseline(moved, BASELINE), "A programme change moves a lever"

    def test_monthly_rate_compounds(self):
        monthly = monthly_rate(12.0)
        assert monthly < 1.0, "Compounded monthly rate is below a twelfth of the annual rate"
        assert ((1 + monthly / 100) ** 12 - 1) * 100 == pytest.approx(12.0), "Compounding recovers the annual rate"

    def test_baseline_growth_is_trend(self, state, ctx):
        new = calculate_gdp_growth(state, ctx)
        trend = monthly_rate(state.economic.productivity_growth + ctx.config.labour_force_growth)
        assert abs(new.economic.gdp_growth_monthly - trend) <= ctx.config.baseline_band + 1e-9, \
            "Growth with untouched levers stays in the band around trend"

    def test_annual_growth_is_compounded(self, state, ctx):
        new = calculate_gdp_growth(state, ctx)
        monthly = new.economic.gdp_growth_monthly
        assert new.economic.gdp_growth_annual == pytest.approx(((1 + monthly / 100) ** 12 - 1) * 100)

    def test_vat_rise_reduces_growth(self, state, ctx):
        base = calculate_gdp_growth(state, ctx)
        taxed = calculate_gdp_growth(apply_budget(state, rates={"vat": 25}), ctx)
        assert taxed.economic.gdp_growth_monthly < base.economic.gdp_growth_monthly, \
            "Consumption tax rise should cut demand"

    def test_spending_boost_raises_growth(self, state, ctx):
        base = calculate_gdp_growth(state, ctx)
        boosted = calculate_gdp_growth(apply_budget(state, capital={"infrastructure": 20}), ctx)
        assert boosted.economic.gdp_growth_monthly > base.economic.gdp_growth_monthly, \
            "Capital spending should add to demand"

    def test_corporation_tax_cut_raises_growth(self, state, ctx):
        base = calculate_gdp_growth(state, ctx)
        cut = calculate_gdp_growth(apply_budget(state, rates={"corporation": 22}), ctx)
        assert cut.economic.gdp_growth_monthly > base.economic.gdp_growth_monthly, \
            "Lower corporation tax should lift business investment"

    def test_corporation_tax_rise_hurts_growth(self, state, ctx):
        base = calculate_gdp_growth(state, ctx)
        rise = calculate_gdp_growth(apply_budget(state, rates={"corporation": 28}), ctx)
        assert rise.economic.gdp_growth_monthly < base.economic.gdp_growth_monthly, \
            "Rises below 30% still weigh on investment"

    def test_corporation_tax_erosion_accelerates(self, state, ctx):
        growth = {rate: calculate_gdp_growth(apply_budget(state, rates={"corporation": rate}), ctx)
                  .economic.gdp_growth_monthly for rate in (30, 35, 40)}
        first_step = growth[30] - growth[35]
        second_step = growth[35] - growth[40]
        assert second_step > first_step > 0, "Each extra five points above 30% costs more growth"

    def test_growth_clamped(self, state, ctx):
        huge = apply_budget(state, current={"other": 2000})
        new = calculate_gdp_growth(huge, ctx)
        assert new.economic.gdp_growth_monthly <= 1.5, "Monthly growth is clamped"

    def test_nominal_gdp_includes_inflation(self, state, ctx):
        new = calculate_gdp_growth(state, ctx)
        expected = state.economic.gdp_nominal_bn * (1 + (new.economic.gdp_growth_monthly
                                                        + state.economic.inflation_cpi / 12) / 100)
        assert new.economic.gdp_nominal_bn == pytest.approx(expected)


class TestLabourMarket:
    """Okun's law and the adjusted natural rate."""

    def test_natural_rate_at_baseline(self, state, ctx):
        assert natural_rate(state, ctx) == pytest.approx(ctx.config.nairu), \
            "Baseline taxes leave the natural rate alone"

    def test_tax_rises_shift_natural_rate(self, state, ctx):
        taxed = apply_budget(state, rates={"ni_employer": 18, "corporation": 35, "income_basic": 23})
        assert natural_rate(taxed, ctx) > ctx.config.nairu, "Payroll, corporate and poverty-trap effects"

    def test_weak_growth_raises_unemployment(self, state, ctx):
        slump = replace(state, economic=replace(state.economic, gdp_growth_annual=-2.0))
        new = calculate_employment(slump, ctx)
        assert new.economic.unemployment_rate > state.economic.unemployment_rate, \
            "Growth below trend should push unemployment up"

    def test_unemployment_bounds(self, state, ctx):
        boom = replace(state, economic=replace(state.economic, gdp_growth_annual=40.0, unemployment_rate=3.0))
        new = calculate_employment(boom, ctx)
        assert new.economic.unemployment_rate >= 3.0, "Unemployment floor"


class TestPricesAndRates:
    """Inflation, wages and the Bank of England."""

    def test_vat_pass_through(self, state, ctx):
        base = calculate_inflation(state, ctx)
        taxed = calculate_inflation(apply_budget(state, rates={"vat": 25}), ctx)
        diff = taxed.economic.inflation_cpi - base.economic.inflation_cpi
        assert diff == pytest.approx(5 * ctx.config.vat_pass_through), "One-off VAT pass-through"

    def test_high_inflation_erodes_anchor(self, state, ctx):
        hot = replace(state, economic=replace(state.economic, inflation_cpi=9.0))
        new = calculate_inflation(hot, ctx)
        assert new.economic.inflation_anchor_health < state.economic.inflation_anchor_health, \
            "Expectations de-anchor when inflation runs hot"

    def test_anchor_recovers_with_positive_real_rate(self, state, ctx):
        new = calculate_inflation(state, ctx)
        assert new.economic.inflation_anchor_health > state.economic.inflation_anchor_health, \
            "Low inflation and a positive real rate rebuild credibility"

    def test_wages_move_partially(self, state, ctx):
        hot = replace(state, economic=replace(state.economic, inflation_cpi=10.0))
        new = calculate_wage_growth(hot, ctx)
        assert state.economic.wage_growth < new.economic.wage_growth < 10.0, "Partial adjustment"

    def test_bank_rate_rises_with_inflation(self, state, ctx):
        hot = replace(state, economic=replace(state.economic, inflation_cpi=9.0))
        new = set_bank_rate(hot, ctx)
        assert new.markets.bank_rate > state.markets.bank_rate, "Taylor rule should tighten"
        assert (new.markets.bank_rate / 0.25) == pytest.approx(round(new.markets.bank_rate / 0.25)), \
            "Bank Rate moves in quarter points"

    def test_productivity_responds_to_investment(self, state, ctx):
        invested = apply_budget(state, capital={"infrastructure": 40})
        new = update_productivity(invested, ctx)
        assert new.economic.productivity_growth > state.economic.productivity_growth


class TestNoPhantomDrift:
    """With every lever at baseline and no shocks the economy stays near trend."""

    def test_three_years_at_baseline(self, state, ctx):
        base_revenue_share = state.fiscal.revenue_bn / state.economic.gdp_nominal_bn
        for _ in range(36):
            state = process_turn(state, ctx)

        economic = state.economic
        assert abs(economic.gdp_growth_annual - 1.5) < 0.3, f"Growth drifted to {economic.gdp_growth_annual:.2f}%"
        assert 1.0 <= economic.inflation_cpi <= 3.0, f"Inflation drifted to {economic.inflation_cpi:.2f}%"
        revenue_share = state.fiscal.revenue_bn / economic.gdp_nominal_bn
        assert abs(revenue_share - base_revenue_share) < 0.02, "Revenue should track nominal GDP"
