"""
Tests for the fiscal engine: receipts and avoidance, the deficit and debt identities,
fiscal-rule compliance and budget operations.
"""

import random
from dataclasses import replace

import pytest

from config import FISCAL_RULES, RATE_YIELDS, SimulationConfig
from fiscal import (
    apply_budget, avoidance_rate, calculate_fiscal_balance, calculate_tax_revenue, debt_falling_met,
    enforce_investment_exemption, evaluate_compliance, rule_headroom, select_fiscal_rule,
)
from politics import household_tax_pressure
from state import EmergencyProgramme, Snapshot, create_initial_state
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


def snapshot(turn: int, debt: float, deficit: float = 4.0) -> Snapshot:
    return Snapshot(turn=turn, date="2024-07", gdp_growth=1.5, gdp_nominal=2750.0, inflation=2.0,
                    unemployment=4.2, deficit=deficit, debt=debt, approval=45.0, gilt_yield=4.1,
                    productivity=0.1)


class TestAvoidance:
    """Behavioural losses above each tax's threshold."""

    @pytest.mark.parametrize("tax,threshold", [
        ("vat", 20.0), ("corporation_tax", 30.0), ("ni_employer", 15.0), ("income_additional", 50.0),
    ])
    def test_zero_at_threshold_and_rising_above(self, tax, threshold):
        assert avoidance_rate(tax, threshold) == 0.0, "No avoidance at the threshold"
        assert avoidance_rate(tax, threshold - 5) == 0.0, "No avoidance below the threshold"
        losses = [avoidance_rate(tax, threshold + step) for step in (1, 2, 5, 10)]
        assert all(a < b for a, b in zip(losses, losses[1:])), "Losses strictly increase with the rate"
        assert losses[0] > 0, "Any rate above the threshold loses some base"


class TestRevenue:
    """Receipts follow rates and nominal GDP."""

    def test_baseline_revenue(self, state, ctx):
        new = calculate_tax_revenue(state, ctx)
        assert new.fiscal.revenue_bn == pytest.approx(state.fiscal.revenue_bn), \
            "Game-start receipts reproduce the opening position"

    def test_vat_rise_scenario(self, state, ctx):
        """A five point VAT rise: weaker growth, less than the static yield, more household pressure."""
        taxed = apply_budget(state, rates={"vat": 25})
        base_turn = process_turn(state, ctx)
        taxed_turn = process_turn(taxed, TurnContext(config=SimulationConfig(), rng=FixedRandom()))

        assert taxed_turn.economic.gdp_growth_monthly < base_turn.economic.gdp_growth_monthly, \
            "VAT rise should reduce real growth"
        gain = taxed_turn.fiscal.revenue_bn - base_turn.fiscal.revenue_bn
        assert 0 < gain < 5 * RATE_YIELDS["vat"], "Revenue rises by less than the static yield"
        assert household_tax_pressure(taxed_turn, ctx) >= household_tax_pressure(base_turn, ctx), \
            "Household tax pressure should not fall"

    def test_higher_rate_loses_more_to_avoidance(self, state, ctx):
        modest = calculate_tax_revenue(apply_budget(state, rates={"vat": 22}), ctx)
        steep = calculate_tax_revenue(apply_budget(state, rates={"vat": 30}), ctx)
        base = state.fiscal.revenue_bn
        modest_per_point = (modest.fiscal.revenue_bn - base) / 2
        steep_per_point = (steep.fiscal.revenue_bn - base) / 10
        assert steep_per_point < modest_per_point, "Behavioural loss scales up at high rates"

    def test_detailed_tax_parameters_raise_revenue(self, state, ctx):
        levy = state.fiscal.tax("energyProfitsLevy")
        raised = apply_budget(state, taxes={"energyProfitsLevy": levy.rate + 5})
        assert raised.fiscal.revenue_adjustment_bn > 0, "Raising a detailed tax adds receipts"


class TestBalance:
    """Deficit and debt identities."""

    def test_identities_hold_each_turn(self, state, ctx):
        state = replace(state, emergency_programmes=(EmergencyProgramme("flood", "Flood rebuild", 0.5, 10),))
        for _ in range(8):
            previous = state
            state = process_turn(state, ctx)
            fiscal = state.fiscal
            assert fiscal.debt_bn == pytest.approx(previous.fiscal.debt_bn + fiscal.deficit_bn / 12)
            assert fiscal.deficit_pct_gdp == pytest.approx(fiscal.deficit_bn / state.economic.gdp_nominal_bn * 100)
            assert fiscal.total_managed_expenditure_bn == pytest.approx(
                fiscal.departmental_spending_bn + fiscal.debt_interest_bn + fiscal.emergency_costs_bn)
            assert fiscal.deficit_bn == pytest.approx(fiscal.total_managed_expenditure_bn - fiscal.revenue_bn)

    def test_emergency_costs_are_annualised(self, state, ctx):
        state = replace(state, emergency_programmes=(EmergencyProgramme("flood", "Flood rebuild", 0.8, 5),))
        new = calculate_fiscal_balance(state, ctx)
        assert new.fiscal.emergency_costs_bn == pytest.approx(0.8 * 12)

    def test_programme_expires_after_three_turns(self, state, ctx):
        state = replace(state, emergency_programmes=(EmergencyProgramme("flood", "Flood rebuild", 2.0, 3),))
        first = process_turn(state, ctx)
        second = process_turn(first, ctx)
        third = process_turn(second, ctx)

        assert first.fiscal.emergency_costs_bn == pytest.approx(24.0), "Charged in the first turn"
        assert second.fiscal.emergency_costs_bn == pytest.approx(24.0), "Charged in the second turn"
        assert third.emergency_programmes == (), "Removed after three turns"
        assert third.fiscal.emergency_costs_bn == 0.0, "No longer contributes to expenditure"


class TestCompliance:
    """Fiscal-rule tests and their consequences."""

    def test_long_horizon_debt_falling_uses_current_budget(self, state):
        rule = FISCAL_RULES["starmer-reeves"]
        history = tuple(snapshot(t, debt=80.0 + t) for t in range(24))
        rising = replace(state, history=history)
        balanced = replace(rising, fiscal=replace(rising.fiscal, current_budget_balance_bn=0.0))
        assert debt_falling_met(balanced, rule), "Balanced current budget counts as debt falling"
        within = replace(rising, fiscal=replace(rising.fiscal, current_budget_balance_bn=-0.4))
        assert debt_falling_met(within, rule), "Tolerance of half a billion"
        short = replace(rising, fiscal=replace(rising.fiscal, current_budget_balance_bn=-5.0))
        assert not debt_falling_met(short, rule), "A current deficit fails the test"

    def test_short_horizon_needs_observed_fall(self, state):
        rule = FISCAL_RULES["maastricht"]
        assert debt_falling_met(state, rule), "Too little history counts as met"
        history = tuple(snapshot(t, debt=90.0) for t in range(12))
        higher = replace(state, history=history, fiscal=replace(state.fiscal, debt_pct_gdp=95.0))
        assert not debt_falling_met(higher, rule), "Debt above its level a year ago"
        lower = replace(higher, fiscal=replace(higher.fiscal, debt_pct_gdp=85.0))
        assert debt_falling_met(lower, rule), "Debt below its level a year ago"

    def test_breach_counter_and_credibility(self, state, ctx):
        deficit = replace(state, fiscal=replace(state.fiscal, current_budget_balance_bn=-30.0))
        first = evaluate_compliance(deficit, ctx)
        second = evaluate_compliance(first, ctx)
        assert not second.political.compliance.compliant
        assert second.political.compliance.consecutive_breaches == 2
        assert second.political.credibility < state.political.credibility, "Breaches cost credibility"

    def test_return_to_compliance(self, state, ctx):
        breached = replace(state, political=replace(
            state.political, compliance=replace(state.political.compliance, consecutive_breaches=4)))
        balanced = replace(breached, fiscal=replace(breached.fiscal, current_budget_balance_bn=5.0))
        new = evaluate_compliance(balanced, ctx)
        assert new.political.compliance.consecutive_breaches == 0
        assert new.political.credibility > state.political.credibility, "Recovery restores credibility"

    def test_investment_exemption(self, state, ctx):
        borrowing = replace(state, fiscal=replace(state.fiscal, deficit_bn=state.fiscal.deficit_bn + 20))
        new = enforce_investment_exemption(borrowing, ctx)
        assert new.political.credibility == pytest.approx(state.political.credibility - 2)
        invested = apply_budget(borrowing, capital={"infrastructure": 25})
        assert enforce_investment_exemption(invested, ctx).political.credibility == invested.political.credibility, \
            "Borrowing to invest is exempt"

    def test_headroom_deficit_ceiling(self, state):
        rule = FISCAL_RULES["jeremy-hunt"]
        fiscal = replace(state.fiscal, deficit_pct_gdp=2.0)
        assert rule_headroom(rule, fiscal, 2750.0) == pytest.approx(27.5)

    def test_select_fiscal_rule(self, state):
        new = select_fiscal_rule(state, "maastricht")
        assert new.political.fiscal_rule == "maastricht"
        assert new.markets.gilt_10y == pytest.approx(state.markets.gilt_10y - 0.15)
        assert new.political.credibility == pytest.approx(state.political.credibility + 8)

    def test_unknown_rule(self, state):
        with pytest.raises(ValueError):
            select_fiscal_rule(state, "no-such-rule")


class TestBudget:
    """Budget operations return a new state and keep totals in sync."""

    def test_budget_does_not_mutate(self, state):
        new = apply_budget(state, rates={"vat": 22})
        assert state.fiscal.rates.vat == 20.0, "Input state untouched"
        assert new.fiscal.rates.vat == 22.0

    def test_programme_moves_department_line(self, state):
        programme = state.fiscal.programme("nhsEngland")
        new = apply_budget(state, programmes={"nhsEngland": programme.budget + 10})
        assert new.fiscal.spending.nhs.current == pytest.approx(state.fiscal.spending.nhs.current + 10)
        assert new.fiscal.programme("nhsEngland").budget == pytest.approx(programme.budget + 10)

    def test_capital_programme_moves_capital_line(self, state):
        new = apply_budget(state, programmes={"nhsCapital": 15.0})
        assert new.fiscal.spending.nhs.capital == pytest.approx(state.fiscal.spending.nhs.capital + 3)

    def test_vat_rise_breaks_pledge(self, state):
        new = apply_budget(state, rates={"vat": 21})
        assert "vat-lock" in new.manifesto.violated_ids
        assert new.manifesto.total_violations == 1

    def test_tax_cut_keeps_pledges(self, state):
        new = apply_budget(state, rates={"income_basic": 19})
        assert new.manifesto.total_violations == 0

    @pytest.mark.parametrize("kwargs", [
        {"rates": {"wealth_tax": 2}},
        {"taxes": {"noSuchTax": 1}},
        {"programmes": {"noSuchProgramme": 1}},
        {"current": {"space": 1}},
    ])
    def test_unknown_levers_rejected(self, state, kwargs):
        with pytest.raises(ValueError):
            apply_budget(state, **kwargs)
