"""
Tests for the gilt market, sterling and the credit rating agencies.
"""

import random
from dataclasses import replace

import pytest

from config import RATING_PREMIUM, SimulationConfig
from markets import credit_rating_premium, update_credit_rating, update_markets
from state import Snapshot, create_initial_state
from turn import TurnContext


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


def with_turn(state, turn):
    return replace(state, metadata=replace(state.metadata, turn=turn))


def stressed(state, debt=130.0, deficit=12.0):
    return replace(state, fiscal=replace(state.fiscal, debt_pct_gdp=debt, deficit_pct_gdp=deficit))


class TestGilts:
    """Yield curve and risk premia."""

    def test_baseline_yield_is_realistic(self, state, ctx):
        new = update_markets(state, ctx)
        assert 3.0 < new.markets.gilt_10y < 6.0, f"Baseline 10y of {new.markets.gilt_10y:.2f}%"
        assert not new.markets.panic

    def test_fiscal_stress_raises_yields(self, state, ctx):
        base = update_markets(state, ctx)
        new = update_markets(stressed(state), ctx)
        assert new.markets.gilt_10y > base.markets.gilt_10y, "Debt and deficit premia push yields up"

    def test_yield_smoothing(self, state, ctx):
        new = update_markets(stressed(state), ctx)
        change = new.markets.gilt_10y - state.markets.gilt_10y
        assert 0 < change < 2.0, "Outside a panic yields move part of the way to target"
        assert new.markets.yield_change_10y == pytest.approx(change)

    def test_curve_spreads(self, state, ctx):
        new = update_markets(state, ctx).markets
        assert new.gilt_30y >= new.gilt_10y, "30y never below 10y"
        assert new.mortgage_rate == pytest.approx(new.gilt_10y + 1.5)

    def test_panic_under_realistic_difficulty(self, state, ctx):
        history = tuple(
            Snapshot(turn=t, date="2024-07", gdp_growth=1.0, gdp_nominal=2750.0, inflation=2.0,
                     unemployment=4.2, deficit=12.0, debt=130.0, approval=40.0, gilt_yield=4.1,
                     productivity=0.1)
            for t in range(3)
        )
        realistic = replace(stressed(state), history=history,
                            metadata=replace(state.metadata, difficulty="realistic"))
        new = update_markets(realistic, ctx)
        assert new.markets.panic, "A sharp implied rise should trigger margin calls"
        assert new.markets.gilt_10y - state.markets.gilt_10y > 2.0, "Panic reprices without smoothing"

    def test_no_panic_without_history(self, state, ctx):
        realistic = replace(stressed(state), metadata=replace(state.metadata, difficulty="realistic"))
        assert not update_markets(realistic, ctx).markets.panic

    def test_sterling_falls_with_risk(self, state, ctx):
        base = update_markets(state, ctx)
        new = update_markets(stressed(state), ctx)
        assert new.markets.sterling_index < base.markets.sterling_index


class TestCreditRating:
    """Six-monthly reassessment."""

    def test_only_every_sixth_turn(self, state, ctx):
        bad = stressed(with_turn(state, 5), debt=115, deficit=8)
        assert update_credit_rating(bad, ctx).political.credit_rating == state.political.credit_rating

    def test_downgrade(self, state, ctx):
        bad = stressed(with_turn(state, 6), debt=115, deficit=8)
        bad = replace(bad, markets=replace(bad.markets, gilt_10y=6.0),
                      political=replace(bad.political, credibility=30))
        new = update_credit_rating(bad, ctx)
        assert new.political.credit_rating == "A+"
        assert new.political.rating_outlook == "negative"
        assert new.political.credibility == pytest.approx(20)

    def test_upgrade(self, state, ctx):
        good = stressed(with_turn(state, 12), debt=80, deficit=1.5)
        good = replace(good, political=replace(good.political, credibility=70))
        new = update_credit_rating(good, ctx)
        assert new.political.credit_rating == "AA"
        assert new.political.rating_outlook == "positive"

    def test_premium_lookup(self):
        assert credit_rating_premium("A") > credit_rating_premium("AAA")
        assert credit_rating_premium("junk") == RATING_PREMIUM["AA-"], "Unknown ratings use the starting premium"
