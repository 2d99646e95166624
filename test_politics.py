"""
Tests for the political feedback engine: approval, backbench mood, PM trust,
interventions and the ways a chancellorship ends.
"""

import random
from dataclasses import replace

import pytest

from collaborators import Collaborators
from config import SimulationConfig
from fiscal import apply_budget
from media import Sentiment
from politics import (
    APPROVAL_CEILING,
    calculate_approval, calculate_backbench_satisfaction, calculate_pm_trust, check_game_over,
    check_pm_intervention, manifesto_penalty, respond_to_intervention, sentiment_effect,
    update_strike_risk,
)
from state import create_initial_state
from turn import TurnContext


class FixedRandom(random.Random):
    """Every centred shock is zero and every roll below 0.5 fails."""

    def random(self):
        return 0.5


class LowRandom(random.Random):
    """Every probability roll succeeds."""

    def random(self):
        return 0.0


class HighRandom(random.Random):
    """Every probability roll fails."""

    def random(self):
        return 0.99


@pytest.fixture
def state():
    """Fresh July 2024 starting position."""
    return create_initial_state()


@pytest.fixture
def ctx():
    """Turn context with shocks disabled and no collaborators."""
    return TurnContext(config=SimulationConfig(), rng=FixedRandom())


def political(state, **changes):
    return replace(state, political=replace(state.political, **changes))


class TestApproval:
    """Public approval of the government."""

    def test_within_band(self, state, ctx):
        for approval in (5.0, 45.0, 90.0):
            new = calculate_approval(political(state, approval=approval), ctx)
            assert 10.0 <= new.political.approval <= 70.0, "Approval is clamped to a realistic band"

    def test_vat_rise_costs_approval(self, state, ctx):
        base = calculate_approval(state, ctx)
        taxed = calculate_approval(apply_budget(state, rates={"vat": 25}), ctx)
        assert taxed.political.approval < base.political.approval, \
            "Household tax pressure and a broken pledge should cost support"

    def test_honeymoon_fades(self, state, ctx):
        early = calculate_approval(state, ctx)
        late = calculate_approval(replace(state, metadata=replace(state.metadata, turn=24)), ctx)
        assert early.political.approval > late.political.approval, "Early-term bonus"

    def test_manifesto_penalty_escalates(self):
        penalties = [manifesto_penalty(n) for n in range(5)]
        assert penalties[0] == 0.0
        steps = [a - b for a, b in zip(penalties, penalties[1:])]
        assert steps[1] > steps[0], "The second broken pledge hurts more than the first"
        assert all(s > 0 for s in steps), "Every broken pledge costs something"

    def test_recovery_from_low_base(self, state, ctx):
        good = replace(state, economic=replace(state.economic, gdp_growth_annual=3.0, wage_growth=6.0))
        low = calculate_approval(political(good, approval=25.0), ctx).political.approval - 25.0
        mid = calculate_approval(political(good, approval=45.0), ctx).political.approval - 45.0
        assert low > mid > 0, "Gains are amplified when approval is very low"


class TestSentiment:
    """The sentiment collaborator's capped contribution."""

    def test_no_collaborator(self, state, ctx):
        assert sentiment_effect(state, ctx) == 0.0

    def test_failing_collaborator(self, state):
        def broken(view):
            raise RuntimeError("feed offline")

        ctx = TurnContext(config=SimulationConfig(), rng=FixedRandom(),
                          collaborators=Collaborators(sentiment=broken))
        assert sentiment_effect(state, ctx) == 0.0, "Failures degrade to no contribution"

    def test_capped(self, state):
        ctx = TurnContext(config=SimulationConfig(sentiment_cap=0.2), rng=FixedRandom(),
                          collaborators=Collaborators(sentiment=lambda view: Sentiment(100.0, 0.0, 0.0, 100.0)))
        assert sentiment_effect(state, ctx) == pytest.approx(0.2)


class TestBackbenchAndTrust:
    """Backbench satisfaction, strike risk and the PM's trust."""

    def test_stricter_rule_lowers_backbench(self, state, ctx):
        strict = calculate_backbench_satisfaction(political(state, fiscal_rule="balanced-budget"), ctx)
        loose = calculate_backbench_satisfaction(political(state, fiscal_rule="mmt-inspired"), ctx)
        assert strict.political.backbench < loose.political.backbench, "Target depends on the fiscal rule"

    def test_broken_pledges_upset_backbenchers(self, state, ctx):
        base = calculate_backbench_satisfaction(state, ctx)
        broken = apply_budget(state, rates={"vat": 22, "income_basic": 22})
        assert calculate_backbench_satisfaction(broken, ctx).political.backbench < base.political.backbench

    def test_backbench_bounds(self, state, ctx):
        low = calculate_backbench_satisfaction(political(state, backbench=0.0, approval=10.0), ctx)
        assert low.political.backbench >= 10.0

    def test_trust_follows_approval(self, state, ctx):
        unpopular = calculate_pm_trust(political(state, approval=20.0), ctx)
        popular = calculate_pm_trust(political(state, approval=60.0), ctx)
        assert unpopular.political.pm_trust < state.political.pm_trust < popular.political.pm_trust

    def test_trust_does_not_auto_recover(self, state, ctx):
        low = political(state, pm_trust=30.0, approval=40.0, backbench=50.0)
        new = calculate_pm_trust(low, ctx)
        assert new.political.pm_trust - 30.0 < 0.2, "Reversion toward neutral is very weak"

    def test_strike_risk(self, state, ctx):
        squeezed = replace(state, economic=replace(state.economic, inflation_cpi=8.0))
        assert update_strike_risk(squeezed, ctx).political.strike_risk > state.political.strike_risk
        assert update_strike_risk(state, ctx).political.strike_risk < state.political.strike_risk


class TestIntervention:
    """PM interventions and the chancellor's response."""

    def test_no_intervention_while_trusted(self, state):
        ctx = TurnContext(config=SimulationConfig(), rng=LowRandom())
        assert check_pm_intervention(state, ctx).political.pending_interventions == ()

    def test_backbench_revolt_first(self, state):
        ctx = TurnContext(config=SimulationConfig(), rng=LowRandom())
        troubled = political(state, pm_trust=30.0, backbench=30.0, approval=25.0)
        new = check_pm_intervention(troubled, ctx)
        (intervention,) = new.political.pending_interventions
        assert intervention.trigger == "backbench_revolt"
        assert intervention.anger == "angry"
        assert intervention.defy.reshuffle_risk == 30

    def test_rolls_can_fail(self, state, ctx):
        troubled = political(state, pm_trust=30.0, backbench=30.0, approval=25.0)
        assert check_pm_intervention(troubled, ctx).political.pending_interventions == (), \
            "Every trigger probability is below one half"

    def test_one_at_a_time(self, state):
        ctx = TurnContext(config=SimulationConfig(), rng=LowRandom())
        troubled = political(state, pm_trust=30.0, backbench=30.0)
        first = check_pm_intervention(troubled, ctx)
        second = check_pm_intervention(first, ctx)
        assert second.political.pending_interventions == first.political.pending_interventions

    def test_comply(self, state):
        ctx = TurnContext(config=SimulationConfig(), rng=LowRandom())
        pending = check_pm_intervention(political(state, pm_trust=30.0, backbench=30.0), ctx)
        new = respond_to_intervention(pending, comply=True)
        assert new.political.pending_interventions == ()
        assert new.political.pm_trust == pytest.approx(40.0)
        assert new.political.backbench == pytest.approx(45.0)

    def test_comply_respects_approval_ceiling(self, state):
        ctx = TurnContext(config=SimulationConfig(), rng=LowRandom())
        pending = check_pm_intervention(political(state, pm_trust=30.0, backbench=30.0, approval=69.0), ctx)
        new = respond_to_intervention(pending, comply=True)
        assert new.political.approval == pytest.approx(APPROVAL_CEILING), \
            "Complying cannot lift approval past the polling ceiling"

    def test_defy_and_get_reshuffled(self, state):
        ctx = TurnContext(config=SimulationConfig(), rng=LowRandom())
        pending = check_pm_intervention(political(state, pm_trust=30.0, backbench=30.0), ctx)
        new = respond_to_intervention(pending, comply=False, rng=LowRandom())
        assert new.metadata.game_over
        assert "reshuffled" in new.metadata.game_over_reason

    def test_defy_and_survive(self, state):
        ctx = TurnContext(config=SimulationConfig(), rng=LowRandom())
        pending = check_pm_intervention(political(state, pm_trust=30.0, backbench=30.0), ctx)
        new = respond_to_intervention(pending, comply=False, rng=HighRandom())
        assert not new.metadata.game_over
        assert new.political.pm_trust == pytest.approx(15.0)

    def test_nothing_pending(self, state):
        with pytest.raises(ValueError):
            respond_to_intervention(state, comply=True)


class TestGameOver:
    """Terminal conditions, first match wins."""

    def test_healthy_state_continues(self, state, ctx):
        assert not check_game_over(state, ctx).metadata.game_over

    def test_pm_trust_collapse(self, state, ctx):
        new = check_game_over(political(state, pm_trust=10.0), ctx)
        assert new.metadata.game_over
        assert "Prime Minister" in new.metadata.game_over_reason

    def test_trust_checked_before_yields(self, state, ctx):
        crisis = political(state, pm_trust=10.0)
        crisis = replace(crisis, markets=replace(crisis.markets, gilt_10y=9.0))
        assert "Prime Minister" in check_game_over(crisis, ctx).metadata.game_over_reason

    def test_backbench_revolt_is_probabilistic(self, state, ctx):
        mild = check_game_over(political(state, backbench=25.0), ctx)
        assert not mild.metadata.game_over, "Just below the floor the revolt roll is 30%"
        severe = check_game_over(political(state, backbench=15.0), ctx)
        assert severe.metadata.game_over, "Far below the floor the revolt roll is 60%"
        assert "backbench revolt" in severe.metadata.game_over_reason

    def test_yield_crisis(self, state, ctx):
        new = check_game_over(replace(state, markets=replace(state.markets, gilt_10y=8.0)), ctx)
        assert "Gilt yields have surged above 7.5%" in new.metadata.game_over_reason

    def test_debt_crisis(self, state, ctx):
        new = check_game_over(replace(state, fiscal=replace(state.fiscal, debt_pct_gdp=125.0)), ctx)
        assert "IMF" in new.metadata.game_over_reason

    def test_forgiving_thresholds(self, state, ctx):
        forgiving = replace(state, metadata=replace(state.metadata, difficulty="forgiving"),
                            markets=replace(state.markets, gilt_10y=8.0))
        assert not check_game_over(forgiving, ctx).metadata.game_over, "Forgiving mode tolerates 8% gilts"
