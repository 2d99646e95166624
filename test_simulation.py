"""
End-to-end tests for the turn pipeline and the simulation session.
"""

import random
from dataclasses import replace

import pytest

from collaborators import Collaborators
from config import DEPARTMENTS, SimulationConfig
from fiscal import apply_budget
from manifesto import check_annual_growth_pledges
from state import BASELINE, EmergencyProgramme, create_initial_state
from turn import Simulation, TurnContext, process_turn


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


class BrokenParliament:
    def calculate_stances(self, deltas, violations):
        raise RuntimeError("whips' office offline")

    def identify_groups(self, stances, turn=0):
        raise RuntimeError("whips' office offline")


class BrokenEvents:
    def generate_events(self, view, rng):
        raise RuntimeError("wire service down")


def broken(*args, **kwargs):
    raise RuntimeError("collaborator failed")


class TestPipeline:
    """One call to process_turn advances a month."""

    def test_calendar(self, state, ctx):
        for _ in range(6):
            state = process_turn(state, ctx)
        assert (state.metadata.turn, state.metadata.year, state.metadata.month) == (6, 2025, 1)
        assert state.history[-1].date == "2025-01"
        assert len(state.history) == 6, "One snapshot per turn"

    def test_fiscal_year_rolls_over_in_april(self, state, ctx):
        start_year = state.fiscal.fiscal_year
        for _ in range(9):
            state = process_turn(state, ctx)
        assert state.metadata.month == 4
        assert state.fiscal.fiscal_year == start_year + 1
        assert state.fiscal.fiscal_year_start_turn == 9

    def test_finished_game_unchanged(self, state, ctx):
        over = replace(state, metadata=replace(state.metadata, game_over=True, game_over_reason="Done"))
        assert process_turn(over, ctx) is over

    def test_input_state_untouched(self, state, ctx):
        before = state.economic
        process_turn(state, ctx)
        assert state.economic is before
        assert state.metadata.turn == 0

    def test_failing_collaborators_survived(self, state):
        collaborators = Collaborators(
            parliament=BrokenParliament(), events=BrokenEvents(), sentiment=broken,
            newspaper=broken, communications=broken, annual_pledges=broken,
        )
        ctx = TurnContext(config=SimulationConfig(), rng=FixedRandom(), collaborators=collaborators)
        for _ in range(10):
            state = process_turn(state, ctx)
        assert state.metadata.turn == 10, "Every failure costs only its own contribution"
        assert not state.metadata.game_over
        assert state.mp_stances == BASELINE.mp_stances

    def test_growth_pledge_audited_in_april(self):
        state = create_initial_state(SimulationConfig(manifesto="social-democratic"))
        ctx = TurnContext(config=SimulationConfig(), rng=FixedRandom(),
                          collaborators=Collaborators(annual_pledges=check_annual_growth_pledges))
        for _ in range(9):
            state = process_turn(state, ctx)
        assert "nhs-investment" in state.manifesto.violated_ids, "Flat NHS cash misses a real growth pledge"

    def test_debt_spiral_ends_the_game(self, state, ctx):
        spiral = replace(state, emergency_programmes=(EmergencyProgramme("bailout", "Bailout", 60.0, 100),))
        for _ in range(36):
            spiral = process_turn(spiral, ctx)
            if spiral.metadata.game_over:
                break
        assert spiral.metadata.game_over, "Unfunded borrowing on this scale cannot last three years"
        assert spiral.fiscal.debt_pct_gdp > state.fiscal.debt_pct_gdp
        assert spiral.markets.gilt_10y > state.markets.gilt_10y
        assert spiral.political.credibility < state.political.credibility

    @pytest.mark.parametrize("seed", range(5))
    def test_random_budgets_stay_bounded(self, state, seed):
        pick = random.Random(seed)
        spending = {d: state.fiscal.spending.department(d).current * pick.uniform(-0.3, 0.3) for d in DEPARTMENTS}
        budget = apply_budget(
            state,
            rates={"vat": pick.uniform(10, 30), "income_basic": pick.uniform(15, 30),
                   "corporation": pick.uniform(15, 35)},
            current=spending,
        )
        ctx = TurnContext(config=SimulationConfig(), rng=random.Random(seed))
        for _ in range(24):
            budget = process_turn(budget, ctx)

        services = budget.services
        indices = [services.nhs, services.education, services.infrastructure, *services.granular().values()]
        assert all(0 <= v <= 100 for v in indices), "Service indices stay within 0-100"
        political = budget.political
        for name in ("approval", "backbench", "pm_trust", "credibility"):
            assert 0 <= getattr(political, name) <= 100, f"{name} out of range"


class TestSimulation:
    """A play session."""

    def test_run(self):
        sim = Simulation(SimulationConfig(months=3, seed=1))
        final = sim.run()
        assert final.metadata.turn == 3
        assert final.history[-1].date == "2024-10"
        assert sim.state is final

    def test_same_seed_same_history(self):
        first = Simulation(SimulationConfig(seed=5)).run(months=12)
        second = Simulation(SimulationConfig(seed=5)).run(months=12)
        assert first.history == second.history, "A seed fixes the whole session"

    def test_on_turn_callback(self):
        seen = []
        Simulation(SimulationConfig(seed=2)).run(months=4, on_turn=lambda s: seen.append(s.metadata.turn))
        assert seen == [1, 2, 3, 4]

    def test_fiscal_rule_from_config(self):
        sim = Simulation(SimulationConfig(fiscal_rule="maastricht", seed=1))
        assert sim.state.political.fiscal_rule == "maastricht"
        assert sim.state.political.credibility == pytest.approx(BASELINE.political.credibility + 8)

    def test_stops_when_game_over(self):
        sim = Simulation(SimulationConfig(seed=1), collaborators=Collaborators())
        sim.state = replace(sim.state, metadata=replace(sim.state.metadata, game_over=True))
        assert sim.run(months=5).metadata.turn == 0

    @pytest.mark.parametrize("field,value", [
        ("fiscal_rule", "no-such-rule"), ("difficulty", "nightmare"), ("manifesto", "no-such-manifesto"),
    ])
    def test_bad_config(self, field, value):
        with pytest.raises(ValueError):
            Simulation(SimulationConfig(**{field: value}))
