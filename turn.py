"""
Turn orchestrator: one call advances the game by a month.

Steps run in a fixed order, each taking the previous state and returning a new
one. Optional collaborators (parliament, events, news, the PM's office) are
wrapped so a failure costs that month's contribution and nothing else.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from collaborators import Collaborators, default_collaborators
from config import SimulationConfig
from economy import (
    calculate_employment, calculate_gdp_growth, calculate_inflation, calculate_wage_growth,
    set_bank_rate, update_productivity,
)
from events import EVENT_LOG_LIMIT, apply_event_impact, event_view
from fiscal import (
    calculate_fiscal_balance, calculate_spending_effects, calculate_tax_revenue,
    enforce_investment_exemption, evaluate_compliance, select_fiscal_rule,
)
from logger import setup_logger
from manifesto import apply_manifesto_violations
from markets import update_credit_rating, update_markets
from parliament import policy_deltas, stance_counts
from politics import (
    calculate_approval, calculate_backbench_satisfaction, calculate_pm_trust,
    check_game_over, check_pm_intervention, end_game, update_strike_risk,
)
from pm_office import RESHUFFLE_REASON
from services import update_service_quality
from state import BASELINE, GameState, Snapshot, create_initial_state

logger = setup_logger()

FISCAL_YEAR_START_MONTH = 4
SEVERITY_RANK = {"minor": 0, "major": 1, "crisis": 2}


@dataclass
class TurnContext:
    """Everything a step may read besides the state itself."""

    config: SimulationConfig
    rng: random.Random
    baseline: GameState = BASELINE
    collaborators: Optional[Collaborators] = None


def advance_calendar(state: GameState, ctx: TurnContext) -> GameState:
    meta = state.metadata
    month, year = meta.month + 1, meta.year
    if month > 12:
        month, year = 1, year + 1
    return replace(state, metadata=replace(meta, turn=meta.turn + 1, month=month, year=year))


def rollover_fiscal_year(state: GameState, ctx: TurnContext) -> GameState:
    """In April: audit the year's growth pledges, then open a new fiscal year."""
    if state.metadata.month != FISCAL_YEAR_START_MONTH:
        return state

    manifesto = state.manifesto
    collaborators = ctx.collaborators
    if collaborators is not None and collaborators.annual_pledges is not None:
        try:
            violated = collaborators.annual_pledges(manifesto, state.fiscal, state.economic.inflation_cpi)
        except Exception as e:
            logger.warning(f"Annual pledge check failed: {e}")
            violated = ()
        if violated:
            manifesto = apply_manifesto_violations(manifesto, violated, state.metadata.turn)

    fiscal = replace(
        state.fiscal,
        fiscal_year=state.fiscal.fiscal_year + 1,
        fiscal_year_start_turn=state.metadata.turn,
        fiscal_year_start_spending=state.fiscal.spending,
    )
    logger.info(f"Fiscal year {fiscal.fiscal_year}-{(fiscal.fiscal_year + 1) % 100:02d} begins")
    return replace(state, fiscal=fiscal, manifesto=manifesto)


def expire_emergency_programmes(state: GameState, ctx: TurnContext) -> GameState:
    programmes = []
    for programme in state.emergency_programmes:
        remaining = programme.remaining_months - 1
        if remaining > 0:
            programmes.append(replace(programme, remaining_months=remaining))
        else:
            logger.info(f"Emergency programme ended: {programme.name}")
    return replace(state, emergency_programmes=tuple(programmes))


def refresh_mp_stances(state: GameState, ctx: TurnContext) -> GameState:
    collaborators = ctx.collaborators
    if collaborators is None or collaborators.parliament is None:
        return state
    try:
        deltas = policy_deltas(state, ctx.baseline)
        stances = collaborators.parliament.calculate_stances(deltas, state.manifesto.violated_ids)
    except Exception as e:
        logger.warning(f"MP stances not refreshed this month: {e}")
        return state
    counts = stance_counts(stances)
    logger.debug(f"Commons: {counts['support']} support, {counts['oppose']} oppose, "
                 f"{counts['undecided']} undecided")
    return replace(state, mp_stances=stances)


def process_pm_communications(state: GameState, ctx: TurnContext) -> GameState:
    collaborators = ctx.collaborators
    if collaborators is None or collaborators.communications is None:
        return state
    try:
        result = collaborators.communications(state, ctx.rng)
    except Exception as e:
        logger.warning(f"PM communications unavailable this month: {e}")
        return state
    state = replace(state, pm=result.relationship)
    if result.reshuffled:
        state = end_game(state, RESHUFFLE_REASON)
    return state


def generate_events_and_news(state: GameState, ctx: TurnContext) -> GameState:
    """Roll this month's events, apply their immediate impacts and print the front page."""
    collaborators = ctx.collaborators
    if collaborators is None:
        return state

    events = []
    if collaborators.events is not None:
        try:
            events = collaborators.events.generate_events(event_view(state), ctx.rng)
        except Exception as e:
            logger.warning(f"Event generation failed, no events this month: {e}")
            events = []

    for event in events:
        if not event.requires_response:
            state = apply_event_impact(state, event.impact)

    pending = state.events.pending + tuple(e for e in events if e.requires_response)
    log = (state.events.log + tuple(e for e in events if not e.requires_response))[-EVENT_LOG_LIMIT:]
    newspaper = state.events.newspaper

    if collaborators.newspaper is not None:
        lead = max(events, key=lambda e: SEVERITY_RANK.get(e.severity, 0), default=None)
        try:
            newspaper = collaborators.newspaper(event_view(state), ctx.rng, lead)
        except Exception as e:
            logger.warning(f"Newspaper generation failed: {e}")

    return replace(state, events=replace(state.events, pending=pending, log=log, newspaper=newspaper))


def save_snapshot(state: GameState, ctx: TurnContext) -> GameState:
    meta, economic, fiscal = state.metadata, state.economic, state.fiscal
    snapshot = Snapshot(
        turn=meta.turn,
        date=f"{meta.year}-{meta.month:02d}",
        gdp_growth=economic.gdp_growth_annual,
        gdp_nominal=economic.gdp_nominal_bn,
        inflation=economic.inflation_cpi,
        unemployment=economic.unemployment_rate,
        deficit=fiscal.deficit_pct_gdp,
        debt=fiscal.debt_pct_gdp,
        approval=state.political.approval,
        gilt_yield=state.markets.gilt_10y,
        productivity=economic.productivity_growth,
    )
    return replace(state, history=state.history + (snapshot,))


Step = Callable[[GameState, TurnContext], GameState]

PIPELINE: List[Step] = [
    rollover_fiscal_year,
    expire_emergency_programmes,
    update_productivity,
    calculate_gdp_growth,
    calculate_employment,
    calculate_inflation,
    calculate_wage_growth,
    set_bank_rate,
    calculate_tax_revenue,
    calculate_spending_effects,
    calculate_fiscal_balance,
    evaluate_compliance,
    enforce_investment_exemption,
    update_markets,
    update_service_quality,
    update_strike_risk,
    calculate_approval,
    calculate_backbench_satisfaction,
    refresh_mp_stances,
    calculate_pm_trust,
    check_pm_intervention,
    process_pm_communications,
    generate_events_and_news,
    update_credit_rating,
    save_snapshot,
]


def process_turn(state: GameState, ctx: TurnContext) -> GameState:
    """Advance one month. A finished game is returned unchanged."""
    if state.metadata.game_over:
        return state

    state = advance_calendar(state, ctx)
    for step in PIPELINE:
        state = step(state, ctx)
    # A reshuffle during communications already ended the game with its own reason
    if not state.metadata.game_over:
        state = check_game_over(state, ctx)

    economic, political = state.economic, state.political
    logger.debug(f"Turn {state.metadata.turn}: growth {economic.gdp_growth_annual:.2f}%, "
                 f"CPI {economic.inflation_cpi:.2f}%, approval {political.approval:.1f}")
    return state


class Simulation:
    """A play session: one state, one random stream, one set of collaborators."""

    def __init__(self, config: Optional[SimulationConfig] = None,
                 collaborators: Optional[Collaborators] = None,
                 rng: Optional[random.Random] = None):
        self.config = config or SimulationConfig()
        self.rng = rng or random.Random(self.config.seed)
        self.state = create_initial_state(self.config)
        if self.config.fiscal_rule != BASELINE.political.fiscal_rule:
            self.state = select_fiscal_rule(self.state, self.config.fiscal_rule)
        if collaborators is None:
            collaborators = default_collaborators(self.rng)
        self.ctx = TurnContext(config=self.config, rng=self.rng, collaborators=collaborators)

    @property
    def game_over(self) -> bool:
        return self.state.metadata.game_over

    def step(self) -> GameState:
        self.state = process_turn(self.state, self.ctx)
        return self.state

    def run(self, months: Optional[int] = None,
            on_turn: Optional[Callable[[GameState], None]] = None) -> GameState:
        """Run up to `months` turns (config.months by default), stopping early on game over."""
        months = self.config.months if months is None else months
        for _ in range(months):
            if self.game_over:
                break
            self.step()
            if on_turn is not None:
                on_turn(self.state)
        return self.state
