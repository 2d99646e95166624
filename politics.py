"""
Political feedback: strike risk, public approval, backbench mood, the Prime
Minister's trust, PM interventions and the ways a chancellorship ends.
"""

from __future__ import annotations
from dataclasses import replace
from typing import TYPE_CHECKING, Optional
import random

import numpy as np

from advisers import adviser_bonuses
from config import RULE_BACKBENCH_TARGET, get_difficulty
from logger import setup_logger
from media import sentiment_impact, sentiment_input
from state import Intervention, InterventionEffects

if TYPE_CHECKING:
    from state import GameState
    from turn import TurnContext

logger = setup_logger()

APPROVAL_FLOOR = 10.0
APPROVAL_CEILING = 70.0
BACKBENCH_FLOOR = 10.0
BACKBENCH_CEILING = 95.0

# Constituency services MPs hear about at surgeries
CONSTITUENCY_SERVICES = ("mental_health", "prison_safety", "court_backlog", "policing")


def sentiment_effect(state: GameState, ctx: TurnContext) -> float:
    """Capped approval contribution from the sentiment collaborator, or 0 if it is unavailable."""
    collaborators = ctx.collaborators
    if collaborators is None or collaborators.sentiment is None:
        return 0.0
    try:
        effect = sentiment_impact(collaborators.sentiment(sentiment_input(state)))
    except Exception as e:
        logger.warning(f"Sentiment unavailable this month: {e}")
        return 0.0
    cap = ctx.config.sentiment_cap
    return float(np.clip(effect, -cap, cap))


def update_strike_risk(state: GameState, ctx: TurnContext) -> GameState:
    """Public sector strike risk rises while real pay falls."""
    political = state.political
    real_wages = state.economic.wage_growth - state.economic.inflation_cpi
    risk = political.strike_risk
    if real_wages < -2.0:
        risk = min(90.0, risk + 5)
    elif real_wages < 0:
        risk = min(80.0, risk + 2)
    elif real_wages > 1.0:
        risk = max(10.0, risk - 3)
    else:
        risk = max(10.0, risk - 1)
    return replace(state, political=replace(political, strike_risk=risk))


def _tax_rise(state: GameState, ctx: TurnContext, tax_id: str) -> float:
    base = ctx.baseline.fiscal.tax(tax_id).rate
    return max(0.0, state.fiscal.tax(tax_id).rate - base)


def _tax_cut(state: GameState, ctx: TurnContext, tax_id: str) -> float:
    base = ctx.baseline.fiscal.tax(tax_id).rate
    return max(0.0, base - state.fiscal.tax(tax_id).rate)


def household_tax_pressure(state: GameState, ctx: TurnContext) -> float:
    vat_rise = max(0.0, state.fiscal.rates.vat - ctx.baseline.fiscal.rates.vat)
    return (_tax_rise(state, ctx, "insurancePremiumTax") * 0.35
            + _tax_rise(state, ctx, "sdltAdditionalSurcharge") * 0.25
            + (vat_rise + _tax_rise(state, ctx, "vatDomesticEnergy")) * 0.4)


def business_tax_pressure(state: GameState, ctx: TurnContext) -> float:
    ct_rise = max(0.0, state.fiscal.rates.corporation - ctx.baseline.fiscal.rates.corporation)
    return (ct_rise * 0.5
            + _tax_rise(state, ctx, "energyProfitsLevy") * 0.2
            + _tax_cut(state, ctx, "rdTaxCredit") * 0.15
            + _tax_cut(state, ctx, "annualInvestmentAllowance") / 200000)


def _deficit_mood(deficit_pct: float, high: float, mid: float, low: float) -> float:
    if deficit_pct > 6:
        return high
    if deficit_pct > 5:
        return mid
    if deficit_pct < 3:
        return low
    return 0.0


def manifesto_penalty(violations: int) -> float:
    """Approval cost of broken pledges: small for the first, escalating from the second onward."""
    if violations <= 0:
        return 0.0
    if violations == 1:
        return -0.8
    if violations == 2:
        return -2.0
    return -2.0 - (violations - 2) * 1.2


def calculate_approval(state: GameState, ctx: TurnContext) -> GameState:
    cfg = ctx.config
    economic, services, political = state.economic, state.services, state.political
    base = ctx.baseline
    turn = state.metadata.turn

    trend = base.economic.productivity_growth + cfg.labour_force_growth
    effects = [
        (economic.gdp_growth_annual - trend) * 0.5,
        (base.economic.unemployment_rate - economic.unemployment_rate) * 0.6,
        (2.5 - economic.inflation_cpi) * 0.5,
        (economic.wage_growth - economic.inflation_cpi) * 0.4,
        (services.nhs - base.services.nhs) * 0.12,
        (services.education - base.services.education) * 0.05,
        (services.granular_average() - base.services.granular_average()) * 0.06,
        -household_tax_pressure(state, ctx),
        -business_tax_pressure(state, ctx) * 0.5,
        _deficit_mood(state.fiscal.deficit_pct_gdp, -1.5, -0.8, 0.5),
        manifesto_penalty(state.manifesto.total_violations),
        (cfg.honeymoon_months - turn) * 0.15 if turn < cfg.honeymoon_months else 0.0,
        sentiment_effect(state, ctx),
        (ctx.rng.random() - 0.5) * 1.5,
    ]
    change = sum(effects) * cfg.approval_sensitivity

    approval = political.approval
    # Recovery from a low base is easier than further decline
    if change > 0:
        if approval < 30:
            change *= 1.5
        elif approval < 38:
            change *= 1.25

    if state.history:
        previous = state.history[-1]
        if (economic.gdp_growth_annual - previous.gdp_growth > 0.3
                or previous.inflation - economic.inflation_cpi > 0.3
                or previous.unemployment - economic.unemployment_rate > 0.15):
            change += 0.5

    if change < 0:
        if approval < 20:
            change *= 0.6
        elif approval < 28:
            change *= 0.8

    approval = float(np.clip(approval + change, APPROVAL_FLOOR, APPROVAL_CEILING))
    chancellor = float(np.clip(approval - 3 + (ctx.rng.random() - 0.5) * 2, 0, 100))

    logger.debug(f"Approval {approval:.1f} ({change:+.2f})")

    return replace(state, political=replace(political, approval=approval, chancellor_approval=chancellor))


def calculate_backbench_satisfaction(state: GameState, ctx: TurnContext) -> GameState:
    """Backbench mood follows the polls and drifts toward a level set by the fiscal rule."""
    cfg = ctx.config
    political, services = state.political, state.services

    stress = sum(50 - getattr(services, name) for name in CONSTITUENCY_SERVICES) / len(CONSTITUENCY_SERVICES)
    strike = -0.6 if political.strike_risk > 60 else -0.3 if political.strike_risk > 50 else 0.0

    change = ((political.approval - 38) * 0.2
              + _deficit_mood(state.fiscal.deficit_pct_gdp, -1.0, -0.5, 0.2)
              - state.manifesto.total_violations * 1.5
              + (political.pm_trust - 50) * 0.06
              + strike
              - max(0.0, stress) * 0.04
              + sentiment_effect(state, ctx) * 0.7) * cfg.backbench_sensitivity

    target = RULE_BACKBENCH_TARGET.get(political.fiscal_rule, 55)
    satisfaction = political.backbench + change
    satisfaction += (target - satisfaction) * cfg.backbench_drift
    satisfaction += adviser_bonuses(state.advisers).backbench / 12
    satisfaction = float(np.clip(satisfaction, BACKBENCH_FLOOR, BACKBENCH_CEILING))

    return replace(state, political=replace(political, backbench=satisfaction))


def calculate_pm_trust(state: GameState, ctx: TurnContext) -> GameState:
    """Trust has to be earned; the drift back toward neutral is very weak."""
    cfg = ctx.config
    political = state.political
    difficulty = get_difficulty(state.metadata.difficulty)
    gilt = state.markets.gilt_10y

    market = -2.5 if gilt > 6 else -0.8 if gilt > 5 else 0.0
    change = ((political.approval - 40) * 0.15
              - state.manifesto.total_violations * 1.5
              + _deficit_mood(state.fiscal.deficit_pct_gdp, -1.5, -0.8, 0.3)
              + market
              + (political.backbench - 50) * 0.1)
    change *= cfg.pm_trust_sensitivity * difficulty.pm_trust_sensitivity

    trust = political.pm_trust + change
    trust += (50 - trust) * cfg.pm_trust_drift
    trust += adviser_bonuses(state.advisers).pm_trust / 12
    trust = float(np.clip(trust, 0, 100))

    return replace(state, political=replace(political, pm_trust=trust))


def _intervention(state: GameState, trigger: str, title: str, description: str,
                  comply: InterventionEffects, defy: InterventionEffects) -> Intervention:
    trust = state.political.pm_trust
    anger = "furious" if trust < 25 else "angry" if trust < 35 else "concerned"
    return Intervention(
        id=f"pm_{state.metadata.turn}",
        trigger=trigger,
        title=title,
        description=description,
        anger=anger,
        trust=trust,
        comply=comply,
        defy=defy,
    )


def check_pm_intervention(state: GameState, ctx: TurnContext) -> GameState:
    """
    Once trust falls below the difficulty threshold the PM may summon the chancellor.
    Triggers are tried in priority order, each with its own chance of firing.
    """
    political = state.political
    if political.pending_interventions:
        return state
    if political.pm_trust > get_difficulty(state.metadata.difficulty).intervention_threshold:
        return state

    rng = ctx.rng
    trust = political.pm_trust
    intervention: Optional[Intervention] = None

    if political.backbench < 35 and rng.random() < 0.4:
        intervention = _intervention(
            state, "backbench_revolt", "Backbench Rebellion Brewing",
            "The backbenches are in open revolt. You need to change course immediately or this "
            "government will collapse. I cannot protect you if you continue down this path.",
            InterventionEffects(pm_trust=10, backbench=15, approval=2),
            InterventionEffects(pm_trust=-15, backbench=-10, reshuffle_risk=60 if trust < 30 else 30),
        )
    elif state.manifesto.total_violations > 0 and rng.random() < 0.25:
        intervention = _intervention(
            state, "manifesto_breach", "Manifesto Commitment Broken",
            "We made clear promises to the electorate. Breaking them destroys trust in this "
            "government and makes us all look like liars. This policy cannot stand.",
            InterventionEffects(pm_trust=8, backbench=10, approval=1),
            InterventionEffects(pm_trust=-12, backbench=-8, reshuffle_risk=50 if trust < 30 else 25),
        )
    elif political.approval < 30 and rng.random() < 0.3:
        intervention = _intervention(
            state, "approval_collapse", "Public Confidence Collapsing",
            "The polling is catastrophic. We are heading for electoral annihilation if we do not "
            "change direction. The party will not tolerate being led into the wilderness.",
            InterventionEffects(pm_trust=8, backbench=12, approval=3),
            InterventionEffects(pm_trust=-10, backbench=-12, reshuffle_risk=55 if trust < 30 else 25),
        )
    elif (state.markets.gilt_10y > 6 or state.fiscal.debt_pct_gdp > 110) and rng.random() < 0.35:
        intervention = _intervention(
            state, "economic_crisis", "Economic Crisis Deepening",
            "The economic situation is spiralling out of control. The markets are losing "
            "confidence. We need to demonstrate fiscal responsibility before it is too late.",
            InterventionEffects(pm_trust=12, backbench=5, approval=1),
            InterventionEffects(pm_trust=-20, backbench=-5, reshuffle_risk=70 if trust < 25 else 40),
        )

    if intervention is None:
        return state

    logger.info(f"PM intervention ({intervention.anger}): {intervention.title}")
    return replace(state, political=replace(political, pending_interventions=(intervention,)))


def respond_to_intervention(state: GameState, comply: bool,
                            rng: Optional[random.Random] = None) -> GameState:
    """Answer the oldest pending PM intervention. Defiance risks a reshuffle."""
    political = state.political
    if not political.pending_interventions:
        raise ValueError("No PM intervention is pending")

    intervention = political.pending_interventions[0]
    effects = intervention.comply if comply else intervention.defy
    political = replace(
        political,
        pm_trust=float(np.clip(political.pm_trust + effects.pm_trust, 0, 100)),
        backbench=float(np.clip(political.backbench + effects.backbench, BACKBENCH_FLOOR, BACKBENCH_CEILING)),
        approval=float(np.clip(political.approval + effects.approval, APPROVAL_FLOOR, APPROVAL_CEILING)),
        pending_interventions=political.pending_interventions[1:],
    )
    state = replace(state, political=political)

    if comply:
        logger.info(f"Complied with the PM over '{intervention.title}'")
        return state

    rng = rng or random.Random()
    if effects.reshuffle_risk and rng.random() * 100 < effects.reshuffle_risk:
        return end_game(state, "You defied the Prime Minister one too many times. "
                               "You have been reshuffled out of the Treasury.")
    logger.info(f"Defied the PM over '{intervention.title}' and survived")
    return state


def end_game(state: GameState, reason: str) -> GameState:
    logger.info(f"GAME OVER: {reason}")
    return replace(state, metadata=replace(state.metadata, game_over=True, game_over_reason=reason))


def check_game_over(state: GameState, ctx: TurnContext) -> GameState:
    """Terminal conditions in order; the first that holds ends the session."""
    political = state.political
    difficulty = get_difficulty(state.metadata.difficulty)

    if political.pm_trust < difficulty.game_over_pm_trust:
        return end_game(state, "The Prime Minister has lost all confidence in your ability to manage "
                               "the economy. You have been removed from office.")

    if political.backbench < difficulty.game_over_backbench:
        revolt = 0.6 if political.backbench < difficulty.game_over_backbench - 10 else 0.3
        if ctx.rng.random() < revolt:
            return end_game(state, "A backbench revolt has forced your resignation. Your party has "
                                   "lost confidence in your economic management.")

    if state.markets.gilt_10y > difficulty.game_over_yield:
        return end_game(state, f"Gilt yields have surged above {difficulty.game_over_yield:g}%. The UK "
                               "faces a sovereign debt crisis. An emergency government has been "
                               "formed without you.")

    if state.fiscal.debt_pct_gdp > difficulty.game_over_debt:
        return end_game(state, f"UK national debt has exceeded {difficulty.game_over_debt:g}% of GDP. "
                               "The IMF has been called in. Your chancellorship is over.")

    return state
