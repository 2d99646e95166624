"""
Gilt market and sterling.

The 10-year yield is built from Bank Rate, a term premium and a stack of fiscal risk
premia, then smoothed toward its target. A sharp implied rise can tip the market into
a margin-call panic in which yields reprice instantly until they fall back.
"""

from __future__ import annotations
from dataclasses import replace
from typing import TYPE_CHECKING

import numpy as np

from config import (
    CREDIT_RATINGS, RATING_PREMIUM, RULE_GILT_EFFECT, RULE_STERLING_EFFECT, get_difficulty,
)
from logger import setup_logger

if TYPE_CHECKING:
    from state import GameState
    from turn import TurnContext

logger = setup_logger()

PANIC_MIN_HISTORY = 3


def credit_rating_premium(rating: str) -> float:
    return RATING_PREMIUM.get(rating, RATING_PREMIUM["AA-"])


def update_markets(state: GameState, ctx: TurnContext) -> GameState:
    cfg = ctx.config
    fiscal, markets, political = state.fiscal, state.markets, state.political
    mrs = get_difficulty(state.metadata.difficulty).market_reaction
    previous = state.history[-1] if state.history else None

    term_premium = float(np.clip((cfg.neutral_rate - markets.bank_rate) * cfg.term_premium_slope, -1.5, 1.0))
    base_yield = markets.bank_rate + term_premium + cfg.qt_premium

    debt = fiscal.debt_pct_gdp
    debt_premium = 0.0
    if debt > 80:
        debt_premium = (debt - 80) * 0.01 * mrs
    if debt > 100:
        debt_premium += (debt - 100) * 0.03 * mrs

    deficit_premium = max(0.0, (fiscal.deficit_pct_gdp - 3) * 0.1 * mrs)

    debt_trend = debt - previous.debt if previous else 0.0
    deficit_trend = fiscal.deficit_pct_gdp - previous.deficit if previous else 0.0
    trend_premium = float(np.clip((debt_trend * 0.25 + deficit_trend * 0.18) * mrs, -0.45, 0.45))

    vigilante = (deficit_trend - 0.8) * 0.5 * mrs if deficit_trend > 0.8 else 0.0
    if vigilante:
        logger.warning(f"Bond vigilantes: deficit up {deficit_trend:.2f}pp in a month, +{vigilante:.2f}pp on gilts")

    credibility = (political.credibility - 50) * -0.008
    rating = credit_rating_premium(political.credit_rating)
    rule_effect = RULE_GILT_EFFECT.get(political.fiscal_rule, 0.0)

    current_yield = markets.gilt_10y
    stress = int(debt > 95) + int(fiscal.deficit_pct_gdp > 5) + int(debt_trend > 1)
    psychology = 0.0
    if current_yield > 5.5 and stress >= 2:
        psychology = 0.3 + (current_yield - 5.5) * 0.15
    elif current_yield < 4.0 and stress == 0:
        psychology = -0.15
    if previous and abs(current_yield - previous.gilt_yield) > 0.3:
        psychology += 0.1 if current_yield > previous.gilt_yield else -0.1

    target = (base_yield + debt_premium + deficit_premium + trend_premium + vigilante
              + credibility + rating + rule_effect + psychology)

    # Margin calls on leveraged gilt holders
    panic = markets.panic
    if mrs > 1.0 and len(state.history) >= PANIC_MIN_HISTORY:
        implied_rise = target - current_yield
        if implied_rise > cfg.panic_threshold:
            if not panic:
                logger.warning(f"Gilt market panic: implied rise of {implied_rise:.2f}pp triggers margin calls")
            panic = True
            target += (implied_rise - cfg.panic_threshold) * cfg.panic_amplifier
        elif panic:
            if implied_rise < cfg.panic_release:
                panic = False
                logger.info("Gilt market panic subsides")
            else:
                target += cfg.panic_premium

    speed = 1.0 if panic else cfg.yield_smoothing
    new_yield = float(np.clip(current_yield + (target - current_yield) * speed, 0.5, 20.0))

    risk_premium = target - markets.bank_rate - 0.3
    sterling_target = (100
                       + (markets.bank_rate - cfg.neutral_rate) * 1.5
                       - risk_premium * 2.0
                       + (political.approval - 40) * 0.15
                       + (political.credibility - 50) * 0.1
                       - vigilante * 4.0
                       + RULE_STERLING_EFFECT.get(political.fiscal_rule, 0.0))
    sterling_target = float(np.clip(sterling_target, 70, 130))
    sterling = markets.sterling_index + (sterling_target - markets.sterling_index) * cfg.sterling_smoothing

    slope = markets.bank_rate - new_yield
    gilt_2y = new_yield + float(np.clip(slope * 0.4 - 0.3, -1.5, 1.5))
    gilt_30y = new_yield + float(np.clip(0.5 - slope * 0.1, 0.0, 1.5))

    logger.debug(f"Gilts: 10y {new_yield:.2f}% (target {target:.2f}%), sterling {sterling:.1f}")

    return replace(state, markets=replace(
        markets,
        gilt_10y=new_yield,
        gilt_2y=float(np.clip(gilt_2y, 0.5, 20.0)),
        gilt_30y=float(np.clip(gilt_30y, 0.5, 20.0)),
        mortgage_rate=float(np.clip(new_yield + 1.5, 1.0, 20.0)),
        sterling_index=sterling,
        panic=panic,
        yield_change_10y=new_yield - current_yield,
    ))


def update_credit_rating(state: GameState, ctx: TurnContext) -> GameState:
    """Agencies reassess every six months on debt, deficit, yields and credibility."""
    turn = state.metadata.turn
    if turn == 0 or turn % 6 != 0:
        return state

    fiscal, political, markets = state.fiscal, state.political, state.markets
    debt, deficit, gilt = fiscal.debt_pct_gdp, fiscal.deficit_pct_gdp, markets.gilt_10y

    score = 0
    score += 2 if debt < 85 else 1 if debt < 95 else 0 if debt < 105 else -1
    score += 2 if deficit < 2 else 1 if deficit < 3 else 0 if deficit < 5 else -1
    score += 1 if gilt < 4.5 else 0 if gilt < 5.5 else -1
    score += 1 if political.credibility > 60 else 0 if political.credibility > 40 else -1

    index = CREDIT_RATINGS.index(political.credit_rating) if political.credit_rating in CREDIT_RATINGS else 2
    new_index = index
    if score >= 4 and index < len(CREDIT_RATINGS) - 1:
        new_index = index + 1
    elif score <= -2 and index > 0:
        new_index = index - 1

    credibility = political.credibility
    if new_index > index:
        credibility += 5
        logger.info(f"Credit rating upgraded to {CREDIT_RATINGS[new_index]}")
    elif new_index < index:
        credibility -= 10
        logger.warning(f"Credit rating downgraded to {CREDIT_RATINGS[new_index]}")

    outlook = "positive" if score >= 2 else "negative" if score <= -1 else "stable"

    return replace(state, political=replace(
        political,
        credit_rating=CREDIT_RATINGS[new_index],
        rating_outlook=outlook,
        credibility=float(np.clip(credibility, 0, 100)),
    ))
