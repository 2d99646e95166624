"""
Number 10: the Prime Minister's patience with the chancellor, the messages the
PM sends, demands with deadlines, and the reshuffle that ends a chancellorship.
"""

from __future__ import annotations

import calendar
import random
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Optional

import numpy as np

from logger import setup_logger
from state import PMDemand, PMMessage, PMRelationship

if TYPE_CHECKING:
    from state import GameState

logger = setup_logger()

RESHUFFLE_THRESHOLD = 95.0
FINAL_WARNING_RISK = 80.0
DEMAND_DEFICIT_BN = 80.0
DEMAND_TARGET_BN = 50.0
DEMAND_DEADLINE_MONTHS = 3
CHECKIN_INTERVAL = 6
MESSAGE_LOG_LIMIT = 60

RESHUFFLE_REASON = ("You have been reshuffled out of the Treasury. The Prime Minister has lost "
                    "confidence in your ability to manage the economy.")

# type -> list of (subject, content, tone); content placeholders are filled from the state
MESSAGE_TEMPLATES = {
    "checkin_good": [(
        "{month} Check-in: Keep Up the Good Work",
        "Chancellor,\n\nI wanted to touch base this month. The economic figures are holding steady, "
        "and I'm pleased with the direction we're heading.\n\nPM Trust: {trust}/100\n"
        "Government Approval: {approval}%\nGDP Growth: {growth}%\n\nKeep the backbenchers onside and "
        "continue delivering on our manifesto.\n\nBest,\nThe Prime Minister",
        "supportive",
    )],
    "checkin_neutral": [(
        "{month} Check-in: Room for Improvement",
        "Chancellor,\n\nThe numbers aren't terrible, but they're not where they need to be either.\n\n"
        "PM Trust: {trust}/100\nGovernment Approval: {approval}%\nDeficit: £{deficit}bn\n\n"
        "I need to see more decisive action. The backbenchers are getting restless.\n\nPrime Minister",
        "neutral",
    )],
    "checkin_poor": [(
        "{month} Check-in: We Have a Problem",
        "Chancellor,\n\nI'll be blunt: things are not going well, and it is causing serious concern "
        "across the party.\n\nPM Trust: {trust}/100\nGovernment Approval: {approval}%\n"
        "Backbench Satisfaction: {backbench}/100\n\nWe need to see significant improvement, and soon. "
        "My patience is not unlimited.\n\nRegards,\nPrime Minister",
        "stern",
    )],
    "praise": [
        ("Excellent Work This Quarter",
         "Chancellor,\n\nI wanted to personally thank you for your work managing the economy.\n\n"
         "PM Trust: {trust}/100\nGovernment Approval: {approval}%\nGDP Growth: {growth}%\n"
         "Deficit: £{deficit}bn\n\nThe party is happy and the markets are stable. You have my full "
         "confidence and support.\n\nBest regards,\nThe Prime Minister",
         "supportive"),
        ("Growth Figures",
         "Chancellor,\n\nDid you see the FT this morning? Fastest growth in the G7. This is the story "
         "we need to be telling.\n\nLet's make sure we sustain this momentum into the election.\n\nPM",
         "supportive"),
    ],
    "concern": [(
        "Polling figures",
        "Chancellor,\n\nGovernment approval has dropped to {approval}%, which is dangerously low. If "
        "this carries on, we are looking at a wipeout.\n\nI need a political budget, not an "
        "accountant's one. Change the narrative.\n\nPM",
        "neutral",
    )],
    "warning": [(
        "Serious Concerns About Economic Performance",
        "Chancellor,\n\nI need to raise serious concerns about your stewardship of the economy "
        "(PM Trust: {trust}/100).\n\nThis is your warning: things must improve. You have my support "
        "for now, but it's not unconditional.\n\nPrime Minister",
        "stern",
    )],
    "threat": [(
        "Final Warning: Immediate Improvement Required",
        "Chancellor,\n\nI've tried to be patient, but the situation has not improved.\n\n"
        "- PM Trust: {trust}/100\n- Government Approval: {approval}%\n"
        "- Backbench Satisfaction: {backbench}/100\n- Deficit: £{deficit}bn\n\n"
        "Turn things around immediately, or I will have no choice but to consider a reshuffle.\n\n"
        "Prime Minister",
        "angry",
    )],
    "reshuffle_warning": [(
        "Final Notice: Reshuffle Imminent",
        "Chancellor,\n\nThis is your final notice. Your position as Chancellor of the Exchequer is "
        "untenable.\n\nPM Trust: {trust}/100\n\nDeliver a budget that passes with strong support and "
        "improves economic performance, or I will replace you.\n\nPrime Minister",
        "angry",
    )],
    "demand": [(
        "Immediate Action Required: Deficit Control",
        "Chancellor,\n\nThe overall deficit of £{deficit}bn is unsustainable.\n\nI am formally "
        "requesting that you bring the deficit below £50bn within 3 months.\n\nThis is not optional."
        "\n\nPrime Minister",
        "stern",
    )],
    "support_change": [(
        "Withdrawal of Political Support",
        "Chancellor,\n\nI am formally withdrawing my active political support for your "
        "chancellorship. This is a direct consequence of persistently low PM Trust ({trust}/100) and "
        "multiple warnings ignored.\n\nUntil things change, you're on your own.\n\nPrime Minister",
        "angry",
    )],
}


@dataclass(frozen=True)
class CommunicationResult:
    message: Optional[PMMessage]
    relationship: PMRelationship
    reshuffled: bool = False


def _template_values(state: GameState) -> Dict[str, str]:
    political = state.political
    return {
        "month": calendar.month_name[state.metadata.month],
        "trust": f"{political.pm_trust:.0f}",
        "approval": f"{political.approval:.0f}",
        "backbench": f"{political.backbench:.0f}",
        "deficit": f"{state.fiscal.deficit_bn:.1f}",
        "growth": f"{state.economic.gdp_growth_annual:.1f}",
        "unemployment": f"{state.economic.unemployment_rate:.1f}",
    }


def update_relationship(state: GameState) -> PMRelationship:
    """Monthly patience and reshuffle-risk update from the chancellor's record."""
    pm, political = state.pm, state.political
    turn = state.metadata.turn
    trust, approval, deficit = political.pm_trust, political.approval, state.fiscal.deficit_bn

    patience = pm.patience
    consecutive_poor = pm.consecutive_poor
    if turn > 12 and trust < 65:
        patience -= 0.5

    if trust < 20:
        patience -= 8
        consecutive_poor += 1
    elif trust < 30:
        patience -= 5
        consecutive_poor += 1
    elif trust < 45:
        patience -= 2
        consecutive_poor += 1
    elif trust > 75:
        patience += 4
        consecutive_poor = 0
    elif trust > 60:
        patience += 2
        consecutive_poor = 0
    else:
        consecutive_poor = 0

    if approval < 20:
        patience -= 5
    elif approval < 30:
        patience -= 3
    elif approval < 38:
        patience -= 1
    elif approval > 50:
        patience += 2

    if deficit > 100:
        patience -= 4
    elif deficit > 80:
        patience -= 2
    elif deficit < 30:
        patience += 1

    violations = state.manifesto.total_violations
    if violations >= 3:
        patience -= 2
    elif violations >= 1:
        patience -= 1
    patience = float(np.clip(patience, 0, 100))

    demands = tuple(
        replace(d, met=True) if not d.met and d.category == "deficit" and deficit < DEMAND_TARGET_BN else d
        for d in pm.active_demands
    )

    risk = 0.0
    if patience < 20:
        risk += 50
    elif patience < 40:
        risk += 25
    if consecutive_poor >= 6:
        risk += 30
    elif consecutive_poor >= 3:
        risk += 15
    if pm.warnings_issued >= 3:
        risk += 20
    elif pm.warnings_issued >= 2:
        risk += 10
    risk += 15 * sum(1 for d in demands if not d.met and turn > d.deadline)

    return replace(pm, patience=patience, consecutive_poor=consecutive_poor,
                   reshuffle_risk=min(100.0, risk), active_demands=demands)


def _triggered_message_type(state: GameState, pm: PMRelationship) -> Optional[str]:
    political = state.political
    since_contact = state.metadata.turn - pm.last_contact_turn
    trust, approval = political.pm_trust, political.approval

    if pm.reshuffle_risk >= FINAL_WARNING_RISK and not pm.final_warning_given:
        return "reshuffle_warning"
    if trust < 30 and since_contact >= 2:
        return "warning" if pm.warnings_issued == 0 else "threat"
    if approval < 25 and since_contact >= 3:
        return "concern"
    if (state.fiscal.deficit_bn > DEMAND_DEFICIT_BN
            and not any(d.category == "deficit" and not d.met for d in pm.active_demands)):
        return "demand"
    if trust > 75 and approval > 50 and since_contact >= 4 and pm.consecutive_poor == 0:
        return "praise"
    if pm.reshuffle_risk >= 60 and not pm.support_withdrawn and pm.warnings_issued >= 2:
        return "support_change"
    return None


def _checkin_key(state: GameState) -> str:
    trust = state.political.pm_trust
    if trust > 60:
        return "checkin_good"
    if trust > 40:
        return "checkin_neutral"
    return "checkin_poor"


def generate_message(state: GameState, message_type: str, rng: random.Random) -> PMMessage:
    key = _checkin_key(state) if message_type == "regular_checkin" else message_type
    subject, content, tone = rng.choice(MESSAGE_TEMPLATES[key])
    values = _template_values(state)
    return PMMessage(
        turn=state.metadata.turn,
        type=message_type,
        subject=subject.format(**values),
        content=content.format(**values),
        tone=tone,
    )


def process_communications(state: GameState, rng: random.Random) -> CommunicationResult:
    """Update the relationship, send at most one message and report whether the PM has acted."""
    pm = update_relationship(state)
    turn = state.metadata.turn

    message_type = _triggered_message_type(state, pm)
    if message_type is None and (pm.last_contact_turn == -1 or turn - pm.last_contact_turn >= CHECKIN_INTERVAL):
        message_type = "regular_checkin"

    message = None
    if message_type is not None:
        message = generate_message(state, message_type, rng)
        if message_type == "warning":
            pm = replace(pm, warnings_issued=pm.warnings_issued + 1)
        elif message_type == "demand":
            demand = PMDemand(
                category="deficit",
                description=f"Reduce the deficit below £{DEMAND_TARGET_BN:g}bn",
                deadline=turn + DEMAND_DEADLINE_MONTHS,
            )
            pm = replace(pm, demands_issued=pm.demands_issued + 1,
                         active_demands=pm.active_demands + (demand,))
        elif message_type == "reshuffle_warning":
            pm = replace(pm, final_warning_given=True)
        elif message_type == "support_change":
            pm = replace(pm, support_withdrawn=True)

        pm = replace(
            pm,
            messages=(pm.messages + (message,))[-MESSAGE_LOG_LIMIT:],
            unread_count=pm.unread_count + 1,
            last_contact_turn=turn,
        )
        if message.tone in ("stern", "angry"):
            logger.info(f"Message from the PM ({message.tone}): {message.subject}")
        else:
            logger.debug(f"Message from the PM: {message.subject}")

    reshuffled = pm.reshuffle_risk >= RESHUFFLE_THRESHOLD
    if reshuffled:
        logger.warning(f"Reshuffle risk at {pm.reshuffle_risk:.0f}: the PM has run out of patience")
    return CommunicationResult(message=message, relationship=pm, reshuffled=reshuffled)
