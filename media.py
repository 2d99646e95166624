"""
Public sentiment and the newspaper front page.

Sentiment reads a small projection of the state and returns a positive/negative/
neutral split plus volume. The turn folds a small capped share of it into approval
and backbench mood. The newspaper is flavour: one front page per month.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

from state import NewsArticle

if TYPE_CHECKING:
    from events import EventView
    from state import GameEvent, GameState


@dataclass(frozen=True)
class SentimentInput:
    approval: float
    gdp_growth: float
    unemployment: float
    inflation: float


@dataclass(frozen=True)
class Sentiment:
    positive: float
    negative: float
    neutral: float
    volume: float


def sentiment_input(state: GameState) -> SentimentInput:
    return SentimentInput(
        approval=state.political.approval,
        gdp_growth=state.economic.gdp_growth_annual,
        unemployment=state.economic.unemployment_rate,
        inflation=state.economic.inflation_cpi,
    )


def calculate_sentiment(view: SentimentInput) -> Sentiment:
    positive = view.approval * 0.6
    negative = (100 - view.approval) * 0.5

    if view.gdp_growth > 2.5:
        positive += 10
    elif view.gdp_growth < 1.0:
        negative += 15
    if view.unemployment > 5.0:
        negative += 10
    if view.inflation > 3.0:
        negative += 10
    elif view.inflation < 2.0:
        positive += 5

    neutral = max(0.0, 100 - positive - negative)
    total = positive + negative + neutral
    volume = min(100.0, 50 + abs(50 - view.approval) * 0.8)

    return Sentiment(
        positive=positive / total * 100,
        negative=negative / total * 100,
        neutral=neutral / total * 100,
        volume=volume,
    )


def sentiment_impact(sentiment: Sentiment) -> float:
    """Approval points contributed by online mood; at most half a point either way."""
    return (sentiment.positive - sentiment.negative) / 100 * (sentiment.volume / 100) * 0.5


# (name, style, selection weight)
NEWSPAPERS: List[Tuple[str, str, int]] = [
    ("The Guardian", "broadsheet", 15),
    ("The Telegraph", "broadsheet", 15),
    ("The Times", "broadsheet", 25),
    ("Financial Times", "broadsheet", 30),
    ("The Sun", "tabloid", 8),
    ("Daily Mail", "tabloid", 7),
]

# (condition, broadsheet headline, tabloid headline, subheading)
HEADLINES = [
    (lambda v: v.gilt_yield_change > 0.3,
     "Gilt Sell-Off Deepens as Investors Question Treasury Plans",
     "MARKETS IN MELTDOWN",
     "Borrowing costs jump as traders price fiscal risk"),
    (lambda v: v.gilt_yield > 6.0,
     "Borrowing Costs Hit Crisis Levels",
     "DEBT TIMEBOMB",
     "Ten-year gilt yields climb above 6%"),
    (lambda v: v.inflation > 5.0,
     "Inflation Surge Squeezes Household Budgets",
     "PRICES SOAR AGAIN",
     "Cost of living pressures mount on the Treasury"),
    (lambda v: v.gdp_growth < 0,
     "Economy Contracts as Recession Fears Grow",
     "BRITAIN SHRINKS",
     "Output falls for the latest period"),
    (lambda v: v.unemployment > 6.0,
     "Jobless Total Climbs to Multi-Year High",
     "DOLE QUEUE MISERY",
     "Unemployment rises as firms cut back"),
    (lambda v: v.nhs_quality < 35,
     "NHS Performance Slumps to Record Low",
     "NHS ON ITS KNEES",
     "Waiting lists and A&E delays worsen"),
    (lambda v: v.approval < 25,
     "Government Support Collapses in Latest Polls",
     "VOTERS TURN THEIR BACKS",
     "Ministers face growing backbench unease"),
    (lambda v: v.gdp_growth > 2.5,
     "Growth Beats Forecasts in Boost for Chancellor",
     "BOOM BRITAIN",
     "Economy expands faster than expected"),
    (lambda v: v.inflation < 2.5 and v.approval > 45,
     "Inflation Settles as Government Steadies the Ship",
     "PRICES CALM DOWN",
     "Households see relief as price growth eases"),
]

GENERIC_HEADLINES = [
    ("Treasury Weighs Options Ahead of Fiscal Event", "Officials sketch choices on tax and spending"),
    ("Chancellor Insists Plan Is Working", "Ministers point to stability as the priority"),
    ("Economists Split on Outlook for Public Finances", "Forecasters differ on the path for borrowing"),
    ("Westminster Braces for Autumn Budget Battles", "Departments press for more money"),
]


def _pick_newspaper(rng: random.Random) -> Tuple[str, str]:
    total = sum(w for _, _, w in NEWSPAPERS)
    roll = rng.random() * total
    for name, style, weight in NEWSPAPERS:
        roll -= weight
        if roll <= 0:
            return name, style
    name, style, _ = NEWSPAPERS[-1]
    return name, style


def generate_newspaper(view: EventView, rng: random.Random,
                       event: Optional[GameEvent] = None) -> NewsArticle:
    paper, style = _pick_newspaper(rng)

    if event is not None:
        if event.severity == "crisis":
            if style == "tabloid":
                headline = f"{event.title.upper()}: BRITAIN IN CRISIS"
            else:
                headline = f"{event.title} Triggers Government Crisis"
        else:
            headline = event.title
        return NewsArticle(paper=paper, headline=headline, subheading=event.description,
                           turn=view.turn, special=True)

    for condition, broadsheet, tabloid, subheading in HEADLINES:
        if condition(view):
            headline = tabloid if style == "tabloid" else broadsheet
            return NewsArticle(paper=paper, headline=headline, subheading=subheading, turn=view.turn)

    headline, subheading = rng.choice(GENERIC_HEADLINES)
    return NewsArticle(paper=paper, headline=headline, subheading=subheading, turn=view.turn)
