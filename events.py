"""
Random events with realistic monthly probabilities.
Includes international crises, domestic shocks, market panics, disasters, scandals and data releases.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple
import random

import numpy as np

from logger import setup_logger
from politics import APPROVAL_CEILING, APPROVAL_FLOOR
from state import EmergencyProgramme, EventImpact, EventResponse, GameEvent

if TYPE_CHECKING:
    from state import GameState

logger = setup_logger()

EVENT_LOG_LIMIT = 120


@dataclass(frozen=True)
class EventView:
    """Read-only projection of the state that event and news generation may see."""

    turn: int
    year: int
    month: int
    gdp_growth: float
    gdp_growth_quarterly: float
    inflation: float
    unemployment: float
    real_wage_growth: float
    deficit_pct_gdp: float
    debt_pct_gdp: float
    approval: float
    pm_trust: float
    backbench: float
    gilt_yield: float
    gilt_yield_change: float
    sterling: float
    nhs_quality: float
    education_quality: float


def event_view(state: GameState) -> EventView:
    economic = state.economic
    previous_yield = state.history[-1].gilt_yield if state.history else state.markets.gilt_10y
    return EventView(
        turn=state.metadata.turn,
        year=state.metadata.year,
        month=state.metadata.month,
        gdp_growth=economic.gdp_growth_annual,
        gdp_growth_quarterly=economic.gdp_growth_annual / 4,
        inflation=economic.inflation_cpi,
        unemployment=economic.unemployment_rate,
        real_wage_growth=economic.wage_growth - economic.inflation_cpi,
        deficit_pct_gdp=state.fiscal.deficit_pct_gdp,
        debt_pct_gdp=state.fiscal.debt_pct_gdp,
        approval=state.political.approval,
        pm_trust=state.political.pm_trust,
        backbench=state.political.backbench,
        gilt_yield=state.markets.gilt_10y,
        gilt_yield_change=state.markets.gilt_10y - previous_yield,
        sterling=state.markets.sterling_index,
        nhs_quality=state.services.nhs,
        education_quality=state.services.education,
    )


@dataclass(frozen=True)
class EventTemplate:
    type: str
    severity: str  # minor, major or crisis
    probability: float  # Per month
    title: str = ""
    description: str = ""
    impact: Optional[EventImpact] = None
    responses: Tuple[EventResponse, ...] = ()
    condition: Optional[Callable[[EventView], bool]] = None
    # Data releases word themselves from the numbers
    build: Optional[Callable[[EventView], Tuple[str, str, EventImpact]]] = None

    @property
    def requires_response(self) -> bool:
        return bool(self.responses)


def _gdp_release(view: EventView) -> Tuple[str, str, EventImpact]:
    growth = view.gdp_growth_quarterly
    positive = growth > 0
    title = f"GDP {'Beats' if positive else 'Misses'} Expectations"
    description = (f"ONS figures show the economy {'grew' if positive else 'shrank'} by "
                   f"{abs(growth):.1f}% last quarter, {'exceeding' if positive else 'falling short of'} "
                   f"City forecasts.")
    return title, description, EventImpact(approval=2 if positive else -2, gilt_yield_bps=-5 if positive else 5)


def _inflation_release(view: EventView) -> Tuple[str, str, EventImpact]:
    description = (f"CPI inflation held at {view.inflation:.1f}% this month, disappointing hopes "
                   f"for a faster decline. Core inflation remains elevated.")
    return "Inflation Remains Sticky", description, EventImpact(approval=-1, gilt_yield_bps=8)


EVENT_TEMPLATES: List[EventTemplate] = [
    EventTemplate(
        type="international_crisis", severity="major", probability=0.015,
        title="Oil Price Shock",
        description="Geopolitical tensions in the Middle East have caused oil prices to spike by 40% "
                    "overnight. Petrol prices are surging and inflation expectations are rising sharply.",
        impact=EventImpact(inflation=0.8, gdp_growth=-0.3, approval=-3, gilt_yield_bps=15),
        responses=(
            EventResponse("Cut fuel duty temporarily",
                          "Reduce fuel duty by 10p per litre for six months to shield motorists.",
                          fiscal_cost_bn=4.5, impact=EventImpact(inflation=-0.2, approval=5)),
            EventResponse("Windfall tax on energy companies",
                          "Impose a 35% windfall tax on oil and gas producer profits to fund support.",
                          fiscal_cost_bn=-2.8, impact=EventImpact(approval=3)),
            EventResponse("Do nothing",
                          "Allow markets to adjust. The Bank of England will respond with monetary policy.",
                          impact=EventImpact(approval=-5, pm_trust=-3)),
        ),
    ),
    EventTemplate(
        type="international_crisis", severity="crisis", probability=0.008,
        title="Global Financial Contagion",
        description="A major European bank has collapsed, triggering fears of systemic financial crisis. "
                    "UK banks are heavily exposed. Markets are in freefall.",
        impact=EventImpact(gdp_growth=-1.2, unemployment=0.3, approval=-5, gilt_yield_bps=45, sterling_pct=-3.5),
        responses=(
            EventResponse("Emergency bank guarantee",
                          "Guarantee all deposits and extend unlimited liquidity to UK banks.",
                          fiscal_cost_bn=15, impact=EventImpact(gilt_yield_bps=-20, approval=-2, pm_trust=5)),
            EventResponse("Coordinate with G7",
                          "Work with international partners on a coordinated response.",
                          fiscal_cost_bn=8, impact=EventImpact(gilt_yield_bps=-10, gdp_growth=0.2, approval=2)),
            EventResponse("Let failing banks collapse",
                          "Depositors protected up to £85,000, shareholders wiped out.",
                          impact=EventImpact(gdp_growth=-0.8, unemployment=0.5, approval=-8)),
        ),
    ),
    EventTemplate(
        type="domestic_shock", severity="major", probability=0.012,
        condition=lambda v: v.nhs_quality < 65,
        title="NHS Winter Crisis",
        description="A harsh winter has pushed the NHS into crisis. A&E waits exceed 12 hours and two "
                    "hospitals have declared major incidents.",
        impact=EventImpact(approval=-6, pm_trust=-5),
        responses=(
            EventResponse("Emergency £2bn funding",
                          "Immediate funding for winter pressures and temporary staff.",
                          fiscal_cost_bn=2, impact=EventImpact(approval=4)),
            EventResponse("Deploy military medics",
                          "Bring in armed forces medical personnel. Low cost but controversial.",
                          fiscal_cost_bn=0.1, impact=EventImpact(approval=-1, pm_trust=-2)),
            EventResponse("Blame NHS management",
                          "Publicly criticise NHS managers for poor planning and threaten reform.",
                          impact=EventImpact(approval=-8)),
        ),
    ),
    EventTemplate(
        type="industrial_action", severity="major", probability=0.01,
        condition=lambda v: v.real_wage_growth < -2,
        title="Public Sector Strike Wave",
        description="Teachers, nurses and rail workers have announced coordinated strike action over pay. "
                    "Unions demand inflation-matching rises.",
        impact=EventImpact(approval=-4, gdp_growth=-0.2),
        responses=(
            EventResponse("Meet pay demands",
                          "Grant above-inflation pay settlements. Expensive but ends strikes quickly.",
                          fiscal_cost_bn=8, impact=EventImpact(approval=6, inflation=0.3)),
            EventResponse("Offer compromise settlement",
                          "Pay rises below inflation with one-off bonuses.",
                          fiscal_cost_bn=4, impact=EventImpact(approval=1)),
            EventResponse("Refuse and legislate",
                          "Hold firm on pay and introduce minimum service level legislation.",
                          impact=EventImpact(approval=-6)),
        ),
    ),
    EventTemplate(
        type="market_panic", severity="crisis", probability=0.005,
        condition=lambda v: v.debt_pct_gdp > 100 and v.deficit_pct_gdp > 5,
        title="Gilt Market Crisis",
        description="Bond markets have lost faith in UK fiscal policy. Gilt yields are spiking, pension "
                    "funds are in distress and the pound is plummeting.",
        impact=EventImpact(gilt_yield_bps=120, sterling_pct=-6, approval=-8, pm_trust=-10),
        responses=(
            EventResponse("Emergency fiscal tightening",
                          "Announce £30bn of immediate tax rises and spending cuts.",
                          fiscal_cost_bn=-30, impact=EventImpact(gilt_yield_bps=-80, gdp_growth=-0.8, approval=-10)),
            EventResponse("Bank of England intervention",
                          "Request an emergency bond-buying programme from the Bank.",
                          impact=EventImpact(gilt_yield_bps=-60, inflation=0.4, approval=-4)),
            EventResponse("Resign",
                          "Take responsibility and offer resignation.",
                          impact=EventImpact(pm_trust=-50)),
        ),
    ),
    EventTemplate(
        type="market_panic", severity="major", probability=0.008,
        condition=lambda v: v.inflation > 8,
        title="Sterling Crisis",
        description="The pound has fallen to its lowest level against the dollar in 40 years. Traders "
                    "believe the UK has lost control of inflation.",
        impact=EventImpact(sterling_pct=-4.5, inflation=0.5, approval=-5),
        responses=(
            EventResponse("Emergency interest rate call",
                          "Publicly call for the Bank of England to raise rates sharply.",
                          impact=EventImpact(sterling_pct=2, gdp_growth=-0.3, approval=-2)),
            EventResponse("Fiscal tightening package",
                          "Announce a credible deficit reduction plan.",
                          fiscal_cost_bn=-15, impact=EventImpact(sterling_pct=3, gilt_yield_bps=-20, approval=-4)),
            EventResponse("Wait for BoE",
                          "Trust the Bank to respond at its next meeting.",
                          impact=EventImpact(sterling_pct=-1, inflation=0.2, approval=-3)),
        ),
    ),
    EventTemplate(
        type="natural_disaster", severity="major", probability=0.006,
        title="Severe Flooding",
        description="Unprecedented rainfall has caused catastrophic flooding across northern England. "
                    "Thousands evacuated, insured losses estimated at £3bn.",
        impact=EventImpact(gdp_growth=-0.15, approval=-2),
        responses=(
            EventResponse("Major relief package",
                          "£1.5bn for immediate relief and a three-year reconstruction programme.",
                          fiscal_cost_bn=1.5, rebuilding_months=36, monthly_cost_bn=0.8,
                          impact=EventImpact(approval=6, gdp_growth=0.1)),
            EventResponse("Standard emergency funding",
                          "Activate normal disaster relief protocols.",
                          fiscal_cost_bn=0.4, rebuilding_months=24, monthly_cost_bn=0.3,
                          impact=EventImpact(approval=1)),
            EventResponse("Insurance-led response",
                          "Rely primarily on private insurance with minimal state intervention.",
                          fiscal_cost_bn=0.1, rebuilding_months=12, monthly_cost_bn=0.1,
                          impact=EventImpact(approval=-4)),
        ),
    ),
    EventTemplate(
        type="scandal", severity="major", probability=0.005,
        title="Tax Affairs Scandal",
        description="A Treasury minister held offshore investments that benefited from a loophole your "
                    "department created. The opposition is demanding a resignation.",
        impact=EventImpact(approval=-5, pm_trust=-4),
        responses=(
            EventResponse("Demand resignation", "Sack the minister immediately.",
                          impact=EventImpact(approval=2, pm_trust=-1)),
            EventResponse("Launch inquiry", "Order an independent investigation into ministerial conduct.",
                          impact=EventImpact(approval=-2)),
            EventResponse("Defend minister", "Argue the arrangements were legal.",
                          impact=EventImpact(approval=-7, pm_trust=-5)),
        ),
    ),
    EventTemplate(
        type="economic_data", severity="minor", probability=0.4,
        condition=lambda v: abs(v.gdp_growth_quarterly) > 0.4,
        build=_gdp_release,
    ),
    EventTemplate(
        type="economic_data", severity="minor", probability=0.3,
        condition=lambda v: v.inflation > 3.5,
        build=_inflation_release,
    ),
    EventTemplate(
        type="political_crisis", severity="minor", probability=0.15,
        condition=lambda v: v.backbench < 30 or v.approval < 30,
        title="Backbench Unrest",
        description="Backbenchers are openly criticising Treasury policy in WhatsApp groups and at "
                    "PLP meetings. Loyalty is wearing thin.",
        impact=EventImpact(pm_trust=-2),
    ),
    EventTemplate(
        type="policy_consequence", severity="minor", probability=0.2,
        condition=lambda v: v.nhs_quality < 50,
        title="NHS Waiting Lists Hit Record",
        description="NHS England reports waiting lists have reached a record high as service quality "
                    "deteriorates. The opposition blames funding constraints.",
        impact=EventImpact(approval=-2),
    ),
    EventTemplate(
        type="policy_consequence", severity="minor", probability=0.15,
        condition=lambda v: v.education_quality < 50,
        title="Schools Report Teacher Shortages",
        description="Head teachers warn that unfilled posts are forcing larger classes and cuts to the "
                    "curriculum.",
        impact=EventImpact(approval=-1),
    ),
]


class EventSystem:
    """Rolls each event template once a month against its probability."""

    def __init__(self, templates: Optional[List[EventTemplate]] = None):
        self.templates = list(EVENT_TEMPLATES if templates is None else templates)
        self.generated = 0

    def generate_events(self, view: EventView, rng: random.Random) -> List[GameEvent]:
        events = []
        for template in self.templates:
            if template.condition is not None and not template.condition(view):
                continue
            if rng.random() >= template.probability:
                continue

            if template.build is not None:
                title, description, impact = template.build(view)
            else:
                title, description, impact = template.title, template.description, template.impact

            self.generated += 1
            events.append(GameEvent(
                id=f"event_{view.turn}_{self.generated}",
                type=template.type,
                severity=template.severity,
                title=title,
                description=description,
                turn=view.turn,
                impact=impact,
                requires_response=template.requires_response,
                responses=template.responses,
            ))
            logger.info(f"Event ({template.severity}): {title}")
        return events


def apply_event_impact(state: GameState, impact: Optional[EventImpact]) -> GameState:
    """Apply an immediate impact patch. Growth shifts the reported annual rate only."""
    if impact is None:
        return state

    economic, political, markets = state.economic, state.political, state.markets
    economic = replace(
        economic,
        gdp_growth_annual=economic.gdp_growth_annual + impact.gdp_growth,
        inflation_cpi=float(np.clip(economic.inflation_cpi + impact.inflation, -2.0, 20.0)),
        unemployment_rate=float(np.clip(economic.unemployment_rate + impact.unemployment, 3.0, 12.0)),
    )
    political = replace(
        political,
        approval=float(np.clip(political.approval + impact.approval, APPROVAL_FLOOR, APPROVAL_CEILING)),
        pm_trust=float(np.clip(political.pm_trust + impact.pm_trust, 0, 100)),
    )
    markets = replace(
        markets,
        gilt_10y=float(np.clip(markets.gilt_10y + impact.gilt_yield_bps / 100, 0.5, 20.0)),
        sterling_index=float(np.clip(markets.sterling_index * (1 + impact.sterling_pct / 100), 70, 130)),
    )
    return replace(state, economic=economic, political=political, markets=markets)


def charge_one_off_cost(state: GameState, cost_bn: float) -> GameState:
    """Add a one-off cost (negative for a saving) straight to the debt stock, outside the annual deficit."""
    fiscal = state.fiscal
    debt = fiscal.debt_bn + cost_bn
    logger.info(f"One-off cost of £{cost_bn:.1f}bn added to debt")
    return replace(state, fiscal=replace(
        fiscal,
        debt_bn=debt,
        debt_pct_gdp=debt / state.economic.gdp_nominal_bn * 100,
    ))


def respond_to_event(state: GameState, event_id: str, response_index: int) -> GameState:
    """
    Resolve a pending event with one of its responses. A one-off cost is charged to
    debt at once; rebuilding costs run as an emergency programme that the monthly
    fiscal balance picks up.
    """
    pending = state.events.pending
    event = next((e for e in pending if e.id == event_id), None)
    if event is None:
        raise ValueError(f"Event '{event_id}' is not pending")
    if not 0 <= response_index < len(event.responses):
        raise ValueError(f"Event '{event_id}' has no response {response_index}")

    response = event.responses[response_index]
    state = apply_event_impact(state, response.impact)

    programmes = list(state.emergency_programmes)
    name = f"{event.title} - {response.label}"
    if response.rebuilding_months > 0:
        programmes.append(EmergencyProgramme(
            id=f"{event.id}-programme",
            name=name,
            monthly_cost_bn=response.monthly_cost_bn,
            remaining_months=response.rebuilding_months,
        ))
    if response.fiscal_cost_bn:
        state = charge_one_off_cost(state, response.fiscal_cost_bn)

    logger.info(f"Responded to '{event.title}': {response.label}")

    events = replace(
        state.events,
        pending=tuple(e for e in pending if e.id != event_id),
        log=(state.events.log + (event,))[-EVENT_LOG_LIMIT:],
    )
    return replace(state, events=events, emergency_programmes=tuple(programmes))
