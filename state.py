"""
Immutable game state for the chancellor simulation.

Every turn produces a new GameState; steps derive fields with dataclasses.replace
and never touch the previous value. BASELINE is the canonical game-start state and
the single source of every reference level the models compare against.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Optional, Tuple

from advisers import normalise_advisers
from config import (
    DEPARTMENT_MAP, DEPARTMENTS, GRANULAR_SERVICES, INITIAL_PROGRAMMES, INITIAL_SPENDING,
    INITIAL_TAX_PARAMETERS, SimulationConfig, get_difficulty, get_fiscal_rule,
)
from manifesto import ManifestoState, create_manifesto


@dataclass(frozen=True)
class EconomicState:
    gdp_nominal_bn: float = 2750.0
    gdp_growth_monthly: float = 0.083  # Real, %
    gdp_growth_annual: float = 1.0
    real_output_index: float = 100.0
    potential_output_index: float = 100.0
    productivity_growth: float = 0.1  # Annual %
    productivity_level: float = 100.0
    inflation_cpi: float = 2.2
    inflation_anchor_health: float = 72.0
    unemployment_rate: float = 4.2
    natural_rate: float = 4.25
    wage_growth: float = 5.4


@dataclass(frozen=True)
class TaxRates:
    income_basic: float = 20.0
    income_higher: float = 40.0
    income_additional: float = 45.0
    ni_employee: float = 8.0
    ni_employer: float = 13.8
    vat: float = 20.0
    corporation: float = 25.0


@dataclass(frozen=True)
class DepartmentBudget:
    current: float
    capital: float

    @property
    def total(self) -> float:
        return self.current + self.capital


@dataclass(frozen=True)
class SpendingPlan:
    """Departmental current and capital budgets (£bn a year)."""

    nhs: DepartmentBudget
    education: DepartmentBudget
    defence: DepartmentBudget
    welfare: DepartmentBudget
    infrastructure: DepartmentBudget
    police: DepartmentBudget
    justice: DepartmentBudget
    other: DepartmentBudget

    def department(self, name: str) -> DepartmentBudget:
        if name not in DEPARTMENTS:
            raise ValueError(f"Unknown department '{name}'")
        return getattr(self, name)

    def total(self) -> float:
        return sum(self.department(d).total for d in DEPARTMENTS)

    def capital_total(self) -> float:
        return sum(self.department(d).capital for d in DEPARTMENTS)

    def current_total(self) -> float:
        return sum(self.department(d).current for d in DEPARTMENTS)

    def with_department(self, name: str, current: Optional[float] = None,
                        capital: Optional[float] = None) -> "SpendingPlan":
        budget = self.department(name)
        updated = DepartmentBudget(
            current=budget.current if current is None else max(0.0, current),
            capital=budget.capital if capital is None else max(0.0, capital),
        )
        return replace(self, **{name: updated})


@dataclass(frozen=True)
class SpendingProgramme:
    id: str
    name: str
    department: str
    budget: float
    baseline: float
    capital: bool = False

    @property
    def spending_line(self) -> str:
        return DEPARTMENT_MAP[self.department]


@dataclass(frozen=True)
class TaxParameter:
    id: str
    name: str
    rate: float
    baseline: float
    unit: str = "%"


@dataclass(frozen=True)
class FiscalState:
    rates: TaxRates
    spending: SpendingPlan
    programmes: Tuple[SpendingProgramme, ...]
    taxes: Tuple[TaxParameter, ...]
    revenue_bn: float = 1078.0
    departmental_spending_bn: float = 1099.6
    debt_interest_bn: float = 95.0
    emergency_costs_bn: float = 0.0
    total_managed_expenditure_bn: float = 1194.6
    deficit_bn: float = 116.6
    deficit_pct_gdp: float = 116.6 / 2750.0 * 100
    debt_bn: float = 2540.0
    debt_pct_gdp: float = 2540.0 / 2750.0 * 100
    current_budget_balance_bn: float = 24.8
    headroom_bn: float = 10.0
    revenue_adjustment_bn: float = 0.0
    fiscal_year: int = 2024
    fiscal_year_start_turn: int = 0
    fiscal_year_start_spending: Optional[SpendingPlan] = None

    def programme(self, programme_id: str) -> SpendingProgramme:
        for programme in self.programmes:
            if programme.id == programme_id:
                return programme
        raise ValueError(f"Unknown spending programme '{programme_id}'")

    def tax(self, tax_id: str) -> TaxParameter:
        for tax in self.taxes:
            if tax.id == tax_id:
                return tax
        raise ValueError(f"Unknown tax parameter '{tax_id}'")

    def programme_total(self, ids) -> float:
        return sum(self.programme(i).budget for i in ids)

    def programme_baseline(self, ids) -> float:
        return sum(self.programme(i).baseline for i in ids)


@dataclass(frozen=True)
class MarketState:
    bank_rate: float = 5.25
    gilt_2y: float = 4.15
    gilt_10y: float = 4.10
    gilt_30y: float = 4.45
    mortgage_rate: float = 5.10
    sterling_index: float = 100.0
    panic: bool = False
    yield_change_10y: float = 0.0


@dataclass(frozen=True)
class ServiceState:
    nhs: float = 45.0
    education: float = 58.0
    infrastructure: float = 48.0
    mental_health: float = 42.0
    primary_care: float = 48.0
    social_care: float = 38.0
    prison_safety: float = 40.0
    court_backlog: float = 32.0
    legal_aid: float = 40.0
    policing: float = 50.0
    border_security: float = 46.0
    rail_reliability: float = 42.0
    affordable_housing: float = 30.0
    flood_resilience: float = 53.0
    research_output: float = 58.0

    def granular(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in GRANULAR_SERVICES}

    def granular_average(self) -> float:
        values = self.granular()
        return sum(values.values()) / len(values)


@dataclass(frozen=True)
class ComplianceRecord:
    current_budget_met: bool = True
    overall_balance_met: bool = True
    deficit_ceiling_met: bool = True
    debt_target_met: bool = True
    debt_falling_met: bool = True
    compliant: bool = True
    consecutive_breaches: int = 0
    current_budget_gap: float = 0.0
    capital_investment: float = 0.0


@dataclass(frozen=True)
class InterventionEffects:
    pm_trust: float = 0.0
    backbench: float = 0.0
    approval: float = 0.0
    reshuffle_risk: float = 0.0  # Probability (%) of dismissal when defying


@dataclass(frozen=True)
class Intervention:
    id: str
    trigger: str
    title: str
    description: str
    anger: str
    trust: float
    comply: InterventionEffects
    defy: InterventionEffects


@dataclass(frozen=True)
class PoliticalState:
    approval: float = 45.0
    chancellor_approval: float = 42.0
    backbench: float = 70.0
    pm_trust: float = 75.0
    credibility: float = 65.0
    strike_risk: float = 20.0
    fiscal_rule: str = "starmer-reeves"
    compliance: ComplianceRecord = ComplianceRecord()
    credit_rating: str = "AA-"
    rating_outlook: str = "negative"
    pending_interventions: Tuple[Intervention, ...] = ()


@dataclass(frozen=True)
class EmergencyProgramme:
    id: str
    name: str
    monthly_cost_bn: float
    remaining_months: int


@dataclass(frozen=True)
class Snapshot:
    turn: int
    date: str
    gdp_growth: float
    gdp_nominal: float
    inflation: float
    unemployment: float
    deficit: float  # % of GDP
    debt: float  # % of GDP
    approval: float
    gilt_yield: float
    productivity: float


@dataclass(frozen=True)
class PMDemand:
    category: str
    description: str
    deadline: int
    met: bool = False


@dataclass(frozen=True)
class PMMessage:
    turn: int
    type: str
    subject: str
    content: str
    tone: str


@dataclass(frozen=True)
class PMRelationship:
    patience: float = 70.0
    reshuffle_risk: float = 0.0
    consecutive_poor: int = 0
    warnings_issued: int = 0
    demands_issued: int = 0
    final_warning_given: bool = False
    support_withdrawn: bool = False
    last_contact_turn: int = -1
    messages: Tuple[PMMessage, ...] = ()
    unread_count: int = 0
    active_demands: Tuple[PMDemand, ...] = ()


@dataclass(frozen=True)
class EventImpact:
    gdp_growth: float = 0.0
    inflation: float = 0.0
    unemployment: float = 0.0
    approval: float = 0.0
    pm_trust: float = 0.0
    gilt_yield_bps: float = 0.0
    sterling_pct: float = 0.0


@dataclass(frozen=True)
class EventResponse:
    label: str
    description: str
    fiscal_cost_bn: float = 0.0
    impact: EventImpact = EventImpact()
    rebuilding_months: int = 0
    monthly_cost_bn: float = 0.0


@dataclass(frozen=True)
class GameEvent:
    id: str
    type: str
    severity: str
    title: str
    description: str
    turn: int
    impact: Optional[EventImpact] = None
    requires_response: bool = False
    responses: Tuple[EventResponse, ...] = ()


@dataclass(frozen=True)
class NewsArticle:
    paper: str
    headline: str
    subheading: str
    turn: int
    special: bool = False


@dataclass(frozen=True)
class EventsState:
    pending: Tuple[GameEvent, ...] = ()
    log: Tuple[GameEvent, ...] = ()
    newspaper: Optional[NewsArticle] = None


@dataclass(frozen=True)
class Metadata:
    turn: int = 0
    month: int = 7  # July 2024
    year: int = 2024
    difficulty: str = "standard"
    game_started: bool = True
    game_over: bool = False
    game_over_reason: str = ""


@dataclass(frozen=True)
class GameState:
    metadata: Metadata
    economic: EconomicState
    fiscal: FiscalState
    markets: MarketState
    services: ServiceState
    political: PoliticalState
    manifesto: ManifestoState
    pm: PMRelationship = PMRelationship()
    events: EventsState = EventsState()
    emergency_programmes: Tuple[EmergencyProgramme, ...] = ()
    mp_stances: Dict[str, str] = field(default_factory=dict)
    advisers: FrozenSet[str] = frozenset()
    history: Tuple[Snapshot, ...] = ()


def _initial_spending() -> SpendingPlan:
    return SpendingPlan(**{
        name: DepartmentBudget(current=current, capital=capital)
        for name, (current, capital) in INITIAL_SPENDING.items()
    })


def create_initial_state(config: Optional[SimulationConfig] = None) -> GameState:
    """Build the July 2024 starting position for a session."""
    config = config or SimulationConfig()
    get_difficulty(config.difficulty)
    rule = get_fiscal_rule(config.fiscal_rule)

    spending = _initial_spending()
    programmes = tuple(
        SpendingProgramme(id=pid, name=name, department=dept, budget=budget,
                          baseline=budget, capital=capital)
        for pid, dept, name, budget, capital in INITIAL_PROGRAMMES
    )
    taxes = tuple(
        TaxParameter(id=tid, name=name, rate=rate, baseline=rate, unit=unit)
        for tid, name, rate, unit in INITIAL_TAX_PARAMETERS
    )
    fiscal = FiscalState(
        rates=TaxRates(),
        spending=spending,
        programmes=programmes,
        taxes=taxes,
        fiscal_year_start_spending=spending,
    )
    political = PoliticalState(
        fiscal_rule=rule.id,
        compliance=ComplianceRecord(capital_investment=spending.capital_total()),
    )

    return GameState(
        metadata=Metadata(difficulty=config.difficulty),
        economic=EconomicState(),
        fiscal=fiscal,
        markets=MarketState(),
        services=ServiceState(),
        political=political,
        manifesto=create_manifesto(config.manifesto),
        advisers=normalise_advisers(config.advisers),
    )


BASELINE = create_initial_state()
