"""
Configuration and constants for the chancellor simulation.
Coefficients are tunable heuristics calibrated to the UK position in July 2024.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Literal, Optional, Tuple


@dataclass
class SimulationConfig:
    """Session options and calibrated model coefficients."""

    months: int = 60
    difficulty: Literal["forgiving", "standard", "realistic"] = "standard"
    fiscal_rule: str = "starmer-reeves"
    advisers: Tuple[str, ...] = ()
    manifesto: str = "cautious-centrist"
    seed: Optional[int] = None
    output_dir: Path = Path("output")

    # Labour market (ONS / OBR estimates)
    nairu: float = 4.25
    okun_coefficient: float = -0.4  # 1pp below trend growth -> +0.4pp unemployment
    nairu_drift: float = 0.02  # Monthly pull toward the natural rate
    labour_force_growth: float = 1.4  # Annual %
    benefit_taper_rate: float = 63.0  # Universal Credit withdrawal rate

    # Growth
    fiscal_multiplier_scale: float = 0.0022  # £bn change -> monthly GDP %
    current_multiplier: float = 0.9
    capital_multiplier: float = 0.6
    welfare_multiplier: float = 0.7
    income_tax_mpc: float = 0.6
    ni_mpc: float = 0.5
    vat_mpc: float = 0.8
    corporation_investment_mpc: float = 0.5  # Short-run business investment response
    potential_pull: float = 0.02  # Monthly correction per pp of output gap
    productivity_adjustment: float = 0.05
    baseline_band: float = 0.02  # Monthly growth band around trend with levers untouched
    macro_shock_width: float = 0.14

    # Prices and wages
    inflation_target: float = 2.0
    persistence_weight: float = 0.30
    expectations_weight: float = 0.40
    phillips_weight: float = 0.15
    import_weight: float = 0.15
    vat_pass_through: float = 0.04
    inflation_shock_width: float = 0.14
    wage_adjustment: float = 0.2
    trend_productivity_wages: float = 1.5

    # Monetary policy (BoE MPC reaction function)
    neutral_rate: float = 3.5
    taylor_inflation: float = 1.5
    taylor_output: float = 0.5
    rate_smoothing: float = 0.08
    rate_tick: float = 0.25

    # Public finances
    historical_coupon: float = 3.5  # Average coupon on the existing gilt stock
    rollover_fraction: float = 0.006  # Share of the stock refinanced each month
    interest_adjustment: float = 0.05
    stabiliser_per_point: float = 5.0  # £bn welfare per pp unemployment above baseline
    current_budget_buffer_bn: float = 14.8  # Margin held against the stability rule
    compliance_tolerance_bn: float = 0.5

    # Gilt market
    qt_premium: float = 0.15
    term_premium_slope: float = 0.7
    yield_smoothing: float = 0.3
    sterling_smoothing: float = 0.3
    panic_threshold: float = 0.5  # Implied monthly rise that triggers margin calls
    panic_amplifier: float = 1.5
    panic_premium: float = 0.40
    panic_release: float = -0.20

    # Politics
    approval_sensitivity: float = 0.25
    backbench_sensitivity: float = 0.2
    backbench_drift: float = 0.008
    pm_trust_sensitivity: float = 0.3
    pm_trust_drift: float = 0.005
    honeymoon_months: int = 12
    sentiment_cap: float = 1.0

    def get_difficulty(self) -> "DifficultySettings":
        """Return the difficulty preset for this session."""
        return get_difficulty(self.difficulty)


@dataclass(frozen=True)
class DifficultySettings:
    macro_shock: float
    inflation_shock: float
    pm_trust_sensitivity: float
    intervention_threshold: float
    game_over_pm_trust: float
    game_over_backbench: float
    game_over_yield: float
    game_over_debt: float
    tax_avoidance: float
    spending_efficiency: float
    market_reaction: float
    service_degradation: float


DIFFICULTY_PRESETS: Dict[str, DifficultySettings] = {
    "forgiving": DifficultySettings(
        macro_shock=0.75, inflation_shock=0.75, pm_trust_sensitivity=0.85,
        intervention_threshold=35, game_over_pm_trust=15, game_over_backbench=24,
        game_over_yield=8.5, game_over_debt=130, tax_avoidance=0.7,
        spending_efficiency=1.15, market_reaction=0.8, service_degradation=0.85,
    ),
    "standard": DifficultySettings(
        macro_shock=1.0, inflation_shock=1.0, pm_trust_sensitivity=1.0,
        intervention_threshold=40, game_over_pm_trust=20, game_over_backbench=30,
        game_over_yield=7.5, game_over_debt=120, tax_avoidance=1.0,
        spending_efficiency=1.0, market_reaction=1.0, service_degradation=1.0,
    ),
    "realistic": DifficultySettings(
        macro_shock=1.15, inflation_shock=1.15, pm_trust_sensitivity=1.15,
        intervention_threshold=45, game_over_pm_trust=24, game_over_backbench=33,
        game_over_yield=7.0, game_over_debt=115, tax_avoidance=1.25,
        spending_efficiency=0.9, market_reaction=1.2, service_degradation=1.15,
    ),
}


def get_difficulty(mode: str) -> DifficultySettings:
    if mode not in DIFFICULTY_PRESETS:
        raise ValueError(f"Unknown difficulty mode '{mode}', expected one of {sorted(DIFFICULTY_PRESETS)}")
    return DIFFICULTY_PRESETS[mode]


@dataclass(frozen=True)
class FiscalRule:
    """Budget tests for one fiscal framework plus its one-off and ongoing reactions."""

    id: str
    name: str
    current_budget: bool = False
    overall_balance: bool = False
    deficit_ceiling: Optional[float] = None  # % of GDP
    debt_target: Optional[float] = None  # % of GDP
    debt_falling: bool = False
    investment_exempt: bool = False
    horizon: int = 5  # Years
    # Applied once on selection
    gilt_bps: float = 0.0
    sterling_pct: float = 0.0
    credibility: float = 0.0
    pm_trust: float = 0.0
    backbench: float = 0.0
    approval: float = 0.0

    @property
    def tests(self) -> Tuple[str, ...]:
        names = []
        if self.current_budget:
            names.append("current budget")
        if self.overall_balance:
            names.append("overall balance")
        if self.deficit_ceiling is not None:
            names.append(f"deficit <= {self.deficit_ceiling:g}% GDP")
        if self.debt_target is not None:
            names.append(f"debt <= {self.debt_target:g}% GDP")
        if self.debt_falling:
            names.append("debt falling")
        return tuple(names)


FISCAL_RULES: Dict[str, FiscalRule] = {
    "starmer-reeves": FiscalRule(
        id="starmer-reeves", name="Stability Rule", current_budget=True,
        debt_falling=True, investment_exempt=True, horizon=5,
    ),
    "jeremy-hunt": FiscalRule(
        id="jeremy-hunt", name="Hunt Rules", deficit_ceiling=3.0, debt_falling=True,
        horizon=5, gilt_bps=-5, sterling_pct=0.3, credibility=2, pm_trust=3,
        backbench=-5, approval=-1,
    ),
    "golden-rule": FiscalRule(
        id="golden-rule", name="Golden Rule", current_budget=True,
        investment_exempt=True, horizon=7, gilt_bps=5, sterling_pct=-0.3,
        credibility=-3, pm_trust=-2, backbench=3,
    ),
    "maastricht": FiscalRule(
        id="maastricht", name="Maastricht Criteria", deficit_ceiling=3.0,
        debt_target=60.0, debt_falling=True, horizon=3, gilt_bps=-15,
        sterling_pct=1.0, credibility=8, pm_trust=2, backbench=-8, approval=-2,
    ),
    "balanced-budget": FiscalRule(
        id="balanced-budget", name="Balanced Budget", current_budget=True,
        overall_balance=True, debt_falling=True, horizon=1, gilt_bps=-25,
        sterling_pct=2.0, credibility=15, pm_trust=-5, backbench=-20, approval=-5,
    ),
    "debt-anchor": FiscalRule(
        id="debt-anchor", name="Debt Anchor", current_budget=True, debt_target=85.0,
        debt_falling=True, investment_exempt=True, horizon=4, gilt_bps=-10,
        sterling_pct=0.8, credibility=6, backbench=-5, approval=-1,
    ),
    "mmt-inspired": FiscalRule(
        id="mmt-inspired", name="MMT-Inspired Framework", investment_exempt=True,
        horizon=0, gilt_bps=45, sterling_pct=-3.5, credibility=-20, pm_trust=-15,
        backbench=12, approval=2,
    ),
}


def get_fiscal_rule(rule_id: str) -> FiscalRule:
    if rule_id not in FISCAL_RULES:
        raise ValueError(f"Unknown fiscal rule '{rule_id}', expected one of {sorted(FISCAL_RULES)}")
    return FISCAL_RULES[rule_id]


# Standing gilt premium each framework carries with the market (percentage points)
RULE_GILT_EFFECT = {
    "starmer-reeves": 0.0,
    "jeremy-hunt": -0.05,
    "golden-rule": 0.03,
    "maastricht": -0.15,
    "balanced-budget": -0.15,
    "debt-anchor": -0.10,
    "mmt-inspired": 0.25,
}

# Standing sterling effect (index points)
RULE_STERLING_EFFECT = {
    "starmer-reeves": 0.0,
    "jeremy-hunt": 0.1,
    "golden-rule": -0.05,
    "maastricht": 0.25,
    "balanced-budget": 0.3,
    "debt-anchor": 0.2,
    "mmt-inspired": -0.5,
}

# Level backbench satisfaction drifts toward under each framework
RULE_BACKBENCH_TARGET = {
    "starmer-reeves": 55,
    "jeremy-hunt": 40,
    "golden-rule": 62,
    "maastricht": 38,
    "balanced-budget": 30,
    "debt-anchor": 48,
    "mmt-inspired": 70,
}


# Sovereign rating ladder, worst to best
CREDIT_RATINGS = ["A", "A+", "AA-", "AA", "AA+", "AAA"]

# Gilt premium by rating (percentage points)
RATING_PREMIUM = {"AAA": -0.2, "AA+": -0.1, "AA": 0.0, "AA-": 0.1, "A+": 0.3, "A": 0.5}

# Annual receipts at July 2024 rates (£bn) and their elasticity to nominal GDP
REVENUE_BASES = {
    "income_tax": (269.0, 1.1),
    "national_insurance": (164.0, 1.0),
    "vat": (171.0, 1.0),
    "corporation_tax": (88.0, 1.3),
    "other": (386.0, 0.8),
}

# Static revenue per percentage point of each headline rate (£bn)
RATE_YIELDS = {
    "income_basic": 7.0,
    "income_higher": 2.0,
    "income_additional": 0.2,
    "ni_employee": 6.0,
    "ni_employer": 8.5,
    "vat": 7.5,
    "corporation_tax": 3.2,
}

# Behavioural loss: (threshold rate, exponential base per point above it)
AVOIDANCE_CURVES = {
    "income_additional": (50.0, 1.016),
    "ni_employee": (12.0, 1.02),
    "ni_employer": (15.0, 1.025),
    "vat": (20.0, 1.02),
    "corporation_tax": (30.0, 1.035),
}

# Additional-rate income tax base at risk from avoidance (£bn)
ADDITIONAL_RATE_BASE = 54.0

DEPARTMENTS = ("nhs", "education", "defence", "welfare", "infrastructure", "police", "justice", "other")

# Day-to-day and capital budgets by department, July 2024 (£bn)
INITIAL_SPENDING = {
    "nhs": (168.4, 12.0),
    "education": (104.0, 12.0),
    "defence": (39.0, 16.6),
    "welfare": (290.0, 0.0),
    "infrastructure": (20.0, 80.0),
    "police": (18.5, 0.5),
    "justice": (12.7, 0.3),
    "other": (306.0, 20.0),
}

# Whitehall department -> spending line it rolls into
DEPARTMENT_MAP = {
    "Health and Social Care": "nhs",
    "Education": "education",
    "Defence": "defence",
    "Work and Pensions": "welfare",
    "Justice": "justice",
    "Home Office": "police",
    "Transport": "infrastructure",
    "Housing and Communities": "infrastructure",
    "Environment and Rural Affairs": "infrastructure",
    "Science and Technology": "infrastructure",
    "Energy and Net Zero": "infrastructure",
    "Foreign Office": "other",
}

# (id, department, programme, budget £bn, capital)
INITIAL_PROGRAMMES = [
    ("nhsEngland", "Health and Social Care", "NHS England Revenue", 164.9, False),
    ("nhsPrimaryCare", "Health and Social Care", "Primary Care", 18.0, False),
    ("nhsMentalHealth", "Health and Social Care", "Mental Health", 16.0, False),
    ("publicHealth", "Health and Social Care", "Public Health", 3.5, False),
    ("socialCare", "Health and Social Care", "Social Care Grants", 7.5, False),
    ("nhsCapital", "Health and Social Care", "Capital Investment", 12.0, True),
    ("schools", "Education", "Schools Core Funding", 59.4, False),
    ("pupilPremium", "Education", "Pupil Premium", 2.9, False),
    ("furtherEducation", "Education", "Further Education and Skills", 7.2, False),
    ("higherEducation", "Education", "Higher Education", 1.8, False),
    ("earlyYears", "Education", "Early Years", 8.0, False),
    ("send", "Education", "SEND Support", 10.5, False),
    ("schoolsCapital", "Education", "School Buildings and Infrastructure", 12.0, True),
    ("armyRevenue", "Defence", "Army", 11.0, False),
    ("navyRevenue", "Defence", "Royal Navy", 8.5, False),
    ("rafRevenue", "Defence", "Royal Air Force", 7.5, False),
    ("nuclearDeterrent", "Defence", "Nuclear Deterrent", 3.5, False),
    ("defenceEquipment", "Defence", "Equipment Plan", 16.6, True),
    ("statePension", "Work and Pensions", "State Pension", 130.0, False),
    ("universalCredit", "Work and Pensions", "Universal Credit", 38.0, False),
    ("pip", "Work and Pensions", "Personal Independence Payment", 22.0, False),
    ("housingBenefit", "Work and Pensions", "Housing Benefit", 18.0, False),
    ("childBenefit", "Work and Pensions", "Child Benefit", 12.6, False),
    ("prisonsAndProbation", "Justice", "Prisons and Probation", 5.5, False),
    ("courts", "Justice", "Courts and Tribunals", 2.8, False),
    ("legalAid", "Justice", "Legal Aid", 1.9, False),
    ("policing", "Home Office", "Policing", 11.5, False),
    ("immigration", "Home Office", "Immigration and Borders", 4.5, False),
    ("counterTerrorism", "Home Office", "Counter-Terrorism", 1.2, False),
    ("railSubsidy", "Transport", "Rail Subsidy", 5.5, False),
    ("nationalRoads", "Transport", "National Roads", 7.0, True),
    ("localRoads", "Transport", "Local Roads", 3.5, True),
    ("hs2", "Transport", "HS2 Phase 1", 6.0, True),
    ("localGovernmentGrants", "Housing and Communities", "Local Government Grants", 5.5, False),
    ("housingCapital", "Housing and Communities", "Affordable Housing", 2.5, True),
    ("farmSubsidies", "Environment and Rural Affairs", "Farm Subsidies and ELM", 2.4, False),
    ("floodDefences", "Environment and Rural Affairs", "Flood Defences", 1.2, True),
    ("ukri", "Science and Technology", "UK Research and Innovation", 7.3, False),
    ("aiAndDigital", "Science and Technology", "AI and Digital Infrastructure", 1.5, True),
    ("renewablesSupport", "Energy and Net Zero", "Renewables Support", 1.0, False),
    ("homeInsulation", "Energy and Net Zero", "Home Insulation", 1.2, False),
    ("nuclearNewBuild", "Energy and Net Zero", "Nuclear New Build", 1.0, True),
    ("officialDevelopmentAssistance", "Foreign Office", "Official Development Assistance", 11.4, False),
]

# (id, name, rate, unit)
INITIAL_TAX_PARAMETERS = [
    ("sdltAdditionalSurcharge", "SDLT Additional Property Surcharge", 3, "%"),
    ("sdltFirstTimeBuyerThreshold", "SDLT First-Time Buyer Threshold", 425000, "£"),
    ("pensionAnnualAllowance", "Pension Annual Allowance", 60000, "£"),
    ("isaAllowance", "ISA Annual Allowance", 20000, "£"),
    ("dividendAllowance", "Dividend Allowance", 1000, "£"),
    ("insurancePremiumTax", "Insurance Premium Tax", 12, "%"),
    ("softDrinksLevy", "Soft Drinks Industry Levy", 100, "Index"),
    ("vatDomesticEnergy", "VAT on Domestic Energy", 5, "%"),
    ("vatPrivateSchools", "VAT on Private School Fees", 20, "%"),
    ("vatRegistrationThreshold", "VAT Registration Threshold", 85000, "£"),
    ("annualInvestmentAllowance", "Annual Investment Allowance", 1000000, "£"),
    ("rdTaxCredit", "R&D Tax Credit Enhanced Rate", 27, "%"),
    ("bankSurcharge", "Bank Corporation Tax Surcharge", 3, "%"),
    ("energyProfitsLevy", "Energy Profits Levy", 35, "%"),
    ("patentBoxRate", "Patent Box Rate", 10, "%"),
    ("cgtAnnualExempt", "CGT Annual Exempt Amount", 3000, "£"),
    ("cgtResidentialSurcharge", "CGT Residential Property Surcharge", 8, "%"),
    ("badrRate", "Business Asset Disposal Relief Rate", 10, "%"),
    ("badrLifetimeLimit", "BADR Lifetime Limit", 1000000, "£"),
    ("ihtResidenceNilRate", "IHT Residence Nil Rate Band", 175000, "£"),
]

# Granular service index -> (funding programmes, annual demand growth %)
GRANULAR_SERVICES = {
    "mental_health": (("nhsMentalHealth",), 4.0),
    "primary_care": (("nhsPrimaryCare",), 3.2),
    "social_care": (("socialCare",), 4.5),
    "prison_safety": (("prisonsAndProbation",), 2.8),
    "court_backlog": (("courts",), 2.5),
    "legal_aid": (("legalAid",), 2.2),
    "policing": (("policing", "counterTerrorism"), 2.0),
    "border_security": (("immigration",), 2.4),
    "rail_reliability": (("railSubsidy", "hs2"), 2.3),
    "affordable_housing": (("housingCapital", "localGovernmentGrants"), 3.0),
    "flood_resilience": (("floodDefences",), 3.3),
    "research_output": (("ukri", "aiAndDigital"), 2.0),
}

# Headline service demand growth (annual %)
NHS_DEMAND_GROWTH = 3.5
EDUCATION_DEMAND_GROWTH = 2.0
INFRASTRUCTURE_DEMAND_GROWTH = 2.0

# Revenue per unit change in a detailed tax parameter (£bn). Parameters in £ are
# quoted per £1,000; the rest per percentage point or index point.
TAX_RECKONERS = {
    "sdltAdditionalSurcharge": 0.5,
    "sdltFirstTimeBuyerThreshold": -0.004,
    "pensionAnnualAllowance": -0.1,
    "isaAllowance": -0.02,
    "dividendAllowance": -0.9,
    "insurancePremiumTax": 0.66,
    "softDrinksLevy": 0.003,
    "vatDomesticEnergy": 0.7,
    "vatPrivateSchools": 0.085,
    "vatRegistrationThreshold": -0.01,
    "annualInvestmentAllowance": -0.002,
    "rdTaxCredit": -0.2,
    "bankSurcharge": 1.0,
    "energyProfitsLevy": 0.15,
    "patentBoxRate": -0.08,
    "cgtAnnualExempt": -0.4,
    "cgtResidentialSurcharge": 0.3,
    "badrRate": 0.1,
    "badrLifetimeLimit": -0.0005,
    "ihtResidenceNilRate": -0.02,
}
