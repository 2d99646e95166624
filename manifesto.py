"""
Manifesto pledges and how they get broken.

Tax locks are broken by any rate increase; service pledges by real-terms cuts;
annual growth pledges are audited at each fiscal-year end. Fiscal-rule pledges
only produce warnings, breaches of the rules themselves are tracked elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Iterable, List, NamedTuple, Optional, Tuple

from logger import setup_logger

if TYPE_CHECKING:
    from state import FiscalState

logger = setup_logger()


@dataclass(frozen=True)
class Pledge:
    id: str
    category: str  # tax, spending, services or fiscal-rules
    description: str
    required_annual_growth: Optional[float] = None  # Real %
    target_department: Optional[str] = None
    violated: bool = False
    turn_violated: Optional[int] = None


@dataclass(frozen=True)
class ManifestoState:
    template: str
    pledges: Tuple[Pledge, ...]
    total_violations: int = 0

    @property
    def violated_ids(self) -> List[str]:
        return [p.id for p in self.pledges if p.violated]


MANIFESTO_TEMPLATES = {
    "cautious-centrist": (
        Pledge("income-tax-lock", "tax", "No increase in income tax rates"),
        Pledge("ni-lock", "tax", "No increase in National Insurance rates"),
        Pledge("vat-lock", "tax", "No increase in VAT"),
        Pledge("corp-tax-lock", "tax", "No increase in corporation tax"),
        Pledge("fiscal-rules", "fiscal-rules", "Meet fiscal rules every year"),
        Pledge("nhs-appointments", "services", "40,000 more NHS appointments per week"),
        Pledge("teachers", "spending", "6,500 new teachers"),
        Pledge("police", "spending", "13,000 more neighbourhood police"),
    ),
    "social-democratic": (
        Pledge("income-tax-lock", "tax", "No increase in basic rate income tax"),
        Pledge("ni-employee-lock", "tax", "No increase in employee National Insurance"),
        Pledge("vat-lock", "tax", "No increase in VAT"),
        Pledge("fiscal-rules", "fiscal-rules", "Meet reformed fiscal rules"),
        Pledge("nhs-investment", "services", "Real terms NHS spending growth of 3.5% per year",
               required_annual_growth=3.5, target_department="nhs"),
        Pledge("education-investment", "services", "Education spending above 5% of GDP"),
        Pledge("green-transition", "spending", "Green investment of £28bn per year"),
        Pledge("social-care", "services", "Free personal care for elderly"),
    ),
    "growth-focused": (
        Pledge("income-tax-lock", "tax", "No increase in basic or higher rate income tax"),
        Pledge("ni-lock", "tax", "No increase in employee National Insurance"),
        Pledge("vat-lock", "tax", "No increase in standard VAT rate"),
        Pledge("fiscal-rules", "fiscal-rules", "Meet golden rule for investment"),
        Pledge("capital-investment", "spending", "Public investment above 3.5% of GDP"),
        Pledge("housing-revolution", "spending", "Build 300,000 homes per year"),
        Pledge("skills-training", "services", "National skills programme for 500,000 workers"),
        Pledge("nhs-reformed", "services", "NHS efficiency drive with 2.5% real growth"),
    ),
    "blair-style": (
        Pledge("income-tax-lock", "tax", "No increase in basic or higher rate income tax"),
        Pledge("ni-lock", "tax", "No increase in employee National Insurance"),
        Pledge("vat-lock", "tax", "No increase in VAT"),
        Pledge("corp-tax-cap", "tax", "Corporation tax capped at current rate"),
        Pledge("fiscal-rules", "fiscal-rules", "Golden rule: borrow only to invest"),
        Pledge("education-education", "services", "Education as top spending priority"),
        Pledge("nhs-investment-blairite", "services", "NHS investment with reform",
               required_annual_growth=3.0, target_department="nhs"),
        Pledge("welfare-to-work", "spending", "Get 1 million people into work"),
    ),
    "prudent-progressive": (
        Pledge("income-tax-lock", "tax", "No increase in basic rate income tax"),
        Pledge("ni-employee-lock", "tax", "No increase in employee National Insurance"),
        Pledge("vat-lock", "tax", "No increase in VAT"),
        Pledge("fiscal-rules-prudent", "fiscal-rules", "Strict fiscal rules with investment exemption"),
        Pledge("nhs-waiting-times", "services", "Eliminate 2-year NHS waits"),
        Pledge("education-standards", "services", "Raise education standards in every region"),
        Pledge("climate-investment", "spending", "Green investment of £15bn per year"),
        Pledge("child-poverty", "spending", "Lift 500,000 children out of poverty"),
    ),
}

INCOME_TAX_LOCKS = {"income-tax-lock"}
NI_LOCKS = {"ni-lock", "ni-employee-lock"}
CORPORATION_TAX_LOCKS = {"corp-tax-lock", "corp-tax-cap"}
FISCAL_RULE_PLEDGES = {"fiscal-rules", "fiscal-rules-prudent"}
NHS_PLEDGES = {"nhs-appointments", "nhs-investment", "nhs-investment-blairite", "nhs-waiting-times"}
EDUCATION_PLEDGES = {"teachers", "education-investment", "education-education", "education-standards"}


@dataclass(frozen=True)
class PolicyChange:
    """Rate changes in percentage points versus game start, plus budget flags."""

    income_basic: float = 0.0
    income_higher: float = 0.0
    income_additional: float = 0.0
    ni_employee: float = 0.0
    ni_employer: float = 0.0
    vat: float = 0.0
    corporation: float = 0.0
    fiscal_rule_breached: bool = False
    nhs_real_cut: bool = False
    education_real_cut: bool = False


class ViolationCheck(NamedTuple):
    violated: Tuple[str, ...]
    warnings: List[str]


def create_manifesto(template_id: str = "cautious-centrist") -> ManifestoState:
    if template_id not in MANIFESTO_TEMPLATES:
        raise ValueError(
            f"Unknown manifesto template '{template_id}', expected one of {sorted(MANIFESTO_TEMPLATES)}"
        )
    return ManifestoState(template=template_id, pledges=MANIFESTO_TEMPLATES[template_id])


def check_policy_for_violations(manifesto: ManifestoState, change: PolicyChange) -> ViolationCheck:
    """Which unbroken pledges a proposed policy would break."""
    violated = []
    warnings = []

    for pledge in manifesto.pledges:
        if pledge.violated:
            continue

        broken = False
        if pledge.id in INCOME_TAX_LOCKS:
            broken = max(change.income_basic, change.income_higher, change.income_additional) > 0
            reason = "Increasing income tax"
        elif pledge.id in NI_LOCKS:
            broken = change.ni_employee > 0 or change.ni_employer > 0
            reason = "Increasing National Insurance"
        elif pledge.id == "vat-lock":
            broken = change.vat > 0
            reason = "Increasing VAT"
        elif pledge.id in CORPORATION_TAX_LOCKS:
            broken = change.corporation > 0
            reason = "Increasing corporation tax"
        elif pledge.id in FISCAL_RULE_PLEDGES:
            if change.fiscal_rule_breached:
                warnings.append(f"Fiscal rule breach detected: \"{pledge.description}\" is off track.")
            continue
        elif pledge.id in NHS_PLEDGES:
            broken = change.nhs_real_cut
            reason = "Real terms NHS spending cuts"
        elif pledge.id in EDUCATION_PLEDGES:
            broken = change.education_real_cut
            reason = "Education spending cuts"
        else:
            continue

        if broken:
            violated.append(pledge.id)
            warnings.append(f"{reason} violates manifesto pledge: \"{pledge.description}\"")

    return ViolationCheck(tuple(violated), warnings)


def apply_manifesto_violations(manifesto: ManifestoState, violated: Iterable[str], turn: int) -> ManifestoState:
    """Mark pledges as broken. Pledges already broken are not counted twice."""
    violated = set(violated)
    newly_broken = 0
    pledges = []
    for pledge in manifesto.pledges:
        if pledge.id in violated and not pledge.violated:
            pledge = replace(pledge, violated=True, turn_violated=turn)
            newly_broken += 1
            logger.warning(f"Manifesto pledge broken: {pledge.description}")
        pledges.append(pledge)

    return replace(
        manifesto,
        pledges=tuple(pledges),
        total_violations=manifesto.total_violations + newly_broken,
    )


def check_annual_growth_pledges(manifesto: ManifestoState, fiscal: "FiscalState",
                                inflation_cpi: float) -> Tuple[str, ...]:
    """Pledges whose department missed its real growth target over the fiscal year."""
    start = fiscal.fiscal_year_start_spending
    if start is None:
        return ()

    violated = []
    for pledge in manifesto.pledges:
        if pledge.violated or not pledge.required_annual_growth or not pledge.target_department:
            continue
        begin = start.department(pledge.target_department).total
        end = fiscal.spending.department(pledge.target_department).total
        if begin <= 0:
            continue
        real_growth = (end - begin) / begin * 100 - inflation_cpi
        if real_growth < pledge.required_annual_growth - 0.1:
            violated.append(pledge.id)
    return tuple(violated)
