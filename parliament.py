"""
The House of Commons: a 650-seat roster, each MP's stance on the government's
fiscal position, and the negotiating blocs that form among unhappy Labour MPs.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple
import random

import numpy as np

from config import DEPARTMENTS
from logger import setup_logger

if TYPE_CHECKING:
    from state import GameState

logger = setup_logger()

# Seats after the July 2024 election; the Speaker sits with the independents
SEATS = {
    "labour": 411,
    "conservative": 121,
    "liberal_democrat": 72,
    "snp": 9,
    "sinn_fein": 7,
    "independent": 12,
    "reform_uk": 5,
    "dup": 5,
    "green": 4,
    "plaid_cymru": 4,
}

LABOUR_FACTIONS = {
    "left": 40,
    "soft_left": 110,
    "centre_left": 150,
    "blairite": 70,
    "party_loyalist": 41,
}

MINISTERS = 110

REGIONS = (
    "northeast", "northwest", "yorkshire", "eastmidlands", "westmidlands", "eastengland",
    "london", "southeast", "southwest", "wales", "scotland", "northernireland",
)

# (economic axis low, high, fiscal conservatism low, high)
IDEOLOGY_RANGES = {
    "left": (-7, -5, 2, 4),
    "soft_left": (-5, -3, 3, 5),
    "centre_left": (-3, -1, 4, 6),
    "blairite": (-1, 1, 6, 8),
    "party_loyalist": (-2, 0, 5, 7),
    "conservative": (4, 8, 7, 10),
    "liberal_democrat": (-1, 1, 6, 8),
    "snp": (-3, -1, 4, 6),
    "green": (-6, -4, 3, 5),
    "reform_uk": (5, 9, 4, 7),
    "plaid_cymru": (-4, -2, 4, 6),
    "dup": (2, 5, 5, 8),
    "sinn_fein": (-5, -3, 3, 5),
    "independent": (-5, 5, 2, 8),
}

# Concern pools by economic axis band: (parameter, priority, direction)
LEFT_CONCERNS = (
    ("corporation", 9, "increase"),
    ("bankSurcharge", 8, "increase"),
    ("income_additional", 8, "increase"),
    ("energyProfitsLevy", 10, "increase"),
    ("nhsEngland", 10, "increase"),
    ("socialCare", 9, "increase"),
    ("universalCredit", 9, "increase"),
    ("housingBenefit", 8, "increase"),
)
CENTRE_LEFT_CONCERNS = (
    ("corporation", 6, "maintain"),
    ("income_higher", 7, "increase"),
    ("nhsEngland", 9, "increase"),
    ("schools", 8, "increase"),
    ("policing", 6, "increase"),
    ("statePension", 7, "maintain"),
    ("localGovernmentGrants", 6, "increase"),
)
CENTRIST_CONCERNS = (
    ("income_basic", 8, "decrease"),
    ("vat", 7, "decrease"),
    ("corporation", 7, "decrease"),
    ("schools", 7, "increase"),
    ("policing", 7, "increase"),
    ("railSubsidy", 5, "increase"),
    ("farmSubsidies", 5, "maintain"),
)

GROUP_NAMES = {
    "nhsEngland": "NHS Protection Group",
    "socialCare": "Social Care Crisis Group",
    "universalCredit": "Welfare Defence Coalition",
    "housingBenefit": "Housing Support Group",
    "corporation": "Progressive Tax Group",
    "energyProfitsLevy": "Windfall Tax Campaign",
    "bankSurcharge": "Financial Sector Reform Group",
    "schools": "Education First Group",
    "policing": "Law & Order Group",
    "statePension": "Pensioner Protection Group",
    "farmSubsidies": "Rural Britain Group",
    "localGovernmentGrants": "Local Services Coalition",
    "railSubsidy": "Infrastructure Investment Group",
}

REGION_GROUP_NAMES = {
    "northeast": "Red Wall MPs",
    "northwest": "Northern Labour Group",
    "yorkshire": "Yorkshire Labour Group",
    "london": "London Labour Group",
    "wales": "Welsh Labour Group",
    "scotland": "Scottish Labour Group",
}

FIRST_NAMES = ("Sarah", "James", "Emma", "David", "Priya", "Michael", "Rachel", "Tom", "Aisha",
               "Daniel", "Helen", "Chris", "Fatima", "Peter", "Laura", "Imran", "Kate", "Steve")
SURNAMES = ("Smith", "Jones", "Patel", "Williams", "Khan", "Brown", "Taylor", "Davies", "Evans",
            "Wilson", "Thomas", "Roberts", "Ahmed", "Walker", "Wright", "Hughes", "Green", "Hall")

SUPPORT_THRESHOLD = 62
OPPOSE_THRESHOLD = 42
MIN_GROUP_SIZE = 5


@dataclass(frozen=True)
class Concern:
    parameter: str
    priority: int
    direction: str  # increase, decrease or maintain


@dataclass(frozen=True)
class MP:
    id: str
    name: str
    party: str
    faction: Optional[str]
    region: str
    marginality: float  # 0-100, higher is more marginal
    low_income: bool
    public_sector: bool
    elderly: bool
    economic_axis: float
    fiscal_conservatism: float
    rebelliousness: float
    ambition: float
    principled: float
    is_minister: bool
    concerns: Tuple[Concern, ...] = ()

    @property
    def primary_issues(self) -> Tuple[str, ...]:
        return tuple(c.parameter for c in self.concerns[:3])


@dataclass(frozen=True)
class PolicyDeltas:
    """Changes to every lever relative to game start."""

    rates: Dict[str, float]
    departments: Dict[str, float]
    programmes: Dict[str, float]
    taxes: Dict[str, float]

    def get(self, parameter: str) -> float:
        for table in (self.rates, self.programmes, self.taxes, self.departments):
            if parameter in table:
                return table[parameter]
        return 0.0


@dataclass(frozen=True)
class MPGroup:
    id: str
    name: str
    spokesperson_id: str
    member_ids: Tuple[str, ...]
    common_concerns: Tuple[Concern, ...]
    cohesion: float
    demand: str

    @property
    def voting_power(self) -> int:
        return len(self.member_ids)


def policy_deltas(state: GameState, baseline: GameState) -> PolicyDeltas:
    fiscal, base = state.fiscal, baseline.fiscal
    rates = {name: getattr(fiscal.rates, name) - value for name, value in vars(base.rates).items()}
    departments = {d: fiscal.spending.department(d).total - base.spending.department(d).total
                   for d in DEPARTMENTS}
    base_programmes = {p.id: p.budget for p in base.programmes}
    programmes = {p.id: p.budget - base_programmes.get(p.id, p.baseline) for p in fiscal.programmes}
    base_taxes = {t.id: t.rate for t in base.taxes}
    taxes = {t.id: t.rate - base_taxes.get(t.id, t.baseline) for t in fiscal.taxes}
    return PolicyDeltas(rates=rates, departments=departments, programmes=programmes, taxes=taxes)


def budget_ideology(deltas: PolicyDeltas) -> Tuple[float, float]:
    """Where a package sits on the economic axis (-10 left to 10 right) and fiscal conservatism (0-10)."""
    rates = deltas.rates
    economic = 0.0
    rises = [rates.get(r, 0.0) for r in ("income_basic", "income_higher", "income_additional", "corporation")]
    economic -= sum(1 for r in rises if r > 0) * 0.5

    weights = {"income_basic": (0.08, 0.05), "income_higher": (0.05, 0.03),
               "income_additional": (0.04, 0.02), "corporation": (0.03, 0.03), "vat": (0.06, 0.04)}
    for name, (rise_weight, cut_weight) in weights.items():
        change = rates.get(name, 0.0)
        economic -= max(0.0, change) * rise_weight
        economic += max(0.0, -change) * cut_weight

    departments = deltas.departments
    economic -= sum(1 for d in ("nhs", "education", "welfare") if departments.get(d, 0.0) > 0) * 0.3

    tax_change = (rates.get("income_basic", 0.0) * 7 + rates.get("income_higher", 0.0) * 3.5
                  + rates.get("vat", 0.0) * 5)
    spending_change = sum(departments.get(d, 0.0) for d in ("nhs", "education", "welfare"))
    deficit_change = spending_change - tax_change

    fiscal = 5.0
    if deficit_change > 10:
        fiscal -= 2
    elif deficit_change > 5:
        fiscal -= 1
    elif deficit_change < -10:
        fiscal += 2
    elif deficit_change < -5:
        fiscal += 1

    return float(np.clip(economic, -10, 10)), float(np.clip(fiscal, 0, 10))


def plausibility_penalty(deltas: PolicyDeltas) -> float:
    """Extreme or incoherent packages repel MPs whatever their loyalty."""
    basic = deltas.rates.get("income_basic", 0.0)
    higher = deltas.rates.get("income_higher", 0.0)
    additional = deltas.rates.get("income_additional", 0.0)
    vat = deltas.rates.get("vat", 0.0)

    penalty = 0.0
    if basic >= 70:
        penalty += 90
    elif basic >= 50:
        penalty += 70
    elif basic >= 30:
        penalty += 45
    elif basic >= 10:
        penalty += 20
    if basic > 4 and higher < -15:
        penalty += 35
    if basic > 2 and additional < -15:
        penalty += 30
    if higher < -25 or additional < -25:
        penalty += 12
    if vat >= 10:
        penalty += 35
    elif vat >= 5:
        penalty += 16
    return min(100.0, penalty)


def evaluate_concern(concern: Concern, change: float) -> float:
    if change == 0:
        return 1.0 if concern.direction == "maintain" else 0.0
    wanted = {"increase": 1, "decrease": -1}.get(concern.direction, 0)
    if wanted == 0:
        return -0.5
    if (change > 0) == (wanted > 0):
        return min(5.0, abs(change) / 2)
    return max(-5.0, -abs(change) / 2)


def constituency_impact(mp: MP, deltas: PolicyDeltas) -> float:
    departments, programmes, taxes = deltas.departments, deltas.programmes, deltas.taxes
    impact = 0.0
    if mp.low_income:
        if departments["nhs"] > 0:
            impact += 2
        if departments["welfare"] > 0:
            impact += 2
        elif departments["welfare"] < 0:
            impact -= 3
        if taxes.get("vatDomesticEnergy", 0.0) > 0:
            impact -= 2
        if deltas.rates.get("vat", 0.0) > 0:
            impact -= 2
    if mp.public_sector:
        public = departments["nhs"] + departments["education"] + departments["police"]
        if public > 0:
            impact += 1
        elif public < 0:
            impact -= 2
        if programmes.get("nhsMentalHealth", 0.0) < 0:
            impact -= 1.5
        if programmes.get("prisonsAndProbation", 0.0) < 0:
            impact -= 1.2
        if programmes.get("policing", 0.0) < 0:
            impact -= 1.0
    if mp.elderly:
        if departments["nhs"] > 0:
            impact += 1
        if departments["welfare"] < 0:
            impact -= 1
        if programmes.get("socialCare", 0.0) < 0:
            impact -= 1.5
        if taxes.get("insurancePremiumTax", 0.0) > 0:
            impact -= 0.8
    if programmes.get("courts", 0.0) < 0 or programmes.get("legalAid", 0.0) < 0:
        impact -= 0.9
    return impact


def mp_support_score(mp: MP, deltas: PolicyDeltas, violations: Sequence[str]) -> float:
    economic, fiscal = budget_ideology(deltas)
    alignment = 10 - (abs(mp.economic_axis - economic) + abs(mp.fiscal_conservatism - fiscal)) / 2
    score = 50 + alignment * 5
    score -= len(violations) * 10

    local = constituency_impact(mp, deltas)
    score += local * 3
    granular = sum(evaluate_concern(c, deltas.get(c.parameter)) * c.priority / 5 for c in mp.concerns)
    score += float(np.clip(granular, -50, 50))

    if mp.rebelliousness > 7:
        score -= 15
    if mp.is_minister:
        score += 18
    if mp.principled > 7 and alignment < 3:
        score -= 10

    penalty = plausibility_penalty(deltas)
    if penalty:
        score -= penalty * (0.7 + mp.principled / 20)
        if mp.marginality > 70:
            score -= penalty * 0.18
    if mp.marginality > 70:
        score += local * 2
    return score


class Parliament:
    """MP roster generated once per session from the session's random stream."""

    def __init__(self, rng: random.Random):
        self.rng = rng
        self.mps: Dict[str, MP] = {}
        self._generate()

    def _generate(self):
        factions = [f for f, n in LABOUR_FACTIONS.items() for _ in range(n)]
        ministers = 0
        count = 0
        for party, seats in SEATS.items():
            for i in range(seats):
                count += 1
                faction = factions[i] if party == "labour" else None
                is_minister = party == "labour" and faction in ("party_loyalist", "blairite", "centre_left") \
                    and ministers < MINISTERS and self.rng.random() < 0.5
                ministers += int(is_minister)
                mp = self._create_mp(f"mp_{count:03d}", party, faction, is_minister)
                self.mps[mp.id] = mp
        logger.debug(f"Parliament generated: {len(self.mps)} MPs, {ministers} on the payroll")

    def _create_mp(self, mp_id: str, party: str, faction: Optional[str], is_minister: bool) -> MP:
        rng = self.rng
        low, high, fiscal_low, fiscal_high = IDEOLOGY_RANGES[faction or party]
        economic = rng.uniform(low, high)
        rebellious = rng.uniform(0, 2) if is_minister else rng.uniform(2, 8)
        if faction == "left":
            rebellious += 2
        principled = rng.uniform(7, 10) if faction == "left" else rng.uniform(3, 9)

        concerns: Tuple[Concern, ...] = ()
        if party == "labour":
            concerns = self._concerns(economic)

        return MP(
            id=mp_id,
            name=f"{rng.choice(FIRST_NAMES)} {rng.choice(SURNAMES)}",
            party=party,
            faction=faction,
            region=rng.choice(REGIONS),
            marginality=rng.uniform(0, 100),
            low_income=rng.random() < 0.4,
            public_sector=rng.random() < 0.35,
            elderly=rng.random() < 0.25,
            economic_axis=economic,
            fiscal_conservatism=rng.uniform(fiscal_low, fiscal_high),
            rebelliousness=min(10.0, rebellious),
            ambition=rng.uniform(0, 10),
            principled=principled,
            is_minister=is_minister,
            concerns=concerns,
        )

    def _concerns(self, economic: float) -> Tuple[Concern, ...]:
        if economic < -3:
            pool = LEFT_CONCERNS
        elif economic < 0:
            pool = CENTRE_LEFT_CONCERNS
        else:
            pool = CENTRIST_CONCERNS
        # Jitter priorities so MPs in the same band do not all share one agenda
        ranked = sorted(pool, key=lambda c: c[1] + self.rng.uniform(0, 3), reverse=True)
        return tuple(Concern(p, priority, direction) for p, priority, direction in ranked[:4])

    def calculate_stances(self, deltas: PolicyDeltas, violations: Sequence[str]) -> Dict[str, str]:
        """Support, oppose or undecided for every MP. Opposition parties oppose by default."""
        stances = {}
        for mp in self.mps.values():
            if mp.party == "sinn_fein":
                stances[mp.id] = "undecided"
            elif mp.party != "labour":
                stances[mp.id] = "oppose"
            else:
                score = mp_support_score(mp, deltas, violations)
                if score > SUPPORT_THRESHOLD:
                    stances[mp.id] = "support"
                elif score < OPPOSE_THRESHOLD:
                    stances[mp.id] = "oppose"
                else:
                    stances[mp.id] = "undecided"
        return stances

    def identify_groups(self, stances: Dict[str, str], turn: int = 0) -> List[MPGroup]:
        """Cluster wavering Labour MPs who share their top concerns into blocs of five or more."""
        clusters: Dict[str, List[MP]] = {}
        for mp in self.mps.values():
            if mp.party != "labour" or stances.get(mp.id) not in ("oppose", "undecided"):
                continue
            if not mp.concerns:
                continue
            key = "|".join(sorted(mp.primary_issues[:2]))
            clusters.setdefault(key, []).append(mp)

        groups = []
        for key, members in sorted(clusters.items()):
            if len(members) < MIN_GROUP_SIZE:
                continue
            common = common_concerns(members)
            if not common:
                continue
            groups.append(MPGroup(
                id=f"group_{turn}_{len(groups) + 1}",
                name=group_name(common, members),
                spokesperson_id=select_spokesperson(members).id,
                member_ids=tuple(mp.id for mp in members),
                common_concerns=common,
                cohesion=group_cohesion(members, common),
                demand=demand_description(common),
            ))
        return groups


def stance_counts(stances: Dict[str, str]) -> Dict[str, int]:
    counts = Counter(stances.values())
    return {stance: counts.get(stance, 0) for stance in ("support", "oppose", "undecided")}


def common_concerns(members: Sequence[MP]) -> Tuple[Concern, ...]:
    counts: Counter = Counter()
    first: Dict[str, Concern] = {}
    for mp in members:
        for concern in mp.concerns:
            counts[concern.parameter] += 1
            first.setdefault(concern.parameter, concern)
    threshold = len(members) * 0.6
    shared = [p for p, n in counts.most_common() if n >= threshold]
    return tuple(first[p] for p in shared[:3])


def select_spokesperson(members: Sequence[MP]) -> MP:
    def score(mp: MP) -> float:
        return (mp.principled * 2
                + (10 if 5 <= mp.rebelliousness <= 8 else 0)
                - mp.ambition
                - (5 if mp.is_minister else 0))
    return max(members, key=score)


def group_cohesion(members: Sequence[MP], concerns: Sequence[Concern]) -> float:
    if not members or not concerns:
        return 50.0
    cohesion = 40 + len(concerns) * 10
    mean_axis = sum(mp.economic_axis for mp in members) / len(members)
    spread = sum(abs(mp.economic_axis - mean_axis) for mp in members) / len(members)
    cohesion += max(0.0, 20 - spread * 2)
    region, count = Counter(mp.region for mp in members).most_common(1)[0]
    if count / len(members) > 0.7:
        cohesion += 10
    return float(np.clip(cohesion, 0, 100))


def group_name(concerns: Sequence[Concern], members: Sequence[MP]) -> str:
    if not concerns:
        return "Concerned Labour MPs"
    if concerns[0].parameter in GROUP_NAMES:
        return GROUP_NAMES[concerns[0].parameter]

    factions = Counter(mp.faction for mp in members)
    if factions["left"] / len(members) > 0.7:
        return "Socialist Campaign Group Coalition"
    if factions["soft_left"] / len(members) > 0.7:
        return "Soft Left Group"

    region, count = Counter(mp.region for mp in members).most_common(1)[0]
    if count / len(members) > 0.6:
        return REGION_GROUP_NAMES.get(region, "Regional Labour Group")
    return "Concerned Labour MPs"


def demand_description(concerns: Sequence[Concern]) -> str:
    if not concerns:
        return "Various policy changes"

    def phrase(concern: Concern) -> str:
        action = {"increase": "increase", "decrease": "reduce"}.get(concern.direction, "maintain")
        return f"{action} {concern.parameter}"

    if len(concerns) == 1:
        return f"Demands to {phrase(concerns[0])}"
    if len(concerns) == 2:
        return f"Demands to {phrase(concerns[0])} and {phrase(concerns[1])}"
    return f"Demands to {phrase(concerns[0])} and address {len(concerns) - 1} other concerns"
