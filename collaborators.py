"""
Contracts for the subsystems the turn calls but does not own.

Every field of Collaborators is optional. A missing collaborator contributes
nothing to the turn, and one that raises is logged and treated as missing.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from events import EventSystem
from manifesto import check_annual_growth_pledges
from media import calculate_sentiment, generate_newspaper
from parliament import Parliament
from pm_office import process_communications

if TYPE_CHECKING:
    from events import EventView
    from manifesto import ManifestoState
    from media import Sentiment, SentimentInput
    from parliament import MPGroup, PolicyDeltas
    from pm_office import CommunicationResult
    from state import FiscalState, GameEvent, GameState, NewsArticle


class StanceModel(Protocol):
    def calculate_stances(self, deltas: PolicyDeltas, violations: Sequence[str]) -> Dict[str, str]: ...

    def identify_groups(self, stances: Dict[str, str], turn: int = 0) -> List[MPGroup]: ...


class EventGenerator(Protocol):
    def generate_events(self, view: EventView, rng: random.Random) -> List[GameEvent]: ...


SentimentFn = Callable[["SentimentInput"], "Sentiment"]
NewspaperFn = Callable[["EventView", random.Random, Optional["GameEvent"]], "NewsArticle"]
CommunicationsFn = Callable[["GameState", random.Random], "CommunicationResult"]
PledgeCheckFn = Callable[["ManifestoState", "FiscalState", float], Tuple[str, ...]]


@dataclass
class Collaborators:
    parliament: Optional[StanceModel] = None
    events: Optional[EventGenerator] = None
    sentiment: Optional[SentimentFn] = None
    newspaper: Optional[NewspaperFn] = None
    communications: Optional[CommunicationsFn] = None
    annual_pledges: Optional[PledgeCheckFn] = None


def default_collaborators(rng: random.Random) -> Collaborators:
    """The full set used by a normal session. The MP roster is drawn from the session's stream."""
    return Collaborators(
        parliament=Parliament(rng),
        events=EventSystem(),
        sentiment=calculate_sentiment,
        newspaper=generate_newspaper,
        communications=process_communications,
        annual_pledges=check_annual_growth_pledges,
    )
