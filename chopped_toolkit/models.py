from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

# canonical stat identifier, e.g. 'pass_yd', 'rec', 'def_sack'
StatKey = str


@dataclass(frozen=True)
class DistanceBand:
    low: int
    high: Optional[int]  # None means open-ended (50+)
    points: float


@dataclass(frozen=True)
class PositionCode:
    position_id: int
    points: float


@dataclass(frozen=True)
class Unrecognized:
    raw_key: str
    points: float


Override = Union[DistanceBand, PositionCode, Unrecognized]


@dataclass(frozen=True)
class RawScoringRule:
    stat_key: StatKey
    points: float
    overrides: Tuple[Override, ...] = ()


class Confidence(str, Enum):
    PERFECT = 'PERFECT'
    HIGH = 'HIGH'
    MEDIUM = 'MEDIUM'
    LOW = 'LOW'


@dataclass(frozen=True)
class ValidatedScoringRuleSet:
    league_id: str
    rules: Mapping[StatKey, float]
    position_overrides: Mapping[Tuple[StatKey, int], float]
    confidence: Confidence
    basis: str

    def __post_init__(self):
        # freeze whatever mapping we were handed
        object.__setattr__(self, 'rules', MappingProxyType(dict(self.rules)))
        object.__setattr__(self, 'position_overrides', MappingProxyType(dict(self.position_overrides)))

    @property
    def is_empty(self) -> bool:
        return not self.rules

    def as_raw_rules(self) -> List[RawScoringRule]:
        """Express the set as raw input again (position overrides re-attached)."""
        by_key: Dict[StatKey, List[Override]] = {}
        for (stat_key, position_id), points in self.position_overrides.items():
            by_key.setdefault(stat_key, []).append(PositionCode(position_id, points))
        return [
            RawScoringRule(stat_key=k, points=v, overrides=tuple(by_key.get(k, ())))
            for k, v in self.rules.items()
        ]


@dataclass
class PlayerWeek:
    player_id: str
    week: int
    stats: Dict[str, float]
    position: Optional[str] = None
    # points the platform itself reported for this line, when known
    reported_points: Optional[float] = None


@dataclass(frozen=True)
class TeamWeeklyResult:
    team_id: str
    name: str
    points: Optional[float]
    player_weeks: Tuple[PlayerWeek, ...] = ()
    owner_id: Optional[str] = None
    player_ids: Tuple[str, ...] = ()
    starters: Tuple[str, ...] = ()

    @property
    def has_fieldable_roster(self) -> bool:
        # guillotine signal: chopped teams lose their owner, players or lineup
        return bool(self.owner_id) and bool(self.player_ids) and bool(self.starters)

    @property
    def score(self) -> float:
        return self.points if self.points is not None else 0.0


class EliminationStatus(str, Enum):
    CHAMPION = 'champion'
    SAFE = 'safe'
    WARNING = 'warning'
    DANGER = 'danger'
    CRITICAL = 'critical'
    ELIMINATED = 'eliminated'

    @property
    def display_name(self) -> str:
        return {
            'champion': 'Champion',
            'safe': 'Safe',
            'warning': 'Warning',
            'danger': 'DANGER ZONE',
            'critical': 'CRITICAL',
            'eliminated': 'ELIMINATED',
        }[self.value]

    @property
    def dramatic_message(self) -> str:
        return {
            'champion': 'REIGNING SUPREME',
            'safe': 'Living to fight another day',
            'warning': 'Treading dangerous waters',
            'danger': 'ON THE CHOPPING BLOCK',
            'critical': 'MOMENTS FROM ELIMINATION',
            'eliminated': 'CHOPPED AND OUT',
        }[self.value]


@dataclass(frozen=True)
class FantasyTeamRanking:
    team: TeamWeeklyResult
    weekly_points: float
    rank: int
    status: EliminationStatus
    is_eliminated: bool
    survival_probability: float
    safety_margin: float
    weeks_alive: int

    @property
    def team_id(self) -> str:
        return self.team.team_id

    @property
    def rank_display(self) -> str:
        if 10 <= self.rank % 100 <= 20:
            suffix = 'th'
        else:
            suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(self.rank % 10, 'th')
        return f"{self.rank}{suffix}"

    @property
    def survival_percentage(self) -> str:
        return f"{self.survival_probability * 100:.0f}%"

    @property
    def safety_margin_display(self) -> str:
        if self.safety_margin >= 0:
            return f"+{self.safety_margin:.1f}"
        return f"{self.safety_margin:.1f}"


@dataclass(frozen=True)
class EliminationEvent:
    team: FantasyTeamRanking
    week: int
    final_score: float
    margin: float
    drama_meter: float  # 0.0 - 1.0
    last_words: Optional[str] = None

    @property
    def key(self) -> Tuple[str, int]:
        return (self.team.team_id, self.week)

    @property
    def drama_label(self) -> str:
        if self.drama_meter >= 0.8:
            return 'HEARTBREAKING'
        if self.drama_meter >= 0.6:
            return 'Dramatic'
        if self.drama_meter >= 0.4:
            return 'Close Call'
        if self.drama_meter >= 0.2:
            return 'Expected'
        return 'Blowout'


@dataclass(frozen=True)
class ChoppedWeekSummary:
    league_id: str
    week: int
    rankings: Tuple[FantasyTeamRanking, ...]
    eliminated_this_week: Tuple[FantasyTeamRanking, ...]
    cutoff_score: float
    average_score: float
    highest_score: float
    lowest_score: float
    elimination_history: Tuple[EliminationEvent, ...] = field(default_factory=tuple)

    def _with_status(self, status: EliminationStatus) -> List[FantasyTeamRanking]:
        return [r for r in self.rankings if r.status == status]

    @property
    def champion(self) -> Optional[FantasyTeamRanking]:
        found = self._with_status(EliminationStatus.CHAMPION)
        return found[0] if found else None

    @property
    def critical_teams(self) -> List[FantasyTeamRanking]:
        return self._with_status(EliminationStatus.CRITICAL)

    @property
    def danger_zone_teams(self) -> List[FantasyTeamRanking]:
        return self._with_status(EliminationStatus.DANGER)

    @property
    def warning_teams(self) -> List[FantasyTeamRanking]:
        return self._with_status(EliminationStatus.WARNING)

    @property
    def safe_teams(self) -> List[FantasyTeamRanking]:
        return self._with_status(EliminationStatus.SAFE)

    @property
    def total_survivors(self) -> int:
        return len([r for r in self.rankings if not r.is_eliminated])

    @property
    def is_scheduled(self) -> bool:
        # nobody has put up points yet
        return not any(r.weekly_points > 0 for r in self.rankings)


class ValidationStatus(str, Enum):
    VALIDATED = 'validated'
    MINOR_DISCREPANCY = 'minor_discrepancy'
    SIGNIFICANT_DISCREPANCY = 'significant_discrepancy'
    NO_SCORING_SETTINGS = 'no_scoring_settings'


@dataclass(frozen=True)
class PointsValidation:
    """Our calculated points for one stat line against what the platform reported."""
    player_id: str
    reported_points: float
    calculated_points: float
    discrepancy: float
    status: ValidationStatus

    @property
    def has_discrepancy(self) -> bool:
        return self.status in (ValidationStatus.MINOR_DISCREPANCY, ValidationStatus.SIGNIFICANT_DISCREPANCY)
