"""Weekly ranking for chopped (guillotine) leagues.

The lowest scorers each week are chopped. Teams are ranked by weekly points,
classified by how close they sit to the chopping block, and teams that have
already been removed are written once into an append-only ledger (the
graveyard).
"""
import logging
import statistics
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .models import (
    ChoppedWeekSummary,
    EliminationEvent,
    EliminationStatus,
    FantasyTeamRanking,
    TeamWeeklyResult,
)
from .scoring import total_points

LOGGER = logging.getLogger(__name__)

LARGE_LEAGUE_SIZE = 18
DRAMA_SCALE = 25.0
UNKNOWN_DRAMA = 0.5
DEFAULT_LAST_WORDS = 'Left with no players to field...'


def elimination_zone_size(active_count: int) -> int:
    if active_count <= 0:
        return 0
    return 2 if active_count >= LARGE_LEAGUE_SIZE else 1


def _status_for(rank: int, total: int, in_zone: bool) -> EliminationStatus:
    if rank == 1:
        return EliminationStatus.CHAMPION
    if in_zone:
        return EliminationStatus.CRITICAL
    if rank > (total * 3) // 4:
        return EliminationStatus.DANGER
    if rank > total // 2:
        return EliminationStatus.WARNING
    return EliminationStatus.SAFE


def sort_teams(teams: Iterable[TeamWeeklyResult]) -> List[TeamWeeklyResult]:
    # team id breaks ties so re-ranking the same week is stable
    return sorted(teams, key=lambda t: (-t.score, t.team_id))


def rank(teams: Sequence[TeamWeeklyResult], week: int) -> List[FantasyTeamRanking]:
    ordered = sort_teams(teams)
    total = len(ordered)
    if not total:
        return []
    zone = elimination_zone_size(total)
    cutoff_score = ordered[total - zone].score

    rankings: List[FantasyTeamRanking] = []
    for index, team in enumerate(ordered):
        position = index + 1
        in_zone = position > total - zone
        if in_zone:
            # deficit to the team directly above
            margin = total_points([team.score, -ordered[index - 1].score]) if index > 0 else 0.0
            survival = 0.0
        else:
            # cushion over the best team on the chopping block
            margin = total_points([team.score, -cutoff_score])
            survival = max(0.0, min(1.0, (total - position) / total))
        rankings.append(FantasyTeamRanking(
            team=team,
            weekly_points=team.score,
            rank=position,
            status=_status_for(position, total, in_zone),
            is_eliminated=False,
            survival_probability=survival,
            safety_margin=margin,
            weeks_alive=week,
        ))
    return rankings


def split_active(teams: Iterable[TeamWeeklyResult]) -> Tuple[List[TeamWeeklyResult], List[TeamWeeklyResult]]:
    active: List[TeamWeeklyResult] = []
    gone: List[TeamWeeklyResult] = []
    for team in teams:
        (active if team.has_fieldable_roster else gone).append(team)
    return active, gone


def drama_meter(margin: Optional[float]) -> float:
    if margin is None:
        return UNKNOWN_DRAMA
    return 1.0 - min(abs(margin), DRAMA_SCALE) / DRAMA_SCALE


class EliminationLedger:
    """Append-only record of eliminations; a team is entered at most once."""

    def __init__(self, events: Iterable[EliminationEvent] = ()):
        self._events: Dict[Tuple[str, int], EliminationEvent] = {}
        self._teams: Dict[str, Tuple[str, int]] = {}
        for event in events:
            self.append(event)

    def append(self, event: EliminationEvent) -> bool:
        team_id = event.team.team_id
        if team_id in self._teams:
            return False
        self._events[event.key] = event
        self._teams[team_id] = event.key
        return True

    def event_for(self, team_id: str) -> Optional[EliminationEvent]:
        key = self._teams.get(team_id)
        return self._events[key] if key else None

    def events(self) -> List[EliminationEvent]:
        return sorted(self._events.values(), key=lambda e: (e.week, e.team.team_id))

    def __contains__(self, team_id: object) -> bool:
        return team_id in self._teams

    def __len__(self) -> int:
        return len(self._events)


def _previous_margin(team_id: str, previous_rankings: Optional[Sequence[FantasyTeamRanking]]) -> Optional[float]:
    if not previous_rankings:
        return None
    for index, ranking in enumerate(previous_rankings):
        if ranking.team_id != team_id:
            continue
        if index == 0:
            return None
        return total_points([previous_rankings[index - 1].weekly_points, -ranking.weekly_points])
    return None


def record_eliminations(
    previously_eliminated: Sequence[TeamWeeklyResult],
    week: int,
    ledger: EliminationLedger,
    previous_rankings: Optional[Sequence[FantasyTeamRanking]] = None,
    active_count: int = 0,
) -> List[EliminationEvent]:
    """Write newly observed eliminated teams into the ledger and return the new events.

    Teams already in the ledger are skipped, so replaying a week adds nothing.
    When last week's rankings are supplied, the margin is how far the team
    finished behind the team above it.
    """
    elimination_week = max(1, week - 1)
    previous_scores = {r.team_id: r.weekly_points for r in previous_rankings or ()}
    added: List[EliminationEvent] = []
    for team in sorted(previously_eliminated, key=lambda t: t.team_id):
        if team.team_id in ledger:
            continue
        margin = _previous_margin(team.team_id, previous_rankings)
        final_score = previous_scores.get(team.team_id, team.score)
        graveyard_rank = FantasyTeamRanking(
            team=team,
            weekly_points=final_score,
            rank=active_count + len(ledger) + 1,
            status=EliminationStatus.ELIMINATED,
            is_eliminated=True,
            survival_probability=0.0,
            safety_margin=0.0,
            weeks_alive=elimination_week,
        )
        event = EliminationEvent(
            team=graveyard_rank,
            week=elimination_week,
            final_score=final_score,
            margin=margin if margin is not None else 0.0,
            drama_meter=drama_meter(margin),
            last_words=DEFAULT_LAST_WORDS,
        )
        if ledger.append(event):
            LOGGER.info("Team %s chopped in week %s (margin %.2f)", team.team_id, elimination_week, event.margin)
            added.append(event)
    return added


def summarize_week(
    league_id: str,
    week: int,
    teams: Sequence[TeamWeeklyResult],
    ledger: EliminationLedger,
    previous_rankings: Optional[Sequence[FantasyTeamRanking]] = None,
) -> ChoppedWeekSummary:
    active, gone = split_active(teams)
    rankings = rank(active, week)
    record_eliminations(gone, week, ledger, previous_rankings, active_count=len(rankings))

    scores = [r.weekly_points for r in rankings]
    if scores:
        average, high, low = statistics.fmean(scores), max(scores), min(scores)
    else:
        average = high = low = 0.0
    zone = elimination_zone_size(len(rankings))
    on_the_block = tuple(rankings[len(rankings) - zone:]) if zone else ()

    return ChoppedWeekSummary(
        league_id=league_id,
        week=week,
        rankings=tuple(rankings),
        eliminated_this_week=on_the_block,
        cutoff_score=low,
        average_score=average,
        highest_score=high,
        lowest_score=low,
        elimination_history=tuple(ledger.events()),
    )


def find_team(summary: ChoppedWeekSummary, team_id: str) -> Optional[FantasyTeamRanking]:
    for ranking in summary.rankings:
        if ranking.team_id == team_id:
            return ranking
    for event in summary.elimination_history:
        if event.team.team_id == team_id:
            return event.team
    return None


def summary_frame(summary: ChoppedWeekSummary) -> pd.DataFrame:
    rows = [
        {
            'rank': r.rank,
            'team': r.team.name,
            'points': round(r.weekly_points, 2),
            'status': r.status.value,
            'margin': r.safety_margin_display,
            'survival': r.survival_percentage,
        }
        for r in summary.rankings
    ]
    if not rows:
        return pd.DataFrame(columns=['rank', 'team', 'points', 'status', 'margin', 'survival'])
    return pd.DataFrame(rows).set_index('rank')
