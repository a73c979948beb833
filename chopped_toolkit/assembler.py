"""Gather a league-week's inputs from upstream collaborators and run the engines.

Nothing here decides scoring or ranking policy; it fetches, fans out per-player
scoring, and hands complete TeamWeeklyResults to the elimination engine.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .cache import RuleSetCache, StatFileCache
from .elimination import EliminationLedger, summarize_week
from .inference import infer
from .models import (
    ChoppedWeekSummary,
    Confidence,
    FantasyTeamRanking,
    PlayerWeek,
    RawScoringRule,
    TeamWeeklyResult,
    ValidatedScoringRuleSet,
)
from .scoring import ScoringEngine, total_points
from .settings_parser import normalize_stat_line, parse_sleeper_scoring
from .sleeper_api import SleeperAPIError, SleeperClient
from .stat_catalog import baseline

LOGGER = logging.getLogger(__name__)


class LeagueDataError(Exception):
    pass


@dataclass(frozen=True)
class RosterSnapshot:
    team_id: str
    name: str
    owner_id: Optional[str]
    player_ids: Tuple[str, ...] = ()
    starters: Tuple[str, ...] = ()
    positions: Dict[str, str] = field(default_factory=dict)
    reported_points: Dict[str, float] = field(default_factory=dict)


class SettingsSource(Protocol):
    def fetch_scoring_rules(self, league_id: str) -> Tuple[List[RawScoringRule], str]:
        ...


class StatSource(Protocol):
    def stat_line(self, player_id: str, week: int, season: int) -> Optional[Dict[str, float]]:
        ...


class RosterSource(Protocol):
    def week_rosters(self, league_id: str, week: int) -> List[RosterSnapshot]:
        ...


class LeagueResultAssembler:
    def __init__(
        self,
        settings_source: SettingsSource,
        stat_source: StatSource,
        roster_source: RosterSource,
        cache: Optional[RuleSetCache] = None,
        max_workers: int = 8,
        fallback_archetype: Optional[str] = None,
    ):
        self.settings_source = settings_source
        self.stat_source = stat_source
        self.roster_source = roster_source
        self.cache = cache if cache is not None else RuleSetCache()
        self.max_workers = max(1, max_workers)
        self.fallback_archetype = fallback_archetype

    def _infer_league(self, league_id: str) -> ValidatedScoringRuleSet:
        try:
            raw, source = self.settings_source.fetch_scoring_rules(league_id)
        except SleeperAPIError as exc:
            raise LeagueDataError(f"Could not fetch scoring settings for league {league_id}: {exc}") from exc
        return infer(raw, league_id, source=source)

    def rule_set(self, league_id: str, refresh: bool = False) -> ValidatedScoringRuleSet:
        if refresh:
            self.cache.invalidate(league_id)
        return self.cache.get_or_compute(league_id, lambda: self._infer_league(league_id))

    def scoring_rules_for(self, league_id: str) -> ValidatedScoringRuleSet:
        """Rule set used for scoring: the inferred one, or the fallback baseline when it is empty."""
        inferred = self.rule_set(league_id)
        if not inferred.is_empty or not self.fallback_archetype:
            return inferred
        LOGGER.warning("League %s has no usable scoring settings; scoring with %s baseline",
                       league_id, self.fallback_archetype)
        return ValidatedScoringRuleSet(
            league_id=league_id,
            rules=baseline(self.fallback_archetype),
            position_overrides={},
            confidence=Confidence.LOW,
            basis=f"{inferred.basis}; {self.fallback_archetype} baseline applied",
        )

    def _player_week(
        self,
        player_id: str,
        position: Optional[str],
        reported: Optional[float],
        week: int,
        season: int,
        engine: ScoringEngine,
    ) -> Tuple[PlayerWeek, float]:
        stats = self.stat_source.stat_line(player_id, week, season)
        if stats is None:
            LOGGER.debug("No stat line for player %s week %s; scoring 0", player_id, week)
            stats = {}
        pw = PlayerWeek(
            player_id=player_id, week=week, stats=dict(stats), position=position, reported_points=reported
        )
        return pw, engine.score_player_week(pw)

    def team_results(self, league_id: str, week: int, season: int) -> List[TeamWeeklyResult]:
        engine = ScoringEngine(self.scoring_rules_for(league_id))
        try:
            rosters = self.roster_source.week_rosters(league_id, week)
        except SleeperAPIError as exc:
            raise LeagueDataError(f"Could not fetch rosters for league {league_id} week {week}: {exc}") from exc

        scored: Dict[Tuple[str, str], Tuple[PlayerWeek, float]] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {}
            for roster in rosters:
                for player_id in roster.starters:
                    future = pool.submit(
                        self._player_week,
                        player_id,
                        roster.positions.get(player_id),
                        roster.reported_points.get(player_id),
                        week,
                        season,
                        engine,
                    )
                    futures[future] = (roster.team_id, player_id)
            for future in as_completed(futures):
                try:
                    scored[futures[future]] = future.result()
                except SleeperAPIError as exc:
                    raise LeagueDataError(f"Could not fetch stats for week {week}: {exc}") from exc

        results: List[TeamWeeklyResult] = []
        for roster in rosters:
            player_weeks = tuple(scored[(roster.team_id, pid)][0] for pid in roster.starters)
            points = [scored[(roster.team_id, pid)][1] for pid in roster.starters]
            team = TeamWeeklyResult(
                team_id=roster.team_id,
                name=roster.name,
                points=total_points(points) if points else None,
                player_weeks=player_weeks,
                owner_id=roster.owner_id,
                player_ids=roster.player_ids,
                starters=roster.starters,
            )
            results.append(team)
        return results

    def week_summary(
        self,
        league_id: str,
        week: int,
        season: int,
        ledger: EliminationLedger,
        previous_rankings: Optional[Sequence[FantasyTeamRanking]] = None,
    ) -> ChoppedWeekSummary:
        teams = self.team_results(league_id, week, season)
        summary = summarize_week(league_id, week, teams, ledger, previous_rankings)
        LOGGER.info(
            "League %s week %s: %s active, %s in graveyard, cutoff %.2f",
            league_id, week, len(summary.rankings), len(summary.elimination_history), summary.cutoff_score,
        )
        return summary


class SleeperLeagueSource:
    """Sleeper-backed implementation of the three collaborator protocols."""

    def __init__(
        self,
        client: Optional[SleeperClient] = None,
        stat_cache: Optional[StatFileCache] = None,
        include_positions: bool = False,
    ):
        self.client = client or SleeperClient()
        self.stat_cache = stat_cache or StatFileCache(None)
        self.include_positions = include_positions
        self._weeks: Dict[Tuple[int, int], Dict[str, Any]] = {}
        self._weeks_lock = threading.Lock()
        self._positions: Optional[Dict[str, str]] = None

    def fetch_scoring_rules(self, league_id: str) -> Tuple[List[RawScoringRule], str]:
        league = self.client.get_league(league_id)
        settings = league.get('scoring_settings') if isinstance(league, dict) else None
        return parse_sleeper_scoring(settings), 'Sleeper API - league data'

    def _week_blocks(self, season: int, week: int) -> Dict[str, Any]:
        with self._weeks_lock:
            cached = self._weeks.get((season, week))
            if cached is not None:
                return cached
            cache_key = f"sleeper-week-{season}-{week}"
            raw = self.stat_cache.load(cache_key)
            if raw is None:
                raw = self.client.get_week_stats(season, week)
                self.stat_cache.save(cache_key, raw)
            # Recognize shapes: dict of player_id -> stats OR list of dicts
            blocks: Dict[str, Any] = {}
            if isinstance(raw, dict):
                blocks = {str(pid): block for pid, block in raw.items() if isinstance(block, dict)}
            elif isinstance(raw, list):
                for item in raw:
                    if not isinstance(item, dict):
                        continue
                    pid = item.get('player_id') or item.get('playerId')
                    block = item.get('stats') if isinstance(item.get('stats'), dict) else item
                    if pid:
                        blocks[str(pid)] = block
            self._weeks[(season, week)] = blocks
            return blocks

    def stat_line(self, player_id: str, week: int, season: int) -> Optional[Dict[str, float]]:
        block = self._week_blocks(season, week).get(player_id)
        if block is None:
            return None
        return normalize_stat_line({k: v for k, v in block.items() if k not in ('player_id', 'playerId')})

    def _player_positions(self) -> Dict[str, str]:
        if self._positions is None:
            players = self.client.get_players() if self.include_positions else {}
            self._positions = {
                pid: (p.get('position') or '') for pid, p in players.items() if isinstance(p, dict)
            }
        return self._positions

    def week_rosters(self, league_id: str, week: int) -> List[RosterSnapshot]:
        rosters = self.client.get_rosters(league_id)
        users = self.client.get_league_users(league_id)
        matchups = self.client.get_matchups(league_id, week)

        names: Dict[str, str] = {}
        for u in users:
            if not isinstance(u, dict) or not u.get('user_id'):
                continue
            meta = u.get('metadata') or {}
            team_name = meta.get('team_name') if isinstance(meta, dict) else None
            names[str(u['user_id'])] = team_name or u.get('display_name') or f"Team {u['user_id']}"

        by_roster = {m.get('roster_id'): m for m in matchups if isinstance(m, dict)}
        positions = self._player_positions()
        snapshots: List[RosterSnapshot] = []
        # build from /rosters so chopped teams still show up
        for r in rosters:
            roster_id = r.get('roster_id')
            owner_id = r.get('owner_id')
            matchup = by_roster.get(roster_id) or {}
            # Sleeper pads empty lineup slots with '0'
            starters = tuple(str(p) for p in (matchup.get('starters') or []) if p and str(p) != '0')
            player_ids = tuple(str(p) for p in (r.get('players') or []) if p)
            players_points = matchup.get('players_points') or {}
            snapshots.append(RosterSnapshot(
                team_id=str(roster_id),
                name=names.get(str(owner_id), f"Team {roster_id}") if owner_id else f"Team {roster_id}",
                owner_id=str(owner_id) if owner_id else None,
                player_ids=player_ids,
                starters=starters,
                positions={pid: positions[pid] for pid in starters if positions.get(pid)},
                reported_points={
                    pid: float(players_points[pid]) for pid in starters
                    if isinstance(players_points.get(pid), (int, float)) and not isinstance(players_points[pid], bool)
                },
            ))
        return snapshots
