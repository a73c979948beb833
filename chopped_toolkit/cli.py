import argparse
import json
import logging
from dataclasses import replace
from typing import List, Optional

from .assembler import LeagueDataError, LeagueResultAssembler, SleeperLeagueSource
from .cache import RuleSetCache, StatFileCache
from .config import Settings, get_settings
from .elimination import EliminationLedger, summary_frame
from .models import ChoppedWeekSummary, ValidatedScoringRuleSet
from .scoring import breakdown_frame, validate_points
from .sleeper_api import SleeperClient

LOGGER = logging.getLogger(__name__)


def build_assembler(settings: Settings, include_positions: bool = False) -> LeagueResultAssembler:
    client = SleeperClient(base_url=settings.sleeper_base_url, timeout=settings.http_timeout)
    source = SleeperLeagueSource(client, StatFileCache(settings.cache_dir), include_positions=include_positions)
    return LeagueResultAssembler(
        settings_source=source,
        stat_source=source,
        roster_source=source,
        cache=RuleSetCache(),
        max_workers=settings.max_workers,
        fallback_archetype=settings.fallback_archetype,
    )


def print_rule_set(rule_set: ValidatedScoringRuleSet, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps({
            'league_id': rule_set.league_id,
            'confidence': rule_set.confidence.value,
            'basis': rule_set.basis,
            'rules': dict(sorted(rule_set.rules.items())),
            'position_overrides': {
                f"{stat}@{pid}": pts for (stat, pid), pts in sorted(rule_set.position_overrides.items())
            },
        }, indent=2))
        return
    print(f"League {rule_set.league_id}: {rule_set.confidence.value}")
    print(f"Basis: {rule_set.basis}")
    for stat, pts in sorted(rule_set.rules.items()):
        print(f"  {stat:20} {pts:8.2f}")
    for (stat, pid), pts in sorted(rule_set.position_overrides.items()):
        print(f"  {stat:20} {pts:8.2f}  (position {pid})")


def print_week_summary(summary: ChoppedWeekSummary, explain_rules: Optional[ValidatedScoringRuleSet] = None) -> None:
    print(f"Week {summary.week}: avg {summary.average_score:.2f} high {summary.highest_score:.2f} "
          f"low {summary.lowest_score:.2f}")
    print('SUMMARY_TABLE_START')
    frame = summary_frame(summary)
    print(frame.to_string() if not frame.empty else '(no active teams)')
    if summary.champion is not None:
        print(f"Champion: {summary.champion.team.name} ({summary.champion.status.dramatic_message})")
    if summary.eliminated_this_week:
        block = summary.eliminated_this_week
        print('On the chopping block: ' + ', '.join(r.team.name for r in block)
              + f" ({block[0].status.dramatic_message})")
    if summary.elimination_history:
        print('GRAVEYARD_START')
        for event in summary.elimination_history:
            print(f"W{event.week} {event.team.team.name}: {event.final_score:.2f} "
                  f"(margin {event.margin:.2f}, {event.drama_label})")
        print('GRAVEYARD_END')
    if explain_rules is not None:
        print('EXPLAIN_START')
        for ranking in summary.rankings:
            for pw in ranking.team.player_weeks:
                df = breakdown_frame(pw.stats, explain_rules, pw.position)
                total = df['points'].sum() if not df.empty else 0.0
                parts = ', '.join(f"{row.stat}={row.points:.2f}" for row in df.itertuples())
                line = f"{ranking.team.name} {pw.player_id} W{pw.week}: {total:.2f} -> {parts}"
                if pw.reported_points is not None:
                    check = validate_points(pw, explain_rules)
                    line += f" [reported {check.reported_points:.2f}: {check.status.value}]"
                print(line)
        print('EXPLAIN_END')


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog='chopped-toolkit')
    parser.add_argument('--log-level', default=settings.log_level, help='Logging level (default from CHOPPED_LOG_LEVEL)')
    parser.add_argument('--cache-dir', default=settings.cache_dir, help='Directory to cache weekly stat payloads')
    sub = parser.add_subparsers(dest='cmd')

    rules = sub.add_parser('rules', help='Show the scoring rules inferred for a league')
    rules.add_argument('--league', required=True, help='Sleeper league_id')
    rules.add_argument('--refresh', action='store_true', help='Ignore any cached rule set')
    rules.add_argument('--json', dest='as_json', action='store_true', help='Print JSON instead of a table')

    week = sub.add_parser('week', help='Rank a chopped league for one week')
    week.add_argument('--league', required=True, help='Sleeper league_id')
    week.add_argument('--week', type=int, required=True, help='Week to rank')
    week.add_argument('--season', type=int, default=settings.season, help='Season year for weekly stats')
    week.add_argument('--positions', action='store_true', help='Load player positions for position-specific scoring')
    week.add_argument('--explain', action='store_true', help='Print per-starter stat contribution breakdown')

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    if args.cmd is None:
        parser.print_help()
        return 1

    run_settings = replace(settings, cache_dir=args.cache_dir, log_level=str(args.log_level).upper())
    assembler = build_assembler(run_settings, include_positions=getattr(args, 'positions', False))
    try:
        if args.cmd == 'rules':
            print_rule_set(assembler.rule_set(args.league, refresh=args.refresh), as_json=args.as_json)
        elif args.cmd == 'week':
            summary = assembler.week_summary(args.league, args.week, args.season, EliminationLedger())
            explain_rules = assembler.scoring_rules_for(args.league) if args.explain else None
            print_week_summary(summary, explain_rules)
    except LeagueDataError as exc:
        LOGGER.error("%s", exc)
        print(f"Error: {exc}")
        return 2
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
