import logging
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from .models import PlayerWeek, PointsValidation, StatKey, ValidatedScoringRuleSet, ValidationStatus
from .stat_catalog import position_id_for

LOGGER = logging.getLogger(__name__)

# gaps strictly above these are minor / significant discrepancies
MINOR_DISCREPANCY = 0.1
SIGNIFICANT_DISCREPANCY = 1.0


def _dec(value: float) -> Decimal:
    # go through repr so 0.04 stays 0.04 instead of its binary expansion
    return Decimal(repr(float(value)))


def _points_per_unit(stat: StatKey, rules: ValidatedScoringRuleSet, position_id: Optional[int]) -> Optional[float]:
    if position_id is not None:
        override = rules.position_overrides.get((stat, position_id))
        if override is not None:
            return override
    return rules.rules.get(stat)


def score_breakdown(
    stats: Mapping[str, float],
    rules: ValidatedScoringRuleSet,
    position: Optional[str] = None,
) -> Dict[str, float]:
    """Per-stat point contribution for one stat line.

    Yardage is multiplied straight through (211 yds x 0.04 = 8.44), never
    bucketed into whole increments. Keys the rule set doesn't know contribute
    nothing.
    """
    position_id = position_id_for(position)
    contributions: Dict[str, float] = {}
    for stat, value in stats.items():
        if stat.startswith('_') or not isinstance(value, (int, float)) or isinstance(value, bool):
            continue
        if value == 0:
            continue
        factor = _points_per_unit(stat, rules, position_id)
        if factor is None:
            continue
        contributions[stat] = float(_dec(value) * _dec(factor))
    return contributions


def score(
    stats: Mapping[str, float],
    rules: ValidatedScoringRuleSet,
    position: Optional[str] = None,
) -> float:
    position_id = position_id_for(position)
    total = Decimal(0)
    for stat, value in stats.items():
        if stat.startswith('_') or not isinstance(value, (int, float)) or isinstance(value, bool):
            continue
        if value == 0:
            continue
        factor = _points_per_unit(stat, rules, position_id)
        if factor is None:
            continue
        total += _dec(value) * _dec(factor)
    return float(total)


def breakdown_frame(
    stats: Mapping[str, float],
    rules: ValidatedScoringRuleSet,
    position: Optional[str] = None,
) -> pd.DataFrame:
    contributions = score_breakdown(stats, rules, position)
    rows = [
        {'stat': stat, 'value': stats[stat], 'points': pts}
        for stat, pts in contributions.items()
    ]
    if not rows:
        return pd.DataFrame(columns=['stat', 'value', 'points'])
    df = pd.DataFrame(rows)
    return df.reindex(df['points'].abs().sort_values(ascending=False).index).reset_index(drop=True)


class ScoringEngine:
    def __init__(self, rules: ValidatedScoringRuleSet):
        self.rules = rules

    def score_player_week(self, pw: PlayerWeek) -> float:
        return score(pw.stats, self.rules, pw.position)

    def score_player_weeks(self, pws: Iterable[PlayerWeek]) -> Dict[str, float]:
        # return mapping week (string) -> points
        res: Dict[str, float] = {}
        for pw in pws:
            res[str(pw.week)] = self.score_player_week(pw)
        return res

    def score_team(self, pws: Iterable[PlayerWeek]) -> float:
        return total_points(self.score_player_week(pw) for pw in pws)

    def validate_player_week(self, pw: PlayerWeek) -> PointsValidation:
        return validate_points(pw, self.rules)


def total_points(values: Iterable[float]) -> float:
    """Sum point values without float drift (8.44 + 10.5 == 18.94)."""
    total = Decimal(0)
    for value in values:
        total += _dec(value)
    return float(total)


def validate_points(
    pw: PlayerWeek,
    rules: ValidatedScoringRuleSet,
    reported_points: Optional[float] = None,
) -> PointsValidation:
    """Compare our score for a stat line with the points the platform reported.

    A missing reported value counts as 0. A gap over 0.1 is a minor
    discrepancy and over 1.0 a significant one. An empty rule set cannot be
    checked and is reported as such with calculated points of 0.
    """
    if reported_points is None:
        reported_points = pw.reported_points
    reported = float(reported_points) if reported_points is not None else 0.0
    if rules.is_empty:
        LOGGER.warning("No scoring settings for league %s; cannot validate player %s (basis: %s)",
                       rules.league_id, pw.player_id, rules.basis)
        return PointsValidation(
            player_id=pw.player_id,
            reported_points=reported,
            calculated_points=0.0,
            discrepancy=0.0,
            status=ValidationStatus.NO_SCORING_SETTINGS,
        )

    calculated = score(pw.stats, rules, pw.position)
    discrepancy = abs(total_points([calculated, -reported]))
    if discrepancy > SIGNIFICANT_DISCREPANCY:
        status = ValidationStatus.SIGNIFICANT_DISCREPANCY
    elif discrepancy > MINOR_DISCREPANCY:
        status = ValidationStatus.MINOR_DISCREPANCY
    else:
        status = ValidationStatus.VALIDATED
    LOGGER.debug("Validate %s week %s in league %s: reported %s, calculated %s, off by %s",
                 pw.player_id, pw.week, rules.league_id, reported, calculated, discrepancy)
    return PointsValidation(
        player_id=pw.player_id,
        reported_points=reported,
        calculated_points=calculated,
        discrepancy=discrepancy,
        status=status,
    )
