"""Decide which of a league's reported scoring rules are actually in effect.

Upstream payloads mix real commissioner settings with template defaults that
never score anything. Each raw rule runs through an ordered pipeline of
filters; the first filter that claims a rule drops it, anything left over is
kept with its reported value untouched.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    Confidence,
    DistanceBand,
    PositionCode,
    RawScoringRule,
    StatKey,
    Unrecognized,
    ValidatedScoringRuleSet,
)
from .settings_parser import extract_espn_scoring_items, parse_espn_scoring_items, parse_sleeper_scoring
from .stat_catalog import (
    CORE_STAT_KEYS,
    FIELD_GOAL_KEY,
    TEMPLATE_NOISE_KEYS,
    band_key,
    detect_archetype,
    has_penalty_marker,
    is_field_goal_key,
    tier_of,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleFilter:
    name: str
    drops: Callable[[StatKey, float], bool]


def is_template_noise(key: StatKey, points: float) -> bool:
    return key in TEMPLATE_NOISE_KEYS


def is_explicit_zero(key: StatKey, points: float) -> bool:
    return points == 0.0


def is_rare_negligible(key: StatKey, points: float) -> bool:
    # small fumble/interception penalties are real settings, not leakage
    return tier_of(key) == 'rare' and abs(points) < 0.1 and not has_penalty_marker(key)


def is_negative_noise(key: StatKey, points: float) -> bool:
    return points < 0 and abs(points) < 0.5 and not has_penalty_marker(key)


def is_microscopic_positive(key: StatKey, points: float) -> bool:
    return 0 < points < 0.01


DEFAULT_PIPELINE: Tuple[RuleFilter, ...] = (
    RuleFilter('template_noise', is_template_noise),
    RuleFilter('explicit_zero', is_explicit_zero),
    RuleFilter('rare_negligible', is_rare_negligible),
    RuleFilter('negative_noise', is_negative_noise),
    RuleFilter('microscopic_positive', is_microscopic_positive),
)


def evaluate_rule(key: StatKey, points: float, pipeline: Sequence[RuleFilter] = DEFAULT_PIPELINE) -> Optional[str]:
    """Return the name of the filter that drops this rule, or None if it is kept."""
    for rule_filter in pipeline:
        if rule_filter.drops(key, points):
            return rule_filter.name
    return None


def confidence_for(rules: Iterable[StatKey]) -> Tuple[Confidence, float]:
    keys = set(rules)
    present = 0
    for core in CORE_STAT_KEYS:
        if core == FIELD_GOAL_KEY:
            # banded field goals count as field-goal scoring
            if any(is_field_goal_key(k) for k in keys):
                present += 1
        elif core in keys:
            present += 1
    fraction = present / len(CORE_STAT_KEYS)
    if fraction >= 1.0:
        return Confidence.PERFECT, fraction
    if fraction >= 0.9:
        return Confidence.HIGH, fraction
    if fraction >= 0.7:
        return Confidence.MEDIUM, fraction
    return Confidence.LOW, fraction


def infer(
    raw: Sequence[RawScoringRule],
    league_id: str,
    source: str = 'raw settings',
    pipeline: Sequence[RuleFilter] = DEFAULT_PIPELINE,
) -> ValidatedScoringRuleSet:
    if not raw:
        basis = f"{source}: no scoring settings found"
        LOGGER.info("League %s: %s", league_id, basis)
        return ValidatedScoringRuleSet(
            league_id=league_id,
            rules={},
            position_overrides={},
            confidence=Confidence.LOW,
            basis=basis,
        )

    kept: Dict[StatKey, float] = {}
    position_overrides: Dict[Tuple[StatKey, int], float] = {}
    bands: List[RawScoringRule] = []
    seen = set()
    dropped = 0

    for rule in raw:
        if rule.stat_key in seen:
            LOGGER.debug("League %s: duplicate rule %s ignored", league_id, rule.stat_key)
            continue
        seen.add(rule.stat_key)
        reason = evaluate_rule(rule.stat_key, rule.points, pipeline)
        if reason:
            dropped += 1
            LOGGER.debug("League %s: dropped %s=%s (%s)", league_id, rule.stat_key, rule.points, reason)
            continue
        kept[rule.stat_key] = rule.points
        for override in rule.overrides:
            if isinstance(override, PositionCode):
                # position-specific bonus; flattening it would double count
                position_overrides[(rule.stat_key, override.position_id)] = override.points
            elif isinstance(override, DistanceBand):
                derived = band_key(rule.stat_key, override.low, override.high)
                bands.append(RawScoringRule(stat_key=derived, points=override.points))
            elif isinstance(override, Unrecognized):
                LOGGER.warning(
                    "League %s: ignoring unrecognized override %r on %s", league_id, override.raw_key, rule.stat_key
                )

    for derived in bands:
        # an explicitly reported banded key takes precedence
        if derived.stat_key in seen:
            continue
        seen.add(derived.stat_key)
        reason = evaluate_rule(derived.stat_key, derived.points, pipeline)
        if reason:
            dropped += 1
            LOGGER.debug("League %s: dropped band %s=%s (%s)", league_id, derived.stat_key, derived.points, reason)
            continue
        kept[derived.stat_key] = derived.points

    confidence, fraction = confidence_for(kept)
    basis = (
        f"{source} ({len(kept)} of {len(seen)} rules kept, {dropped} filtered; "
        f"core {fraction:.0%}; archetype={detect_archetype(kept)})"
    )
    LOGGER.info("League %s: %s -> %s", league_id, basis, confidence.value)
    return ValidatedScoringRuleSet(
        league_id=league_id,
        rules=kept,
        position_overrides=position_overrides,
        confidence=confidence,
        basis=basis,
    )


def infer_sleeper_league(league_payload: Optional[Dict[str, Any]], league_id: str) -> ValidatedScoringRuleSet:
    settings = (league_payload or {}).get('scoring_settings')
    return infer(parse_sleeper_scoring(settings), league_id, source='Sleeper API - league data')


def infer_espn_league(league_payload: Optional[Dict[str, Any]], league_id: str) -> ValidatedScoringRuleSet:
    items, source = extract_espn_scoring_items(league_payload)
    return infer(parse_espn_scoring_items(items), league_id, source=source)
