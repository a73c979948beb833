"""Convert upstream scoring payloads into RawScoringRule lists.

Override maps are classified once here (position / distance band /
unrecognized) so nothing downstream has to sniff raw keys again.
"""
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models import DistanceBand, Override, PositionCode, RawScoringRule, Unrecognized
from .stat_catalog import ESPN_STAT_ID_TO_KEY, POSITION_ID_RANGE, canonical_key

LOGGER = logging.getLogger(__name__)

_BAND_RANGE = re.compile(r'^(\d+)\s*[-_]\s*(\d+)$')
_BAND_OPEN = re.compile(r'^(\d+)\s*(?:\+|p|plus)$', re.IGNORECASE)


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def parse_override_key(raw_key: Any, points: float) -> Override:
    key = str(raw_key).strip()
    if key.isdigit():
        position_id = int(key)
        if position_id in POSITION_ID_RANGE:
            return PositionCode(position_id=position_id, points=points)
        return Unrecognized(raw_key=key, points=points)
    m = _BAND_RANGE.match(key)
    if m:
        low, high = int(m.group(1)), int(m.group(2))
        if low <= high:
            return DistanceBand(low=low, high=high, points=points)
    m = _BAND_OPEN.match(key)
    if m:
        return DistanceBand(low=int(m.group(1)), high=None, points=points)
    return Unrecognized(raw_key=key, points=points)


def parse_overrides(stat_key: str, overrides: Optional[Dict[Any, Any]]) -> Tuple[Override, ...]:
    if not overrides or not isinstance(overrides, dict):
        return ()
    out: List[Override] = []
    for raw_key, raw_points in overrides.items():
        points = _to_float(raw_points)
        if points is None:
            LOGGER.warning("Override %s=%r on %s is not numeric; ignoring", raw_key, raw_points, stat_key)
            continue
        parsed = parse_override_key(raw_key, points)
        if isinstance(parsed, Unrecognized):
            LOGGER.warning("Unrecognized override key %r on %s (%s pts)", parsed.raw_key, stat_key, points)
        out.append(parsed)
    return tuple(out)


def _fold_aliases(raw: Dict[str, Any], rename: Callable[[str], str]) -> Dict[str, float]:
    """Numeric entries under canonical keys; a canonical spelling beats any alias of it."""
    values: Dict[str, float] = {}
    aliased: Dict[str, float] = {}
    for k, v in raw.items():
        number = _to_float(v)
        if number is None:
            continue
        key = rename(k)
        if key == k:
            values[key] = number
        else:
            aliased.setdefault(key, number)
    for key, number in aliased.items():
        values.setdefault(key, number)
    return values


def parse_sleeper_scoring(settings: Optional[Dict[str, Any]]) -> List[RawScoringRule]:
    """Sleeper league `scoring_settings` -> raw rules.

    Keys are folded onto canonical spellings. Sleeper may carry both `pass_int`
    (interceptions thrown) and `int` (interceptions made); when they disagree in
    sign the defensive one is kept as `def_int`.
    """
    if not settings:
        return []
    values = _fold_aliases(settings, canonical_key)

    if 'int' in values:
        v_def = values.pop('int')
        v_pass = values.get('pass_int')
        if v_pass is None and v_def < 0:
            # only an offensive penalty was configured
            values['pass_int'] = v_def
        else:
            values.setdefault('def_int', v_def)

    return [RawScoringRule(stat_key=k, points=v) for k, v in values.items()]


def parse_espn_scoring_items(items: Optional[List[Dict[str, Any]]]) -> List[RawScoringRule]:
    if not items:
        return []
    rules: Dict[str, RawScoringRule] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        stat_id = item.get('statId')
        points = _to_float(item.get('points'))
        if stat_id is None or points is None:
            continue
        key = ESPN_STAT_ID_TO_KEY.get(stat_id)
        if key is None:
            LOGGER.debug("ESPN stat %s (%s pts) has no canonical mapping", stat_id, points)
            continue
        overrides = parse_overrides(key, item.get('pointsOverrides'))
        # first occurrence wins; ESPN occasionally repeats a stat id
        rules.setdefault(key, RawScoringRule(stat_key=key, points=points, overrides=overrides))
    return list(rules.values())


def extract_espn_scoring_items(league_payload: Optional[Dict[str, Any]]) -> Tuple[Optional[List[Dict[str, Any]]], str]:
    """Locate scoringItems in an ESPN league payload, returning (items, basis)."""
    if not league_payload:
        return None, 'ESPN API'
    top = league_payload.get('scoringSettings') or {}
    if isinstance(top, dict) and top.get('scoringItems'):
        return top['scoringItems'], 'ESPN API - scoringSettings'
    nested = (league_payload.get('settings') or {}).get('scoringSettings') or {}
    if isinstance(nested, dict) and nested.get('scoringItems'):
        return nested['scoringItems'], 'ESPN API - settings.scoringSettings'
    return None, 'ESPN API'


def normalize_stat_line(raw: Optional[Dict[str, Any]]) -> Dict[str, float]:
    """Weekly stat block -> canonical numeric StatLine (non-numeric entries dropped)."""
    if not raw:
        return {}
    # bare 'int' on a weekly line is a defensive interception
    return _fold_aliases(raw, lambda k: 'def_int' if k == 'int' else canonical_key(k))
