"""Reference data for canonical stat keys.

Canonical keys follow Sleeper's scoring_settings naming (pass_yd, rec, def_sack,
...). ESPN stat ids and alternate spellings are folded onto them here so the
inference and scoring code only ever see one vocabulary.
"""
from typing import Dict, Mapping, Optional

from .models import StatKey


# ESPN scoringItems statId -> canonical key
ESPN_STAT_ID_TO_KEY: Dict[int, StatKey] = {
    # passing
    0: 'pass_att',
    1: 'pass_cmp',
    3: 'pass_yd',
    4: 'pass_td',
    15: 'pass_td_40p',
    16: 'pass_td_50p',
    19: 'pass_2pt',
    20: 'pass_int',
    # rushing
    23: 'rush_att',
    24: 'rush_yd',
    25: 'rush_td',
    26: 'rush_2pt',
    35: 'rush_td_40p',
    36: 'rush_td_50p',
    # receiving
    41: 'rec',
    42: 'rec_yd',
    43: 'rec_td',
    44: 'rec_2pt',
    45: 'rec_td_40p',
    46: 'rec_td_50p',
    58: 'rec_tgt',
    # fumbles
    68: 'fum',
    72: 'fum_lost',
    # kicking
    74: 'fgm_50p',
    77: 'fgm_40_49',
    80: 'fgm_0_39',
    83: 'fgm',
    85: 'fgmiss',
    86: 'xpm',
    88: 'xpmiss',
    # defense / special teams
    95: 'def_int',
    96: 'def_fum_rec',
    97: 'blk_kick',
    98: 'def_safe',
    99: 'def_sack',
    101: 'kick_ret_td',
    102: 'punt_ret_td',
    103: 'int_td',
    104: 'fum_rec_td',
    106: 'def_fum_force',
    107: 'def_ast',
    108: 'def_solo',
    109: 'def_comb',
    113: 'def_pass_def',
    114: 'kick_ret_yd',
    115: 'punt_ret_yd',
    # first downs
    211: 'pass_fd',
    212: 'rush_fd',
    213: 'rec_fd',
    # ids ESPN ships in league templates; mapped so they can be filtered by key
    63: 'punt_yd',
    198: 'qb_hit',
    201: 'pass_drop',
    206: 'pass_air_yd',
    209: 'pass_yac',
}

# alternate upstream spellings -> canonical
SLEEPER_KEY_ALIASES: Dict[str, StatKey] = {
    'pass_yds': 'pass_yd',
    'rush_yds': 'rush_yd',
    'rec_yds': 'rec_yd',
    'pass_tds': 'pass_td',
    'rush_tds': 'rush_td',
    'rec_tds': 'rec_td',
    'receptions': 'rec',
    'sack': 'def_sack',
    'safe': 'def_safe',
    'fum_rec': 'def_fum_rec',
    'ff': 'def_fum_force',
}

CORE_STAT_KEYS = frozenset({
    'pass_yd', 'pass_td', 'pass_int',
    'rush_yd', 'rush_td',
    'rec_yd', 'rec_td',
    'fgm', 'xpm',
    'fum_lost',
})

COMMON_STAT_KEYS = frozenset({
    'rec', 'pass_att', 'pass_cmp', 'rush_att', 'fum',
    'pass_2pt', 'rush_2pt', 'rec_2pt',
    'fgmiss', 'xpmiss',
    'def_td', 'def_int', 'def_sack', 'def_safe', 'def_fum_rec', 'blk_kick',
    'kick_ret_td', 'punt_ret_td', 'int_td', 'fum_rec_td',
    'pts_allow_0', 'pts_allow_1_6', 'pts_allow_7_13', 'pts_allow_14_20',
    'pts_allow_21_27', 'pts_allow_28_34', 'pts_allow_35p',
})

RARE_STAT_KEYS = frozenset({
    'pass_fd', 'rush_fd', 'rec_fd', 'rec_tgt',
    'pass_td_40p', 'pass_td_50p', 'rush_td_40p', 'rush_td_50p',
    'rec_td_40p', 'rec_td_50p', 'pass_cmp_40p', 'rush_40p', 'rec_40p',
    'kick_ret_yd', 'punt_ret_yd',
    'def_fum_force', 'def_ast', 'def_solo', 'def_comb', 'def_pass_def',
    'bonus_rec_te', 'bonus_pass_yd_300', 'bonus_pass_yd_400',
    'bonus_rush_yd_100', 'bonus_rush_yd_200', 'bonus_rec_yd_100', 'bonus_rec_yd_200',
})

# never reflect a commissioner's real configuration in observed payloads
TEMPLATE_NOISE_KEYS = frozenset({
    'pass_air_yd', 'pass_yac', 'qb_hit', 'pass_drop', 'punt_yd',
    'pass_rz_att', 'rush_rz_att', 'rec_rz_tgt',
})

YARDAGE_KEYS = frozenset({
    'pass_yd', 'rush_yd', 'rec_yd', 'kick_ret_yd', 'punt_ret_yd',
    'idp_kick_ret_yd', 'idp_punt_ret_yd', 'fum_ret_yd', 'int_ret_yd',
})

FIELD_GOAL_KEY = 'fgm'

PENALTY_MARKERS = ('fum', 'int')

BASELINES: Dict[str, Dict[StatKey, float]] = {
    'standard': {
        'pass_yd': 0.04, 'pass_td': 4.0, 'pass_int': -2.0,
        'rush_yd': 0.1, 'rush_td': 6.0,
        'rec': 0.0, 'rec_yd': 0.1, 'rec_td': 6.0,
        'fgm': 3.0, 'xpm': 1.0, 'fum_lost': -2.0,
    },
    'half_ppr': {
        'pass_yd': 0.04, 'pass_td': 4.0, 'pass_int': -1.0,
        'rush_yd': 0.1, 'rush_td': 6.0,
        'rec': 0.5, 'rec_yd': 0.1, 'rec_td': 6.0,
        'fgm': 3.0, 'xpm': 1.0, 'fum_lost': -2.0,
    },
    'ppr': {
        'pass_yd': 0.04, 'pass_td': 4.0, 'pass_int': -1.0,
        'rush_yd': 0.1, 'rush_td': 6.0,
        'rec': 1.0, 'rec_yd': 0.1, 'rec_td': 6.0,
        'fgm': 3.0, 'xpm': 1.0, 'fum_lost': -2.0,
    },
    'advanced_ppr': {
        'pass_yd': 0.04, 'pass_td': 4.0, 'pass_int': -1.0, 'pass_fd': 0.5,
        'rush_yd': 0.1, 'rush_td': 6.0, 'rush_fd': 0.5,
        'rec': 1.0, 'rec_yd': 0.1, 'rec_td': 6.0, 'rec_fd': 0.5,
        'fgm': 3.0, 'fgm_40_49': 4.0, 'fgm_50p': 5.0, 'xpm': 1.0,
        'fum_lost': -2.0,
    },
}

# ESPN position ids used as pointsOverrides keys
POSITION_IDS: Dict[int, str] = {
    1: 'QB',
    2: 'RB',
    3: 'WR',
    4: 'TE',
    5: 'K',
    16: 'DST',
    17: 'K',
    20: 'FLEX',
}

POSITION_ID_RANGE = range(1, 21)


def canonical_key(key: str) -> StatKey:
    return SLEEPER_KEY_ALIASES.get(key, key)


def tier_of(key: StatKey) -> str:
    if key in CORE_STAT_KEYS:
        return 'core'
    if key in COMMON_STAT_KEYS:
        return 'common'
    # unlisted keys get the strictest treatment
    return 'rare'


def is_yardage_key(key: StatKey) -> bool:
    return key in YARDAGE_KEYS


def has_penalty_marker(key: StatKey) -> bool:
    return any(marker in key for marker in PENALTY_MARKERS)


def is_field_goal_key(key: StatKey) -> bool:
    return key == FIELD_GOAL_KEY or key.startswith(FIELD_GOAL_KEY + '_')


def band_key(stat_key: StatKey, low: int, high: Optional[int]) -> StatKey:
    """Derived key for a distance band: ('fgm', 40, 49) -> 'fgm_40_49', ('fgm', 50, None) -> 'fgm_50p'."""
    if high is None:
        return f"{stat_key}_{low}p"
    return f"{stat_key}_{low}_{high}"


def position_id_for(code: Optional[str]) -> Optional[int]:
    if not code:
        return None
    code = code.upper()
    if code in ('D/ST', 'DEF'):
        code = 'DST'
    for pid, name in POSITION_IDS.items():
        if name == code:
            return pid
    return None


def baseline(name: str) -> Dict[StatKey, float]:
    return dict(BASELINES[name])


def detect_archetype(rules: Mapping[StatKey, float]) -> str:
    """Name the baseline archetype a rule set most resembles (diagnostics only)."""
    if not rules:
        return 'unknown'
    rec = rules.get('rec', 0.0)
    if rec >= 1.0:
        if any(k in rules for k in ('pass_fd', 'rush_fd', 'rec_fd')):
            return 'advanced_ppr'
        return 'ppr'
    if rec >= 0.5:
        return 'half_ppr'
    if rec > 0:
        return 'custom'
    return 'standard'
