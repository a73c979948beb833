"""Runtime settings read from the environment."""
import os
from dataclasses import dataclass
from typing import Optional

from .sleeper_api import BASE
from .stat_catalog import BASELINES


@dataclass(frozen=True)
class Settings:
    sleeper_base_url: str
    http_timeout: float
    cache_dir: Optional[str]
    max_workers: int
    fallback_archetype: Optional[str]
    log_level: str
    season: int


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {value!r}") from exc


def get_settings() -> Settings:
    archetype = os.environ.get('CHOPPED_FALLBACK_ARCHETYPE') or None
    if archetype is not None and archetype not in BASELINES:
        raise ValueError(f"CHOPPED_FALLBACK_ARCHETYPE must be one of {sorted(BASELINES)}, got {archetype!r}")
    return Settings(
        sleeper_base_url=os.environ.get('CHOPPED_SLEEPER_BASE_URL', BASE),
        http_timeout=float(os.environ.get('CHOPPED_HTTP_TIMEOUT', '10')),
        cache_dir=os.environ.get('CHOPPED_CACHE_DIR') or None,
        max_workers=max(1, _env_int('CHOPPED_MAX_WORKERS', 8)),
        fallback_archetype=archetype,
        log_level=os.environ.get('CHOPPED_LOG_LEVEL', 'INFO').upper(),
        season=_env_int('CHOPPED_SEASON', 2025),
    )
