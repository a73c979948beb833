import logging
from typing import Any, Dict, List, Optional

import requests

BASE = 'https://api.sleeper.app/v1'

LOGGER = logging.getLogger(__name__)


class SleeperAPIError(Exception):
    pass


class SleeperClient:
    def __init__(self, base_url: str = BASE, timeout: float = 10):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = requests.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise SleeperAPIError(f"GET {url} failed: {exc}") from exc
        if not resp.ok:
            raise SleeperAPIError(f"GET {url} failed: {resp.status_code} {resp.text}")
        LOGGER.debug("GET %s -> %s", url, resp.status_code)
        return resp.json()

    def get_league(self, league_id: str) -> Dict[str, Any]:
        """League object; `scoring_settings` holds the raw rule map."""
        return self._get(f'/league/{league_id}') or {}

    def get_rosters(self, league_id: str) -> List[Dict[str, Any]]:
        return self._get(f'/league/{league_id}/rosters') or []

    def get_league_users(self, league_id: str) -> List[Dict[str, Any]]:
        """Users in a league, including display_name and user_id."""
        return self._get(f'/league/{league_id}/users') or []

    def get_matchups(self, league_id: str, week: int) -> List[Dict[str, Any]]:
        # each entry carries roster_id, players, starters and points for the week
        return self._get(f'/league/{league_id}/matchups/{week}') or []

    def get_week_stats(self, season: int, week: int) -> Any:
        """Raw weekly player stats: dict of player_id -> stat block (or a list of blocks)."""
        return self._get(f'/stats/nfl/regular/{season}/{week}', params={'season_type': 'regular'})

    def get_players(self) -> Dict[str, Any]:
        """Mapping of player_id -> player object."""
        return self._get('/players/nfl') or {}
