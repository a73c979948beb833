import hashlib
import json
import logging
import os
import threading
from typing import Any, Callable, Dict, Optional

from .models import ValidatedScoringRuleSet

LOGGER = logging.getLogger(__name__)


class RuleSetCache:
    """Validated rule sets keyed by league id.

    Entries are immutable once published; a refresh replaces the entry. Only
    one computation per league runs at a time, concurrent callers for the same
    league wait for it and share the result.
    """

    def __init__(self):
        self._entries: Dict[str, ValidatedScoringRuleSet] = {}
        self._guard = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        # callers currently holding or waiting on each key lock
        self._users: Dict[str, int] = {}

    def _acquire_key(self, league_id: str) -> threading.Lock:
        with self._guard:
            self._users[league_id] = self._users.get(league_id, 0) + 1
            return self._key_locks.setdefault(league_id, threading.Lock())

    def _release_key(self, league_id: str) -> None:
        with self._guard:
            self._users[league_id] -= 1
            if not self._users[league_id]:
                # nobody holds or waits on it, so the lock can go
                del self._users[league_id]
                del self._key_locks[league_id]

    def get(self, league_id: str) -> Optional[ValidatedScoringRuleSet]:
        with self._guard:
            return self._entries.get(league_id)

    def publish(self, rule_set: ValidatedScoringRuleSet) -> None:
        with self._guard:
            self._entries[rule_set.league_id] = rule_set

    def get_or_compute(
        self,
        league_id: str,
        compute: Callable[[], ValidatedScoringRuleSet],
    ) -> ValidatedScoringRuleSet:
        cached = self.get(league_id)
        if cached is not None:
            LOGGER.debug("Rule set cache hit for league %s", league_id)
            return cached
        key_lock = self._acquire_key(league_id)
        try:
            with key_lock:
                # another caller may have finished while we waited
                cached = self.get(league_id)
                if cached is not None:
                    return cached
                LOGGER.info("Computing rule set for league %s", league_id)
                rule_set = compute()
                self.publish(rule_set)
                return rule_set
        finally:
            self._release_key(league_id)

    def invalidate(self, league_id: Optional[str] = None) -> None:
        with self._guard:
            if league_id is None:
                self._entries.clear()
            else:
                self._entries.pop(league_id, None)

    def bases(self) -> Dict[str, str]:
        with self._guard:
            return {league_id: rs.basis for league_id, rs in self._entries.items()}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class StatFileCache:
    """JSON file per key under cache_dir; disabled when cache_dir is None."""

    def __init__(self, cache_dir: Optional[str]):
        self.cache_dir = cache_dir

    def _path(self, key: str) -> str:
        return os.path.join(self.cache_dir or '', hashlib.sha256(key.encode()).hexdigest() + '.json')

    def load(self, key: str) -> Optional[Any]:
        if not self.cache_dir:
            return None
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable cache entry %s: %s", path, exc)
            return None

    def save(self, key: str, obj: Any) -> None:
        if not self.cache_dir:
            return
        os.makedirs(self.cache_dir, exist_ok=True)
        with open(self._path(key), 'w', encoding='utf-8') as fh:
            json.dump(obj, fh)
