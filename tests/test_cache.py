import os
import tempfile
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest import TestCase

from chopped_toolkit.cache import RuleSetCache, StatFileCache
from chopped_toolkit.models import Confidence, ValidatedScoringRuleSet


def _rule_set(league_id, basis='test', rules=None):
    return ValidatedScoringRuleSet(
        league_id=league_id,
        rules=rules or {'pass_td': 4.0},
        position_overrides={},
        confidence=Confidence.LOW,
        basis=basis,
    )


class TestRuleSetCache(TestCase):
    def test_computes_once_under_concurrency(self):
        cache = RuleSetCache()
        calls = []
        lock = threading.Lock()

        def compute():
            with lock:
                calls.append(1)
            time.sleep(0.05)
            return _rule_set('L1')

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: cache.get_or_compute('L1', compute), range(16)))

        self.assertEqual(len(calls), 1)
        self.assertTrue(all(r is results[0] for r in results))

    def test_leagues_are_independent(self):
        cache = RuleSetCache()
        cache.get_or_compute('A', lambda: _rule_set('A', basis='a'))
        cache.get_or_compute('B', lambda: _rule_set('B', basis='b'))
        self.assertEqual(cache.bases(), {'A': 'a', 'B': 'b'})
        self.assertEqual(len(cache), 2)

    def test_invalidate_forces_recompute(self):
        cache = RuleSetCache()
        first = cache.get_or_compute('L1', lambda: _rule_set('L1', basis='first'))
        cache.invalidate('L1')
        second = cache.get_or_compute('L1', lambda: _rule_set('L1', basis='second'))
        self.assertEqual(first.basis, 'first')
        self.assertEqual(second.basis, 'second')

    def test_invalidate_all(self):
        cache = RuleSetCache()
        cache.publish(_rule_set('A'))
        cache.publish(_rule_set('B'))
        cache.invalidate()
        self.assertEqual(len(cache), 0)
        self.assertIsNone(cache.get('A'))

    def test_published_entries_are_read_only(self):
        cache = RuleSetCache()
        cache.publish(_rule_set('L1'))
        with self.assertRaises(TypeError):
            cache.get('L1').rules['pass_td'] = 6.0

    def test_failed_compute_is_not_cached(self):
        cache = RuleSetCache()

        def boom():
            raise RuntimeError('upstream down')

        with self.assertRaises(RuntimeError):
            cache.get_or_compute('L1', boom)
        self.assertIsNone(cache.get('L1'))

    def test_key_locks_released_after_compute(self):
        cache = RuleSetCache()
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda i: cache.get_or_compute(f"L{i % 5}", lambda: _rule_set(f"L{i % 5}")), range(20)))
        self.assertEqual(len(cache), 5)
        self.assertEqual(cache._key_locks, {})
        cache.invalidate()
        self.assertEqual(cache._key_locks, {})
        self.assertEqual(len(cache), 0)

    def test_key_lock_released_when_compute_fails(self):
        cache = RuleSetCache()

        def boom():
            raise RuntimeError('upstream down')

        with self.assertRaises(RuntimeError):
            cache.get_or_compute('L1', boom)
        self.assertEqual(cache._key_locks, {})


class TestStatFileCache(TestCase):
    def test_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            cache = StatFileCache(os.path.join(tmp, 'stats'))
            self.assertIsNone(cache.load('week-1'))
            cache.save('week-1', {'p1': {'pass_yd': 100}})
            self.assertEqual(cache.load('week-1'), {'p1': {'pass_yd': 100}})

    def test_disabled_without_dir(self):
        cache = StatFileCache(None)
        cache.save('k', {'a': 1})
        self.assertIsNone(cache.load('k'))

    def test_corrupt_entry_ignored(self):
        with tempfile.TemporaryDirectory() as tmp:
            cache = StatFileCache(tmp)
            cache.save('k', {'a': 1})
            with open(cache._path('k'), 'w', encoding='utf-8') as fh:
                fh.write('{not json')
            with self.assertLogs('chopped_toolkit.cache', level='WARNING'):
                self.assertIsNone(cache.load('k'))
