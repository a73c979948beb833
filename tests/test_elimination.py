import unittest

from chopped_toolkit.elimination import (
    EliminationLedger,
    drama_meter,
    elimination_zone_size,
    find_team,
    rank,
    record_eliminations,
    split_active,
    summarize_week,
    summary_frame,
)
from chopped_toolkit.models import EliminationStatus, TeamWeeklyResult

TEN_TEAM_SCORES = [140, 132, 128, 121, 119, 115, 110, 108, 101, 95]


def _team(team_id, points, active=True):
    if active:
        return TeamWeeklyResult(
            team_id=team_id,
            name=f"Team {team_id}",
            points=points,
            owner_id=f"owner-{team_id}",
            player_ids=('p1', 'p2'),
            starters=('p1',),
        )
    return TeamWeeklyResult(team_id=team_id, name=f"Team {team_id}", points=None)


def _league(scores):
    # ids deliberately out of score order
    return [_team(f"t{i:02d}", s) for i, s in enumerate(reversed(scores))]


class TestRank(unittest.TestCase):
    def test_ten_team_scenario(self):
        rankings = rank(_league(TEN_TEAM_SCORES), week=5)
        self.assertEqual([r.weekly_points for r in rankings], TEN_TEAM_SCORES)

        last = rankings[9]
        self.assertEqual(last.rank, 10)
        self.assertEqual(last.status, EliminationStatus.CRITICAL)
        self.assertEqual(last.survival_probability, 0.0)
        self.assertEqual(last.safety_margin, -6.0)

        ninth = rankings[8]
        self.assertEqual(ninth.status, EliminationStatus.DANGER)
        self.assertEqual(ninth.safety_margin, 6.0)
        self.assertAlmostEqual(ninth.survival_probability, 0.1)

        statuses = [r.status for r in rankings]
        self.assertEqual(statuses[0], EliminationStatus.CHAMPION)
        self.assertEqual(statuses[1:5], [EliminationStatus.SAFE] * 4)
        self.assertEqual(statuses[5:7], [EliminationStatus.WARNING] * 2)
        self.assertEqual(statuses[7:9], [EliminationStatus.DANGER] * 2)

        self.assertEqual(rankings[0].safety_margin, 45.0)
        self.assertAlmostEqual(rankings[0].survival_probability, 0.9)
        self.assertTrue(all(r.weeks_alive == 5 for r in rankings))

    def test_dense_ranks(self):
        rankings = rank(_league([float(s) for s in range(60, 73)]), week=1)
        self.assertEqual([r.rank for r in rankings], list(range(1, 14)))

    def test_zone_size_by_league_size(self):
        self.assertEqual(elimination_zone_size(0), 0)
        self.assertEqual(elimination_zone_size(17), 1)
        self.assertEqual(elimination_zone_size(18), 2)

        seventeen = rank(_league([100 + i for i in range(17)]), week=1)
        self.assertEqual(len([r for r in seventeen if r.status == EliminationStatus.CRITICAL]), 1)
        eighteen = rank(_league([100 + i for i in range(18)]), week=1)
        self.assertEqual(len([r for r in eighteen if r.status == EliminationStatus.CRITICAL]), 2)

    def test_zone_margins_in_large_league(self):
        scores = [150 - 3 * i for i in range(18)]  # 150 .. 99
        rankings = rank(_league(scores), week=2)
        # rank 17 trails rank 16 by 3, rank 18 trails rank 17 by 3
        self.assertEqual(rankings[16].safety_margin, -3.0)
        self.assertEqual(rankings[17].safety_margin, -3.0)
        # outside the zone the cutoff is the best team in it (rank 17, 102)
        self.assertEqual(rankings[15].safety_margin, 3.0)
        self.assertEqual(rankings[16].survival_probability, 0.0)

    def test_ties_broken_by_team_id(self):
        teams = [_team('b', 100.0), _team('a', 100.0), _team('c', 90.0)]
        first = [r.team_id for r in rank(teams, 1)]
        again = [r.team_id for r in rank(list(reversed(teams)), 1)]
        self.assertEqual(first, ['a', 'b', 'c'])
        self.assertEqual(first, again)

    def test_missing_points_scored_as_zero_and_ranked_last(self):
        teams = [_team('a', 80.0), _team('b', None), _team('c', 95.0)]
        rankings = rank(teams, 1)
        self.assertEqual(rankings[-1].team_id, 'b')
        self.assertEqual(rankings[-1].weekly_points, 0.0)

    def test_empty(self):
        self.assertEqual(rank([], 3), [])

    def test_margins_have_no_float_drift(self):
        rankings = rank([_team('a', 120.5), _team('b', 101.3), _team('c', 95.1)], 4)
        self.assertEqual(rankings[1].safety_margin, 6.2)
        self.assertEqual(rankings[2].safety_margin, -6.2)
        self.assertEqual(rankings[0].safety_margin, 25.4)

    def test_display_helpers(self):
        rankings = rank(_league(TEN_TEAM_SCORES), week=5)
        self.assertEqual(rankings[0].rank_display, '1st')
        self.assertEqual(rankings[1].rank_display, '2nd')
        self.assertEqual(rankings[2].rank_display, '3rd')
        self.assertEqual(rankings[9].rank_display, '10th')
        self.assertEqual(rankings[0].survival_percentage, '90%')
        self.assertEqual(rankings[9].safety_margin_display, '-6.0')
        self.assertEqual(rankings[8].safety_margin_display, '+6.0')


class TestGraveyard(unittest.TestCase):
    def test_split_active(self):
        teams = [_team('a', 10.0), _team('b', None, active=False)]
        active, gone = split_active(teams)
        self.assertEqual([t.team_id for t in active], ['a'])
        self.assertEqual([t.team_id for t in gone], ['b'])

    def test_no_owner_or_no_starters_is_eliminated(self):
        no_owner = TeamWeeklyResult('x', 'X', 50.0, player_ids=('p',), starters=('p',))
        no_starters = TeamWeeklyResult('y', 'Y', 0.0, owner_id='o', player_ids=('p',))
        self.assertFalse(no_owner.has_fieldable_roster)
        self.assertFalse(no_starters.has_fieldable_roster)

    def test_record_twice_only_one_event(self):
        ledger = EliminationLedger()
        gone = [_team('z', None, active=False)]
        first = record_eliminations(gone, 4, ledger)
        second = record_eliminations(gone, 4, ledger)
        self.assertEqual(len(first), 1)
        self.assertEqual(second, [])
        self.assertEqual(len(ledger), 1)
        self.assertEqual(first[0].key, ('z', 3))

    def test_later_weeks_do_not_reemit(self):
        ledger = EliminationLedger()
        gone = [_team('z', None, active=False)]
        record_eliminations(gone, 4, ledger)
        self.assertEqual(record_eliminations(gone, 5, ledger), [])
        self.assertEqual([e.week for e in ledger.events()], [3])

    def test_event_defaults_without_history(self):
        event = record_eliminations([_team('z', None, active=False)], 2, EliminationLedger())[0]
        self.assertEqual(event.margin, 0.0)
        self.assertEqual(event.drama_meter, 0.5)
        self.assertEqual(event.drama_label, 'Close Call')
        self.assertEqual(event.last_words, 'Left with no players to field...')
        self.assertEqual(event.team.status, EliminationStatus.ELIMINATED)
        self.assertTrue(event.team.is_eliminated)

    def test_margin_from_previous_rankings(self):
        last_week = rank(_league(TEN_TEAM_SCORES), week=5)
        chopped_id = last_week[-1].team_id
        event = record_eliminations(
            [_team(chopped_id, None, active=False)], 6, EliminationLedger(), previous_rankings=last_week
        )[0]
        self.assertEqual(event.week, 5)
        self.assertEqual(event.final_score, 95)
        self.assertEqual(event.margin, 6.0)
        self.assertAlmostEqual(event.drama_meter, 0.76)
        self.assertEqual(event.drama_label, 'Dramatic')

    def test_previous_margin_is_exact(self):
        last_week = rank([_team('a', 120.5), _team('b', 101.3), _team('c', 95.1)], 4)
        event = record_eliminations(
            [_team('c', None, active=False)], 5, EliminationLedger(), previous_rankings=last_week
        )[0]
        self.assertEqual(event.margin, 6.2)


def test_drama_meter_bounds():
    assert drama_meter(0.0) == 1.0
    assert drama_meter(40.0) == 0.0
    assert drama_meter(None) == 0.5


def test_summarize_week_excludes_structurally_eliminated():
    ledger = EliminationLedger()
    teams = _league(TEN_TEAM_SCORES[:4]) + [_team('gone', None, active=False)]
    summary = summarize_week('L1', 7, teams, ledger)
    assert len(summary.rankings) == 4
    assert summary.total_survivors == 4
    assert [r.weekly_points for r in summary.eliminated_this_week] == [121]
    assert summary.cutoff_score == 121
    assert summary.highest_score == 140
    assert summary.lowest_score == 121
    assert summary.average_score == 130.25
    assert [e.team.team_id for e in summary.elimination_history] == ['gone']
    assert summary.champion.weekly_points == 140
    assert len(summary.critical_teams) == 1
    assert [r.weekly_points for r in summary.safe_teams] == [132]
    assert [r.weekly_points for r in summary.warning_teams] == [128]
    assert summary.danger_zone_teams == []
    assert not summary.is_scheduled

    graveyard_entry = find_team(summary, 'gone')
    assert graveyard_entry.status == EliminationStatus.ELIMINATED
    assert find_team(summary, 'missing') is None


def test_summarize_week_history_accumulates():
    ledger = EliminationLedger()
    summarize_week('L1', 2, _league([100, 90]) + [_team('a', None, active=False)], ledger)
    summary = summarize_week(
        'L1', 3, _league([100]) + [_team('a', None, active=False), _team('b', None, active=False)], ledger
    )
    assert [(e.team.team_id, e.week) for e in summary.elimination_history] == [('a', 1), ('b', 2)]


def test_empty_week_summary():
    summary = summarize_week('L1', 1, [], EliminationLedger())
    assert summary.rankings == ()
    assert summary.eliminated_this_week == ()
    assert summary.average_score == 0.0
    assert summary.is_scheduled
    assert summary_frame(summary).empty


def test_summary_frame_columns():
    summary = summarize_week('L1', 3, _league(TEN_TEAM_SCORES), EliminationLedger())
    df = summary_frame(summary)
    assert list(df.columns) == ['team', 'points', 'status', 'margin', 'survival']
    assert df.loc[10, 'status'] == 'critical'
    assert df.loc[1, 'status'] == 'champion'


def test_status_labels():
    assert EliminationStatus.CHAMPION.dramatic_message == 'REIGNING SUPREME'
    assert EliminationStatus.CRITICAL.dramatic_message == 'MOMENTS FROM ELIMINATION'
    assert EliminationStatus.DANGER.display_name == 'DANGER ZONE'
    assert all(status.dramatic_message for status in EliminationStatus)
