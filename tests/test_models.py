"""
Unit tests for domain models.
"""
from datetime import datetime, timezone

import pytest

from bracket_core.models import (
    DEFAULT_TIEBREAKERS,
    BracketType,
    Match,
    MatchStatus,
    PaymentStatus,
    Registration,
    ResultDelta,
    Team,
    TeamStatus,
    Tiebreaker,
    Tournament,
    TournamentFormat,
    apply_result,
)


class TestApplyResult:
    """Team statistics change only through apply_result."""

    def test_returns_new_team(self):
        team = Team(id='a', name='A', seed=1)
        updated = apply_result(team, ResultDelta(wins=1, points=3, goals_for=2, goals_against=1))
        assert (updated.wins, updated.points, updated.goal_differential) == (1, 3, 1)
        assert team.wins == 0
        assert updated is not team

    def test_negated_delta_reverses(self):
        delta = ResultDelta(losses=1, goals_for=1, goals_against=4)
        team = Team(id='a', name='A', seed=1)
        assert apply_result(apply_result(team, delta), -delta).to_dict() == team.to_dict()

    def test_counters_cannot_go_negative(self):
        with pytest.raises(ValueError, match="wins"):
            apply_result(Team(id='a', name='A'), ResultDelta(wins=-1))

    def test_points_may_go_negative(self):
        assert apply_result(Team(id='a', name='A'), ResultDelta(points=-1)).points == -1


class TestTournament:
    """Tests for Tournament."""

    def test_defaults(self):
        tournament = Tournament(id='t1', name='Cup', format='RoundRobin')
        assert tournament.format is TournamentFormat.ROUND_ROBIN
        assert not tournament.format.is_elimination
        assert (tournament.points_win, tournament.points_tie, tournament.points_loss) == (3, 1, 0)
        assert tournament.tiebreaker_order[0] is Tiebreaker.HEAD_TO_HEAD

    def test_round_trip(self):
        tournament = Tournament(id='t1', name='Cup', format='DoubleElimination', admin_ids=['x'],
                                tiebreaker_order=['GoalsScored'], playoff_teams_count=4)
        restored = Tournament.from_dict(tournament.to_dict())
        assert restored.to_dict() == tournament.to_dict()

    def test_unknown_tiebreaker_falls_back_to_default(self):
        tournament = Tournament.from_dict({'id': 't1', 'format': 'RoundRobin',
                                           'tiebreaker_order': ['HeadToHead', 'Coinflip']})
        assert tournament.tiebreaker_order == DEFAULT_TIEBREAKERS
        assert tournament.to_dict()['tiebreaker_order'] == ['HeadToHead', 'GoalDifferential', 'GoalsScored']

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            Tournament(id='t1', name='Cup', format='Swiss')


class TestMatch:
    """Tests for Match."""

    def test_loser(self):
        match = Match(id='m', tournament_id='t1', round=1, match_number=1, home_team_id='a',
                      away_team_id='b', winner_team_id='b', status=MatchStatus.COMPLETED)
        assert match.has_result
        assert match.loser_team_id() == 'a'

    def test_bye_has_no_loser(self):
        match = Match(id='m', tournament_id='t1', round=1, match_number=1, home_team_id='a',
                      winner_team_id='a', status=MatchStatus.COMPLETED, is_bye=True)
        assert match.loser_team_id() is None
        assert match.participants == ['a']

    def test_round_trip(self):
        match = Match(id='m', tournament_id='t1', round=2, match_number=1, bracket_position='L-Final',
                      bracket_type=BracketType.LOSERS, home_team_id='a', status=MatchStatus.FORFEIT,
                      forfeit_reason='No show', next_match_id='GF1')
        restored = Match.from_dict(match.to_dict())
        assert restored.bracket_type is BracketType.LOSERS
        assert restored.to_dict() == match.to_dict()


class TestTeam:
    """Tests for Team."""

    def test_from_dict_defaults(self):
        team = Team.from_dict({'id': 'a'})
        assert team.name == 'a'
        assert team.status is TeamStatus.REGISTERED
        assert not team.has_bye

    def test_copy_with_changes(self):
        team = Team(id='a', name='A', seed=3)
        assert team.copy(status=TeamStatus.WINNER).status is TeamStatus.WINNER
        assert team.status is TeamStatus.REGISTERED


class TestRegistration:
    """Tests for Registration."""

    def test_naive_datetimes_are_utc(self):
        registration = Registration.from_dict({'id': 'r', 'event_id': 'e', 'user_id': 'u',
                                               'registered_at': '2026-02-01T09:00:00'})
        assert registration.registered_at == datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)

    def test_round_trip(self):
        registration = Registration(id='r', event_id='e', user_id='u', payment_status=PaymentStatus.VERIFIED,
                                    registered_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
        restored = Registration.from_dict(registration.to_dict())
        assert restored.is_verified
        assert restored.to_dict() == registration.to_dict()
