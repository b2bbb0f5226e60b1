"""
Domain objects for tournaments, teams, matches and event registrations.

Everything here is plain data plus dict round-tripping for the YAML store.
Team statistics only change through apply_result(), which returns a new Team.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


class TournamentFormat(str, Enum):
    SINGLE_ELIMINATION = "SingleElimination"
    DOUBLE_ELIMINATION = "DoubleElimination"
    ROUND_ROBIN = "RoundRobin"

    @property
    def is_elimination(self) -> bool:
        return self is not TournamentFormat.ROUND_ROBIN


class TournamentStatus(str, Enum):
    DRAFT = "Draft"
    OPEN = "Open"
    REGISTRATION_CLOSED = "RegistrationClosed"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    POSTPONED = "Postponed"
    CANCELLED = "Cancelled"


# Statuses in which a bracket may be generated or cleared.
GENERATION_STATUSES = (
    TournamentStatus.DRAFT,
    TournamentStatus.OPEN,
    TournamentStatus.REGISTRATION_CLOSED,
)


class TeamStatus(str, Enum):
    REGISTERED = "Registered"
    ELIMINATED = "Eliminated"
    WINNER = "Winner"


class MatchStatus(str, Enum):
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    FORFEIT = "Forfeit"


class BracketType(str, Enum):
    WINNERS = "Winners"
    LOSERS = "Losers"
    GRAND_FINAL = "GrandFinal"


class Tiebreaker(str, Enum):
    HEAD_TO_HEAD = "HeadToHead"
    GOAL_DIFFERENTIAL = "GoalDifferential"
    GOALS_SCORED = "GoalsScored"


DEFAULT_TIEBREAKERS = [
    Tiebreaker.HEAD_TO_HEAD,
    Tiebreaker.GOAL_DIFFERENTIAL,
    Tiebreaker.GOALS_SCORED,
]


def parse_tiebreaker_order(order) -> List[Tiebreaker]:
    """
    Normalize a configured tiebreaker order.

    Falls back to the default chain when order is empty or names an unknown
    tiebreaker.
    """
    if not order:
        return list(DEFAULT_TIEBREAKERS)
    try:
        return [Tiebreaker(item) for item in order]
    except ValueError:
        return list(DEFAULT_TIEBREAKERS)


class RegistrationStatus(str, Enum):
    REGISTERED = "Registered"
    WAITLISTED = "Waitlisted"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    MARKED_PAID = "MarkedPaid"
    VERIFIED = "Verified"


class TeamAssignment(str, Enum):
    BLACK = "Black"
    WHITE = "White"


class NotificationType(str, Enum):
    AUTO_PROMOTED = "AutoPromoted"
    SPOT_AVAILABLE = "SpotAvailable"
    REGISTRATION_EXPIRED = "RegistrationExpired"


def _enum_or_none(enum_cls, value):
    if value is None or value == '':
        return None
    return enum_cls(value)


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ResultDelta:
    """Change to a team's statistics caused by one match result."""

    FIELDS = ('wins', 'losses', 'ties', 'points', 'goals_for', 'goals_against')

    def __init__(self, wins=0, losses=0, ties=0, points=0, goals_for=0, goals_against=0):
        self.wins = wins
        self.losses = losses
        self.ties = ties
        self.points = points
        self.goals_for = goals_for
        self.goals_against = goals_against

    def __neg__(self) -> 'ResultDelta':
        return ResultDelta(**{name: -getattr(self, name) for name in self.FIELDS})

    def __eq__(self, other):
        if not isinstance(other, ResultDelta):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name) for name in self.FIELDS)

    def __repr__(self):
        values = ", ".join(f"{name}={getattr(self, name)}" for name in self.FIELDS)
        return f"ResultDelta({values})"


class Tournament:
    def __init__(self, id, name, format, status=TournamentStatus.DRAFT, creator_id=None,
                 admin_ids=None, points_win=3, points_tie=1, points_loss=0,
                 tiebreaker_order=None, playoff_teams_count=None):
        self.id = id
        self.name = name
        self.format = TournamentFormat(format)
        self.status = TournamentStatus(status)
        self.creator_id = creator_id
        self.admin_ids = list(admin_ids) if admin_ids else []
        self.points_win = points_win
        self.points_tie = points_tie
        self.points_loss = points_loss
        self.tiebreaker_order = parse_tiebreaker_order(tiebreaker_order)
        self.playoff_teams_count = playoff_teams_count

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'format': self.format.value,
            'status': self.status.value,
            'creator_id': self.creator_id,
            'admin_ids': list(self.admin_ids),
            'points_win': self.points_win,
            'points_tie': self.points_tie,
            'points_loss': self.points_loss,
            'tiebreaker_order': [t.value for t in self.tiebreaker_order],
            'playoff_teams_count': self.playoff_teams_count,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Tournament':
        return cls(
            id=data['id'],
            name=data.get('name', data['id']),
            format=data.get('format', TournamentFormat.SINGLE_ELIMINATION),
            status=data.get('status', TournamentStatus.DRAFT),
            creator_id=data.get('creator_id'),
            admin_ids=data.get('admin_ids'),
            points_win=data.get('points_win', 3),
            points_tie=data.get('points_tie', 1),
            points_loss=data.get('points_loss', 0),
            tiebreaker_order=data.get('tiebreaker_order'),
            playoff_teams_count=data.get('playoff_teams_count'),
        )

    def __repr__(self):
        return f"Tournament(id={self.id}, format={self.format.value}, status={self.status.value})"


class Team:
    def __init__(self, id, name, seed=None, status=TeamStatus.REGISTERED, has_bye=False,
                 wins=0, losses=0, ties=0, points=0, goals_for=0, goals_against=0,
                 tournament_id=None):
        self.id = id
        self.name = name
        self.seed = seed
        self.status = TeamStatus(status)
        self.has_bye = has_bye
        self.wins = wins
        self.losses = losses
        self.ties = ties
        self.points = points
        self.goals_for = goals_for
        self.goals_against = goals_against
        self.tournament_id = tournament_id

    @property
    def goal_differential(self) -> int:
        return self.goals_for - self.goals_against

    def copy(self, **changes) -> 'Team':
        data = self.to_dict()
        data.update(changes)
        return Team.from_dict(data)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'seed': self.seed,
            'status': self.status.value,
            'has_bye': self.has_bye,
            'wins': self.wins,
            'losses': self.losses,
            'ties': self.ties,
            'points': self.points,
            'goals_for': self.goals_for,
            'goals_against': self.goals_against,
            'tournament_id': self.tournament_id,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Team':
        return cls(
            id=data['id'],
            name=data.get('name', data['id']),
            seed=data.get('seed'),
            status=data.get('status', TeamStatus.REGISTERED),
            has_bye=bool(data.get('has_bye', False)),
            wins=data.get('wins', 0),
            losses=data.get('losses', 0),
            ties=data.get('ties', 0),
            points=data.get('points', 0),
            goals_for=data.get('goals_for', 0),
            goals_against=data.get('goals_against', 0),
            tournament_id=data.get('tournament_id'),
        )

    def __repr__(self):
        return f"Team(id={self.id}, name={self.name}, seed={self.seed}, status={self.status.value})"


def apply_result(team: Team, delta: ResultDelta) -> Team:
    """
    Return a copy of team with delta added to its statistics.

    Reversing a result is apply_result(team, -delta). Raises ValueError if any
    counter would go negative, which means a result was reversed twice.
    """
    changes = {name: getattr(team, name) + getattr(delta, name) for name in ResultDelta.FIELDS}
    negative = [name for name, value in changes.items() if value < 0 and name != 'points']
    if negative:
        raise ValueError(f"Result for team {team.id} would make {', '.join(negative)} negative")
    return team.copy(**changes)


class Match:
    def __init__(self, id, tournament_id, round, match_number, bracket_position=None,
                 bracket_type=None, home_team_id=None, away_team_id=None,
                 status=MatchStatus.SCHEDULED, home_score=None, away_score=None,
                 winner_team_id=None, forfeit_reason=None, next_match_id=None,
                 loser_next_match_id=None, is_bye=False):
        self.id = id
        self.tournament_id = tournament_id
        self.round = round
        self.match_number = match_number
        self.bracket_position = bracket_position
        self.bracket_type = _enum_or_none(BracketType, bracket_type)
        self.home_team_id = home_team_id
        self.away_team_id = away_team_id
        self.status = MatchStatus(status)
        self.home_score = home_score
        self.away_score = away_score
        self.winner_team_id = winner_team_id
        self.forfeit_reason = forfeit_reason
        self.next_match_id = next_match_id
        self.loser_next_match_id = loser_next_match_id
        self.is_bye = is_bye

    @property
    def has_result(self) -> bool:
        return self.status in (MatchStatus.COMPLETED, MatchStatus.FORFEIT)

    @property
    def participants(self) -> List[str]:
        return [t for t in (self.home_team_id, self.away_team_id) if t is not None]

    def loser_team_id(self) -> Optional[str]:
        if self.winner_team_id is None or self.is_bye:
            return None
        if self.winner_team_id == self.home_team_id:
            return self.away_team_id
        return self.home_team_id

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'round': self.round,
            'match_number': self.match_number,
            'bracket_position': self.bracket_position,
            'bracket_type': self.bracket_type.value if self.bracket_type else None,
            'home_team_id': self.home_team_id,
            'away_team_id': self.away_team_id,
            'status': self.status.value,
            'home_score': self.home_score,
            'away_score': self.away_score,
            'winner_team_id': self.winner_team_id,
            'forfeit_reason': self.forfeit_reason,
            'next_match_id': self.next_match_id,
            'loser_next_match_id': self.loser_next_match_id,
            'is_bye': self.is_bye,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        return cls(**{key: data.get(key) for key in (
            'id', 'tournament_id', 'round', 'match_number', 'bracket_position',
            'bracket_type', 'home_team_id', 'away_team_id', 'home_score',
            'away_score', 'winner_team_id', 'forfeit_reason', 'next_match_id',
            'loser_next_match_id')},
            status=data.get('status', MatchStatus.SCHEDULED),
            is_bye=bool(data.get('is_bye', False)))

    def __repr__(self):
        return (f"Match(id={self.id}, {self.home_team_id} vs {self.away_team_id}, "
                f"status={self.status.value}, winner={self.winner_team_id})")


class Event:
    def __init__(self, id, name, creator_id=None, cost=0):
        self.id = id
        self.name = name
        self.creator_id = creator_id
        self.cost = cost

    def to_dict(self) -> Dict:
        return {'id': self.id, 'name': self.name, 'creator_id': self.creator_id, 'cost': self.cost}

    @classmethod
    def from_dict(cls, data: Dict) -> 'Event':
        return cls(id=data['id'], name=data.get('name', data['id']),
                   creator_id=data.get('creator_id'), cost=data.get('cost', 0))

    def __repr__(self):
        return f"Event(id={self.id}, name={self.name})"


class Registration:
    """A user's registration for an event; waitlisted registrations form the waitlist."""

    def __init__(self, id, event_id, user_id, status=RegistrationStatus.REGISTERED,
                 registered_at=None, waitlist_position=None, payment_status=None,
                 registered_position=None, team_assignment=None,
                 payment_deadline_at=None, promoted_at=None):
        self.id = id
        self.event_id = event_id
        self.user_id = user_id
        self.status = RegistrationStatus(status)
        self.registered_at = _parse_datetime(registered_at)
        self.waitlist_position = waitlist_position
        self.payment_status = _enum_or_none(PaymentStatus, payment_status)
        self.registered_position = registered_position
        self.team_assignment = _enum_or_none(TeamAssignment, team_assignment)
        self.payment_deadline_at = _parse_datetime(payment_deadline_at)
        self.promoted_at = _parse_datetime(promoted_at)

    @property
    def is_verified(self) -> bool:
        return self.payment_status is PaymentStatus.VERIFIED

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'event_id': self.event_id,
            'user_id': self.user_id,
            'status': self.status.value,
            'registered_at': _format_datetime(self.registered_at),
            'waitlist_position': self.waitlist_position,
            'payment_status': self.payment_status.value if self.payment_status else None,
            'registered_position': self.registered_position,
            'team_assignment': self.team_assignment.value if self.team_assignment else None,
            'payment_deadline_at': _format_datetime(self.payment_deadline_at),
            'promoted_at': _format_datetime(self.promoted_at),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Registration':
        return cls(**{key: data.get(key) for key in (
            'id', 'event_id', 'user_id', 'registered_at', 'waitlist_position',
            'payment_status', 'registered_position', 'team_assignment',
            'payment_deadline_at', 'promoted_at')},
            status=data.get('status', RegistrationStatus.REGISTERED))

    def __repr__(self):
        return (f"Registration(id={self.id}, user={self.user_id}, status={self.status.value}, "
                f"position={self.waitlist_position})")
