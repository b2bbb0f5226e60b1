"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the large bracket sweeps
"""
import os
import sys
from datetime import datetime, timezone

import pytest

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from bracket_core.models import (  # noqa: E402
    Event,
    PaymentStatus,
    Registration,
    RegistrationStatus,
    Team,
    Tournament,
    TournamentStatus,
)
from bracket_core.service import TournamentService  # noqa: E402
from storage import YamlStore  # noqa: E402

ORGANIZER = 'organizer'
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_teams(count, tournament_id='t1'):
    """Teams team1..teamN seeded 1..N."""
    return [Team(id=f'team{i}', name=f'Team {i}', seed=i, tournament_id=tournament_id)
            for i in range(1, count + 1)]


def make_tournament(format='SingleElimination', status=TournamentStatus.IN_PROGRESS, **kwargs):
    kwargs.setdefault('creator_id', ORGANIZER)
    return Tournament(id='t1', name='Spring Cup', format=format, status=status, **kwargs)


def waitlisted(reg_id, position, verified=False, registered_minutes=0, user_id=None, registered_position='Skater'):
    return Registration(
        id=reg_id,
        event_id='e1',
        user_id=user_id or f'user-{reg_id}',
        status=RegistrationStatus.WAITLISTED,
        waitlist_position=position,
        payment_status=PaymentStatus.VERIFIED if verified else PaymentStatus.PENDING,
        registered_at=datetime(2026, 2, 1, 9, registered_minutes, tzinfo=timezone.utc),
        registered_position=registered_position,
    )


def rostered(reg_id, team_assignment, registered_position='Skater', **kwargs):
    return Registration(
        id=reg_id,
        event_id='e1',
        user_id=kwargs.pop('user_id', f'user-{reg_id}'),
        status=RegistrationStatus.REGISTERED,
        team_assignment=team_assignment,
        registered_position=registered_position,
        **kwargs,
    )


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, user_id, title, body, data=None):
        self.sent.append({'user_id': user_id, 'title': title, 'body': body, 'data': data})


class StaticAuthorizer:
    def __init__(self, managers=(ORGANIZER,), organization_admins=()):
        self.managers = set(managers)
        self.organization_admins = set(organization_admins)

    def can_manage_tournament(self, tournament_id, user_id):
        return user_id in self.managers or user_id in self.organization_admins

    def is_organization_admin(self, user_id):
        return user_id in self.organization_admins


@pytest.fixture
def store(tmp_path):
    return YamlStore(str(tmp_path / 'data'))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def authorizer():
    return StaticAuthorizer()


@pytest.fixture
def service(store, authorizer, notifier):
    return TournamentService(store, authorizer, notifier, sleep=lambda seconds: None)


@pytest.fixture
def event():
    return Event(id='e1', name='Friday Skate', creator_id=ORGANIZER, cost=20)


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Create an authenticated test client backed by a temporary data directory."""
    import app as app_module
    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path / 'data'))
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = ORGANIZER
        yield client
