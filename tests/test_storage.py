"""
Tests for the YAML store and its adapters.
"""
import os

import pytest
import yaml

from bracket_core.errors import NotFoundError, StaleWriteError, ValidationError
from bracket_core.models import DEFAULT_TIEBREAKERS, MatchStatus, RegistrationStatus, TournamentFormat
from bracket_core.formats import generate_matches
from conftest import make_teams, make_tournament, waitlisted
from storage import OutboxNotifier, StoreAuthorizer


class TestTournamentStore:
    """Tournament aggregates."""

    def test_create_and_load(self, store):
        store.create_tournament(make_tournament(), make_teams(4))
        state = store.load_tournament('t1')
        assert state.version == 0
        assert state.tournament.name == 'Spring Cup'
        assert [t.id for t in state.teams] == ['team1', 'team2', 'team3', 'team4']
        assert state.matches == []

    def test_save_round_trips_matches(self, store):
        tournament = make_tournament(TournamentFormat.DOUBLE_ELIMINATION)
        store.create_tournament(tournament, make_teams(5))
        state = store.load_tournament('t1')
        state.matches, state.teams = generate_matches(state.tournament, state.teams)
        store.save_tournament(state)

        reloaded = store.load_tournament('t1')
        assert reloaded.version == 1
        assert [m.to_dict() for m in reloaded.matches] == [m.to_dict() for m in state.matches]
        assert {t.id for t in reloaded.teams if t.has_bye} == {'team1', 'team2', 'team3'}
        assert reloaded.matches[0].status is MatchStatus.COMPLETED

    def test_stale_save_rejected(self, store):
        store.create_tournament(make_tournament(), make_teams(2))
        first = store.load_tournament('t1')
        second = store.load_tournament('t1')
        store.save_tournament(first)
        with pytest.raises(StaleWriteError):
            store.save_tournament(second)
        assert store.load_tournament('t1').version == 1

    def test_duplicate_create(self, store):
        store.create_tournament(make_tournament(), make_teams(2))
        with pytest.raises(ValidationError, match="already exists"):
            store.create_tournament(make_tournament(), make_teams(2))

    def test_missing_tournament(self, store):
        with pytest.raises(NotFoundError):
            store.load_tournament('nope')

    @pytest.mark.parametrize("bad_id", ['../etc', 'a/b', ''])
    def test_identifiers_validated(self, store, bad_id):
        with pytest.raises(ValidationError):
            store.load_tournament(bad_id)

    def test_file_is_plain_yaml(self, store):
        store.create_tournament(make_tournament(), make_teams(2))
        with open(os.path.join(store.data_dir, 'tournaments', 't1.yaml')) as f:
            data = yaml.safe_load(f)
        assert data['tournament']['format'] == 'SingleElimination'
        assert data['version'] == 0

    def test_unknown_tiebreaker_in_file_loads_default_chain(self, store):
        store.create_tournament(make_tournament(TournamentFormat.ROUND_ROBIN), make_teams(3))
        path = os.path.join(store.data_dir, 'tournaments', 't1.yaml')
        with open(path) as f:
            data = yaml.safe_load(f)
        data['tournament']['tiebreaker_order'] = ['HeadToHead', 'Coinflip']
        with open(path, 'w') as f:
            yaml.dump(data, f)

        state = store.load_tournament('t1')
        assert state.tournament.tiebreaker_order == DEFAULT_TIEBREAKERS


class TestEventStore:
    """Event aggregates."""

    def test_registrations_round_trip(self, store, event):
        store.create_event(event, [waitlisted('r1', 1, verified=True)])
        state = store.load_event('e1')
        registration = state.registrations[0]
        assert registration.status is RegistrationStatus.WAITLISTED
        assert registration.is_verified
        assert registration.registered_at.tzinfo is not None

    def test_save_bumps_version(self, store, event):
        store.create_event(event, [])
        state = store.load_event('e1')
        state.registrations.append(waitlisted('r1', 1))
        store.save_event(state)
        assert store.load_event('e1').version == 1
        assert state.version == 1

    def test_list_event_ids(self, store, event):
        assert store.list_event_ids() == []
        store.create_event(event, [])
        assert store.list_event_ids() == ['e1']

    def test_missing_event(self, store):
        with pytest.raises(NotFoundError):
            store.load_event('e404')


class TestStoreAuthorizer:
    """Tests for StoreAuthorizer."""

    @pytest.fixture
    def authorizer(self, store):
        store.create_tournament(make_tournament(admin_ids=['helper']), make_teams(2))
        return StoreAuthorizer(store, organization_admins=['boss'])

    def test_creator_and_admins_manage(self, authorizer):
        assert authorizer.can_manage_tournament('t1', 'organizer')
        assert authorizer.can_manage_tournament('t1', 'helper')
        assert authorizer.can_manage_tournament('t1', 'boss')

    def test_others_cannot(self, authorizer):
        assert not authorizer.can_manage_tournament('t1', 'spectator')
        assert not authorizer.is_organization_admin('helper')


class TestOutboxNotifier:
    """Tests for OutboxNotifier."""

    def test_appends_messages(self, tmp_path):
        notifier = OutboxNotifier(str(tmp_path / 'data'))
        assert notifier.load() == []
        notifier.send('u1', "You're In!", 'body', {'event_id': 'e1'})
        notifier.send('u2', 'Spot Available!', 'body')
        messages = notifier.load()
        assert [m['user_id'] for m in messages] == ['u1', 'u2']
        assert messages[0]['data'] == {'event_id': 'e1'}
        assert messages[1]['data'] == {}
        assert 'created' in messages[0]
