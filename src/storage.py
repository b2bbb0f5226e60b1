"""
YAML file store for tournament and event aggregates.

Each aggregate lives in one YAML file carrying a version number. A save
succeeds only if the file still holds the version that was loaded; otherwise
StaleWriteError tells the caller to re-run its read-compute-write unit.
"""
import logging
import os
import re
from datetime import datetime, timezone
from typing import List, Optional

import yaml
from filelock import FileLock

from bracket_core.errors import NotFoundError, StaleWriteError, ValidationError
from bracket_core.models import Event, Match, Registration, Team, Tournament

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


class TournamentState:
    """A tournament with its teams and matches, as read at one version."""

    def __init__(self, tournament: Tournament, teams: List[Team], matches: List[Match], version: int = 0):
        self.tournament = tournament
        self.teams = teams
        self.matches = matches
        self.version = version

    def teams_by_id(self) -> dict:
        return {team.id: team for team in self.teams}

    def to_dict(self) -> dict:
        return {
            'version': self.version,
            'tournament': self.tournament.to_dict(),
            'teams': [team.to_dict() for team in self.teams],
            'matches': [match.to_dict() for match in self.matches],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TournamentState':
        return cls(
            tournament=Tournament.from_dict(data['tournament']),
            teams=[Team.from_dict(t) for t in data.get('teams') or []],
            matches=[Match.from_dict(m) for m in data.get('matches') or []],
            version=data.get('version', 0),
        )


class EventState:
    """An event with its registrations, as read at one version."""

    def __init__(self, event: Event, registrations: List[Registration], version: int = 0):
        self.event = event
        self.registrations = registrations
        self.version = version

    def to_dict(self) -> dict:
        return {
            'version': self.version,
            'event': self.event.to_dict(),
            'registrations': [r.to_dict() for r in self.registrations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'EventState':
        return cls(
            event=Event.from_dict(data['event']),
            registrations=[Registration.from_dict(r) for r in data.get('registrations') or []],
            version=data.get('version', 0),
        )


class YamlStore:
    def __init__(self, data_dir: str, lock_timeout: int = 10):
        self.data_dir = data_dir
        self.lock_timeout = lock_timeout
        self.tournaments_dir = os.path.join(data_dir, 'tournaments')
        self.events_dir = os.path.join(data_dir, 'events')

    def _path(self, directory: str, aggregate_id: str) -> str:
        if not aggregate_id or not _ID_PATTERN.match(str(aggregate_id)):
            raise ValidationError(f"Invalid identifier: {aggregate_id!r}")
        return os.path.join(directory, f'{aggregate_id}.yaml')

    def _lock(self, path: str) -> FileLock:
        return FileLock(path + '.lock', timeout=self.lock_timeout)

    def _read(self, path: str) -> Optional[dict]:
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)

    def _write(self, path: str, data: dict) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def _save(self, path: str, state, label: str) -> None:
        with self._lock(path):
            current = self._read(path)
            current_version = current.get('version', 0) if current else None
            if current_version != state.version:
                raise StaleWriteError(
                    f"{label} changed since it was read (version {state.version}, now {current_version})")
            state.version += 1
            self._write(path, state.to_dict())
        logger.debug(f"Saved {label} at version {state.version}")

    def _create(self, path: str, state, label: str) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with self._lock(path):
            if os.path.exists(path):
                raise ValidationError(f"{label} already exists")
            self._write(path, state.to_dict())

    # Tournaments

    def create_tournament(self, tournament: Tournament, teams: List[Team]) -> TournamentState:
        state = TournamentState(tournament, teams, [], version=0)
        self._create(self._path(self.tournaments_dir, tournament.id), state, f"Tournament {tournament.id}")
        return state

    def load_tournament(self, tournament_id: str) -> TournamentState:
        data = self._read(self._path(self.tournaments_dir, tournament_id))
        if not data:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return TournamentState.from_dict(data)

    def save_tournament(self, state: TournamentState) -> None:
        path = self._path(self.tournaments_dir, state.tournament.id)
        self._save(path, state, f"Tournament {state.tournament.id}")

    # Events

    def create_event(self, event: Event, registrations: List[Registration]) -> EventState:
        state = EventState(event, registrations, version=0)
        self._create(self._path(self.events_dir, event.id), state, f"Event {event.id}")
        return state

    def load_event(self, event_id: str) -> EventState:
        data = self._read(self._path(self.events_dir, event_id))
        if not data:
            raise NotFoundError(f"Event {event_id} not found")
        return EventState.from_dict(data)

    def save_event(self, state: EventState) -> None:
        self._save(self._path(self.events_dir, state.event.id), state, f"Event {state.event.id}")

    def list_event_ids(self) -> List[str]:
        if not os.path.isdir(self.events_dir):
            return []
        return sorted(name[:-len('.yaml')] for name in os.listdir(self.events_dir) if name.endswith('.yaml'))


class StoreAuthorizer:
    """Tournament creator, tournament admins and organization admins may manage a tournament."""

    def __init__(self, store: YamlStore, organization_admins):
        self.store = store
        self.organization_admins = set(organization_admins or [])

    def is_organization_admin(self, user_id) -> bool:
        return user_id in self.organization_admins

    def can_manage_tournament(self, tournament_id, user_id) -> bool:
        if self.is_organization_admin(user_id):
            return True
        tournament = self.store.load_tournament(tournament_id).tournament
        return user_id == tournament.creator_id or user_id in tournament.admin_ids


class OutboxNotifier:
    """Append notifications to notifications.yaml, where the delivery worker picks them up."""

    def __init__(self, data_dir: str, lock_timeout: int = 10):
        self.path = os.path.join(data_dir, 'notifications.yaml')
        self.lock_timeout = lock_timeout

    def load(self) -> list:
        if not os.path.exists(self.path):
            return []
        with open(self.path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not data or 'notifications' not in data:
            return []
        return data['notifications']

    def send(self, user_id, title, body, data=None):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with FileLock(self.path + '.lock', timeout=self.lock_timeout):
            notifications = self.load()
            notifications.append({
                'user_id': user_id,
                'title': title,
                'body': body,
                'data': data or {},
                'created': datetime.now(timezone.utc).isoformat(),
            })
            with open(self.path, 'w', encoding='utf-8') as f:
                yaml.dump({'notifications': notifications}, f, default_flow_style=False)

