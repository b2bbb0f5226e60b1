"""
Exposed tournament and waitlist operations.

TournamentService ties the pure engine modules to three injected
collaborators:

- store: load/save of tournament and event aggregates with optimistic
  versioning (raises StaleWriteError on a lost race), see storage.YamlStore
- authorizer: can_manage_tournament(tournament_id, user_id) and
  is_organization_admin(user_id)
- notifier: send(user_id, title, body, data)

Every mutating operation is one read-compute-write unit re-run by
execute_with_retry. Notifications are sent only after the unit has been saved.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from .errors import AuthorizationError, NotFoundError, ValidationError
from .formats import generate_matches
from .models import (
    GENERATION_STATUSES,
    BracketType,
    Match,
    PaymentStatus,
    Registration,
    RegistrationStatus,
    TeamStatus,
)
from .notifications import send_pending_notifications
from .results import enter_score, forfeit_match
from .retry import DEFAULT_BACKOFF_MS, DEFAULT_MAX_ATTEMPTS, execute_with_retry
from .standings import Standings, calculate_standings
from .waitlist import (
    PromotionResult,
    add_to_waitlist,
    expire_registration,
    find_expired_registrations,
    move_to_roster,
    promote_from_waitlist,
    remove_from_waitlist,
    reorder_waitlist,
)

logger = logging.getLogger(__name__)

BRACKET_ORDER = {BracketType.WINNERS: 0, BracketType.LOSERS: 1, BracketType.GRAND_FINAL: 2}


class TournamentService:
    def __init__(self, store, authorizer, notifier, max_attempts=DEFAULT_MAX_ATTEMPTS,
                 backoff_ms=DEFAULT_BACKOFF_MS, payment_deadline_hours=2, sleep=time.sleep):
        self.store = store
        self.authorizer = authorizer
        self.notifier = notifier
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms
        self.payment_deadline = timedelta(hours=payment_deadline_hours)
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: dict, store, authorizer, notifier) -> 'TournamentService':
        return cls(
            store, authorizer, notifier,
            max_attempts=settings['retry_max_attempts'],
            backoff_ms=settings['retry_backoff_ms'],
            payment_deadline_hours=settings['payment_deadline_hours'],
        )

    def _retry(self, unit):
        return execute_with_retry(unit, self.max_attempts, self.backoff_ms, self.sleep)

    def _require_manager(self, tournament, user_id) -> None:
        if user_id is None or not self.authorizer.can_manage_tournament(tournament.id, user_id):
            raise AuthorizationError("You are not authorized to manage this tournament")

    def _require_organizer(self, event, user_id) -> None:
        if user_id is not None and (event.creator_id == user_id or self.authorizer.is_organization_admin(user_id)):
            return
        raise AuthorizationError("You are not authorized to manage this event")

    def send_notifications(self, notifications) -> int:
        """Flush pending notifications; failures are logged, never raised."""
        return send_pending_notifications(self.notifier, notifications)

    # Brackets

    def generate_bracket(self, tournament_id: str, requester_id: str) -> List[Match]:
        """Generate and store the full match set for the tournament's format."""
        def unit():
            state = self.store.load_tournament(tournament_id)
            tournament = state.tournament
            self._require_manager(tournament, requester_id)
            if tournament.status not in GENERATION_STATUSES:
                raise ValidationError(f"Cannot generate bracket when tournament status is {tournament.status.value}")
            if state.matches:
                raise ValidationError("Tournament already has matches. Use ClearBracket first to regenerate.")
            state.matches, state.teams = generate_matches(tournament, state.teams)
            self.store.save_tournament(state)
            logger.info(f"Generated {len(state.matches)} {tournament.format.value} matches "
                        f"for tournament {tournament_id}")
            return state.matches
        return self._retry(unit)

    def clear_bracket(self, tournament_id: str, requester_id: str) -> int:
        """Delete all matches and bye flags so the bracket can be regenerated."""
        def unit():
            state = self.store.load_tournament(tournament_id)
            tournament = state.tournament
            self._require_manager(tournament, requester_id)
            if tournament.status not in GENERATION_STATUSES:
                raise ValidationError(f"Cannot clear bracket when tournament status is {tournament.status.value}")
            removed = len(state.matches)
            state.matches = []
            state.teams = [team.copy(has_bye=False, status=TeamStatus.REGISTERED) for team in state.teams]
            self.store.save_tournament(state)
            logger.info(f"Cleared {removed} matches from tournament {tournament_id}")
            return removed
        return self._retry(unit)

    def get_matches(self, tournament_id: str) -> List[Match]:
        state = self.store.load_tournament(tournament_id)
        return sorted(state.matches, key=lambda m: (
            BRACKET_ORDER.get(m.bracket_type, 0), m.round, m.match_number))

    # Results

    def _record(self, tournament_id: str, match_id: str, requester_id: str, apply) -> Match:
        def unit():
            state = self.store.load_tournament(tournament_id)
            self._require_manager(state.tournament, requester_id)
            teams = apply(state.tournament, state.teams_by_id(), state.matches)
            state.teams = [teams[team.id] for team in state.teams]
            self.store.save_tournament(state)
            return next(m for m in state.matches if m.id == match_id)
        return self._retry(unit)

    def enter_score(self, tournament_id: str, match_id: str, home_score: int, away_score: int,
                    requester_id: str, overtime_winner_id: Optional[str] = None) -> Match:
        return self._record(tournament_id, match_id, requester_id, lambda tournament, teams, matches: enter_score(
            tournament, teams, matches, match_id, home_score, away_score, overtime_winner_id))

    def forfeit_match(self, tournament_id: str, match_id: str, forfeiting_team_id: str, reason: str,
                      requester_id: str) -> Match:
        return self._record(tournament_id, match_id, requester_id, lambda tournament, teams, matches: forfeit_match(
            tournament, teams, matches, match_id, forfeiting_team_id, reason))

    def get_standings(self, tournament_id: str) -> Standings:
        state = self.store.load_tournament(tournament_id)
        tournament = state.tournament
        return calculate_standings(state.teams, state.matches, tournament.tiebreaker_order,
                                   tournament.playoff_teams_count)

    # Waitlist

    def promote_from_waitlist(self, event_id: str, spot_count: int = 1,
                              caller_owns_transaction: bool = False,
                              requester_id: Optional[str] = None) -> PromotionResult:
        """
        Promote up to spot_count waitlisted players and store the result.

        With caller_owns_transaction the pending notifications are returned
        unsent; the caller flushes them with send_notifications() once its own
        work has been committed.
        A requester_id marks a manual promotion, which only the event organizer
        may trigger.
        """
        def unit():
            state = self.store.load_event(event_id)
            if requester_id is not None:
                self._require_organizer(state.event, requester_id)
            result = promote_from_waitlist(state.event, state.registrations, spot_count)
            self.store.save_event(state)
            return result

        result = self._retry(unit)
        if not caller_owns_transaction:
            self.send_notifications(result.notifications)
        return result

    def join_waitlist(self, event_id: str, requester_id: str, registered_position: Optional[str] = None,
                      now: Optional[datetime] = None) -> Registration:
        """
        Put the requester at the end of the event waitlist.

        A previously cancelled registration is reused; an active one is rejected.
        """
        def unit():
            state = self.store.load_event(event_id)
            registration = next((r for r in state.registrations if r.user_id == requester_id), None)
            if registration is None:
                registration = Registration(id=f"{event_id}-{requester_id}", event_id=event_id,
                                            user_id=requester_id, payment_status=PaymentStatus.PENDING)
            elif registration.status is not RegistrationStatus.CANCELLED:
                raise ValidationError("Already registered for this event")
            registration.registered_at = now or datetime.now(timezone.utc)
            registration.registered_position = registered_position or registration.registered_position
            add_to_waitlist(state.registrations, registration)
            self.store.save_event(state)
            return registration

        registration = self._retry(unit)
        logger.info(f"Event {event_id}: {requester_id} joined the waitlist at position "
                    f"{registration.waitlist_position}")
        return registration

    def reorder_waitlist(self, event_id: str, items: Sequence[Tuple[str, int]], requester_id: str) -> None:
        def unit():
            state = self.store.load_event(event_id)
            self._require_organizer(state.event, requester_id)
            reorder_waitlist(state.registrations, items)
            self.store.save_event(state)
        self._retry(unit)
        logger.info(f"Event {event_id}: waitlist reordered by {requester_id}")

    def move_to_roster(self, event_id: str, registration_id: str, requester_id: str):
        def unit():
            state = self.store.load_event(event_id)
            self._require_organizer(state.event, requester_id)
            registration = move_to_roster(state.event, state.registrations, registration_id,
                                          payment_deadline=self.payment_deadline)
            self.store.save_event(state)
            return registration
        return self._retry(unit)

    def cancel_registration(self, event_id: str, registration_id: str, requester_id: str) -> PromotionResult:
        """
        Cancel a registration. A freed roster spot is offered to the waitlist.

        Returns:
            The promotion that filled the freed spot (empty for a waitlisted cancellation)
        """
        def unit():
            state = self.store.load_event(event_id)
            registration = next((r for r in state.registrations if r.id == registration_id), None)
            if registration is None:
                raise NotFoundError(f"Registration {registration_id} not found")
            if registration.user_id != requester_id:
                self._require_organizer(state.event, requester_id)

            if registration.status is RegistrationStatus.WAITLISTED:
                remove_from_waitlist(state.registrations, registration_id)
                result = PromotionResult()
            elif registration.status is RegistrationStatus.REGISTERED:
                registration.status = RegistrationStatus.CANCELLED
                registration.team_assignment = None
                registration.payment_deadline_at = None
                result = promote_from_waitlist(state.event, state.registrations, 1)
            else:
                raise ValidationError("Registration is already cancelled")
            self.store.save_event(state)
            return result

        result = self._retry(unit)
        self.send_notifications(result.notifications)
        return result

    def process_expired_payment_deadlines(self, now: Optional[datetime] = None) -> int:
        """
        Cancel registrations whose payment deadline passed and refill their spots.

        Runs one unit per event, so a conflict on one event does not undo the
        others. Safe to run repeatedly.

        Returns:
            Number of registrations expired
        """
        expired_total = 0
        for event_id in self.store.list_event_ids():
            def unit():
                state = self.store.load_event(event_id)
                expired = find_expired_registrations(state.registrations, now)
                if not expired:
                    return 0, []
                notifications = [expire_registration(state.event, r) for r in expired]
                promotion = promote_from_waitlist(state.event, state.registrations, len(expired), now=now)
                self.store.save_event(state)
                return len(expired), notifications + promotion.notifications

            count, notifications = self._retry(unit)
            if count:
                logger.info(f"Event {event_id}: expired {count} unpaid registration(s)")
                self.send_notifications(notifications)
            expired_total += count
        return expired_total
