"""
Waitlist ordering and promotion for event registrations.

Players who have verified payment are promoted first, in registration order.
Spots nobody verified can claim are offered, as a notification only, to the
next unverified players in waitlist order. Waitlist positions are always dense
1..count after any promotion or removal.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import NotFoundError, ValidationError
from .models import (
    Event,
    NotificationType,
    PaymentStatus,
    Registration,
    RegistrationStatus,
    TeamAssignment,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_DEADLINE = timedelta(hours=2)
DEFAULT_POSITION = "Skater"


class PendingNotification:
    """A notification collected during a unit of work and sent after it commits."""

    def __init__(self, user_id, event_id, event_name, type, organizer_id=None):
        self.user_id = user_id
        self.event_id = event_id
        self.event_name = event_name
        self.type = NotificationType(type)
        self.organizer_id = organizer_id

    def __eq__(self, other):
        if not isinstance(other, PendingNotification):
            return NotImplemented
        return (self.user_id, self.event_id, self.type) == (other.user_id, other.event_id, other.type)

    def __repr__(self):
        return f"PendingNotification(user={self.user_id}, event={self.event_id}, type={self.type.value})"


class PromotionResult:
    def __init__(self, promoted: Optional[List[Registration]] = None,
                 notifications: Optional[List[PendingNotification]] = None):
        self.promoted = promoted or []
        self.notifications = notifications or []

    @property
    def promoted_count(self) -> int:
        return len(self.promoted)

    def to_dict(self) -> Dict:
        return {
            'promoted_count': self.promoted_count,
            'promoted': [registration.to_dict() for registration in self.promoted],
            'notified_user_ids': [n.user_id for n in self.notifications
                                  if n.type is NotificationType.SPOT_AVAILABLE],
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _find(registrations: List[Registration], registration_id: str) -> Registration:
    for registration in registrations:
        if registration.id == registration_id:
            return registration
    raise NotFoundError(f"Registration {registration_id} not found")


def get_waitlist(registrations: List[Registration]) -> List[Registration]:
    """Waitlisted registrations in waitlist order (ties by id)."""
    waitlisted = [r for r in registrations if r.status is RegistrationStatus.WAITLISTED]
    return sorted(waitlisted, key=lambda r: (r.waitlist_position is None, r.waitlist_position or 0, r.id))


def next_waitlist_position(registrations: List[Registration]) -> int:
    positions = [r.waitlist_position for r in get_waitlist(registrations) if r.waitlist_position]
    return max(positions, default=0) + 1


def renumber_waitlist(registrations: List[Registration]) -> None:
    """Rewrite waitlist positions as 1..count, keeping the current order."""
    for position, registration in enumerate(get_waitlist(registrations), start=1):
        registration.waitlist_position = position


def add_to_waitlist(registrations: List[Registration], registration: Registration) -> Registration:
    """Put registration at the end of the waitlist."""
    registration.waitlist_position = next_waitlist_position(registrations)
    registration.status = RegistrationStatus.WAITLISTED
    registration.team_assignment = None
    registration.promoted_at = None
    registration.payment_deadline_at = None
    if registration not in registrations:
        registrations.append(registration)
    return registration


def remove_from_waitlist(registrations: List[Registration], registration_id: str) -> Registration:
    """Cancel a waitlisted registration and close the gap it leaves."""
    registration = _find(registrations, registration_id)
    if registration.status is not RegistrationStatus.WAITLISTED:
        raise ValidationError("Registration is not on the waitlist")
    registration.status = RegistrationStatus.CANCELLED
    registration.waitlist_position = None
    renumber_waitlist(registrations)
    return registration


def determine_team_assignment(registrations: List[Registration], registered_position: Optional[str]) -> TeamAssignment:
    """Black unless Black already has more registered players in this position than White."""
    position = registered_position or DEFAULT_POSITION
    same_position = [r for r in registrations
                     if r.status is RegistrationStatus.REGISTERED
                     and (r.registered_position or DEFAULT_POSITION) == position]
    black = sum(1 for r in same_position if r.team_assignment is TeamAssignment.BLACK)
    white = sum(1 for r in same_position if r.team_assignment is TeamAssignment.WHITE)
    return TeamAssignment.BLACK if black <= white else TeamAssignment.WHITE


def _promote(registrations: List[Registration], registration: Registration, now: datetime) -> None:
    registration.team_assignment = determine_team_assignment(registrations, registration.registered_position)
    registration.status = RegistrationStatus.REGISTERED
    registration.waitlist_position = None
    registration.promoted_at = now
    registration.payment_deadline_at = None


def promote_from_waitlist(event: Event, registrations: List[Registration], spot_count: int = 1,
                          now: Optional[datetime] = None) -> PromotionResult:
    """
    Fill up to spot_count open spots from the waitlist.

    Verified registrations are promoted in registered_at order. Any spots
    left over are offered to unverified registrations in waitlist order, who
    get a SpotAvailable notification but stay waitlisted.
    """
    if spot_count < 1:
        raise ValidationError("Spot count must be at least 1")
    now = now or _utcnow()
    waitlist = get_waitlist(registrations)

    verified = sorted(
        (r for r in waitlist if r.is_verified),
        key=lambda r: (r.registered_at or datetime.min.replace(tzinfo=timezone.utc), r.id),
    )
    result = PromotionResult()
    for registration in verified[:spot_count]:
        _promote(registrations, registration, now)
        result.promoted.append(registration)
        result.notifications.append(PendingNotification(
            registration.user_id, event.id, event.name, NotificationType.AUTO_PROMOTED,
            organizer_id=event.creator_id))

    remaining = spot_count - result.promoted_count
    if remaining > 0:
        unverified = [r for r in waitlist if not r.is_verified]
        for registration in unverified[:remaining]:
            result.notifications.append(PendingNotification(
                registration.user_id, event.id, event.name, NotificationType.SPOT_AVAILABLE))

    renumber_waitlist(registrations)
    logger.info(f"Event {event.id}: promoted {result.promoted_count} of {spot_count} spot(s), "
                f"{len(result.notifications) - result.promoted_count} spot offer(s)")
    return result


def reorder_waitlist(registrations: List[Registration], items: Sequence[Tuple[str, int]]) -> None:
    """
    Apply an organizer-supplied waitlist order.

    Args:
        items: (registration_id, position) pairs covering every waitlisted
            registration with positions exactly 1..count
    """
    waitlisted_ids = {r.id for r in get_waitlist(registrations)}
    item_ids = [registration_id for registration_id, _ in items]
    if len(item_ids) != len(set(item_ids)) or set(item_ids) != waitlisted_ids:
        raise ValidationError("All waitlisted users must be included")
    positions = sorted(position for _, position in items)
    if positions != list(range(1, len(positions) + 1)):
        raise ValidationError("Positions must be sequential starting from 1")

    by_id = {r.id: r for r in registrations}
    for registration_id, position in items:
        by_id[registration_id].waitlist_position = position


def move_to_roster(event: Event, registrations: List[Registration], registration_id: str,
                   payment_deadline: timedelta = DEFAULT_PAYMENT_DEADLINE,
                   now: Optional[datetime] = None) -> Registration:
    """
    Organizer override: move one waitlisted registration onto the roster.

    Paid events give the player a payment deadline; once it passes without
    payment the registration expires and the spot goes back to the waitlist.
    """
    now = now or _utcnow()
    registration = _find(registrations, registration_id)
    if registration.status is not RegistrationStatus.WAITLISTED:
        raise ValidationError("Registration is not on the waitlist")
    _promote(registrations, registration, now)
    if event.cost and event.cost > 0 and not registration.is_verified:
        registration.payment_deadline_at = now + payment_deadline
    renumber_waitlist(registrations)
    return registration


def find_expired_registrations(registrations: List[Registration],
                               now: Optional[datetime] = None) -> List[Registration]:
    """Registered players whose payment deadline passed without payment."""
    now = now or _utcnow()
    unpaid = (None, PaymentStatus.PENDING)
    return [
        r for r in registrations
        if r.status is RegistrationStatus.REGISTERED
        and r.payment_deadline_at is not None
        and r.payment_deadline_at < now
        and r.payment_status in unpaid
    ]


def expire_registration(event: Event, registration: Registration) -> PendingNotification:
    """Cancel a registration whose payment deadline passed."""
    registration.status = RegistrationStatus.CANCELLED
    registration.payment_deadline_at = None
    registration.team_assignment = None
    return PendingNotification(registration.user_id, event.id, event.name,
                               NotificationType.REGISTRATION_EXPIRED)
