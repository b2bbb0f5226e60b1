"""
Turning pending waitlist notifications into messages and sending them.

Sending happens only after the unit of work that produced the notifications
has been stored. Delivery is best effort: a failing notifier is logged and the
remaining notifications are still attempted.
"""
import logging
from typing import Dict, Iterable, List, Tuple

from .models import NotificationType
from .waitlist import PendingNotification

logger = logging.getLogger(__name__)


def build_messages(notification: PendingNotification) -> List[Tuple[str, str, str, Dict]]:
    """
    Messages for one pending notification as (user_id, title, body, data).

    An auto-promotion also tells the event organizer.
    """
    data = {'type': notification.type.value, 'event_id': notification.event_id}
    event_name = notification.event_name

    if notification.type is NotificationType.AUTO_PROMOTED:
        messages = [(notification.user_id, "You're In!",
                     f"A spot opened up and you've been added to {event_name}.", data)]
        if notification.organizer_id and notification.organizer_id != notification.user_id:
            messages.append((notification.organizer_id, "Auto-Promotion",
                             f"A waitlisted player was promoted to the roster for {event_name}.",
                             dict(data, user_id=notification.user_id)))
        return messages

    if notification.type is NotificationType.SPOT_AVAILABLE:
        return [(notification.user_id, "Spot Available!",
                 f"A spot is available for {event_name}. Complete your payment to claim it.", data)]

    return [(notification.user_id, "Registration Expired",
             f"Your payment deadline for {event_name} passed and your spot was released.", data)]


def send_pending_notifications(notifier, notifications: Iterable[PendingNotification]) -> int:
    """
    Send every message for the given notifications through notifier.send().

    Returns:
        Number of messages delivered without error
    """
    sent = 0
    for notification in notifications:
        for user_id, title, body, data in build_messages(notification):
            try:
                notifier.send(user_id, title, body, data)
                sent += 1
            except Exception as e:
                logger.warning(f"Failed to send '{title}' notification to user {user_id}: {e}")
    return sent
