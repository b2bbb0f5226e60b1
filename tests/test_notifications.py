"""
Tests for notification messages and best-effort delivery.
"""
import logging
from unittest.mock import Mock

from bracket_core.models import NotificationType
from bracket_core.notifications import build_messages, send_pending_notifications
from bracket_core.waitlist import PendingNotification


def _notification(type, user_id='player', organizer_id='organizer'):
    return PendingNotification(user_id, 'e1', 'Friday Skate', type, organizer_id=organizer_id)


class TestBuildMessages:
    """Tests for build_messages."""

    def test_auto_promotion_tells_player_and_organizer(self):
        messages = build_messages(_notification(NotificationType.AUTO_PROMOTED))
        assert [(m[0], m[1]) for m in messages] == [('player', "You're In!"), ('organizer', 'Auto-Promotion')]
        assert 'Friday Skate' in messages[0][2]
        assert messages[1][3]['user_id'] == 'player'

    def test_organizer_promoting_themselves_gets_one_message(self):
        messages = build_messages(_notification(NotificationType.AUTO_PROMOTED, user_id='organizer'))
        assert len(messages) == 1

    def test_spot_available(self):
        messages = build_messages(_notification(NotificationType.SPOT_AVAILABLE))
        assert len(messages) == 1
        user_id, title, body, data = messages[0]
        assert (user_id, title) == ('player', 'Spot Available!')
        assert data == {'type': 'SpotAvailable', 'event_id': 'e1'}

    def test_registration_expired(self):
        messages = build_messages(_notification(NotificationType.REGISTRATION_EXPIRED))
        assert messages[0][1] == 'Registration Expired'


class TestSendPendingNotifications:
    """Tests for send_pending_notifications."""

    def test_sends_every_message(self):
        notifier = Mock()
        sent = send_pending_notifications(notifier, [
            _notification(NotificationType.AUTO_PROMOTED),
            _notification(NotificationType.SPOT_AVAILABLE, user_id='next'),
        ])
        assert sent == 3
        assert [c.args[0] for c in notifier.send.call_args_list] == ['player', 'organizer', 'next']

    def test_failure_is_logged_and_others_still_sent(self, caplog):
        notifier = Mock()
        notifier.send.side_effect = [RuntimeError('push service down'), None]
        with caplog.at_level(logging.WARNING, logger='bracket_core.notifications'):
            sent = send_pending_notifications(notifier, [
                _notification(NotificationType.SPOT_AVAILABLE, user_id='first'),
                _notification(NotificationType.SPOT_AVAILABLE, user_id='second'),
            ])
        assert sent == 1
        assert notifier.send.call_count == 2
        assert 'push service down' in caplog.text

    def test_nothing_to_send(self):
        assert send_pending_notifications(Mock(), []) == 0
