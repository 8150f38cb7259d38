from unittest.mock import AsyncMock, MagicMock, patch

from django.test import SimpleTestCase, override_settings

from apps.monitoring import fcm_service
from apps.monitoring.alerts import AlertManager
from apps.monitoring.events import EventLog
from apps.monitoring.notifications import relay_snapshot, relay_sos_alert
from apps.monitoring.roster import RosterStore
from .helpers import make_person

ALERT = {
    'id': 'SOS-abc', 'person_id': 'S1', 'person_name': 'Ana Garcia',
    'latitude': 7.0731, 'longitude': 125.6128, 'acknowledged': False,
}


def mock_layer(**kwargs):
    layer = MagicMock()
    layer.group_send = AsyncMock(**kwargs)
    return layer


@override_settings(DASHBOARD_GROUP_NAME='calamity_dashboard', FCM_RESPONDER_TOPIC='calamity-responders')
class NotificationReceiverTests(SimpleTestCase):

    @patch('apps.monitoring.notifications.get_channel_layer')
    def test_snapshot_relayed_to_dashboard_group(self, mock_get_layer):
        layer = mock_layer()
        mock_get_layer.return_value = layer
        relay_snapshot(sender=None, snapshot={'active': True})
        layer.group_send.assert_called_once_with(
            'calamity_dashboard', {'type': 'dashboard.snapshot', 'payload': {'active': True}},
        )

    @patch('apps.monitoring.notifications.send_fcm_to_topic')
    @patch('apps.monitoring.notifications.get_channel_layer')
    def test_sos_alert_relayed_to_dashboard_and_responders(self, mock_get_layer, mock_send_fcm):
        layer = mock_layer()
        mock_get_layer.return_value = layer
        relay_sos_alert(sender=None, alert=ALERT, person=None, play_sound=False)

        group, message = layer.group_send.call_args.args
        self.assertEqual(group, 'calamity_dashboard')
        self.assertEqual(message['type'], 'sos.alert')
        self.assertEqual(message['payload']['id'], 'SOS-abc')
        self.assertFalse(message['payload']['play_sound'])

        mock_send_fcm.assert_called_once()
        args, kwargs = mock_send_fcm.call_args
        self.assertEqual(args[0], 'calamity-responders')
        self.assertEqual(kwargs['title'], 'SOS Alert: Ana Garcia')
        self.assertIn('lat 7.073100', kwargs['body'])
        self.assertEqual(kwargs['data']['alert_id'], 'SOS-abc')

    @patch('apps.monitoring.notifications.send_fcm_to_topic')
    @patch('apps.monitoring.notifications.get_channel_layer', return_value=None)
    def test_missing_channel_layer_still_pushes(self, mock_get_layer, mock_send_fcm):
        relay_sos_alert(sender=None, alert=ALERT)
        mock_send_fcm.assert_called_once()

    @patch('apps.monitoring.notifications.send_fcm_to_topic')
    @patch('apps.monitoring.notifications.get_channel_layer')
    def test_broadcast_failure_is_logged_not_raised(self, mock_get_layer, mock_send_fcm):
        mock_get_layer.return_value = mock_layer(side_effect=RuntimeError('redis down'))
        with self.assertLogs('apps.monitoring.notifications', level='ERROR') as logs:
            relay_sos_alert(sender=None, alert=ALERT)
        self.assertIn('redis down', logs.output[0])
        mock_send_fcm.assert_called_once()

    @patch('apps.monitoring.notifications.send_fcm_to_topic')
    @patch('apps.monitoring.notifications.get_channel_layer')
    def test_alert_manager_signal_reaches_receiver(self, mock_get_layer, mock_send_fcm):
        mock_get_layer.return_value = mock_layer()
        roster = RosterStore([make_person('S1', 'Ana Garcia')])
        manager = AlertManager(roster, EventLog())

        manager.raise_alert(roster.get('S1'), notify=False)
        mock_send_fcm.assert_not_called()

        alert = manager.raise_alert(roster.get('S1'))
        mock_send_fcm.assert_called_once()
        self.assertEqual(mock_send_fcm.call_args.kwargs['data']['alert_id'], alert.id)


class FcmServiceTests(SimpleTestCase):

    @override_settings(FCM_SERVICE_ACCOUNT_KEY=None)
    @patch('apps.monitoring.fcm_service._firebase_app', None)
    def test_not_configured_returns_none(self):
        self.assertIsNone(fcm_service.send_fcm_to_topic('calamity-responders', 'Title', 'Body'))

    @patch('apps.monitoring.fcm_service.messaging.send', return_value='projects/x/messages/1')
    @patch('apps.monitoring.fcm_service.get_firebase_app', return_value=MagicMock())
    def test_sends_topic_message_with_string_data(self, mock_app, mock_send):
        result = fcm_service.send_fcm_to_topic(
            'calamity-responders', 'SOS', 'Body', data={'latitude': 7.5, 'skipped': None},
        )
        self.assertEqual(result, 'projects/x/messages/1')
        message = mock_send.call_args.args[0]
        self.assertEqual(message.topic, 'calamity-responders')
        self.assertEqual(message.data, {'latitude': '7.5'})

    @patch('apps.monitoring.fcm_service.messaging.send', side_effect=ValueError('bad message'))
    @patch('apps.monitoring.fcm_service.get_firebase_app', return_value=MagicMock())
    def test_send_failure_returns_none(self, mock_app, mock_send):
        with self.assertLogs('apps.monitoring.fcm_service', level='ERROR'):
            self.assertIsNone(fcm_service.send_fcm_to_topic('t', 'SOS', 'Body'))
