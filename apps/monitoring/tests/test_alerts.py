import types
from unittest.mock import patch

from django.test import SimpleTestCase

from apps.monitoring.alerts import AlertManager, SosAlert
from apps.monitoring.events import EventLog, SOS_ALERT, SOS_ACKNOWLEDGED
from apps.monitoring.roster import RosterStore
from .helpers import make_person


class AlertManagerTests(SimpleTestCase):
    def setUp(self):
        self.roster = RosterStore([
            make_person('S1', 'Ana Garcia'),
            make_person('S2', 'Jose Reyes'),
            make_person('S3', 'Maria Santos'),
        ])
        self.event_log = EventLog()
        self.manager = AlertManager(self.roster, self.event_log)

    def _raise(self, person_id, notify=False):
        return self.manager.raise_alert(self.roster.get(person_id), notify=notify)

    def test_raise_alert_prepends_and_records_event(self):
        first = self._raise('S1')
        second = self._raise('S2')
        self.assertEqual([a.id for a in self.manager.alerts], [second.id, first.id])
        self.assertTrue(first.id.startswith('SOS-'))
        self.assertFalse(second.acknowledged)

        event = self.event_log.recent(event_type=SOS_ALERT)[0]
        self.assertEqual(event['data']['person_id'], 'S2')
        self.assertIn('location', event['data'])

    def test_raise_alert_for_unknown_person(self):
        stranger = make_person('X1', 'Stranger')
        with self.assertRaises(LookupError):
            self.manager.raise_alert(stranger)
        self.assertEqual(len(self.manager), 0)

    def test_alert_list_capped_at_fifty_newest_first(self):
        raised = [self._raise('S1') for _ in range(55)]
        self.assertEqual(len(self.manager), 50)
        expected = [a.id for a in reversed(raised)][:50]
        self.assertEqual([a.id for a in self.manager.alerts], expected)

    @patch('apps.monitoring.alerts.sos_alert_raised')
    def test_notify_sends_signal_with_audio_flag(self, mock_signal):
        self.manager.audio_enabled = False
        alert = self._raise('S1', notify=True)
        mock_signal.send.assert_called_once()
        kwargs = mock_signal.send.call_args.kwargs
        self.assertEqual(kwargs['alert']['id'], alert.id)
        self.assertEqual(kwargs['alert']['person_name'], 'Ana Garcia')
        self.assertEqual(kwargs['person']['id'], 'S1')
        self.assertFalse(kwargs['play_sound'])

    @patch('apps.monitoring.alerts.sos_alert_raised')
    def test_silent_raise_sends_no_signal(self, mock_signal):
        self._raise('S1', notify=False)
        mock_signal.send.assert_not_called()

    def test_active_alerts_is_a_fresh_generator(self):
        self._raise('S1')
        self._raise('S2')
        gen = self.manager.active_alerts()
        self.assertIsInstance(gen, types.GeneratorType)
        self.assertEqual(len(list(gen)), 2)
        self.assertEqual(list(gen), [])
        self.assertEqual(len(list(self.manager.active_alerts())), 2)

    def test_acknowledge_by_active_index(self):
        older = self._raise('S1')
        newer = self._raise('S2')
        acknowledged = self.manager.acknowledge(1)
        self.assertIs(acknowledged, older)
        self.assertTrue(older.acknowledged)
        self.assertIsNotNone(older.acknowledged_at)
        self.assertEqual(self.manager.list_active(), [newer])
        self.assertEqual(self.event_log.recent(event_type=SOS_ACKNOWLEDGED)[0]['data']['alert_id'], older.id)

    def test_acknowledge_out_of_range_never_mutates(self):
        self._raise('S1')
        events_before = len(self.event_log)
        for index in (-1, 1, 99, '0', None, 0.0, True):
            self.assertIsNone(self.manager.acknowledge(index))
        self.assertEqual(len(self.manager.list_active()), 1)
        self.assertEqual(len(self.event_log), events_before)

    def test_acknowledge_on_empty_list(self):
        self.assertIsNone(self.manager.acknowledge(0))

    def test_repeated_acknowledge_with_alert_id_is_idempotent(self):
        self._raise('S1')
        target = self._raise('S2')
        self.assertIs(self.manager.acknowledge(0, alert_id=target.id), target)
        # The older alert has moved into slot 0; the repeat must not touch it
        self.assertIsNone(self.manager.acknowledge(0, alert_id=target.id))
        self.assertEqual(len(self.manager.list_active()), 1)
        self.assertEqual(len(self.event_log.recent(event_type=SOS_ACKNOWLEDGED)), 1)

    def test_acknowledge_alert_by_id_is_idempotent(self):
        alert = self._raise('S1')
        self.manager.acknowledge_alert(alert.id)
        first_time = alert.acknowledged_at
        self.assertIs(self.manager.acknowledge_alert(alert.id), alert)
        self.assertEqual(alert.acknowledged_at, first_time)
        self.assertEqual(len(self.event_log.recent(event_type=SOS_ACKNOWLEDGED)), 1)
        self.assertIsNone(self.manager.acknowledge_alert('SOS-missing'))

    def test_seed_from_roster_deduplicates_and_respects_limit(self):
        roster = RosterStore([make_person(f'T{i}', f'Trapped {i}', status='trapped') for i in range(12)])
        manager = AlertManager(roster, EventLog())
        self.assertEqual(len(manager.seed_from_roster(limit=10)), 10)
        self.assertEqual(len(manager.seed_from_roster(limit=10)), 2)
        self.assertEqual(manager.seed_from_roster(limit=10), [])
        self.assertEqual(len(manager.list_active()), 12)

    def test_describe_tolerates_removed_person(self):
        alert = self._raise('S3')
        self.roster.remove('S3')
        view = self.manager.active_view()
        self.assertEqual(view[0]['index'], 0)
        self.assertEqual(view[0]['person_id'], 'S3')
        self.assertIsNone(view[0]['person_name'])
        self.assertIsNone(view[0]['latitude'])
        self.assertIs(self.manager.acknowledge(0), alert)

    def test_from_list_restores_and_skips_malformed(self):
        self._raise('S1')
        self.manager.acknowledge(0)
        self._raise('S2')
        rows = self.manager.to_list() + [{'id': 'SOS-bad'}, 'garbage']
        with self.assertLogs('apps.monitoring.alerts', level='WARNING'):
            restored = AlertManager.from_list(rows, self.roster, EventLog(), limit=50)
        self.assertEqual(len(restored), 2)
        self.assertEqual([a.person_id for a in restored.list_active()], ['S2'])
        self.assertTrue(restored.alerts[1].acknowledged)


class SosAlertTests(SimpleTestCase):
    def test_acknowledge_is_one_way(self):
        alert = SosAlert(id='SOS-1', person_id='S1', created_at=None)
        alert.acknowledge('first')
        alert.acknowledge('second')
        self.assertTrue(alert.acknowledged)
        self.assertEqual(alert.acknowledged_at, 'first')
