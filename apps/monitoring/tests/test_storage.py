from django.test import TestCase

from apps.monitoring.models import StoredState
from apps.monitoring.storage import (
    STUDENTS_KEY, SETTINGS_KEY, CALAMITY_ACTIVE_KEY, clear_state, load_state, save_state,
)


class StoredStateTests(TestCase):
    def test_missing_key_returns_copy_of_default(self):
        default = {'zoom': 16}
        value = load_state(SETTINGS_KEY, default)
        self.assertEqual(value, default)
        value['zoom'] = 3
        self.assertEqual(default['zoom'], 16)

    def test_round_trip(self):
        save_state(STUDENTS_KEY, [{'id': 'S1', 'name': 'Ana'}])
        save_state(CALAMITY_ACTIVE_KEY, True)
        self.assertEqual(load_state(STUDENTS_KEY, []), [{'id': 'S1', 'name': 'Ana'}])
        self.assertIs(load_state(CALAMITY_ACTIVE_KEY, False), True)

    def test_save_overwrites_existing_row(self):
        save_state(STUDENTS_KEY, [1])
        save_state(STUDENTS_KEY, [2])
        self.assertEqual(StoredState.objects.filter(key=STUDENTS_KEY).count(), 1)
        self.assertEqual(load_state(STUDENTS_KEY, []), [2])

    def test_corrupt_json_loads_as_default(self):
        StoredState.objects.create(key=STUDENTS_KEY, payload='{not json')
        with self.assertLogs('apps.monitoring.storage', level='WARNING'):
            self.assertEqual(load_state(STUDENTS_KEY, []), [])

    def test_wrong_type_loads_as_default(self):
        StoredState.objects.create(key=STUDENTS_KEY, payload='{"id": "S1"}')
        with self.assertLogs('apps.monitoring.storage', level='WARNING'):
            self.assertEqual(load_state(STUDENTS_KEY, []), [])

    def test_blank_payload_loads_as_default(self):
        StoredState.objects.create(key=SETTINGS_KEY, payload='')
        self.assertEqual(load_state(SETTINGS_KEY, {}), {})

    def test_clear_state(self):
        save_state(STUDENTS_KEY, [])
        save_state(SETTINGS_KEY, {})
        self.assertEqual(clear_state(STUDENTS_KEY), 1)
        self.assertEqual(list(StoredState.objects.values_list('key', flat=True)), [SETTINGS_KEY])
        clear_state()
        self.assertFalse(StoredState.objects.exists())
