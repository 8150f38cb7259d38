from unittest.mock import patch

from django.test import TestCase

from apps.monitoring.devices import DeviceRegistry
from apps.monitoring.tasks import simulate_device_health


class SimulateDeviceHealthTests(TestCase):
    def test_no_devices(self):
        self.assertEqual(simulate_device_health(), "No devices registered.")

    @patch('apps.monitoring.tasks.DeviceRegistry.simulate_health', return_value=3)
    def test_reports_changes(self, mock_simulate):
        DeviceRegistry().register('GPS1', 'gps')
        self.assertEqual(simulate_device_health(), "Device health simulated. Changes: 3.")
        mock_simulate.assert_called_once_with()

    def test_battery_never_drops_more_than_one_percent_per_run(self):
        registry = DeviceRegistry()
        registry.register('GPS1', 'gps')
        registry.register('RF1', 'rfid')
        simulate_device_health()
        for device in registry.list():
            self.assertIn(device['battery'], (99, 100))
            self.assertIn(device['status'], ('online', 'offline'))
