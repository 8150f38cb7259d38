# apps/monitoring/devices.py
import logging
import random

from django.utils import timezone

from .storage import DEVICES_KEY, load_state, save_state

logger = logging.getLogger(__name__)

DEVICE_TYPES = ('rfid', 'gps', 'both')
DEVICE_ONLINE = 'online'
DEVICE_OFFLINE = 'offline'

BATTERY_DRAIN_PROBABILITY = 0.3
STATUS_FLIP_PROBABILITY = 0.05


class DeviceRegistry:
    """
    RFID/GPS device records. Devices live in storage rather than in process
    memory, so the web process and the Celery worker see the same registry.
    """

    def __init__(self, key=DEVICES_KEY):
        self.key = key

    def _load(self):
        return [d for d in load_state(self.key, []) if isinstance(d, dict) and d.get('id')]

    def _save(self, devices):
        save_state(self.key, devices)

    def list(self):
        return self._load()

    def get(self, device_id):
        return next((d for d in self._load() if d['id'] == device_id), None)

    def register(self, device_id, device_type, assigned_to=None):
        if device_type not in DEVICE_TYPES:
            raise ValueError(f"Invalid device type '{device_type}'. Expected one of {', '.join(DEVICE_TYPES)}.")
        devices = self._load()
        if any(d['id'] == device_id for d in devices):
            raise ValueError(f"Device '{device_id}' is already registered.")

        now = timezone.now().isoformat()
        device = {
            'id': device_id,
            'type': device_type,
            'assigned_to': assigned_to or None,
            'status': DEVICE_ONLINE,
            'battery': 100,
            'last_signal': now,
            'created_at': now,
        }
        devices.append(device)
        self._save(devices)
        logger.info(f"Registered {device_type} device {device_id} (assigned to {assigned_to or 'nobody'})")
        return device

    def ping(self, device_id):
        devices = self._load()
        for device in devices:
            if device['id'] == device_id:
                device['last_signal'] = timezone.now().isoformat()
                device['status'] = DEVICE_ONLINE
                self._save(devices)
                return device
        raise LookupError(f"Device '{device_id}' not found.")

    def unregister(self, device_id):
        devices = self._load()
        remaining = [d for d in devices if d['id'] != device_id]
        if len(remaining) == len(devices):
            raise LookupError(f"Device '{device_id}' not found.")
        self._save(remaining)
        removed = next(d for d in devices if d['id'] == device_id)
        logger.info(f"Unregistered device {device_id}")
        return removed

    def stats(self):
        devices = self._load()
        return {
            'total': len(devices),
            'online': sum(1 for d in devices if d.get('status') == DEVICE_ONLINE),
            'offline': sum(1 for d in devices if d.get('status') == DEVICE_OFFLINE),
        }

    def simulate_health(self, rng=None):
        """Drain batteries a little and flip connectivity now and then."""
        rng = rng or random.Random()
        devices = self._load()
        changed = 0
        for device in devices:
            battery = int(device.get('battery', 0))
            if battery > 0 and rng.random() < BATTERY_DRAIN_PROBABILITY:
                device['battery'] = max(0, battery - rng.randrange(2))
                changed += 1
            if rng.random() < STATUS_FLIP_PROBABILITY:
                device['status'] = DEVICE_OFFLINE if device.get('status') == DEVICE_ONLINE else DEVICE_ONLINE
                changed += 1
        self._save(devices)
        return changed
