# apps/monitoring/events.py
import logging
import uuid

from django.utils import timezone

logger = logging.getLogger(__name__)

DEFAULT_EVENT_LIMIT = 1000

# Event types written by the monitoring loop and the roster/device operations
STATUS_CHANGE = 'status_change'
SOS_ALERT = 'sos_alert'
SOS_ACKNOWLEDGED = 'sos_acknowledged'
CALAMITY_ACTIVATED = 'calamity_activated'
CALAMITY_DEACTIVATED = 'calamity_deactivated'
STUDENT_ADDED = 'student_added'
STUDENT_REMOVED = 'student_removed'
DEVICE_REGISTERED = 'device_registered'
DEVICE_PING = 'device_ping'
DEVICE_REMOVED = 'device_removed'
SETTINGS_UPDATED = 'settings_updated'


class EventLog:
    """Newest-first audit trail, truncated to `limit` entries."""

    def __init__(self, events=None, limit=DEFAULT_EVENT_LIMIT, clock=timezone.now):
        self.limit = limit
        self._clock = clock
        self._events = [e for e in (events or []) if isinstance(e, dict)][:limit]

    def __len__(self):
        return len(self._events)

    def record(self, event_type, message, data=None):
        event = {
            'id': f"EVT-{uuid.uuid4().hex[:12]}",
            'type': event_type,
            'message': message,
            'data': data or {},
            'timestamp': self._clock().isoformat(),
        }
        self._events.insert(0, event)
        del self._events[self.limit:]
        logger.debug(f"Event {event_type}: {message}")
        return event

    def recent(self, limit=100, event_type=None):
        events = self._events
        if event_type:
            events = [e for e in events if e.get('type') == event_type]
        return list(events[:limit])

    def to_list(self):
        return list(self._events)
