# apps/monitoring/session.py
import logging
import random
import threading
import time
from functools import wraps

from django.utils import timezone

from . import events
from .alerts import AlertManager, DEFAULT_ALERT_LIMIT, DEFAULT_SEED_LIMIT
from .devices import DeviceRegistry
from .events import EventLog
from .geo_utils import distance_in_meters
from .roster import (
    RosterStore, TrackedPerson, STATUS_SAFE, STATUS_TRAPPED,
    generate_sample_people, scatter_position, validate_status,
)
from .scheduling import RecurringTimer, ThreadingScheduler
from .signals import snapshot_refreshed
from .simulator import SimulationPolicy, StatusSimulator

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 5.0
DEFAULT_CAMPUS_RADIUS_METERS = 500.0

DEFAULT_CAMPUS_SETTINGS = {
    'school_name': '',
    'latitude': 7.0731,
    'longitude': 125.6128,
    'zoom': 16,
    'audio_enabled': True,
}

CAMPUS_SETTING_RANGES = {
    'latitude': (-90.0, 90.0),
    'longitude': (-180.0, 180.0),
    'zoom': (1, 20),
}


def _clean_setting(key, value):
    default = DEFAULT_CAMPUS_SETTINGS[key]
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise TypeError(f"expected a boolean, got {value!r}")
        return value
    if isinstance(default, str):
        if not isinstance(value, str):
            raise TypeError(f"expected text, got {value!r}")
        return value
    if isinstance(value, bool):
        raise TypeError(f"expected a number, got {value!r}")
    number = type(default)(value)
    low, high = CAMPUS_SETTING_RANGES[key]
    if not low <= number <= high:
        raise ValueError(f"{number} is outside {low}..{high}")
    return number


def clean_campus_settings(values, base=None):
    """
    Merge `values` over `base` (the defaults when omitted), field by field.
    Unknown keys are dropped; a field that is the wrong type or out of range
    keeps its previous value.
    """
    settings = dict(base or DEFAULT_CAMPUS_SETTINGS)
    for key, value in (values or {}).items():
        if key not in DEFAULT_CAMPUS_SETTINGS:
            continue
        try:
            settings[key] = _clean_setting(key, value)
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Ignoring campus setting {key}={value!r} ({e}); using {settings[key]!r}")
    return settings


EDITABLE_PERSON_FIELDS = (
    'name', 'group', 'section', 'contact', 'locator_device', 'tag_device', 'latitude', 'longitude',
)


class MonitoringError(Exception):
    pass


class PreconditionError(MonitoringError):
    """Raised when an operation's precondition does not hold (e.g. empty roster)."""


def _locked(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class MonitoringSession:
    """
    Owns the roster, alerts and event log for one campus and drives the
    calamity-mode refresh loop.

    Every public operation runs to completion under one re-entrant lock, so a
    refresh cycle fired from the timer never interleaves with a request.
    """

    def __init__(self, roster=None, event_log=None, alert_manager=None, devices=None,
                 rng=None, policy=None, scheduler=None,
                 refresh_interval=DEFAULT_REFRESH_INTERVAL_SECONDS,
                 campus_settings=None, campus_radius=DEFAULT_CAMPUS_RADIUS_METERS,
                 alert_limit=DEFAULT_ALERT_LIMIT, alert_seed_limit=DEFAULT_SEED_LIMIT,
                 persistence=None, clock=timezone.now):
        self._lock = threading.RLock()
        self._clock = clock
        self.rng = rng or random.Random()
        self.roster = roster if roster is not None else RosterStore()
        self.event_log = event_log if event_log is not None else EventLog(clock=clock)
        self.alert_manager = alert_manager or AlertManager(
            self.roster, self.event_log, limit=alert_limit, clock=clock,
        )
        self.devices = devices or DeviceRegistry()
        self.persistence = persistence
        self.campus_settings = clean_campus_settings(campus_settings)
        self.alert_manager.audio_enabled = bool(self.campus_settings.get('audio_enabled', True))
        self.campus_radius = campus_radius
        self.alert_seed_limit = alert_seed_limit
        self.simulator = StatusSimulator(
            self.roster, self.alert_manager, self.event_log,
            rng=self.rng, policy=policy or SimulationPolicy(),
            persist=lambda roster: self.persist('roster'), clock=clock,
        )
        self._timer = RecurringTimer(
            scheduler or ThreadingScheduler(), refresh_interval, self._on_timer, name='refresh',
            lock=self._lock,
        )
        self.active = False
        self.refreshed_at = None

    @property
    def refresh_interval(self):
        return self._timer.interval

    @property
    def timer_armed(self):
        return self._timer.armed

    # --- persistence ------------------------------------------------------

    def persist(self, *parts):
        if self.persistence is None:
            return
        values = {
            'roster': lambda: self.roster.to_list(),
            'alerts': lambda: self.alert_manager.to_list(),
            'events': lambda: self.event_log.to_list(),
            'settings': lambda: dict(self.campus_settings),
            'active': lambda: self.active,
        }
        for part in parts or values.keys():
            self.persistence.save(part, values[part]())

    @_locked
    def save_all(self):
        self.persist()

    # --- calamity mode ----------------------------------------------------

    @_locked
    def start_monitoring(self, actor=None):
        if self.roster.is_empty():
            raise PreconditionError("Add people to the roster before activating calamity mode.")

        if not self.active:
            self.active = True
            self.event_log.record(
                events.CALAMITY_ACTIVATED,
                f"Calamity mode activated by {actor or 'system'}",
            )
            logger.warning(f"Calamity mode activated by {actor or 'system'} for {len(self.roster)} people")
            self.persist('active', 'events')

        self.alert_manager.seed_from_roster(self.alert_seed_limit)
        snapshot = self.refresh()
        # start() cancels any armed timer first
        self._timer.start()
        return snapshot

    @_locked
    def stop_monitoring(self, actor=None):
        self._timer.cancel()
        if not self.active:
            return
        self.active = False
        self.event_log.record(
            events.CALAMITY_DEACTIVATED,
            f"Calamity mode deactivated by {actor or 'system'}",
        )
        logger.warning(f"Calamity mode deactivated by {actor or 'system'}")
        self.persist('active', 'events')

    @_locked
    def suspend(self):
        """Cancel the refresh timer but stay in calamity mode (process shutdown)."""
        self._timer.cancel()

    def _on_timer(self):
        with self._lock:
            if self.active:
                self.refresh()

    @_locked
    def refresh(self):
        """One refresh cycle: simulate, count, collect active alerts, publish."""
        self.simulator.tick()
        counts = self.roster.counts()
        active_alerts = self.alert_manager.active_view()
        self.refreshed_at = self._clock()
        snapshot = self._build_snapshot(counts, active_alerts)
        snapshot_refreshed.send(sender=self.__class__, snapshot=snapshot)
        return snapshot

    @_locked
    def tick(self):
        return self.simulator.tick()

    @_locked
    def get_snapshot(self):
        return self._build_snapshot(self.roster.counts(), self.alert_manager.active_view())

    def _build_snapshot(self, counts, active_alerts):
        return {
            'active': self.active,
            'refreshed_at': self.refreshed_at.isoformat() if self.refreshed_at else None,
            'counts': counts,
            'active_alerts': active_alerts,
            'people': [self.person_view(p) for p in self.roster],
        }

    def person_view(self, person):
        data = person.to_dict()
        distance = distance_in_meters(
            person.latitude, person.longitude,
            self.campus_settings['latitude'], self.campus_settings['longitude'],
        )
        data['distance_from_campus_m'] = round(distance, 1)
        data['outside_campus'] = distance > self.campus_radius
        return data

    # --- alerts -----------------------------------------------------------

    @_locked
    def raise_alert(self, person_id):
        person = self.roster.get(person_id)
        if person is None:
            raise LookupError(f"Person '{person_id}' not found.")
        alert = self.alert_manager.raise_alert(person)
        self.persist('alerts', 'events')
        return alert

    @_locked
    def acknowledge(self, index, alert_id=None):
        alert = self.alert_manager.acknowledge(index, alert_id=alert_id)
        if alert is not None:
            self.persist('alerts', 'events')
        return alert

    @_locked
    def active_alerts(self):
        return self.alert_manager.active_view()

    # --- live sensor feed -------------------------------------------------

    @_locked
    def apply_sensor_reading(self, device_id, latitude, longitude, emergency=False):
        """
        Accept a position report from a real device. The reading wins over the
        simulator: the person is skipped by the next tick.
        """
        person = self.roster.find_by_device(device_id)
        if person is None:
            raise LookupError(f"No tracked person carries device '{device_id}'.")

        person.latitude = float(latitude)
        person.longitude = float(longitude)
        person.last_update = self._clock()
        self.simulator.mark_sensor_driven(person.id)

        transition = None
        if emergency:
            transition = self.simulator.apply_status(person, STATUS_TRAPPED)
        logger.debug(f"Sensor reading from {device_id} applied to {person.id} (emergency={emergency})")
        self.persist('roster', 'alerts', 'events')
        return person, transition

    # --- roster -----------------------------------------------------------

    @_locked
    def add_person(self, data):
        data = dict(data)
        if data.get('latitude') is None or data.get('longitude') is None:
            data['latitude'], data['longitude'] = scatter_position(
                self.rng, self.campus_settings['latitude'], self.campus_settings['longitude'],
            )
        person = TrackedPerson(
            id=data.get('id') or f"STU{int(time.time() * 1000)}",
            name=data['name'],
            group=data.get('group') or '',
            section=data.get('section') or '',
            contact=data.get('contact') or '',
            locator_device=data.get('locator_device') or '',
            tag_device=data.get('tag_device') or '',
            latitude=data['latitude'],
            longitude=data['longitude'],
            status=STATUS_SAFE,
            created_at=self._clock(),
        )
        self.roster.add(person)
        self.event_log.record(
            events.STUDENT_ADDED, f"Student {person.name} added to system", {'person_id': person.id},
        )
        self.persist('roster', 'events')
        return person

    @_locked
    def update_person(self, person_id, changes):
        person = self.roster.get(person_id)
        if person is None:
            raise LookupError(f"Person '{person_id}' not found.")

        new_status = changes.get('status')
        if new_status is not None:
            validate_status(new_status)
        editable = {k: v for k, v in changes.items() if k in EDITABLE_PERSON_FIELDS}
        self.roster.update(person_id, **editable)
        if new_status is not None:
            self.simulator.apply_status(person, new_status)
        self.persist('roster', 'alerts', 'events')
        return person

    @_locked
    def remove_person(self, person_id):
        person = self.roster.remove(person_id)
        self.event_log.record(
            events.STUDENT_REMOVED, f"Student {person.name} removed from system", {'person_id': person.id},
        )
        self.persist('roster', 'events')
        return person

    @_locked
    def generate_sample_people(self, count=120):
        candidates = generate_sample_people(
            count, self.rng,
            self.campus_settings['latitude'], self.campus_settings['longitude'],
            existing=len(self.roster), taken=[p.id for p in self.roster],
        )
        added = []
        for person in candidates:
            self.roster.add(person)
            added.append(person)
        self.event_log.record(events.STUDENT_ADDED, f"Generated {len(added)} sample students")
        self.persist('roster', 'events')
        return added

    @_locked
    def list_people(self, status=None, group=None, query=None):
        return [self.person_view(p) for p in self.roster.filter(status=status, group=group, query=query)]

    @_locked
    def get_person(self, person_id):
        person = self.roster.get(person_id)
        if person is None:
            raise LookupError(f"Person '{person_id}' not found.")
        return self.person_view(person)

    @_locked
    def roster_summary(self):
        return self.roster.summary()

    @_locked
    def recent_events(self, limit=100, event_type=None):
        return self.event_log.recent(limit=limit, event_type=event_type)

    # --- devices ----------------------------------------------------------

    @_locked
    def register_device(self, device_id, device_type, assigned_to=None):
        person = None
        if assigned_to:
            person = self.roster.get(assigned_to)
            if person is None:
                raise LookupError(f"Person '{assigned_to}' not found.")

        device = self.devices.register(device_id, device_type, assigned_to=assigned_to)
        if person is not None:
            if device_type in ('rfid', 'both'):
                person.tag_device = device_id
            if device_type in ('gps', 'both'):
                person.locator_device = device_id
        self.event_log.record(events.DEVICE_REGISTERED, f"Device {device_id} registered", {'device_id': device_id})
        self.persist('roster', 'events')
        return device

    @_locked
    def ping_device(self, device_id):
        device = self.devices.ping(device_id)
        self.event_log.record(events.DEVICE_PING, f"Device {device_id} pinged successfully", {'device_id': device_id})
        self.persist('events')
        return device

    @_locked
    def unregister_device(self, device_id):
        device = self.devices.unregister(device_id)
        for person in self.roster:
            if person.tag_device == device_id:
                person.tag_device = ''
            if person.locator_device == device_id:
                person.locator_device = ''
        self.event_log.record(events.DEVICE_REMOVED, f"Device {device_id} removed", {'device_id': device_id})
        self.persist('roster', 'events')
        return device

    # --- settings ---------------------------------------------------------

    @_locked
    def get_settings(self):
        return dict(self.campus_settings)

    @_locked
    def update_settings(self, changes):
        self.campus_settings = clean_campus_settings(changes, base=self.campus_settings)
        self.alert_manager.audio_enabled = bool(self.campus_settings.get('audio_enabled', True))
        self.event_log.record(events.SETTINGS_UPDATED, "Campus settings updated")
        self.persist('settings', 'events')
        return dict(self.campus_settings)
