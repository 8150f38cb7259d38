# apps/monitoring/runtime.py
import logging
import random
import threading

from django.conf import settings

from .alerts import AlertManager
from .events import EventLog
from .roster import RosterStore
from .scheduling import RecurringTimer, ThreadingScheduler
from .session import MonitoringSession, DEFAULT_CAMPUS_SETTINGS, PreconditionError
from .simulator import SimulationPolicy
from . import storage

logger = logging.getLogger(__name__)

PART_KEYS = {
    'roster': storage.STUDENTS_KEY,
    'alerts': storage.ALERTS_KEY,
    'events': storage.EVENTS_KEY,
    'settings': storage.SETTINGS_KEY,
    'active': storage.CALAMITY_ACTIVE_KEY,
}


class StoragePersistence:
    """Maps the session's logical parts onto StoredState keys."""

    def save(self, part, value):
        storage.save_state(PART_KEYS[part], value)


class MonitoringRuntime:
    """The per-process host of the monitoring session and its autosave timer."""

    def __init__(self, session, scheduler, autosave_interval):
        self.session = session
        self.autosave = RecurringTimer(scheduler, autosave_interval, self.save_all, name='autosave')

    def save_all(self):
        self.session.save_all()

    def boot(self, resume=True):
        self.autosave.start()
        if resume and storage.load_state(storage.CALAMITY_ACTIVE_KEY, False):
            try:
                self.session.start_monitoring(actor='restart')
                logger.info("Resumed calamity mode after restart")
            except PreconditionError:
                logger.warning("Calamity mode was active but the roster is empty; not resuming")
        return self

    def shutdown(self):
        self.session.suspend()
        self.autosave.cancel()


def monitoring_config():
    return getattr(settings, 'CALAMITY_MONITORING', {})


def build_runtime(scheduler=None, rng=None, config=None):
    """Load the persisted state and wire up a session for this process."""
    config = config if config is not None else monitoring_config()
    scheduler = scheduler or ThreadingScheduler()
    if rng is None:
        rng = random.Random(config.get('RANDOM_SEED'))

    event_log = EventLog(
        storage.load_state(storage.EVENTS_KEY, []),
        limit=config.get('EVENT_HISTORY_LIMIT', 1000),
    )
    roster = RosterStore.from_list(storage.load_state(storage.STUDENTS_KEY, []))
    alert_manager = AlertManager.from_list(
        storage.load_state(storage.ALERTS_KEY, []), roster, event_log,
        limit=config.get('ALERT_HISTORY_LIMIT', 50),
    )
    campus_settings = storage.load_state(storage.SETTINGS_KEY, dict(DEFAULT_CAMPUS_SETTINGS))

    session = MonitoringSession(
        roster=roster,
        event_log=event_log,
        alert_manager=alert_manager,
        rng=rng,
        policy=SimulationPolicy.from_settings(config),
        scheduler=scheduler,
        refresh_interval=config.get('REFRESH_INTERVAL_SECONDS', 5.0),
        campus_settings=campus_settings,
        campus_radius=config.get('CAMPUS_RADIUS_METERS', 500.0),
        alert_seed_limit=config.get('ALERT_SEED_LIMIT', 10),
        persistence=StoragePersistence(),
    )
    logger.info(f"Monitoring session loaded with {len(roster)} people and {len(alert_manager)} alerts")
    return MonitoringRuntime(session, scheduler, config.get('AUTOSAVE_INTERVAL_SECONDS', 60.0))


_runtime = None
_runtime_lock = threading.Lock()


def get_runtime():
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = build_runtime().boot(resume=monitoring_config().get('RESUME_ON_BOOT', True))
        return _runtime


def get_session():
    return get_runtime().session


def install_runtime(runtime):
    """Replace the process runtime (used by tests and management commands)."""
    global _runtime
    with _runtime_lock:
        if _runtime is not None and _runtime is not runtime:
            _runtime.shutdown()
        _runtime = runtime
    return runtime


def reset_runtime():
    install_runtime(None)
