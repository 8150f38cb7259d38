# apps/monitoring/simulator.py
import logging
import random
from dataclasses import dataclass

from django.utils import timezone

from . import events
from .roster import STATUSES, STATUS_TRAPPED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationPolicy:
    jitter_probability: float = 0.3
    status_change_probability: float = 0.02
    jitter_degrees: float = 0.0001

    @classmethod
    def from_settings(cls, config):
        return cls(
            jitter_probability=config.get('JITTER_PROBABILITY', cls.jitter_probability),
            status_change_probability=config.get('STATUS_CHANGE_PROBABILITY', cls.status_change_probability),
            jitter_degrees=config.get('JITTER_DEGREES', cls.jitter_degrees),
        )


@dataclass(frozen=True)
class StatusTransition:
    person_id: str
    old_status: str
    new_status: str


class StatusSimulator:
    """
    Randomly moves people who carry a locator device and occasionally changes
    their status. Every call is an independent set of Bernoulli trials drawn
    from the injected random source.
    """

    def __init__(self, roster, alert_manager, event_log, rng=None, policy=None,
                 persist=None, clock=timezone.now):
        self.roster = roster
        self.alert_manager = alert_manager
        self.event_log = event_log
        self.rng = rng or random.Random()
        self.policy = policy or SimulationPolicy()
        self.persist = persist
        self._clock = clock
        # People updated by the live sensor feed since the last tick
        self._sensor_driven = set()

    def mark_sensor_driven(self, person_id):
        self._sensor_driven.add(person_id)

    def tick(self):
        transitions = []
        now = self._clock()
        half_span = self.policy.jitter_degrees / 2

        for person in self.roster:
            if not person.has_locator or person.id in self._sensor_driven:
                continue
            if self.rng.random() >= self.policy.jitter_probability:
                continue

            person.latitude += self.rng.uniform(-half_span, half_span)
            person.longitude += self.rng.uniform(-half_span, half_span)

            if self.rng.random() < self.policy.status_change_probability:
                transition = self.apply_status(person, self.rng.choice(STATUSES))
                if transition:
                    transitions.append(transition)

            person.last_update = now

        self._sensor_driven.clear()

        if self.persist is not None:
            self.persist(self.roster)
        return transitions

    def apply_status(self, person, new_status):
        """Set a status; log the change and raise an SOS alert on entry to `trapped`."""
        old_status = person.status
        if new_status == old_status:
            return None

        person.set_status(new_status)
        self.event_log.record(
            events.STATUS_CHANGE,
            f"{person.name} status changed from {old_status} to {new_status}",
            {'person_id': person.id, 'from': old_status, 'to': new_status},
        )
        logger.info(f"{person.name} ({person.id}) status {old_status} -> {new_status}")

        if new_status == STATUS_TRAPPED:
            self.alert_manager.raise_alert(person)
        return StatusTransition(person.id, old_status, new_status)
