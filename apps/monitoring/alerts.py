# apps/monitoring/alerts.py
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from . import events
from .roster import STATUS_TRAPPED
from .signals import sos_alert_raised

logger = logging.getLogger(__name__)

DEFAULT_ALERT_LIMIT = 50
DEFAULT_SEED_LIMIT = 10


@dataclass
class SosAlert:
    id: str
    person_id: str
    created_at: datetime
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None

    def acknowledge(self, when):
        # Acknowledgement is one-way; a second call keeps the first timestamp
        if not self.acknowledged:
            self.acknowledged = True
            self.acknowledged_at = when

    def to_dict(self):
        return {
            'id': self.id,
            'person_id': self.person_id,
            'created_at': self.created_at.isoformat(),
            'acknowledged': self.acknowledged,
            'acknowledged_at': self.acknowledged_at.isoformat() if self.acknowledged_at else None,
        }

    @classmethod
    def from_dict(cls, data):
        acknowledged_at = data.get('acknowledged_at')
        return cls(
            id=str(data['id']),
            person_id=str(data['person_id']),
            created_at=parse_datetime(str(data['created_at'])),
            acknowledged=bool(data.get('acknowledged', False)),
            acknowledged_at=parse_datetime(str(acknowledged_at)) if acknowledged_at else None,
        )


class AlertManager:
    """
    Keeps the SOS alert list, newest first, capped at `limit` entries.

    Indices handed to `acknowledge` are positions in the *active* (unacknowledged)
    subsequence as it is right now; they are never stored, because every
    acknowledgement shifts the positions of the alerts behind it.
    """

    def __init__(self, roster, event_log, limit=DEFAULT_ALERT_LIMIT, clock=timezone.now, alerts=None):
        self.roster = roster
        self.event_log = event_log
        self.limit = limit
        self.audio_enabled = True
        self._clock = clock
        self._alerts: List[SosAlert] = list(alerts or [])[:limit]

    def __len__(self):
        return len(self._alerts)

    @property
    def alerts(self):
        return list(self._alerts)

    def raise_alert(self, person, notify=True):
        if person.id not in self.roster:
            raise LookupError(f"Cannot raise an alert for unknown person '{person.id}'.")

        alert = SosAlert(
            id=f"SOS-{uuid.uuid4().hex[:12]}",
            person_id=person.id,
            created_at=self._clock(),
        )
        self._alerts.insert(0, alert)
        if len(self._alerts) > self.limit:
            dropped = len(self._alerts) - self.limit
            del self._alerts[self.limit:]
            logger.debug(f"Alert list over {self.limit} entries, discarded {dropped} oldest")

        self.event_log.record(
            events.SOS_ALERT,
            f"SOS alert from {person.name}",
            {'person_id': person.id, 'location': {'lat': person.latitude, 'lng': person.longitude}},
        )
        logger.warning(f"SOS alert {alert.id} raised for {person.name} ({person.id})")

        if notify:
            sos_alert_raised.send(
                sender=self.__class__,
                alert=self.describe(alert),
                person=person.to_dict(),
                play_sound=self.audio_enabled,
            )
        return alert

    def active_alerts(self) -> Iterator[SosAlert]:
        """A fresh generator over unacknowledged alerts, newest first."""
        return (alert for alert in self._alerts if not alert.acknowledged)

    def list_active(self) -> List[SosAlert]:
        return list(self.active_alerts())

    def acknowledge(self, index, alert_id=None) -> Optional[SosAlert]:
        """
        Acknowledge the alert at `index` in the active subsequence.
        Out-of-range indices are ignored. When `alert_id` is given, the alert at
        `index` must carry that id, so a repeated request cannot acknowledge
        the next alert that moved into the same slot.
        """
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            return None
        active = self.list_active()
        if index >= len(active):
            return None
        alert = active[index]
        if alert_id is not None and alert.id != alert_id:
            logger.info(f"Acknowledge skipped: slot {index} holds {alert.id}, not {alert_id}")
            return None
        return self._mark_acknowledged(alert)

    def acknowledge_alert(self, alert_id) -> Optional[SosAlert]:
        for alert in self._alerts:
            if alert.id == alert_id:
                if alert.acknowledged:
                    return alert
                return self._mark_acknowledged(alert)
        return None

    def _mark_acknowledged(self, alert):
        alert.acknowledge(self._clock())
        person = self.roster.get(alert.person_id)
        name = person.name if person else alert.person_id
        self.event_log.record(
            events.SOS_ACKNOWLEDGED,
            f"SOS alert acknowledged for {name}",
            {'alert_id': alert.id, 'person_id': alert.person_id},
        )
        logger.info(f"SOS alert {alert.id} acknowledged")
        return alert

    def has_active_alert(self, person_id):
        return any(alert.person_id == person_id for alert in self.active_alerts())

    def seed_from_roster(self, limit=DEFAULT_SEED_LIMIT):
        """Raise silent alerts for people already trapped who have no active alert."""
        seeded = []
        for person in self.roster:
            if len(seeded) >= limit:
                break
            if person.status == STATUS_TRAPPED and not self.has_active_alert(person.id):
                seeded.append(self.raise_alert(person, notify=False))
        if seeded:
            logger.info(f"Seeded {len(seeded)} SOS alerts from trapped people")
        return seeded

    def describe(self, alert, index=None):
        """Alert view for display; tolerates people removed since the alert was raised."""
        person = self.roster.get(alert.person_id)
        data = alert.to_dict()
        data.update({
            'person_name': person.name if person else None,
            'group': person.group if person else None,
            'latitude': person.latitude if person else None,
            'longitude': person.longitude if person else None,
            'locator_device': person.locator_device if person else None,
            'tag_device': person.tag_device if person else None,
        })
        if index is not None:
            data['index'] = index
        return data

    def active_view(self):
        return [self.describe(alert, index=i) for i, alert in enumerate(self.active_alerts())]

    def to_list(self):
        return [alert.to_dict() for alert in self._alerts]

    @classmethod
    def from_list(cls, rows, roster, event_log, **kwargs):
        alerts = []
        for row in rows or []:
            try:
                alerts.append(SosAlert.from_dict(row))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed stored alert {row!r}: {e}")
        alerts = [a for a in alerts if a.created_at is not None]
        return cls(roster, event_log, alerts=alerts, **kwargs)
