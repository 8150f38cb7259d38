# apps/monitoring/roster.py
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

logger = logging.getLogger(__name__)

STATUS_SAFE = 'safe'
STATUS_TRAPPED = 'trapped'
STATUS_MISSING = 'missing'
STATUSES = (STATUS_SAFE, STATUS_TRAPPED, STATUS_MISSING)

# Scatter for newly added people around the campus centre, in degrees
NEW_PERSON_SCATTER_DEGREES = 0.01

SAMPLE_NAMES = [
    'Juan Cruz', 'Maria Santos', 'Jose Reyes', 'Ana Garcia', 'Pedro Lopez',
    'Sofia Torres', 'Miguel Ramos', 'Isabel Flores', 'Carlos Mendoza', 'Lucia Hernandez',
    'Diego Fernandez', 'Carmen Morales', 'Rafael Silva', 'Elena Rodriguez', 'Antonio Diaz',
]
SAMPLE_GROUPS = ['Grade 7', 'Grade 8', 'Grade 9', 'Grade 10', 'Grade 11', 'Grade 12']
SAMPLE_SECTIONS = ['A', 'B', 'C', 'D']


def validate_status(value):
    if value not in STATUSES:
        raise ValueError(f"Invalid status '{value}'. Expected one of {', '.join(STATUSES)}.")
    return value


def _parse_timestamp(value):
    if value is None or isinstance(value, datetime):
        return value
    return parse_datetime(str(value))


@dataclass
class TrackedPerson:
    id: str
    name: str
    group: str = ''
    section: str = ''
    contact: str = ''
    locator_device: str = ''
    tag_device: str = ''
    latitude: float = 0.0
    longitude: float = 0.0
    status: str = STATUS_SAFE
    last_update: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        validate_status(self.status)
        self.latitude = float(self.latitude)
        self.longitude = float(self.longitude)

    @property
    def has_locator(self):
        return bool(self.locator_device)

    def set_status(self, value):
        self.status = validate_status(value)

    def to_dict(self):
        data = asdict(self)
        data['last_update'] = self.last_update.isoformat() if self.last_update else None
        data['created_at'] = self.created_at.isoformat() if self.created_at else None
        return data

    @classmethod
    def from_dict(cls, data):
        known = {f for f in cls.__dataclass_fields__}
        values = {k: v for k, v in data.items() if k in known}
        values['last_update'] = _parse_timestamp(values.get('last_update'))
        values['created_at'] = _parse_timestamp(values.get('created_at'))
        for text_field in ('group', 'section', 'contact', 'locator_device', 'tag_device'):
            if values.get(text_field) is None:
                values[text_field] = ''
        return cls(**values)


class RosterStore:
    """In-memory roster of tracked people, kept in insertion order."""

    def __init__(self, people=None):
        self._people: Dict[str, TrackedPerson] = {}
        for person in people or []:
            self.add(person)

    def __len__(self):
        return len(self._people)

    def __iter__(self) -> Iterator[TrackedPerson]:
        return iter(list(self._people.values()))

    def __contains__(self, person_id):
        return person_id in self._people

    def is_empty(self):
        return not self._people

    def get(self, person_id) -> Optional[TrackedPerson]:
        return self._people.get(person_id)

    def add(self, person: TrackedPerson):
        if not person.id:
            raise ValueError("Person id cannot be empty.")
        if person.id in self._people:
            raise ValueError(f"A person with id '{person.id}' already exists.")
        self._people[person.id] = person
        return person

    def update(self, person_id, **changes):
        person = self._people.get(person_id)
        if person is None:
            raise LookupError(f"Person '{person_id}' not found.")
        if 'status' in changes:
            validate_status(changes['status'])
        for key, value in changes.items():
            if key == 'id' or not hasattr(person, key):
                continue
            setattr(person, key, value)
        person.latitude = float(person.latitude)
        person.longitude = float(person.longitude)
        return person

    def remove(self, person_id):
        person = self._people.pop(person_id, None)
        if person is None:
            raise LookupError(f"Person '{person_id}' not found.")
        return person

    def find_by_device(self, device_id) -> Optional[TrackedPerson]:
        if not device_id:
            return None
        for person in self._people.values():
            if device_id in (person.locator_device, person.tag_device):
                return person
        return None

    def filter(self, status=None, group=None, query=None) -> List[TrackedPerson]:
        people = list(self._people.values())
        if status and status != 'all':
            people = [p for p in people if p.status == status]
        if group and group != 'all':
            people = [p for p in people if p.group == group]
        if query:
            needle = query.lower()
            people = [
                p for p in people
                if needle in ' '.join([p.id, p.name, p.group, p.section, p.locator_device, p.tag_device]).lower()
            ]
        return people

    def counts(self):
        counts = {STATUS_SAFE: 0, STATUS_TRAPPED: 0, STATUS_MISSING: 0, 'devices_active': 0}
        for person in self._people.values():
            counts[person.status] += 1
            if person.has_locator:
                counts['devices_active'] += 1
        counts['total'] = len(self._people)
        return counts

    def summary(self):
        """Roster totals shown before calamity mode is activated."""
        people = list(self._people.values())
        return {
            'total': len(people),
            'with_tag': sum(1 for p in people if p.tag_device),
            'with_locator': sum(1 for p in people if p.locator_device),
            'groups': len({p.group for p in people if p.group}),
        }

    def to_list(self):
        return [person.to_dict() for person in self._people.values()]

    @classmethod
    def from_list(cls, rows):
        store = cls()
        for row in rows or []:
            if not isinstance(row, dict):
                logger.warning(f"Skipping roster entry that is not an object: {row!r}")
                continue
            try:
                store.add(TrackedPerson.from_dict(row))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed roster entry {row!r}: {e}")
        return store


def scatter_position(rng, centre_latitude, centre_longitude, spread=NEW_PERSON_SCATTER_DEGREES):
    return (
        centre_latitude + (rng.random() - 0.5) * spread,
        centre_longitude + (rng.random() - 0.5) * spread,
    )


def generate_sample_people(count, rng, centre_latitude, centre_longitude, existing=0, taken=()):
    """
    Build `count` demo people with random groups and devices around the campus centre.
    Numbering starts after `existing` and skips any id in `taken`.
    """
    taken = set(taken)
    people = []
    number = existing
    while len(people) < count:
        number += 1
        if f"STU{number:04d}" in taken:
            continue
        latitude, longitude = scatter_position(rng, centre_latitude, centre_longitude)
        has_locator = rng.random() > 0.3
        people.append(TrackedPerson(
            id=f"STU{number:04d}",
            name=f"{rng.choice(SAMPLE_NAMES)} {number}",
            group=rng.choice(SAMPLE_GROUPS),
            section=rng.choice(SAMPLE_SECTIONS),
            contact=f"+63 9{rng.randrange(1000000000)}",
            tag_device=f"RFID{rng.randrange(100000):05d}",
            locator_device=f"GPS{rng.randrange(10000):04d}" if has_locator else '',
            latitude=latitude,
            longitude=longitude,
            created_at=timezone.now(),
        ))
    return people
