# apps/monitoring/tests/helpers.py
import random

from apps.monitoring.roster import TrackedPerson


class ManualHandle:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """call_later() that only fires when the test advances the clock."""

    def __init__(self):
        self.now = 0.0
        self.pending = []

    def call_later(self, delay, callback):
        handle = ManualHandle(self.now + delay, callback)
        self.pending.append(handle)
        return handle

    @property
    def live(self):
        return [h for h in self.pending if not h.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self.live if h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.pending.remove(handle)
            self.now = handle.due
            handle.callback()
        self.now = target


class ScriptedRandom(random.Random):
    """
    random() pops the scripted values (0.99 once they run out, which selects
    nobody), choice() returns the forced value or the first element.
    uniform() is built on random(), so it consumes the script too.
    """

    def __init__(self, values=(), choice=None):
        super().__init__(0)
        self.values = list(values)
        self.forced_choice = choice

    def random(self):
        if self.values:
            return self.values.pop(0)
        return 0.99

    def choice(self, seq):
        if self.forced_choice is not None:
            return self.forced_choice
        return seq[0]


class RecordingPersistence:
    def __init__(self):
        self.saved = []

    def save(self, part, value):
        self.saved.append((part, value))

    def parts(self):
        return [part for part, _ in self.saved]


# One selected person, zero offset, status change drawn
FORCE_STATUS_CHANGE = (0.0, 0.5, 0.5, 0.0)


def make_person(person_id='S1', name='Student One', locator='GPS0001', tag='', status='safe',
                latitude=7.0731, longitude=125.6128, group='Grade 7'):
    return TrackedPerson(
        id=person_id, name=name, group=group, locator_device=locator, tag_device=tag,
        status=status, latitude=latitude, longitude=longitude,
    )
