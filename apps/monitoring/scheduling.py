# apps/monitoring/scheduling.py
import logging
import threading

logger = logging.getLogger(__name__)


class ThreadingScheduler:
    """
    `call_later` on top of daemon `threading.Timer`s.
    Any object with the same `call_later(delay, callback)` signature returning a
    handle with `cancel()` works in its place (an asyncio event loop does).
    """

    def call_later(self, delay, callback):
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class RecurringTimer:
    """
    Re-armable recurring callback. The next run is armed only after the
    callback returns, so runs never overlap. `start()` cancels any armed
    run first, which leaves at most one live timer.

    The generation check and the callback run under one lock. Pass the
    owner's lock as `lock` when the callback takes it too, so a `start()`
    from another thread cannot slip in between the two.
    """

    def __init__(self, scheduler, interval, callback, name='timer', lock=None):
        self.scheduler = scheduler
        self.interval = interval
        self.callback = callback
        self.name = name
        self._handle = None
        self._generation = 0
        self._lock = lock if lock is not None else threading.RLock()

    @property
    def armed(self):
        return self._handle is not None

    def start(self):
        with self._lock:
            self.cancel()
            self._arm(self._generation)

    def cancel(self):
        with self._lock:
            # Bump the generation so a run that already fired becomes a no-op
            self._generation += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _arm(self, generation):
        self._handle = self.scheduler.call_later(self.interval, lambda: self._fire(generation))

    def _fire(self, generation):
        with self._lock:
            if generation != self._generation:
                return
            self._handle = None
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Recurring {self.name} callback failed: {e}", exc_info=True)
            if generation == self._generation and self._handle is None:
                self._arm(generation)
