import threading
from unittest.mock import MagicMock

from django.test import SimpleTestCase

from apps.monitoring.scheduling import RecurringTimer, ThreadingScheduler
from .helpers import ManualScheduler


class RecurringTimerTests(SimpleTestCase):
    def setUp(self):
        self.scheduler = ManualScheduler()
        self.callback = MagicMock()
        self.timer = RecurringTimer(self.scheduler, 5.0, self.callback, name='test')

    def test_fires_once_per_interval(self):
        self.timer.start()
        self.scheduler.advance(4)
        self.callback.assert_not_called()
        self.scheduler.advance(1)
        self.assertEqual(self.callback.call_count, 1)
        self.scheduler.advance(10)
        self.assertEqual(self.callback.call_count, 3)
        self.assertTrue(self.timer.armed)

    def test_restart_leaves_one_live_timer(self):
        self.timer.start()
        self.timer.start()
        self.assertEqual(len(self.scheduler.live), 1)
        self.scheduler.advance(5)
        self.assertEqual(self.callback.call_count, 1)

    def test_cancel_stops_firing(self):
        self.timer.start()
        self.timer.cancel()
        self.assertFalse(self.timer.armed)
        self.scheduler.advance(30)
        self.callback.assert_not_called()

    def test_superseded_fire_is_ignored(self):
        self.timer.start()
        stale = self.scheduler.live[0]
        self.timer.start()
        # A timer thread that already fired still runs its callback
        stale.callback()
        self.callback.assert_not_called()
        self.assertEqual(len(self.scheduler.live), 1)

    def test_cancel_from_inside_callback_does_not_rearm(self):
        self.callback.side_effect = lambda: self.timer.cancel()
        self.timer.start()
        self.scheduler.advance(20)
        self.assertEqual(self.callback.call_count, 1)
        self.assertFalse(self.timer.armed)

    def test_failing_callback_is_logged_and_rearmed(self):
        self.callback.side_effect = RuntimeError('boom')
        self.timer.start()
        with self.assertLogs('apps.monitoring.scheduling', level='ERROR') as logs:
            self.scheduler.advance(5)
        self.assertIn('boom', logs.output[0])
        self.assertTrue(self.timer.armed)

    def test_restart_waits_for_running_callback(self):
        entered, release = threading.Event(), threading.Event()

        def slow_callback():
            entered.set()
            release.wait(2)

        timer = RecurringTimer(self.scheduler, 5.0, slow_callback, name='slow')
        timer.start()
        handle = self.scheduler.pending.pop()
        runner = threading.Thread(target=handle.callback)
        runner.start()
        self.assertTrue(entered.wait(2))

        restarter = threading.Thread(target=timer.start)
        restarter.start()
        restarter.join(0.1)
        self.assertTrue(restarter.is_alive())

        release.set()
        runner.join(2)
        restarter.join(2)
        self.assertFalse(restarter.is_alive())
        self.assertEqual(len(self.scheduler.live), 1)

    def test_shared_lock_is_held_during_callback(self):
        lock = threading.RLock()
        held = []

        def callback():
            # Another thread cannot take the lock while the callback runs
            acquired = []
            other = threading.Thread(target=lambda: acquired.append(lock.acquire(blocking=False)))
            other.start()
            other.join(2)
            held.append(acquired == [False])

        timer = RecurringTimer(self.scheduler, 5.0, callback, lock=lock)
        timer.start()
        self.scheduler.advance(5)
        self.assertEqual(held, [True])


class ThreadingSchedulerTests(SimpleTestCase):
    def test_call_later_runs_on_daemon_thread(self):
        fired = threading.Event()
        timer = ThreadingScheduler().call_later(0.01, fired.set)
        self.assertTrue(timer.daemon)
        self.assertTrue(fired.wait(2))

    def test_cancelled_handle_never_fires(self):
        callback = MagicMock()
        timer = ThreadingScheduler().call_later(0.05, callback)
        timer.cancel()
        timer.join(1)
        callback.assert_not_called()
