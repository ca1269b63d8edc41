import threading
import unittest

from pose_creator.core.dispatcher import ThreadedDispatcher, TimerHandle


class TimerHandleTest(unittest.TestCase):

    def test_cancel_is_idempotent(self):
        cancelled = []
        handle = TimerHandle(on_cancel=cancelled.append)

        handle.cancel()
        handle.cancel()

        self.assertTrue(handle.cancelled)
        self.assertFalse(handle.active)
        self.assertEqual(cancelled, [handle])

    def test_fired_handle_cannot_be_cancelled(self):
        handle = TimerHandle()
        handle.fired = True
        handle.cancel()
        self.assertFalse(handle.cancelled)


class ThreadedDispatcherTest(unittest.TestCase):

    def setUp(self):
        self.dispatcher = ThreadedDispatcher()
        self.owner = threading.get_ident()

    def test_background_result_delivered_on_owning_thread(self):
        seen = []

        self.dispatcher.run_in_background(
            lambda: threading.get_ident(),
            lambda worker: seen.append((worker, threading.get_ident())),
            lambda exc: seen.append(exc),
        )
        self.assertTrue(self.dispatcher.run_until_idle(timeout=5))

        worker, callback_thread = seen[0]
        self.assertNotEqual(worker, self.owner)
        self.assertEqual(callback_thread, self.owner)

    def test_background_error_goes_to_on_error(self):
        errors = []

        def work():
            raise RuntimeError("boom")

        self.dispatcher.run_in_background(work, lambda result: None, errors.append)
        self.assertTrue(self.dispatcher.run_until_idle(timeout=5))

        self.assertEqual([str(e) for e in errors], ["boom"])

    def test_timer_fires_on_owning_thread(self):
        fired = []
        handle = self.dispatcher.call_later(0.01, lambda: fired.append(threading.get_ident()))

        self.assertTrue(self.dispatcher.run_until(lambda: fired, timeout=5))

        self.assertEqual(fired, [self.owner])
        self.assertTrue(handle.fired)
        self.assertFalse(self.dispatcher.has_pending_work)

    def test_cancelled_timer_never_fires(self):
        fired = []
        handle = self.dispatcher.call_later(0.05, lambda: fired.append(1))
        handle.cancel()

        self.assertFalse(self.dispatcher.has_pending_work)
        self.dispatcher.process_pending(timeout=0.2)
        self.assertEqual(fired, [])

    def test_run_until_times_out(self):
        self.assertFalse(self.dispatcher.run_until(lambda: False, timeout=0.1, poll_interval=0.02))

    def test_schedule_callback_runs_in_order(self):
        order = []
        for i in range(3):
            self.dispatcher.schedule_callback(lambda i=i: order.append(i))

        self.assertEqual(self.dispatcher.process_pending(), 3)
        self.assertEqual(order, [0, 1, 2])


if __name__ == "__main__":
    unittest.main()
