"""
Callback dispatching for the workflow engine.

Blocking network calls run on background threads. Their results, and timer
expirations, are handed back as callbacks on a thread-safe queue that the
owning thread drains. All workflow state is therefore only ever mutated on
one thread, one callback at a time.
"""

import queue
import threading
import time
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Callable, Optional, Set


class TimerHandle:
    """A pending call_later() callback. cancel() is safe to call repeatedly."""

    def __init__(self, on_cancel: Optional[Callable[["TimerHandle"], None]] = None):
        self.cancelled = False
        self.fired = False
        self._on_cancel = on_cancel
        self._timer: Optional[threading.Timer] = None

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.active:
            return
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        if self._on_cancel is not None:
            self._on_cancel(self)


class Dispatcher(ABC):
    """
    Event-loop services used by the workflow engine.

    Implementations must invoke every callback on the owning thread.
    """

    @abstractmethod
    def schedule_callback(self, callback: Callable[[], Any]) -> None:
        """Run callback on the owning thread as soon as possible."""
        pass

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run callback on the owning thread after delay seconds unless cancelled."""
        pass

    @abstractmethod
    def run_in_background(
        self,
        work: Callable[[], Any],
        on_success: Callable[[Any], Any],
        on_error: Callable[[Exception], Any],
    ) -> None:
        """
        Run work() off the owning thread.

        Exactly one of on_success(result) / on_error(exc) is later invoked
        on the owning thread.
        """
        pass


class ThreadedDispatcher(Dispatcher):
    """
    Dispatcher backed by worker threads and a callback queue.

    Background threads never call back directly; they put callbacks on the
    queue, and process_pending() / run_until() run them on the thread that
    owns the dispatcher.
    """

    def __init__(self):
        self._callback_queue: queue.Queue = queue.Queue()
        self._timers: Set[TimerHandle] = set()
        self._active_jobs = 0

    # ------------------------------------------------------------------
    # Dispatcher interface
    # ------------------------------------------------------------------

    def schedule_callback(self, callback: Callable[[], Any]) -> None:
        self._callback_queue.put(callback)

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        handle = TimerHandle(on_cancel=self._timers.discard)
        timer = threading.Timer(
            delay, self.schedule_callback, args=(partial(self._fire_timer, handle, callback),)
        )
        timer.daemon = True
        handle._timer = timer
        self._timers.add(handle)
        timer.start()
        return handle

    def run_in_background(self, work, on_success, on_error) -> None:
        self._active_jobs += 1

        def runner():
            try:
                result = work()
            except Exception as e:
                self.schedule_callback(partial(self._finish_job, on_error, e))
                return
            self.schedule_callback(partial(self._finish_job, on_success, result))

        threading.Thread(target=runner, daemon=True).start()

    # ------------------------------------------------------------------
    # Owning-thread pump
    # ------------------------------------------------------------------

    @property
    def has_pending_work(self) -> bool:
        """True while timers, background jobs or queued callbacks remain."""
        return bool(self._timers) or self._active_jobs > 0 or not self._callback_queue.empty()

    def process_pending(self, timeout: Optional[float] = None) -> int:
        """
        Run queued callbacks on the calling thread.

        Args:
            timeout: If given, wait up to this long for the first callback.

        Returns:
            Number of callbacks run.
        """
        count = 0
        try:
            if timeout is not None:
                callback = self._callback_queue.get(timeout=timeout)
                callback()
                count += 1
            while True:
                callback = self._callback_queue.get_nowait()
                callback()
                count += 1
        except queue.Empty:
            pass
        return count

    def run_until(self, predicate: Callable[[], bool], timeout: Optional[float] = None,
                  poll_interval: float = 0.05) -> bool:
        """
        Pump callbacks until predicate() holds.

        Returns:
            True if the predicate became true, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not predicate():
            if deadline is not None and time.monotonic() >= deadline:
                return False
            self.process_pending(timeout=poll_interval)
        return True

    def run_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Pump callbacks until no timers, jobs or callbacks remain."""
        return self.run_until(lambda: not self.has_pending_work, timeout)

    def _fire_timer(self, handle: TimerHandle, callback: Callable[[], Any]) -> None:
        self._timers.discard(handle)
        if handle.cancelled:
            return
        handle.fired = True
        callback()

    def _finish_job(self, callback: Callable[[Any], Any], value: Any) -> None:
        self._active_jobs -= 1
        callback(value)
