"""Test doubles shared by the engine tests."""

from io import BytesIO
from typing import Any, Callable, List, Optional, Tuple

from PIL import Image

from pose_creator.core.dispatcher import Dispatcher, TimerHandle
from pose_creator.core.models import RenderResponse


def make_png(color=(255, 0, 0, 255), size=(8, 8)) -> bytes:
    buffer = BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_jpeg(color=(0, 128, 255), size=(8, 8)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return buffer.getvalue()


class ManualDispatcher(Dispatcher):
    """
    Deterministic dispatcher for tests.

    Time only moves on advance(); background jobs only run when the test
    calls run_job()/run_all_jobs(), in any order it likes.
    """

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._timers: List[Tuple[float, int, TimerHandle, Callable]] = []
        self.jobs: List[Tuple[Callable, Callable, Callable]] = []

    def schedule_callback(self, callback):
        callback()

    def call_later(self, delay, callback) -> TimerHandle:
        handle = TimerHandle()
        self._seq += 1
        self._timers.append((self.now + delay, self._seq, handle, callback))
        return handle

    def run_in_background(self, work, on_success, on_error):
        self.jobs.append((work, on_success, on_error))

    @property
    def armed_timers(self) -> int:
        return sum(1 for _, _, handle, _ in self._timers if handle.active)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if t[0] <= target and t[2].active]
            if not due:
                break
            due.sort(key=lambda t: (t[0], t[1]))
            when, _, handle, callback = due[0]
            self.now = max(self.now, when)
            handle.fired = True
            callback()
        self.now = target
        self._timers = [t for t in self._timers if t[2].active]

    def run_job(self, index: int = 0) -> Any:
        work, on_success, on_error = self.jobs.pop(index)
        try:
            result = work()
        except Exception as e:
            on_error(e)
            return e
        on_success(result)
        return result

    def run_all_jobs(self) -> None:
        while self.jobs:
            self.run_job(0)

    def settle(self, debounce: float = 10.0) -> None:
        """Fire every pending timer and finish every job, repeatedly."""
        while self.armed_timers or self.jobs:
            self.advance(debounce)
            self.run_all_jobs()


class FakeBackend:
    """
    Scripted describe/render capabilities that record their calls.

    render_outcomes entries are consumed in order (the last one repeats):
    bytes -> one image, RenderResponse -> returned as is, Exception -> raised.
    """

    def __init__(self, description: Any = "A character doing push-ups, side view",
                 render_outcomes: Optional[list] = None):
        self.description = description
        self.render_outcomes = list(render_outcomes) if render_outcomes else [make_png((0, 255, 0, 255))]
        self.describe_calls: List[dict] = []
        self.render_calls: List[dict] = []

    def describe(self, image=None, text=None):
        self.describe_calls.append({"image": image, "text": text})
        if isinstance(self.description, Exception):
            raise self.description
        if callable(self.description):
            return self.description(image=image, text=text)
        return self.description

    def render(self, base_image, mode, pose_image, description):
        self.render_calls.append({
            "base_image": base_image,
            "mode": mode,
            "pose_image": pose_image,
            "description": description,
        })
        if len(self.render_outcomes) > 1:
            outcome = self.render_outcomes.pop(0)
        else:
            outcome = self.render_outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, bytes):
            return RenderResponse(images=[outcome])
        return outcome
