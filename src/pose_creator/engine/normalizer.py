"""
Pose Description Normalizer.

Turns the current pose source into a canonical one-sentence pose description
through the describe capability. Requests are debounced, and every request
is keyed to the source that triggered it so late results for a superseded
source are dropped.
"""

from typing import Callable, Hashable, Optional

from ..config import DESCRIBE_DEBOUNCE_SECONDS
from ..core.dispatcher import Dispatcher, TimerHandle
from ..core.models import ImagePoseSource, PoseSource, TextPoseSource
from ..logging_utils import log_debug, log_info, log_warning
from ..processing.image_utils import to_transfer_payload
from .errors import DescriptionError


def normalization_key(source: Optional[PoseSource]) -> Optional[Hashable]:
    """
    Map a pose source to the key of the describe request it would trigger.

    Returns None when the source would not be submitted at all (no source,
    or blank text). Image sources are keyed by their preview handle, which
    is unique per upload.
    """
    if source is None:
        return None
    if isinstance(source, TextPoseSource):
        text = source.text.strip()
        return ("text", text) if text else None
    return ("image", source.display_handle.id)


class PoseDescriptionNormalizer:
    """
    Debounced, stale-safe wrapper around the describe capability.

    Usage from the workflow (owning thread only):
        request(source, on_start, on_success, on_failure)  # on every source change
        invalidate()                                        # when the source is discarded
    """

    def __init__(self, describe: Callable[..., str], dispatcher: Dispatcher,
                 debounce_seconds: float = DESCRIBE_DEBOUNCE_SECONDS):
        """
        Args:
            describe: Capability called as describe(image=ImagePayload) or describe(text=str).
            dispatcher: Event loop used for the debounce timer and the background call.
            debounce_seconds: Quiet period before a describe call is made.
        """
        self._describe = describe
        self._dispatcher = dispatcher
        self.debounce_seconds = debounce_seconds
        self._timer: Optional[TimerHandle] = None
        self._latest_key: Optional[Hashable] = None
        self._in_flight_key: Optional[Hashable] = None

    @property
    def pending(self) -> bool:
        """True while a debounce timer is armed or the latest request is in flight."""
        timer_armed = self._timer is not None and self._timer.active
        return timer_armed or (self._in_flight_key is not None and self._in_flight_key == self._latest_key)

    def normalize(self, source: PoseSource) -> str:
        """
        Describe a pose source synchronously.

        Text is trimmed before submission. Images are re-encoded to PNG first.

        Raises:
            ValueError: For blank text (never submitted).
            DescriptionError: If the describe call fails or returns nothing.
        """
        try:
            if isinstance(source, ImagePoseSource):
                description = self._describe(image=to_transfer_payload(source.image_bytes))
            else:
                text = source.text.strip()
                if not text:
                    raise ValueError("Blank pose text is not submitted for description.")
                description = self._describe(text=text)
        except (ValueError, DescriptionError):
            raise
        except Exception as e:
            raise DescriptionError(f"Failed to describe the pose. {e}") from e

        description = (description or "").strip()
        if not description:
            raise DescriptionError("Failed to describe the pose. The model returned an empty description.")
        return description

    def request(
        self,
        source: Optional[PoseSource],
        on_start: Callable[[], None],
        on_success: Callable[[str], None],
        on_failure: Callable[[DescriptionError], None],
    ) -> bool:
        """
        (Re)arm the debounce timer for a changed pose source.

        Any earlier pending request is superseded. Returns False (and makes no
        call) when the source has nothing to submit.
        """
        self._cancel_timer()
        key = normalization_key(source)
        self._latest_key = key
        if key is None:
            return False

        log_debug(f"NORMALIZE: scheduled {key[0]} request in {self.debounce_seconds}s")
        self._timer = self._dispatcher.call_later(
            self.debounce_seconds,
            lambda: self._fire(source, key, on_start, on_success, on_failure),
        )
        return True

    def invalidate(self) -> None:
        """Drop the pending timer and any in-flight result."""
        self._cancel_timer()
        self._latest_key = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, source, key, on_start, on_success, on_failure) -> None:
        self._timer = None
        if key != self._latest_key:
            return
        self._in_flight_key = key
        log_info(f"NORMALIZE: describing {key[0]} pose source")
        on_start()

        def deliver_success(description: str) -> None:
            if self._resolve(key):
                on_success(description)

        def deliver_failure(exc: Exception) -> None:
            if not self._resolve(key):
                return
            if not isinstance(exc, DescriptionError):
                exc = DescriptionError(f"Failed to describe the pose. {exc}")
            log_warning(f"NORMALIZE: {exc}")
            on_failure(exc)

        self._dispatcher.run_in_background(lambda: self.normalize(source), deliver_success, deliver_failure)

    def _resolve(self, key: Hashable) -> bool:
        """Return True if a result for key is still current."""
        if self._in_flight_key == key:
            self._in_flight_key = None
        if key != self._latest_key:
            log_debug(f"NORMALIZE: discarding stale result for {key[0]} source")
            return False
        return True
