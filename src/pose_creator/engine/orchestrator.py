"""
Generation Orchestrator.

Builds render requests from the locked base identity, the pose mode and the
confirmed description, and runs them under a bounded retry policy. Each
failure is classified as fatal (stop now) or transient (try again while
attempts remain).
"""

from typing import Callable, Optional, Sequence, Tuple

from ..api.exceptions import GeminiAuthError
from ..config import MAX_GENERATION_ATTEMPTS
from ..core.models import (
    MODE_IMAGE,
    POSE_MODES,
    BaseIdentity,
    ErrorCategory,
    ImagePayload,
    RenderResponse,
    RenderSignal,
)
from ..logging_utils import log_debug, log_error, log_info, log_render_attempt
from .errors import GenerationError

AUTH_INVALID_MESSAGE = (
    "The Gemini API key is missing, invalid or not allowed to use this model. "
    "Check your API key configuration and try again."
)
POSE_DETECTION_MESSAGE = (
    "Could not detect a clear pose in the reference image. "
    "Please upload a clearer image that shows a single person."
)
MULTIPLE_PEOPLE_MESSAGE = (
    "More than one person was detected in the reference image. "
    "Please crop it so it shows only one subject."
)

FATAL_MESSAGES = {
    ErrorCategory.AUTH_INVALID: AUTH_INVALID_MESSAGE,
    ErrorCategory.POSE_DETECTION_FAILED: POSE_DETECTION_MESSAGE,
    ErrorCategory.MULTIPLE_PEOPLE_DETECTED: MULTIPLE_PEOPLE_MESSAGE,
}

# Message fallback when no structured signal is available. First match wins.
MESSAGE_RULES: Sequence[Tuple[ErrorCategory, Tuple[str, ...]]] = (
    (ErrorCategory.AUTH_INVALID, (
        "requested entity was not found",
        "api key not valid",
        "api_key_invalid",
        "permission_denied",
    )),
    (ErrorCategory.POSE_DETECTION_FAILED, ("pose_detection_failed", "pose detection failed")),
    (ErrorCategory.MULTIPLE_PEOPLE_DETECTED, ("multiple_people_detected", "multiple people detected")),
)

SIGNAL_CATEGORIES = {
    RenderSignal.AUTH_INVALID: ErrorCategory.AUTH_INVALID,
    RenderSignal.POSE_DETECTION_FAILED: ErrorCategory.POSE_DETECTION_FAILED,
    RenderSignal.MULTIPLE_PEOPLE_DETECTED: ErrorCategory.MULTIPLE_PEOPLE_DETECTED,
    RenderSignal.OTHER: ErrorCategory.GENERATION_TRANSIENT,
}

RenderFn = Callable[[ImagePayload, str, Optional[ImagePayload], str], RenderResponse]


def classify_render_failure(error: Exception) -> ErrorCategory:
    """
    Classify an exception raised by the render capability.

    Auth errors raised by the client are recognised by type; everything else
    goes through MESSAGE_RULES and defaults to transient.
    """
    if isinstance(error, GeminiAuthError):
        return ErrorCategory.AUTH_INVALID
    message = str(error).lower()
    for category, markers in MESSAGE_RULES:
        if any(marker in message for marker in markers):
            return category
    return ErrorCategory.GENERATION_TRANSIENT


class GenerationOrchestrator:
    """Runs one confirmed generation to a terminal outcome."""

    def __init__(self, render: RenderFn, max_attempts: int = MAX_GENERATION_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._render = render
        self.max_attempts = max_attempts

    def generate(
        self,
        identity: Optional[BaseIdentity],
        mode: str,
        pose_image: Optional[ImagePayload],
        description: str,
    ) -> bytes:
        """
        Render the base character in the described pose.

        Args:
            identity: Locked base identity (sent byte-for-byte).
            mode: "text" or "image".
            pose_image: Freshly re-encoded pose reference, required for "image".
            description: Confirmed pose description.

        Returns:
            Image bytes of the first successful render.

        Raises:
            ValueError: If a precondition does not hold.
            GenerationError: On a fatal classification, or after the last
                transient failure (carrying that attempt's message).
        """
        if identity is None:
            raise ValueError("A base identity is required to generate a pose.")
        if mode not in POSE_MODES:
            raise ValueError(f"Unknown pose mode: {mode!r}")
        if not description or not description.strip():
            raise ValueError("A non-blank pose description is required to generate a pose.")
        if mode == MODE_IMAGE and pose_image is None:
            raise ValueError("A pose image is required when using image mode.")

        base_payload = identity.to_payload()
        description = description.strip()
        last_error: Optional[GenerationError] = None
        log_info(f"Generation started: pose ({mode}), up to {self.max_attempts} attempts")

        for attempt in range(1, self.max_attempts + 1):
            category, detail, image = self._attempt(base_payload, mode, pose_image, description)
            if image is not None:
                log_render_attempt(attempt, self.max_attempts, f"image received ({len(image)} bytes)")
                return image

            if category.is_fatal:
                log_error(f"Render attempt {attempt} failed fatally ({category.value})", detail)
                raise GenerationError(category, FATAL_MESSAGES[category], attempt)

            last_error = GenerationError(
                category,
                f"Failed to generate image (attempt {attempt} of {self.max_attempts}). {detail}",
                attempt,
            )
            log_render_attempt(attempt, self.max_attempts, f"failed ({category.value}): {detail}")

        log_error("Generation failed", f"gave up after {self.max_attempts} attempts")
        raise last_error

    def _attempt(self, base_payload, mode, pose_image, description):
        """Make one render call. Returns (category, detail, image_or_None)."""
        try:
            response = self._render(base_payload, mode, pose_image, description)
        except Exception as e:
            return classify_render_failure(e), str(e), None

        if response.error_signal is not None:
            category = SIGNAL_CATEGORIES[response.error_signal]
            return category, response.text or response.error_signal.value, None

        if response.images:
            if len(response.images) > 1:
                log_debug(f"Render returned {len(response.images)} images, using the first")
            return ErrorCategory.GENERATION_TRANSIENT, "", response.images[0]

        return ErrorCategory.NO_IMAGE_PRODUCED, "No image was produced. The model may have refused the request.", None
