"""
Workflow state machine for turning the base character into new poses.

PoseWorkflow is the single controller a UI talks to. It owns the ephemeral
state (pose source, description, result, error), sequences the normalizer
and the orchestrator, and only allows the legal transitions:

    NoIdentity -> AwaitingPoseSourceChoice -> NormalizingDescription
        -> DescriptionReady -> Generating -> Result

All methods and callbacks run on the dispatcher's owning thread.
"""

from pathlib import Path
from typing import Callable, List, Optional

from ..config import DESCRIBE_DEBOUNCE_SECONDS, MAX_GENERATION_ATTEMPTS
from ..core.dispatcher import Dispatcher
from ..core.identity_store import IdentityStore
from ..core.models import (
    MODE_IMAGE,
    MODE_TEXT,
    POSE_MODES,
    BaseIdentity,
    ErrorCategory,
    GenerationResult,
    ImagePoseSource,
    Phase,
    PoseSource,
    TextPoseSource,
    WorkflowError,
)
from ..core.preview import PoseSourceHolder
from ..logging_utils import log_action, log_debug, log_error, log_info, log_state, log_warning
from ..processing.image_utils import png_data_url, save_result_png, to_transfer_payload, validate_image_bytes
from .errors import DescriptionError, WorkflowFailure
from .normalizer import PoseDescriptionNormalizer
from .orchestrator import GenerationOrchestrator

MSG_CHOOSE_MODE = "Choose whether to generate from Text or Pose Image."
MSG_UPLOAD_POSE_IMAGE = "Please upload a pose reference image to continue."
MSG_DESCRIBE_POSE = "Please describe the desired pose in the text prompt."
MSG_CONFIRM_REPLACE = "A base character is already saved. Confirm to replace it."

Listener = Callable[["PoseWorkflow"], None]


class PoseWorkflow:
    """
    Top-level controller of the pose generation workflow.

    Args:
        identity_store: Persistent store of the base identity.
        describe: Describe capability, called as describe(image=...) or describe(text=...).
        render: Render capability, called as render(base, mode, pose_image, description).
        dispatcher: Event loop for debounce timers and background calls.
        debounce_seconds: Quiet period before a changed pose source is described.
        max_attempts: Render attempts per confirmed generation.
        preview_dir: Where preview files for pose images are written.
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        describe: Callable[..., str],
        render: Callable,
        dispatcher: Dispatcher,
        debounce_seconds: float = DESCRIBE_DEBOUNCE_SECONDS,
        max_attempts: int = MAX_GENERATION_ATTEMPTS,
        preview_dir: Optional[Path] = None,
    ):
        self._store = identity_store
        self._dispatcher = dispatcher
        self._normalizer = PoseDescriptionNormalizer(describe, dispatcher, debounce_seconds)
        self._orchestrator = GenerationOrchestrator(render, max_attempts)
        self._holder = PoseSourceHolder(preview_dir)
        self._listeners: List[Listener] = []

        self._identity: Optional[BaseIdentity] = identity_store.get()
        self._mode: Optional[str] = None
        self._description: Optional[str] = None
        self._result: Optional[GenerationResult] = None
        self._error: Optional[WorkflowError] = None

        # Bumped whenever an in-flight generation must be orphaned
        self._generation_token = 0
        self._source_changed_while_generating = False
        self._closed = False

        if self._identity is not None:
            log_info("Base identity restored from storage")
            self._phase = Phase.AWAITING_POSE_SOURCE
        else:
            self._phase = Phase.NO_IDENTITY

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def identity(self) -> Optional[BaseIdentity]:
        return self._identity

    @property
    def mode(self) -> Optional[str]:
        return self._mode

    @property
    def pose_source(self) -> Optional[PoseSource]:
        return self._holder.source

    @property
    def description(self) -> Optional[str]:
        """Editor content; None while the description editor is hidden."""
        return self._description

    @property
    def result(self) -> Optional[GenerationResult]:
        return self._result

    @property
    def error(self) -> Optional[WorkflowError]:
        return self._error

    @property
    def busy(self) -> bool:
        return self._phase in (Phase.NORMALIZING, Phase.GENERATING)

    @property
    def normalization_pending(self) -> bool:
        """True while a describe call is scheduled or in flight for the current source."""
        return self._normalizer.pending

    @property
    def source_changed_while_generating(self) -> bool:
        """The pose source was edited after the running generation was confirmed."""
        return self._source_changed_while_generating

    @property
    def can_generate(self) -> bool:
        if self._phase != Phase.DESCRIPTION_READY or self._identity is None:
            return False
        if not self._description or not self._description.strip():
            return False
        if self._mode == MODE_IMAGE and not isinstance(self._holder.source, ImagePoseSource):
            return False
        return True

    @property
    def validation_message(self) -> str:
        """Hint telling the user what is still missing before they can generate."""
        if self._identity is None:
            return ""
        source = self._holder.source
        if self._mode is None:
            return MSG_CHOOSE_MODE
        if self._mode == MODE_IMAGE and not isinstance(source, ImagePoseSource):
            return MSG_UPLOAD_POSE_IMAGE
        if self._mode == MODE_TEXT and not (isinstance(source, TextPoseSource) and source.text.strip()):
            return MSG_DESCRIBE_POSE
        return ""

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: Listener) -> None:
        """Call listener(workflow) after every state change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _set_phase(self, phase: Phase) -> None:
        if phase != self._phase:
            log_state(self._phase.value, phase.value)
            self._phase = phase

    # =========================================================================
    # Base identity
    # =========================================================================

    def upload_identity(self, image_bytes: bytes, mime_type: str, confirmed: bool = False) -> bool:
        """
        Store a new base character image.

        Replacing an existing identity requires confirmed=True; otherwise the
        upload is refused.

        Returns:
            True if the identity was stored.
        """
        if self._closed:
            return False
        log_action(f"upload base identity ({mime_type}, {len(image_bytes)} bytes)")
        try:
            validate_image_bytes(image_bytes, mime_type)
        except ValueError as e:
            log_warning(f"Base identity rejected: {e}")
            self._error = WorkflowError(
                ErrorCategory.INVALID_IMAGE, f"Failed to process base character image. {e}"
            )
            self._notify()
            return False

        if self._identity is not None and not confirmed:
            log_info("Base identity replacement not confirmed; keeping the current one")
            self._error = WorkflowError(ErrorCategory.REPLACE_NOT_CONFIRMED, MSG_CONFIRM_REPLACE)
            self._notify()
            return False

        identity = BaseIdentity(image_bytes, mime_type)
        self._store.set(identity)
        self._identity = identity
        self._error = None
        if self._phase == Phase.NO_IDENTITY:
            self._set_phase(Phase.AWAITING_POSE_SOURCE)
        self._notify()
        return True

    def delete_identity(self) -> None:
        """Delete the base identity and everything derived from it."""
        if self._closed:
            return
        log_action("delete base identity")
        self._store.clear()
        self._identity = None
        self._generation_token += 1
        self._reset_cycle()
        self._mode = None
        self._set_phase(Phase.NO_IDENTITY)
        self._notify()

    # =========================================================================
    # Pose source
    # =========================================================================

    def select_mode(self, mode: str) -> bool:
        """
        Choose the pose source mode ("text" or "image").

        Switching modes discards the current pose source, description, result
        and error. Ignored while generating or without a base identity.

        Returns:
            True if the mode changed.
        """
        if mode not in POSE_MODES:
            raise ValueError(f"Unknown pose mode: {mode!r}")
        if self._closed or self._phase in (Phase.NO_IDENTITY, Phase.GENERATING):
            log_debug(f"Mode change to {mode} ignored in {self._phase.value}")
            return False
        if mode == self._mode:
            return False

        log_action(f"select pose source mode {mode}")
        self._reset_cycle()
        self._mode = mode
        self._set_phase(Phase.AWAITING_POSE_SOURCE)
        self._notify()
        return True

    def set_pose_text(self, text: str) -> bool:
        """
        Update the text pose source. Blank text never triggers a describe call.

        Returns:
            False if text mode is not selected (nothing stored).
        """
        if self._closed or self._identity is None or self._mode != MODE_TEXT:
            log_debug("Pose text ignored: text mode not active")
            return False
        self._holder.set_text(text)
        self._source_changed()
        return True

    def set_pose_image(self, image_bytes: bytes, mime_type: str) -> bool:
        """
        Store an uploaded pose reference image, replacing (and releasing) any previous one.

        Returns:
            False if image mode is not selected or the image is rejected.
        """
        if self._closed or self._identity is None or self._mode != MODE_IMAGE:
            log_debug("Pose image ignored: image mode not active")
            return False
        log_action(f"upload pose image ({mime_type}, {len(image_bytes)} bytes)")
        try:
            validate_image_bytes(image_bytes, mime_type)
        except ValueError as e:
            log_warning(f"Pose image rejected: {e}")
            self._error = WorkflowError(
                ErrorCategory.INVALID_IMAGE, f"Failed to process pose reference image. {e}"
            )
            self._notify()
            return False
        self._holder.set_image(image_bytes, mime_type)
        self._source_changed()
        return True

    def _source_changed(self) -> None:
        """Start a fresh description cycle for the current pose source."""
        if self._phase == Phase.GENERATING:
            # Described once the running generation finishes
            self._source_changed_while_generating = True
            self._notify()
            return

        self._description = None
        self._result = None
        self._error = None
        self._set_phase(Phase.AWAITING_POSE_SOURCE)
        self._request_description()
        self._notify()

    def _request_description(self) -> None:
        self._source_changed_while_generating = False
        self._normalizer.request(
            self._holder.source,
            on_start=self._on_normalize_start,
            on_success=self._on_normalize_success,
            on_failure=self._on_normalize_failure,
        )

    def _on_normalize_start(self) -> None:
        self._error = None
        self._set_phase(Phase.NORMALIZING)
        self._notify()

    def _on_normalize_success(self, description: str) -> None:
        if self._phase != Phase.NORMALIZING:
            log_debug(f"Description ignored in {self._phase.value}")
            return
        self._description = description
        log_info(f"Pose description ready: {description}")
        self._set_phase(Phase.DESCRIPTION_READY)
        self._notify()

    def _on_normalize_failure(self, exc: DescriptionError) -> None:
        if self._phase != Phase.NORMALIZING:
            return
        self._description = None
        self._error = exc.error
        self._set_phase(Phase.AWAITING_POSE_SOURCE)
        self._notify()

    # =========================================================================
    # Description + generation
    # =========================================================================

    def edit_description(self, text: str) -> bool:
        """
        Replace the description editor content.

        Only possible once a description has been produced. Edits made while
        generating are used on the next confirmation.
        """
        if self._description is None or self._phase not in (
            Phase.DESCRIPTION_READY, Phase.GENERATING, Phase.RESULT
        ):
            return False
        self._description = text
        self._notify()
        return True

    def generate(self) -> bool:
        """
        Confirm the current description and start rendering.

        A no-op unless the workflow is in DescriptionReady with a base identity
        and a non-blank description (and a pose image in image mode).

        Returns:
            True if generation started.
        """
        if self._closed or not self.can_generate:
            log_debug(f"Generate ignored in {self._phase.value}")
            return False

        identity = self._identity
        mode = self._mode
        description = self._description
        source = self._holder.source
        pose_bytes = source.image_bytes if mode == MODE_IMAGE else None

        log_action(f"generate ({mode}) - {description}")
        self._generation_token += 1
        token = self._generation_token
        self._source_changed_while_generating = False
        self._error = None
        self._result = None
        self._set_phase(Phase.GENERATING)

        def work() -> bytes:
            # Pose image is re-derived from the source as it is at confirmation
            pose_image = to_transfer_payload(pose_bytes) if pose_bytes is not None else None
            return self._orchestrator.generate(identity, mode, pose_image, description)

        self._dispatcher.run_in_background(
            work,
            lambda image: self._on_generate_success(token, image),
            lambda exc: self._on_generate_failure(token, exc),
        )
        self._notify()
        return True

    def _on_generate_success(self, token: int, image_bytes: bytes) -> None:
        if token != self._generation_token:
            log_debug("Discarding result of an orphaned generation")
            return
        self._result = GenerationResult(image_bytes)
        self._error = None
        self._set_phase(Phase.RESULT)
        if self._source_changed_while_generating:
            # The result stays downloadable until the next confirmation
            log_info("Pose source edited during generation; describing it now")
            self._description = None
            self._request_description()
        self._notify()

    def _on_generate_failure(self, token: int, exc: Exception) -> None:
        if token != self._generation_token:
            log_debug("Discarding failure of an orphaned generation")
            return
        if isinstance(exc, WorkflowFailure):
            self._error = exc.error
        else:
            log_error("Unexpected generation failure", str(exc))
            self._error = WorkflowError(
                ErrorCategory.GENERATION_TRANSIENT, f"Failed to generate image. {exc}"
            )
        if self._source_changed_while_generating:
            log_info("Pose source edited during generation; describing it now")
            self._description = None
            self._set_phase(Phase.AWAITING_POSE_SOURCE)
            self._request_description()
        else:
            self._set_phase(Phase.DESCRIPTION_READY)
        self._notify()

    # =========================================================================
    # Result
    # =========================================================================

    def try_new_pose(self) -> bool:
        """
        Discard the pose source, description, result and error and start over.

        Safe to call repeatedly. Ignored while generating or without a base identity.
        """
        if self._closed or self._phase in (Phase.NO_IDENTITY, Phase.GENERATING):
            return False
        log_action("try new pose")
        self._reset_cycle()
        self._mode = None
        self._set_phase(Phase.AWAITING_POSE_SOURCE)
        self._notify()
        return True

    def download_result(self, directory: Path) -> Optional[Path]:
        """
        Save the current result as rex-new-pose.png in directory.

        Returns:
            The written path, or None when there is no result.
        """
        if self._result is None:
            return None
        path = save_result_png(self._result.image_bytes, Path(directory))
        log_info(f"Result saved to {path}")
        return path

    def result_data_url(self) -> Optional[str]:
        if self._result is None:
            return None
        return png_data_url(self._result.image_bytes)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _reset_cycle(self) -> None:
        """Drop every ephemeral entity in one step."""
        self._normalizer.invalidate()
        self._holder.clear()
        self._description = None
        self._result = None
        self._error = None
        self._source_changed_while_generating = False

    def close(self) -> None:
        """Tear down: cancel pending work and release the preview handle."""
        if self._closed:
            return
        self._normalizer.invalidate()
        self._generation_token += 1
        self._holder.close()
        self._listeners.clear()
        self._closed = True
        log_debug("Workflow closed")
