"""
Data models for the pose creator.

Contains the dataclasses and enums shared by the workflow engine,
the Gemini client and the storage layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Union

if TYPE_CHECKING:
    from .preview import PreviewHandle


# Pose source modes
MODE_TEXT = "text"
MODE_IMAGE = "image"
POSE_MODES = (MODE_TEXT, MODE_IMAGE)


class Phase(str, Enum):
    """Phases of the pose workflow, in their usual order."""

    NO_IDENTITY = "NoIdentity"
    AWAITING_POSE_SOURCE = "AwaitingPoseSourceChoice"
    NORMALIZING = "NormalizingDescription"
    DESCRIPTION_READY = "DescriptionReady"
    GENERATING = "Generating"
    RESULT = "Result"


class ErrorCategory(str, Enum):
    """Categories of user-visible workflow errors."""

    DESCRIPTION_FAILED = "DescriptionFailed"
    AUTH_INVALID = "AuthInvalid"
    POSE_DETECTION_FAILED = "PoseDetectionFailed"
    MULTIPLE_PEOPLE_DETECTED = "MultiplePeopleDetected"
    GENERATION_TRANSIENT = "GenerationTransient"
    NO_IMAGE_PRODUCED = "NoImageProduced"
    INVALID_IMAGE = "InvalidImage"
    REPLACE_NOT_CONFIRMED = "ReplaceNotConfirmed"

    @property
    def is_fatal(self) -> bool:
        """Fatal render categories stop the retry loop immediately."""
        return self in (
            ErrorCategory.AUTH_INVALID,
            ErrorCategory.POSE_DETECTION_FAILED,
            ErrorCategory.MULTIPLE_PEOPLE_DETECTED,
        )


class RenderSignal(str, Enum):
    """Structured error signals the render capability may return instead of an image."""

    AUTH_INVALID = "AUTH_INVALID"
    POSE_DETECTION_FAILED = "POSE_DETECTION_FAILED"
    MULTIPLE_PEOPLE_DETECTED = "MULTIPLE_PEOPLE_DETECTED"
    OTHER = "OTHER"


@dataclass(frozen=True)
class ImagePayload:
    """Raw image bytes plus mime type, as sent to (or received from) Gemini."""
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class BaseIdentity:
    """
    The single locked reference image of the base character.

    Owned by the IdentityStore. Every render request in a session sends these
    exact bytes.
    """
    image_bytes: bytes
    mime_type: str

    def to_payload(self) -> ImagePayload:
        return ImagePayload(self.image_bytes, self.mime_type)


@dataclass(frozen=True)
class TextPoseSource:
    """Pose described in the user's own words."""
    text: str
    kind: str = field(default=MODE_TEXT, init=False)


@dataclass(frozen=True)
class ImagePoseSource:
    """Uploaded pose reference image with its preview handle."""
    image_bytes: bytes
    mime_type: str
    display_handle: "PreviewHandle" = field(compare=False, repr=False)
    kind: str = field(default=MODE_IMAGE, init=False)


PoseSource = Union[TextPoseSource, ImagePoseSource]


@dataclass(frozen=True)
class GenerationResult:
    """Image bytes returned by a successful render."""
    image_bytes: bytes


@dataclass(frozen=True)
class WorkflowError:
    """A single user-visible error attached to the current phase."""
    category: ErrorCategory
    message: str


@dataclass
class RenderResponse:
    """
    Outcome of one render call.

    Either at least one image in `images`, or an `error_signal` (possibly
    with the model's raw `text`), or neither (no image produced).
    """
    images: List[bytes] = field(default_factory=list)
    error_signal: Optional[RenderSignal] = None
    text: str = ""
