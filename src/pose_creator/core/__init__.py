"""
Core layer.

Contains data models, the identity store, preview handles and the callback
dispatcher, independent of the Gemini client and the workflow engine.
"""

from .models import (
    MODE_IMAGE,
    MODE_TEXT,
    BaseIdentity,
    ErrorCategory,
    GenerationResult,
    ImagePayload,
    ImagePoseSource,
    Phase,
    RenderResponse,
    RenderSignal,
    TextPoseSource,
    WorkflowError,
)

__all__ = [
    "MODE_IMAGE",
    "MODE_TEXT",
    "BaseIdentity",
    "ErrorCategory",
    "GenerationResult",
    "ImagePayload",
    "ImagePoseSource",
    "Phase",
    "RenderResponse",
    "RenderSignal",
    "TextPoseSource",
    "WorkflowError",
]
