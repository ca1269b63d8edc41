"""
Rex Pose Creator

Turns one locked reference character into new poses using Google Gemini,
from either a text description or a pose reference image.

Package Structure:
    core/       - Data models, identity storage, previews, callback dispatching
    api/        - Gemini API integration and prompts
    processing/ - Image validation, re-encoding and export
    engine/     - Pose workflow state machine, normalizer, orchestrator
"""

__version__ = "1.0.0"

# Lazy imports keep `import pose_creator` free of Pillow/requests
def __getattr__(name):
    if name == "PoseWorkflow":
        from .engine.workflow import PoseWorkflow
        return PoseWorkflow
    if name == "Phase":
        from .core.models import Phase
        return Phase
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "__version__",
    "PoseWorkflow",
    "Phase",
]
