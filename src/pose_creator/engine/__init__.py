"""
Workflow engine: the pose state machine and the two stages it sequences.
"""

from .errors import DescriptionError, GenerationError, WorkflowFailure
from .normalizer import PoseDescriptionNormalizer, normalization_key
from .orchestrator import GenerationOrchestrator, classify_render_failure
from .workflow import PoseWorkflow

__all__ = [
    "DescriptionError",
    "GenerationError",
    "WorkflowFailure",
    "PoseDescriptionNormalizer",
    "normalization_key",
    "GenerationOrchestrator",
    "classify_render_failure",
    "PoseWorkflow",
]
