"""Exceptions raised by the workflow engine's normalizer and orchestrator."""

from ..core.models import ErrorCategory, WorkflowError


class WorkflowFailure(Exception):
    """
    An engine failure that becomes the workflow's user-visible error.

    Attributes:
        error: The WorkflowError to surface.
    """
    def __init__(self, category: ErrorCategory, message: str):
        super().__init__(message)
        self.error = WorkflowError(category, message)

    @property
    def category(self) -> ErrorCategory:
        return self.error.category


class DescriptionError(WorkflowFailure):
    """The describe call failed; the cycle needs new input."""

    def __init__(self, message: str):
        super().__init__(ErrorCategory.DESCRIPTION_FAILED, message)


class GenerationError(WorkflowFailure):
    """
    Render failed fatally or ran out of attempts.

    Attributes:
        attempts: Number of render calls made.
    """
    def __init__(self, category: ErrorCategory, message: str, attempts: int):
        super().__init__(category, message)
        self.attempts = attempts
