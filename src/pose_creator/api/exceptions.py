"""Custom exceptions for Gemini API errors."""
from typing import List, Optional


class GeminiAPIError(RuntimeError):
    """Base exception for Gemini API errors."""
    pass


class GeminiAuthError(GeminiAPIError):
    """Raised when the API key is rejected or the model/project cannot be found."""
    pass


class GeminiResponseError(GeminiAPIError):
    """Raised when a response carries no usable text or image content."""
    pass


class GeminiSafetyError(GeminiAPIError):
    """
    Raised when Gemini blocks content due to safety filters.

    Attributes:
        safety_ratings: List of safety rating dicts from the API response.
    """
    def __init__(self, message: str, safety_ratings: Optional[List[dict]] = None):
        super().__init__(message)
        self.safety_ratings = safety_ratings or []
