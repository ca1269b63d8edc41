"""
API module for Gemini interactions.

Handles all communication with Google Gemini API including:
- Authentication and configuration
- Pose description (text model) and pose rendering (image model)
- Error signals and exceptions
- Prompt building
"""

from .exceptions import GeminiAPIError, GeminiAuthError, GeminiResponseError, GeminiSafetyError
from .gemini_client import (
    GeminiPoseBackend,
    describe_pose,
    detect_render_signal,
    get_api_key,
    interactive_api_key_setup,
    render_pose,
)
from .prompt_builders import build_describe_image_prompt, build_describe_text_prompt, build_render_prompt

__all__ = [
    # Exceptions
    "GeminiAPIError",
    "GeminiAuthError",
    "GeminiResponseError",
    "GeminiSafetyError",
    # Client
    "GeminiPoseBackend",
    "describe_pose",
    "detect_render_signal",
    "get_api_key",
    "interactive_api_key_setup",
    "render_pose",
    # Prompt builders
    "build_describe_image_prompt",
    "build_describe_text_prompt",
    "build_render_prompt",
]
