"""
Gemini API client for pose description and pose rendering.

Handles authentication, the two REST calls used by the workflow engine,
and response parsing. Retries are not done here: the generation
orchestrator owns the retry policy for render calls.
"""

import base64
import json
import os
import webbrowser
from pathlib import Path
from typing import List, Optional

import requests

from ..config import (
    CONFIG_PATH,
    GEMINI_API_KEY_PAGE,
    GEMINI_IMAGE_API_URL,
    GEMINI_TEXT_API_URL,
    REQUEST_TIMEOUT_SECONDS,
)
from ..core.identity_store import JsonFileKeyValueStore
from ..core.models import MODE_IMAGE, POSE_MODES, ImagePayload, RenderResponse, RenderSignal
from ..logging_utils import log_api_call, log_debug
from ..processing.image_utils import encode_base64
from .exceptions import GeminiAPIError, GeminiAuthError, GeminiResponseError, GeminiSafetyError
from .prompt_builders import build_describe_image_prompt, build_describe_text_prompt, build_render_prompt


# Substrings Gemini uses when the key is valid but the model/project is not reachable
ENTITY_NOT_FOUND_MARKERS = ("requested entity was not found", "not_found")


# =============================================================================
# API Key Management
# =============================================================================

def interactive_api_key_setup(config_path: Path = CONFIG_PATH) -> str:
    """
    Prompt user for a Gemini API key on the command line and save it to config.

    Returns:
        The API key entered by the user.

    Raises:
        SystemExit: If no API key is entered.
    """
    print("\nIt looks like you haven't configured a Gemini API key yet.")
    print("I will open the Gemini API key page in your browser.")
    input("Press Enter to open the Gemini API key page in your browser...")

    try:
        webbrowser.open(GEMINI_API_KEY_PAGE)
    except webbrowser.Error as e:
        print(f"Warning: could not open browser automatically: {e}")
        print(f"Please open this URL manually in your browser: {GEMINI_API_KEY_PAGE}")

    api_key = input("\nPaste your Gemini API key here and press Enter:\n> ").strip()
    if not api_key:
        raise SystemExit("No API key entered. Please rerun when you have a key.")

    JsonFileKeyValueStore(config_path).set("api_key", api_key)
    print(f"Saved API key to {config_path}.")
    return api_key


def get_api_key(interactive: bool = True, config_path: Path = CONFIG_PATH) -> str:
    """
    Return Gemini API key from environment variable or config file.

    Checks GEMINI_API_KEY first, then the config file. If neither exists
    and interactive is True, prompts on the command line.

    Raises:
        GeminiAuthError: If no key is available and interactive is False.
    """
    env_key = (os.environ.get("GEMINI_API_KEY") or "").strip()
    if env_key:
        return env_key

    stored = JsonFileKeyValueStore(config_path).get("api_key")
    if stored:
        return stored

    if interactive:
        return interactive_api_key_setup(config_path)
    raise GeminiAuthError("No Gemini API key configured (set GEMINI_API_KEY).")


# =============================================================================
# Response Parsing
# =============================================================================

def _iter_parts(data: dict):
    for candidate in data.get("candidates", []) or []:
        content = candidate.get("content", {}) or {}
        for part in content.get("parts", []) or []:
            yield part


def _extract_text(data: dict) -> str:
    """Join every text part of a Gemini response."""
    texts = [part.get("text", "") for part in _iter_parts(data) if part.get("text")]
    return "\n".join(texts).strip()


def _extract_inline_images(data: dict) -> List[bytes]:
    """
    Extract all inline image payloads from a Gemini JSON response.

    Handles both 'inlineData' and 'inline_data' field naming.
    """
    images = []
    for part in _iter_parts(data):
        blob = part.get("inlineData") or part.get("inline_data")
        if blob and blob.get("data"):
            images.append(base64.b64decode(blob["data"]))
    return images


def _check_safety(data: dict, context: str) -> None:
    for candidate in data.get("candidates", []) or []:
        finish_reason = candidate.get("finishReason")
        if finish_reason in ("SAFETY", "IMAGE_SAFETY", "IMAGE_OTHER"):
            log_api_call(context, False, f"Safety blocked: {finish_reason}")
            raise GeminiSafetyError(
                f"Content blocked by safety filters ({context}): {finish_reason}",
                candidate.get("safetyRatings", []),
            )


def detect_render_signal(text: str) -> Optional[RenderSignal]:
    """Map the model's text reply to a structured render signal, if it contains one."""
    upper = text.upper()
    if RenderSignal.POSE_DETECTION_FAILED.value in upper or "POSE DETECTION FAILED" in upper:
        return RenderSignal.POSE_DETECTION_FAILED
    if RenderSignal.MULTIPLE_PEOPLE_DETECTED.value in upper:
        return RenderSignal.MULTIPLE_PEOPLE_DETECTED
    return None


def _inline_part(image: ImagePayload) -> dict:
    return {"inline_data": {"mime_type": image.mime_type, "data": encode_base64(image.data)}}


# =============================================================================
# Gemini API Calls
# =============================================================================

def _post_gemini(api_key: str, url: str, payload: dict, context: str) -> dict:
    """
    POST a generateContent request and return the parsed JSON body.

    Raises:
        GeminiAuthError: On 401/403, or a 404 "entity not found" response.
        GeminiAPIError: On any other HTTP or transport failure.
    """
    headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
    log_debug(f"Gemini API call starting: {context}")

    try:
        response = requests.post(
            url, headers=headers, data=json.dumps(payload), timeout=REQUEST_TIMEOUT_SECONDS
        )
    except requests.exceptions.Timeout as e:
        log_api_call(context, False, "Timed out")
        raise GeminiAPIError(f"Gemini request timed out ({context})") from e
    except requests.exceptions.RequestException as e:
        log_api_call(context, False, str(e))
        raise GeminiAPIError(f"Gemini request failed ({context}): {e}") from e

    if not response.ok:
        body = response.text[:200]
        log_api_call(context, False, f"HTTP {response.status_code}: {body}")
        if response.status_code in (401, 403):
            raise GeminiAuthError(f"Gemini rejected the API key ({response.status_code}): {body}")
        if response.status_code == 404 and any(m in body.lower() for m in ENTITY_NOT_FOUND_MARKERS):
            raise GeminiAuthError(f"Requested entity was not found: {body}")
        raise GeminiAPIError(f"Gemini API error {response.status_code}: {body}")

    try:
        return response.json()
    except ValueError as e:
        log_api_call(context, False, "Response was not JSON")
        raise GeminiResponseError(f"Gemini returned a non-JSON response ({context})") from e


def describe_pose(api_key: str, image: Optional[ImagePayload] = None, text: Optional[str] = None) -> str:
    """
    Ask the text model for a one-sentence neutral pose description.

    Exactly one of image/text must be given.

    Returns:
        The model's sentence, stripped.

    Raises:
        ValueError: If neither or both of image/text are given.
        GeminiAPIError: If the call fails or returns no text.
    """
    if (image is None) == (text is None):
        raise ValueError("Either an image or text must be provided for description.")

    if image is not None:
        parts = [_inline_part(image), {"text": build_describe_image_prompt()}]
        context = "describe_image"
    else:
        parts = [{"text": build_describe_text_prompt(text)}]
        context = "describe_text"

    data = _post_gemini(api_key, GEMINI_TEXT_API_URL, {"contents": [{"parts": parts}]}, context)
    _check_safety(data, context)

    description = _extract_text(data)
    if not description:
        log_api_call(context, False, "No text in response")
        raise GeminiResponseError("No pose description in Gemini response")

    log_api_call(context, True, f"Got {len(description)} chars")
    return description


def render_pose(
    api_key: str,
    base_image: ImagePayload,
    mode: str,
    pose_image: Optional[ImagePayload],
    description: str,
) -> RenderResponse:
    """
    Ask the image model to redraw the base character in a new pose.

    Args:
        api_key: Google Gemini API key.
        base_image: The locked base character image.
        mode: "text" or "image".
        pose_image: Pose reference (required when mode is "image").
        description: Confirmed pose description.

    Returns:
        RenderResponse with the images found, or the error signal the model
        answered with.
    """
    if mode not in POSE_MODES:
        raise ValueError(f"Unknown pose mode: {mode!r}")
    if mode == MODE_IMAGE and pose_image is None:
        raise ValueError("A pose image is required when using image mode.")

    parts: List[dict] = [_inline_part(base_image)]
    if mode == MODE_IMAGE:
        parts.append(_inline_part(pose_image))
    parts.append({"text": build_render_prompt(mode, description)})

    payload = {
        "contents": [{"parts": parts}],
        "generationConfig": {"responseModalities": ["IMAGE"]},
    }
    context = f"render_{mode}"
    data = _post_gemini(api_key, GEMINI_IMAGE_API_URL, payload, context)
    _check_safety(data, context)

    text = _extract_text(data)
    signal = detect_render_signal(text) if text else None
    if signal is not None:
        log_api_call(context, False, f"Model signalled {signal.value}")
        return RenderResponse(error_signal=signal, text=text)

    images = _extract_inline_images(data)
    if images:
        log_api_call(context, True, f"Image received ({len(images[0])} bytes)")
    else:
        log_debug(f"Gemini response without image data: {json.dumps(data)[:500]}")
    return RenderResponse(images=images, text=text)


class GeminiPoseBackend:
    """
    The describe and render capabilities bound to one API key.

    This is what the workflow engine is handed in production; tests hand it
    fakes with the same two methods.
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    @property
    def api_key(self) -> str:
        """The bound key, looked up non-interactively on first use if none was given."""
        if not self._api_key:
            self._api_key = get_api_key(interactive=False)
        return self._api_key

    def describe(self, image: Optional[ImagePayload] = None, text: Optional[str] = None) -> str:
        return describe_pose(self.api_key, image=image, text=text)

    def render(self, base_image: ImagePayload, mode: str,
               pose_image: Optional[ImagePayload], description: str) -> RenderResponse:
        return render_pose(self.api_key, base_image, mode, pose_image, description)
