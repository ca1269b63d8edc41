#!/usr/bin/env python3
"""
config.py

All global paths, constants, and tunables for the Rex pose creator.
"""

import os
from pathlib import Path
from typing import Tuple

# ═══════════════════════════════════════════════════════════════════════════════
# APPLICATION INFO
# ═══════════════════════════════════════════════════════════════════════════════
APP_NAME = "Rex Pose Creator"
APP_VERSION = "1.0.0"

# User config (API key + persisted base character record)
CONFIG_PATH = Path.home() / ".rex_pose_creator.json"

# Key of the single persisted base identity record: {"data": <b64>, "mimeType": <str>}
BASE_IMAGE_STORAGE_KEY = "rex-base-image"

# ═══════════════════════════════════════════════════════════════════════════════
# GEMINI API
# ═══════════════════════════════════════════════════════════════════════════════
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
GEMINI_API_KEY_PAGE = "https://aistudio.google.com/app/apikey"

# Describe (pose normalization) uses the text model, render uses the image model
GEMINI_TEXT_MODEL = (os.environ.get("GEMINI_TEXT_MODEL") or "gemini-2.5-flash").strip()
GEMINI_IMAGE_MODEL = (os.environ.get("GEMINI_IMAGE_MODEL") or "gemini-2.5-flash-image").strip()

GEMINI_TEXT_API_URL = f"{GEMINI_API_BASE}/{GEMINI_TEXT_MODEL}:generateContent"
GEMINI_IMAGE_API_URL = f"{GEMINI_API_BASE}/{GEMINI_IMAGE_MODEL}:generateContent"

REQUEST_TIMEOUT_SECONDS = 120

# ═══════════════════════════════════════════════════════════════════════════════
# WORKFLOW ENGINE
# ═══════════════════════════════════════════════════════════════════════════════
# Quiet period after the last pose-source change before a describe call fires
DESCRIBE_DEBOUNCE_SECONDS = 0.5

# Total render attempts per confirmed generation (first try included)
MAX_GENERATION_ATTEMPTS = 3

# Image types accepted for the base character and pose references
ACCEPTED_MIME_TYPES: Tuple[str, ...] = ("image/png", "image/jpeg", "image/webp")

# Re-encoded transfer format for every image sent to Gemini
TRANSFER_MIME_TYPE = "image/png"

# Longest edge of the temporary preview written for an uploaded pose image
PREVIEW_MAX_SIZE = 512

# ═══════════════════════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════════════════════
DOWNLOAD_FILENAME = "rex-new-pose.png"
