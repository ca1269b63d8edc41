"""
Logging for Rex Pose Creator.

One "pose_creator" logger for the whole package:
- setup_logging() (called by the CLI) attaches a log file that is wiped on
  every run and, optionally, console output
- Before setup the logger has no handlers, so importing the engine never
  writes files
- Workflow code logs through the small helpers below so state transitions,
  user actions and Gemini calls have a recognisable prefix in the log
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .config import APP_NAME, APP_VERSION

LOGGER_NAME = "pose_creator"
LOG_FILE_NAME = "pose_creator.log"


def default_log_dir() -> Path:
    """logs/ next to the executable when frozen, or in the project root in dev."""
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent / "logs"
    return Path(__file__).resolve().parent.parent.parent / "logs"


_logger = logging.getLogger(LOGGER_NAME)
_log_file: Optional[Path] = None


def setup_logging(log_dir: Optional[Path] = None, console: bool = False) -> logging.Logger:
    """
    Attach the log file (and optional console output) to the package logger.

    Safe to call more than once; only the first call configures handlers.

    Args:
        log_dir: Folder for pose_creator.log (default_log_dir() if None).
        console: Also echo INFO and above to stderr.

    Returns:
        The package logger.
    """
    global _log_file

    if _log_file is not None:
        return _logger

    target_dir = Path(log_dir) if log_dir is not None else default_log_dir()
    _log_file = target_dir / LOG_FILE_NAME

    _logger.setLevel(logging.DEBUG)
    _logger.handlers.clear()

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        # 'w' wipes the previous run
        file_handler = logging.FileHandler(_log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - [%(threadName)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        _logger.addHandler(file_handler)
    except OSError as e:
        print(f"[WARN] Could not set up file logging: {e}", file=sys.stderr)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
        _logger.addHandler(console_handler)

    _logger.info("=" * 60)
    _logger.info(f"{APP_NAME} v{APP_VERSION} started (Python {sys.version.split()[0]})")
    _logger.info(f"Log file: {_log_file}")
    _logger.info("=" * 60)

    _install_excepthook()
    return _logger


def _install_excepthook() -> None:
    """Route uncaught exceptions to the log before the default hook prints them."""
    previous_hook = sys.excepthook

    def hook(exc_type, exc_value, exc_traceback):
        if not issubclass(exc_type, KeyboardInterrupt):
            _logger.critical("Uncaught exception:", exc_info=(exc_type, exc_value, exc_traceback))
        previous_hook(exc_type, exc_value, exc_traceback)

    sys.excepthook = hook


def get_log_file_path() -> Optional[Path]:
    """Path of the current log file, or None before setup_logging()."""
    return _log_file


# =============================================================================
# Helpers
# =============================================================================

def log_debug(message: str) -> None:
    _logger.debug(message)


def log_info(message: str) -> None:
    _logger.info(message)


def log_warning(message: str) -> None:
    _logger.warning(message)


def log_error(message: str, detail: str = "") -> None:
    """Log an error, with an optional detail appended after ': '."""
    if detail:
        message = f"{message}: {detail}"
    _logger.error(message)


def log_state(previous: str, current: str) -> None:
    """Record a workflow phase transition."""
    _logger.debug(f"STATE: {previous} -> {current}")


def log_action(message: str) -> None:
    """Record a user-initiated workflow action."""
    _logger.info(f"ACTION: {message}")


def log_api_call(operation: str, success: bool, details: str = "") -> None:
    """
    Log the outcome of a Gemini call.

    Args:
        operation: Short name such as "describe_text" or "render_image".
        success: Whether the call produced what was asked for.
        details: Extra context (sizes, status codes, error text).
    """
    msg = f"API [{'SUCCESS' if success else 'FAILED'}] {operation}"
    if details:
        msg += f" - {details}"
    if success:
        _logger.info(msg)
    else:
        _logger.error(msg)


def log_render_attempt(attempt: int, max_attempts: int, outcome: str) -> None:
    """Log one render attempt of a confirmed generation."""
    _logger.info(f"RENDER: attempt {attempt}/{max_attempts} - {outcome}")
