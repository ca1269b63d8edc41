#!/usr/bin/env python3
"""
cli.py

Headless command-line driver for the pose workflow.

Flow:
  - Optionally delete and/or upload the base character (stored in the config file)
  - Pick the pose source (text or image) and wait for the pose description
  - Optionally override the description, then generate
  - Save the result as rex-new-pose.png in the output folder
"""

import argparse
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from .api import GeminiPoseBackend, get_api_key
from .config import APP_NAME, APP_VERSION, CONFIG_PATH
from .core.dispatcher import ThreadedDispatcher
from .core.identity_store import IdentityStore, JsonFileKeyValueStore
from .core.models import MODE_IMAGE, MODE_TEXT, ErrorCategory, Phase
from .engine.workflow import PoseWorkflow
from .logging_utils import get_log_file_path, log_info, setup_logging


def guess_mime_type(path: Path) -> str:
    """Best-effort mime type from a file name (empty string if unknown)."""
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or ""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rex-pose-creator",
        description=(
            "Redraw your saved base character in a new pose using Google Gemini:\n"
            "  - base character (saved once, reused for every pose)\n"
            "  - pose source: a text description or a pose reference image\n"
            "  - normalized pose description (can be overridden)\n"
            "  - generated pose saved as rex-new-pose.png\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--base", type=Path, default=None,
                        help="Image to store as the base character.")
    parser.add_argument("--replace", action="store_true",
                        help="Confirm replacing an already stored base character.")
    parser.add_argument("--delete-base", action="store_true",
                        help="Delete the stored base character before anything else.")

    source = parser.add_mutually_exclusive_group()
    source.add_argument("--pose-text", type=str, default=None,
                        help="Describe the new pose in words.")
    source.add_argument("--pose-image", type=Path, default=None,
                        help="Pose reference image to copy the pose from.")

    parser.add_argument("--description", type=str, default=None,
                        help="Use this pose description instead of the generated one.")
    parser.add_argument("--output-dir", type=Path, default=Path.cwd(),
                        help="Folder for rex-new-pose.png (default: current folder).")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH,
                        help=f"Config file holding the API key and base character (default: {CONFIG_PATH}).")
    parser.add_argument("--log-dir", type=Path, default=None,
                        help="Folder for pose_creator.log.")
    parser.add_argument("--timeout", type=float, default=600.0,
                        help="Seconds to wait for each of the describe and generate stages.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Echo log messages to the console.")
    return parser


def _fail(message: str) -> int:
    print(f"[ERROR] {message}", file=sys.stderr)
    return 1


def run(args: argparse.Namespace, dispatcher: Optional[ThreadedDispatcher] = None,
        backend=None) -> int:
    """
    Execute one CLI invocation.

    Args:
        args: Parsed command-line arguments.
        dispatcher: Event loop to use (a new ThreadedDispatcher by default).
        backend: Object with describe()/render() (GeminiPoseBackend by default).

    Returns:
        Process exit code.
    """
    wants_pose = args.pose_text is not None or args.pose_image is not None
    if backend is None:
        api_key = get_api_key(interactive=sys.stdin.isatty(), config_path=args.config) if wants_pose else None
        backend = GeminiPoseBackend(api_key)
    dispatcher = dispatcher or ThreadedDispatcher()

    store = IdentityStore(JsonFileKeyValueStore(args.config))
    workflow = PoseWorkflow(store, backend.describe, backend.render, dispatcher)
    try:
        if args.delete_base:
            workflow.delete_identity()
            print("Base character deleted.")

        if args.base is not None:
            if not args.base.is_file():
                return _fail(f"Base image not found: {args.base}")
            stored = workflow.upload_identity(
                args.base.read_bytes(), guess_mime_type(args.base), confirmed=args.replace
            )
            if not stored:
                if workflow.error.category == ErrorCategory.REPLACE_NOT_CONFIRMED:
                    return _fail("A base character is already stored. Pass --replace to replace it.")
                return _fail(workflow.error.message)
            print(f"Base character saved to {args.config}.")

        if not wants_pose:
            return 0
        if workflow.identity is None:
            return _fail("No base character stored. Upload one with --base.")

        # Pose source -> description
        if args.pose_text is not None:
            workflow.select_mode(MODE_TEXT)
            workflow.set_pose_text(args.pose_text)
        else:
            if not args.pose_image.is_file():
                return _fail(f"Pose image not found: {args.pose_image}")
            workflow.select_mode(MODE_IMAGE)
            workflow.set_pose_image(args.pose_image.read_bytes(), guess_mime_type(args.pose_image))

        if workflow.error is not None:
            return _fail(workflow.error.message)
        if not workflow.normalization_pending:
            return _fail(workflow.validation_message or "Nothing to describe.")

        print("Describing pose...")
        finished = dispatcher.run_until(
            lambda: not workflow.normalization_pending and workflow.phase != Phase.NORMALIZING,
            timeout=args.timeout,
        )
        if not finished:
            return _fail("Timed out waiting for the pose description.")
        if workflow.error is not None:
            return _fail(workflow.error.message)
        print(f"Pose description: {workflow.description}")

        if args.description:
            workflow.edit_description(args.description)
            print(f"Using description: {args.description}")

        # Description -> result
        if not workflow.generate():
            return _fail(workflow.validation_message or "Cannot generate with the current input.")
        print("Generating your new pose... this can take a moment.")
        finished = dispatcher.run_until(lambda: workflow.phase != Phase.GENERATING, timeout=args.timeout)
        if not finished:
            return _fail("Timed out waiting for the generated image.")
        if workflow.error is not None:
            return _fail(workflow.error.message)

        path = workflow.download_result(args.output_dir)
        print(f"New pose saved to {path}")
        return 0
    finally:
        workflow.close()


def main(argv: Optional[List[str]] = None) -> None:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_dir, console=args.verbose)
    log_info(f"{APP_NAME} v{APP_VERSION} CLI: {vars(args)}")
    code = run(args)
    if code != 0 and get_log_file_path() is not None:
        print(f"Details in {get_log_file_path()}", file=sys.stderr)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
