"""
Preview handles for uploaded pose images and the holder that owns them.

An uploaded pose image gets a temporary preview file the UI can show. The
file must be deleted when the pose source is replaced, cleared or torn down.
PoseSourceHolder is the single owner of the live handle.
"""

import itertools
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from ..logging_utils import log_debug, log_warning
from ..processing.image_utils import make_preview_png
from .models import ImagePoseSource, PoseSource, TextPoseSource

_handle_ids = itertools.count(1)


class PreviewHandle:
    """
    A temporary preview file for one uploaded image.

    Created with acquire(); release() deletes the file. Releasing more than
    once is a no-op.
    """

    def __init__(self, path: Path):
        self.id = next(_handle_ids)
        self.path = path
        self._released = False
        self._lock = threading.Lock()

    @classmethod
    def acquire(cls, image_bytes: bytes, directory: Optional[Path] = None) -> "PreviewHandle":
        """
        Write a preview PNG for the image and return its handle.

        Args:
            image_bytes: Raw uploaded image data.
            directory: Where to write the preview (system temp dir by default).
        """
        preview = make_preview_png(image_bytes)
        fd, name = tempfile.mkstemp(prefix="pose_preview_", suffix=".png", dir=directory)
        with os.fdopen(fd, "wb") as f:
            f.write(preview)
        handle = cls(Path(name))
        log_debug(f"Preview acquired: #{handle.id} {handle.path}")
        return handle

    @property
    def uri(self) -> str:
        return self.path.as_uri()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log_warning(f"Could not delete preview file {self.path}: {e}")
        log_debug(f"Preview released: #{self.id}")

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"PreviewHandle(#{self.id}, {state})"


class PoseSourceHolder:
    """
    Holds the current pose source and owns its preview handle.

    Every replacement, clear or close releases the previous image source's
    handle through _release_owned(), so the handle is freed exactly once
    whichever exit path comes first.
    """

    def __init__(self, preview_dir: Optional[Path] = None):
        self._source: Optional[PoseSource] = None
        self._owned_handle: Optional[PreviewHandle] = None
        self._preview_dir = preview_dir
        self._closed = False

    @property
    def source(self) -> Optional[PoseSource]:
        return self._source

    def set_text(self, text: str) -> TextPoseSource:
        source = TextPoseSource(text)
        self._replace(source, None)
        return source

    def set_image(self, image_bytes: bytes, mime_type: str) -> ImagePoseSource:
        """
        Store an uploaded pose image, acquiring a fresh preview handle.

        The previous handle (if any) is released after the new one is in place.
        """
        if self._closed:
            raise RuntimeError("PoseSourceHolder is closed")
        handle = PreviewHandle.acquire(image_bytes, self._preview_dir)
        source = ImagePoseSource(image_bytes, mime_type, handle)
        self._replace(source, handle)
        return source

    def clear(self) -> None:
        self._replace(None, None)

    def close(self) -> None:
        """Teardown: release the owned handle and refuse further images."""
        self.clear()
        self._closed = True

    def _replace(self, source: Optional[PoseSource], handle: Optional[PreviewHandle]) -> None:
        previous = self._owned_handle
        self._source = source
        self._owned_handle = handle
        if previous is not None and previous is not handle:
            previous.release()
