"""Filesystem sink for downloaded images."""

import logging
from pathlib import Path
from typing import Optional, Union

from filetype import guess

from .config import DEFAULT_IMAGE_EXTENSION, OUTPUT_DIR
from .errors import StorageError

logger = logging.getLogger(__name__)


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        return kind.extension.lower()
    return None


class ImageStore:
    """
    Writes one file per image into ``root``. Names are used as given; avoiding
    collisions is the caller's job.
    """

    def __init__(self, root: Union[str, Path] = OUTPUT_DIR):
        self.root = Path(root)

    def path_for(self, name: str, data: bytes) -> Path:
        extension = detect_image_format(data) or DEFAULT_IMAGE_EXTENSION
        return self.root / f"{name}.{extension}"

    def write(self, name: str, data: bytes) -> Path:
        path = self.path_for(name, data)
        logger.info(f"[ImageStore] {path} being created")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(name, str(path), str(exc)) from exc
        return path
