from __future__ import annotations

import base64
import binascii
import logging
import uuid
from pathlib import Path
from typing import Optional, Protocol

from werkzeug.utils import secure_filename

from ..core.exceptions import DependencyError

logger = logging.getLogger(__name__)


class ImageStore(Protocol):
    def save(self, image: str, *, folder: str) -> str:
        """Persist a base64 image (optionally a data URL) and return its public reference."""
        raise NotImplementedError

    def delete(self, reference: str) -> None:
        raise NotImplementedError


def decode_image(image: str) -> bytes:
    payload = image.split(",", 1)[1] if image.startswith("data:") and "," in image else image
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DependencyError("Image is not valid base64") from exc


class LocalImageStore:
    """Writes images under ``root`` and serves them from ``base_url``."""

    def __init__(self, root: str | Path, *, base_url: str = "/uploads"):
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")

    def save(self, image: str, *, folder: str) -> str:
        data = decode_image(image)
        folder = secure_filename(folder) or "images"
        name = f"{uuid.uuid4().hex}.jpg"
        target = self._root / folder
        try:
            target.mkdir(parents=True, exist_ok=True)
            (target / name).write_bytes(data)
        except OSError as exc:
            raise DependencyError(f"Could not store image: {exc}") from exc
        return f"{self._base_url}/{folder}/{name}"

    def _path_for(self, reference: str) -> Optional[Path]:
        if not reference.startswith(self._base_url + "/"):
            return None
        parts = [secure_filename(p) for p in reference[len(self._base_url) + 1:].split("/")]
        if len(parts) != 2 or not all(parts):
            return None
        return self._root / parts[0] / parts[1]

    def delete(self, reference: str) -> None:
        path = self._path_for(reference)
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise DependencyError(f"Could not delete image: {exc}") from exc


class MemoryImageStore:
    def __init__(self):
        self.images: dict[str, bytes] = {}
        self.fail = False

    def save(self, image: str, *, folder: str) -> str:
        if self.fail:
            raise DependencyError("Image store unavailable")
        reference = f"memory://{folder}/{uuid.uuid4().hex}"
        self.images[reference] = decode_image(image)
        return reference

    def delete(self, reference: str) -> None:
        self.images.pop(reference, None)
