from __future__ import annotations
from pathlib import Path
from typing import Union, Iterable, Iterator
import logging
from io import BytesIO
import os
import signal
import threading
import numpy as np
import cv2
from PIL import Image as PILImage
from dotenv import load_dotenv
from models.image import Image
from models.exceptions import InvalidImageError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Handles file I/O and raw pixel access for Image entities.
    """
    def __init__(self):
        self.VALID_EXTS = {
            ext.strip() for ext in os.getenv("VALID_IMAGE_EXTENSIONS", ".jpg,.jpeg,.png,.bmp").split(",")
        }

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    @staticmethod
    def retrieve_image_dimensions(img: Image):
        return img.pixels.shape[:2]

    @staticmethod
    def retrieve_channel_count(img: Image) -> int:
        if img.pixels.ndim == 2:
            return 1
        return img.pixels.shape[2]

    @staticmethod
    def load(path: Union[str, Path], rgb: bool = True, grayscale: bool = False, timeout: int = 5) -> Image:
        path = Path(path)
        flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR

        # ─── timeout wrapper, SIGALRM is only available on the main thread ───
        use_alarm = hasattr(signal, "SIGALRM") and threading.current_thread() is threading.main_thread()

        def _handler(signum, frame):
            raise TimeoutError(f"cv2.imread timed-out after {timeout}s: {path}")

        if use_alarm:
            previous = signal.signal(signal.SIGALRM, _handler)
            signal.alarm(timeout)
        try:
            arr = cv2.imread(str(path), flag)
        except TimeoutError as err:
            raise InvalidImageError(str(err)) from err
        finally:
            if use_alarm:
                signal.alarm(0)  # always disarm
                signal.signal(signal.SIGALRM, previous)
        # ──────────────────────────────────────────────────────────────────

        if arr is None:
            raise InvalidImageError(f"Image not found or unreadable: {path}")

        if arr.ndim == 3 and rgb:
            arr = np.ascontiguousarray(arr[:, :, ::-1])
        return Image(pixels=arr, path=path)

    @staticmethod
    def save(image: Image) -> None:
        PILImage.fromarray(image.pixels).save(image.path)

    @staticmethod
    def encode(image: Image, fmt: str = "PNG", **params) -> bytes:
        """Encode pixels into an in-memory file of the given format."""
        buffer = BytesIO()
        PILImage.fromarray(image.pixels).save(buffer, format=fmt, **params)
        return buffer.getvalue()

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed:
                logger.debug(f"Skipping due to extension: {p}")
                continue
            if not p.is_file():
                logger.debug(f"Skipping because not file: {p}")
                continue
            try:
                yield self.load(p)
            except InvalidImageError as err:
                logger.warning(f"Skipping {p.name}: {err}")
