from __future__ import annotations
from pathlib import Path
from typing import Iterable, Union, Iterator
import base64
import os
import numpy as np
from dotenv import load_dotenv
from models.image import Image
from models.exceptions import InvalidImageError
from repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()


class ImageService:
    """I/O and validation helpers.  No comparison logic here."""
    def __init__(self):
        self.LOAD_TIMEOUT = int(os.getenv("IMAGE_LOAD_TIMEOUT", "5"))
        self.image_repository = ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        return self.image_repository.create_image(pixels, path)

    def load(self, path: str | Path, grayscale: bool = False) -> Image:
        """Load a single image from disk into an Image object (RGB or gray)."""
        return self.image_repository.load(path, grayscale=grayscale, timeout=self.LOAD_TIMEOUT)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def save(self, image: Image) -> None:
        """
        Business-level method to save the image to its path.
        """
        self.image_repository.save(image)

    def get_image_dimensions(self, img: Image):
        return self.image_repository.retrieve_image_dimensions(img)

    def get_channel_count(self, img: Image) -> int:
        return self.image_repository.retrieve_channel_count(img)

    def validate(self, img: Image, role: str = "image") -> np.ndarray:
        """
        Check that *img* can enter the comparison pipeline.

        Args:
            img (Image): Image to check.
            role (str): Name used in error messages ("reference", "test").

        Returns:
            np.ndarray: The pixels, with a trailing singleton channel dropped.
                This is a view; the caller's buffer is not copied or modified.

        Raises:
            InvalidImageError: On zero area, wrong dtype or channel count.
        """
        pixels = img.pixels
        if not isinstance(pixels, np.ndarray):
            raise InvalidImageError(f"{role} pixels must be a numpy array, got {type(pixels).__name__}")
        if pixels.dtype != np.uint8:
            raise InvalidImageError(f"{role} must be 8-bit unsigned, got dtype {pixels.dtype}")
        if pixels.ndim == 3 and pixels.shape[2] == 1:
            pixels = pixels[:, :, 0]
        if pixels.ndim not in (2, 3) or (pixels.ndim == 3 and pixels.shape[2] != 3):
            raise InvalidImageError(f"{role} must have 1 or 3 channels, got shape {pixels.shape}")

        height, width = pixels.shape[:2]
        if width == 0 or height == 0:
            raise InvalidImageError(f"{role} has zero area ({width}x{height})")
        return pixels

    def to_png_bytes(self, img: Image, compress_level: int = 6) -> bytes:
        return self.image_repository.encode(img, "PNG", compress_level=compress_level)

    def to_base64(self, img: Image, compress_level: int = 6) -> str:
        """
        Encode an Image as a PNG data URL for JSON responses.
        PNG keeps the binary overlay lossless.
        """
        png = self.to_png_bytes(img, compress_level)
        return "data:image/png;base64," + base64.b64encode(png).decode("utf-8")

    def describe(self, img: Image) -> str:
        """Short "name - WxH" label used by callers when an image is loaded."""
        height, width = self.get_image_dimensions(img)
        name = Path(img.path).name if img.path else "<memory>"
        return f"{name} - {width}x{height}"
