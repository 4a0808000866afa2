from __future__ import annotations

from typing import Tuple
import os
import logging

import numpy as np
from dotenv import load_dotenv

from models.image import Image
from repositories.difference_repository import DifferenceRepository
from services.image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_HIGHLIGHT = (255, 0, 0)     # pure red, RGB order


def parse_color(value: str | None, default: Tuple[int, int, int] = DEFAULT_HIGHLIGHT) -> Tuple[int, int, int]:
    """Parse "R,G,B" into a tuple, falling back to *default* when unset."""
    if not value:
        return default
    parts = [int(p) for p in value.split(",")]
    if len(parts) != 3 or any(not 0 <= p <= 255 for p in parts):
        raise ValueError(f"Highlight colour must be three 0-255 values, got {value!r}")
    return tuple(parts)


class OverlayService:
    """
    Turns a difference mask into something a person can look at.
    *   render() is the pure mask visualisation: highlight on black.
    *   blend() is a separate view painting the highlight over the test image.
    """

    def __init__(self, color: Tuple[int, int, int] | None = None, alpha: float | None = None):
        self.color = color or parse_color(os.getenv("HIGHLIGHT_COLOR"))
        self.alpha = alpha if alpha is not None else float(os.getenv("BLEND_ALPHA", "1.0"))
        if not 0.0 <= self.alpha <= 1.0:
            raise ValueError(f"Blend alpha must be in [0, 1], got {self.alpha}")
        self.repo = DifferenceRepository()
        self.image_service = ImageService()

    def render(self, mask: np.ndarray, color: Tuple[int, int, int] | None = None) -> Image:
        """
        Args:
            mask: (H, W) uint8 binary mask.
            color: RGB highlight, defaults to the configured colour.

        Returns:
            Image: new (H, W, 3) image; masked pixels = colour, rest black.
        """
        colored = self.repo.paint_mask(mask, color or self.color)
        return self.image_service.create_image(colored)

    def blend(self, test_pixels: np.ndarray, mask: np.ndarray,
              color: Tuple[int, int, int] | None = None) -> Image:
        """
        Highlight differing pixels on top of a copy of the (normalized) test image.
        Unmasked pixels keep the test image's values.
        """
        base = test_pixels if test_pixels.ndim == 3 else self.repo.to_rgb(test_pixels)
        blended = base.copy()
        hit = mask > 0
        highlight = np.array(color or self.color, dtype=np.float32)
        mixed = (1.0 - self.alpha) * blended[hit].astype(np.float32) + self.alpha * highlight
        blended[hit] = np.clip(np.rint(mixed), 0, 255).astype(np.uint8)
        return self.image_service.create_image(blended)
