from typing import Tuple
import logging
import numpy as np
from models.image import Image
from repositories.difference_repository import DifferenceRepository
from services.image_service import ImageService

logger = logging.getLogger(__name__)


class SizeNormalizationService:
    """
    Brings the test image onto the reference image's pixel grid.
    The reference is never touched; the test is resampled into a new buffer.
    """

    def __init__(self):
        self.repo = DifferenceRepository()
        self.image_service = ImageService()

    def normalize(self, reference: Image, test: Image) -> Tuple[np.ndarray, np.ndarray]:
        """
        Args:
            reference (Image): Image whose geometry wins.
            test (Image): Image to fit onto the reference.

        Returns:
            Tuple[np.ndarray, np.ndarray]: (reference pixels, test pixels) with equal shapes.

        Raises:
            InvalidImageError: If either image is empty or has an unsupported layout.
        """
        ref_pixels = self.image_service.validate(reference, "reference")
        test_pixels = self.image_service.validate(test, "test")

        ref_h, ref_w = ref_pixels.shape[:2]
        test_h, test_w = test_pixels.shape[:2]
        if (test_w, test_h) != (ref_w, ref_h):
            logger.info(f"Resizing test image {test_w}x{test_h} -> {ref_w}x{ref_h}")
            test_pixels = self.repo.resize(test_pixels, ref_w, ref_h)

        return ref_pixels, self._match_channels(ref_pixels, test_pixels)

    def _match_channels(self, ref_pixels: np.ndarray, test_pixels: np.ndarray) -> np.ndarray:
        if ref_pixels.ndim == test_pixels.ndim:
            return test_pixels
        if ref_pixels.ndim == 2:
            logger.debug("Converting RGB test image to grayscale to match reference")
            return self.repo.to_grayscale(test_pixels)
        logger.debug("Expanding grayscale test image to RGB to match reference")
        return self.repo.to_rgb(test_pixels)
