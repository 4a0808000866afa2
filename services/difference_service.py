import logging
import numbers
import numpy as np
from models.exceptions import DimensionMismatchError
from repositories.difference_repository import DifferenceRepository

logger = logging.getLogger(__name__)

MIN_THRESHOLD = 0
MAX_THRESHOLD = 255


class DifferenceService:
    """
    Produces the binary difference mask: absdiff → luma gray → threshold.
    """

    def __init__(self):
        self.repo = DifferenceRepository()

    @staticmethod
    def validate_threshold(threshold) -> int:
        if isinstance(threshold, bool) or not isinstance(threshold, numbers.Integral):
            raise ValueError(f"Threshold must be an integer, got {threshold!r}")
        if not MIN_THRESHOLD <= threshold <= MAX_THRESHOLD:
            raise ValueError(f"Threshold must be in [{MIN_THRESHOLD}, {MAX_THRESHOLD}], got {threshold}")
        return int(threshold)

    def absolute_difference(self, ref_pixels: np.ndarray, test_pixels: np.ndarray) -> np.ndarray:
        if ref_pixels.shape != test_pixels.shape:
            raise DimensionMismatchError(ref_pixels.shape, test_pixels.shape)
        return self.repo.absolute_difference(ref_pixels, test_pixels)

    def reduce_to_gray(self, diff: np.ndarray) -> np.ndarray:
        if diff.ndim == 3:
            return self.repo.to_grayscale(diff)
        return diff

    def compute_mask(self, ref_pixels: np.ndarray, test_pixels: np.ndarray, threshold: int) -> np.ndarray:
        """
        Args:
            ref_pixels (np.ndarray): Reference pixels.
            test_pixels (np.ndarray): Normalized test pixels, same shape.
            threshold (int): Gray difference must be strictly greater to count.

        Returns:
            np.ndarray: (H, W) uint8 mask with values 0 or 255.
        """
        threshold = self.validate_threshold(threshold)
        diff = self.absolute_difference(ref_pixels, test_pixels)
        gray = self.reduce_to_gray(diff)
        return self.repo.binary_threshold(gray, threshold)
