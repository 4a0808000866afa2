# repositories/difference_repository.py
from typing import Tuple
import cv2
import numpy as np


class DifferenceRepository:
    """
    Thin wrappers over the OpenCV primitives the comparison pipeline needs.

    • All inputs are uint8 arrays, (H, W) or (H, W, 3) in RGB order.
    • Every method returns a new array; inputs are never written to.
    """

    # ---------- geometry ----------
    @staticmethod
    def resize(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        return cv2.resize(pixels, (width, height), interpolation=cv2.INTER_LINEAR)

    # ---------- colour layout ----------
    @staticmethod
    def to_grayscale(pixels: np.ndarray) -> np.ndarray:
        """Luma-weighted reduction (0.299 R + 0.587 G + 0.114 B)."""
        return cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)

    @staticmethod
    def to_rgb(gray: np.ndarray) -> np.ndarray:
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2RGB)

    # ---------- pixel math ----------
    @staticmethod
    def absolute_difference(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Saturating |a - b| per pixel and channel."""
        return cv2.absdiff(a, b)

    @staticmethod
    def binary_threshold(gray: np.ndarray, thr: int) -> np.ndarray:
        """255 where gray > thr, 0 elsewhere."""
        _, mask = cv2.threshold(gray, thr, 255, cv2.THRESH_BINARY)
        return mask

    @staticmethod
    def paint_mask(mask: np.ndarray, color: Tuple[int, int, int]) -> np.ndarray:
        """
        Expand a binary mask to 3 channels and paint its set pixels.
        Unset pixels stay black.
        """
        colored = cv2.cvtColor(mask, cv2.COLOR_GRAY2RGB)
        colored[mask > 0] = color
        return colored

    @staticmethod
    def count_nonzero(gray: np.ndarray) -> int:
        return int(cv2.countNonZero(gray))
