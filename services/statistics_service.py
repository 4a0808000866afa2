import numpy as np
from models.image import Image
from models.comparison_stats import ComparisonStats, Severity
from repositories.difference_repository import DifferenceRepository

LOW_MAX = 1.0       # percentage < LOW_MAX          → LOW
MEDIUM_MAX = 5.0    # LOW_MAX <= p < MEDIUM_MAX     → MEDIUM, else HIGH


class StatisticsService:
    """
    Counts differing pixels and grades them.
    """

    def __init__(self):
        self.repo = DifferenceRepository()

    @staticmethod
    def classify(percentage: float) -> Severity:
        if percentage < LOW_MAX:
            return Severity.LOW
        if percentage < MEDIUM_MAX:
            return Severity.MEDIUM
        return Severity.HIGH

    def _build(self, total: int, differing: int) -> ComparisonStats:
        percentage = (differing / float(total)) * 100
        return ComparisonStats(
            total_pixels=total,
            differing_pixels=differing,
            percentage=percentage,
            severity=self.classify(percentage),
        )

    def analyze_mask(self, mask: np.ndarray) -> ComparisonStats:
        height, width = mask.shape[:2]
        return self._build(width * height, self.repo.count_nonzero(mask))

    def analyze_overlay(self, overlay: Image) -> ComparisonStats:
        """
        Same numbers as analyze_mask(), read back from the rendered overlay:
        any non-black pixel counts as differing.
        """
        height, width = overlay.pixels.shape[:2]
        # brightest channel, so dim highlight colours still register
        gray = np.ascontiguousarray(overlay.pixels.max(axis=2))
        return self._build(width * height, self.repo.count_nonzero(gray))
