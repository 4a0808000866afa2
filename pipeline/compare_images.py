# pipeline/compare_images.py
from __future__ import annotations

from pathlib import Path
import logging
import os

from dotenv import load_dotenv

from models.image import Image
from models.comparison_result import ComparisonResult
from services.image_service import ImageService
from services.size_normalization_service import SizeNormalizationService
from services.difference_service import DifferenceService
from services.overlay_service import OverlayService
from services.statistics_service import StatisticsService

# ------------------------------------------------------------------
# env‑vars
load_dotenv()
DEFAULT_THRESHOLD = int(os.getenv("DIFF_THRESHOLD", "30"))

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
def compare(
    reference: Image,
    test: Image,
    threshold: int = DEFAULT_THRESHOLD,
    *,
    normalization_service: SizeNormalizationService = SizeNormalizationService(),
    difference_service: DifferenceService       = DifferenceService(),
    overlay_service: OverlayService             = OverlayService(),
    statistics_service: StatisticsService       = StatisticsService(),
) -> ComparisonResult:
    """
    Compare *test* against *reference*:
        • resample test onto the reference grid (if sizes differ)
        • absolute difference → luma gray → binary threshold
        • paint the mask in the highlight colour on black
        • count and grade the differing pixels
    Neither input is modified; everything returned is newly allocated.

    Raises:
        InvalidImageError: empty or unsupported input.
        DimensionMismatchError: normalization failed to equalise shapes.
        ValueError: threshold outside [0, 255].
    """
    threshold = difference_service.validate_threshold(threshold)

    # 1. size normalization
    ref_pixels, test_pixels = normalization_service.normalize(reference, test)

    # 2. difference mask
    mask = difference_service.compute_mask(ref_pixels, test_pixels, threshold)

    # 3. overlay
    overlay = overlay_service.render(mask)

    # 4. statistics
    stats = statistics_service.analyze_mask(mask)

    logger.info(f"threshold={threshold} {stats.summary()} severity={stats.severity.name}")
    return ComparisonResult(overlay=overlay, stats=stats, mask=mask, threshold=threshold)


def highlight_on_test(
    reference: Image,
    test: Image,
    threshold: int = DEFAULT_THRESHOLD,
    *,
    normalization_service: SizeNormalizationService = SizeNormalizationService(),
    difference_service: DifferenceService       = DifferenceService(),
    overlay_service: OverlayService             = OverlayService(),
) -> Image:
    """
    Same mask as compare(), but the highlight is drawn over the resized
    test image instead of on black.
    """
    ref_pixels, test_pixels = normalization_service.normalize(reference, test)
    mask = difference_service.compute_mask(ref_pixels, test_pixels, threshold)
    return overlay_service.blend(test_pixels, mask)


def compare_files(
    reference_path: str | Path,
    test_path: str | Path,
    threshold: int = DEFAULT_THRESHOLD,
    *,
    image_service: ImageService = ImageService(),
) -> ComparisonResult:
    """Load both files and run compare(). Decode failures surface as InvalidImageError."""
    reference = image_service.load(reference_path)
    test = image_service.load(test_path)
    return compare(reference, test, threshold)
