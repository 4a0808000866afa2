from __future__ import annotations
from dataclasses import dataclass
import numpy as np
from models.image import Image
from models.comparison_stats import ComparisonStats


@dataclass
class ComparisonResult:
    """
    Output of one compare() call. Everything here is freshly allocated
    and owned by the caller.
    """
    overlay: Image          # (H, W, 3) highlight-on-black visualization
    stats: ComparisonStats
    mask: np.ndarray        # (H, W) uint8, values 0 or 255
    threshold: int
