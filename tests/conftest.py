import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from models.image import Image


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def make_image():
    def _make(height, width, channels=3, value=0):
        shape = (height, width) if channels == 1 else (height, width, channels)
        return Image(np.full(shape, value, dtype=np.uint8))
    return _make
