import numpy as np
import pytest

from models.comparison_stats import Severity
from services.overlay_service import OverlayService
from services.statistics_service import StatisticsService


@pytest.mark.parametrize("percentage, expected", [
    (0.0, Severity.LOW),
    (0.99, Severity.LOW),
    (1.0, Severity.MEDIUM),
    (4.99, Severity.MEDIUM),
    (5.0, Severity.HIGH),
    (100.0, Severity.HIGH),
])
def test_classify_tiers(percentage, expected):
    assert StatisticsService.classify(percentage) is expected


def test_counts_from_mask():
    mask = np.zeros((10, 20), dtype=np.uint8)
    mask[:, :3] = 255

    stats = StatisticsService().analyze_mask(mask)

    assert stats.total_pixels == 200
    assert stats.differing_pixels == 30
    assert stats.percentage == pytest.approx(15.0)
    assert stats.severity is Severity.HIGH


def test_overlay_and_mask_give_same_numbers(rng):
    mask = (rng.random((17, 23)) > 0.97).astype(np.uint8) * 255
    service = StatisticsService()

    for color in [(255, 0, 0), (0, 0, 1)]:
        overlay = OverlayService(color=color).render(mask)
        assert service.analyze_overlay(overlay) == service.analyze_mask(mask)


def test_percentage_display_and_summary():
    mask = np.zeros((3, 100), dtype=np.uint8)
    mask[0, 0] = 255

    stats = StatisticsService().analyze_mask(mask)

    assert stats.percentage_display == 0.33
    assert stats.summary() == "Differences: 1 pixels (0.33%)"
    assert stats.severity is Severity.LOW
    assert stats.severity.color == "green"


def test_stats_are_immutable():
    stats = StatisticsService().analyze_mask(np.zeros((2, 2), dtype=np.uint8))
    with pytest.raises(AttributeError):
        stats.differing_pixels = 3


def test_to_dict():
    mask = np.full((2, 2), 255, dtype=np.uint8)
    data = StatisticsService().analyze_mask(mask).to_dict()
    assert data == {
        "total_pixels": 4,
        "differing_pixels": 4,
        "percentage": 100.0,
        "severity": "high",
        "severity_color": "red",
        "summary": "Differences: 4 pixels (100.00%)",
    }
