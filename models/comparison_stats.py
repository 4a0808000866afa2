from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class Severity(Enum):
    """Coarse classification of the differing-pixel percentage."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def color(self) -> str:
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    Severity.LOW: "green",
    Severity.MEDIUM: "orange",
    Severity.HIGH: "red",
}


@dataclass(frozen=True)
class ComparisonStats:
    """
    Counts derived from a difference mask. Immutable once computed.
    """
    total_pixels: int       # width * height of the mask
    differing_pixels: int   # mask pixels != 0
    percentage: float       # differing / total * 100, unrounded
    severity: Severity

    @property
    def percentage_display(self) -> float:
        return round(self.percentage, 2)

    def summary(self) -> str:
        return f"Differences: {self.differing_pixels} pixels ({self.percentage:.2f}%)"

    def to_dict(self) -> dict:
        return {
            "total_pixels": self.total_pixels,
            "differing_pixels": self.differing_pixels,
            "percentage": self.percentage_display,
            "severity": self.severity.value,
            "severity_color": self.severity.color,
            "summary": self.summary(),
        }
