"""Comparison domain exceptions."""


class ComparisonError(Exception):
    """Base class for failures raised by the comparison pipeline."""


class InvalidImageError(ComparisonError):
    """Image has zero area, an unsupported layout, or could not be decoded."""


class DimensionMismatchError(ComparisonError):
    """Reference and test buffers reached the difference step with different shapes."""

    def __init__(self, reference_shape, test_shape):
        self.reference_shape = tuple(reference_shape)
        self.test_shape = tuple(test_shape)
        super().__init__(
            f"Shape mismatch at difference step: reference {self.reference_shape} "
            f"vs test {self.test_shape}"
        )
