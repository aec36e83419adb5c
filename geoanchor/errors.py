"""Exceptions raised by geoanchor"""

__all__ = [
    'GeoAnchorError', 'InvalidPosition', 'NumericDivergence', 'RefinementUnavailable'
]

from typing import Optional


class GeoAnchorError(Exception):
    """Base class for all geoanchor errors"""


class InvalidPosition(GeoAnchorError, ValueError):
    """A latitude, longitude or height was non-finite or out of range"""


class NumericDivergence(GeoAnchorError, ArithmeticError):
    """
    The iterative ECEF to geodetic inversion did not settle within its iteration cap.

    Args:
        iterations:
            The number of iterations performed before giving up

        last_update:
            The magnitude (radians) of the final latitude update
    """

    def __init__(self, iterations: int, last_update: float):
        super().__init__(
            f'ECEF inversion failed to converge after {iterations} iterations '
            f'(last latitude update {last_update!r} rad)'
        )
        self.iterations = iterations
        self.last_update = last_update


class RefinementUnavailable(GeoAnchorError, RuntimeError):
    """Raised by position refinement collaborators when a fix cannot be refined"""

    def __init__(self, message: str = 'Position refinement unavailable', cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause
