"""
Great-circle distance on a spherical Earth (Haversine), used for
short-range proximity checks rather than survey-grade measurement.
"""

__all__ = ['haversine_distance', 'quantized_distance']

from decimal import Decimal, ROUND_HALF_EVEN, localcontext
import math

from geoanchor._const import DEC_EARTH_RADIUS, DECIMAL_CONTEXT
from geoanchor.coordinates import GeodeticPosition


def haversine_distance(pos1: GeodeticPosition, pos2: GeodeticPosition) -> Decimal:
    """
    Calculate distance in meters using the Haversine formula (spherical earth,
    mean radius 6,371,000 m). Heights are ignored.

    Args:
        pos1:
            A position

        pos2:
            A second position

    Returns:
        Decimal
    """
    lat1, lon1 = pos1.radians
    lat2, lon2 = pos2.radians

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2)
    # Rounding can push a fractionally past 1 for antipodal points
    a = min(max(a, 0.), 1.)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    with localcontext(DECIMAL_CONTEXT):
        return DEC_EARTH_RADIUS * Decimal(c)


def quantized_distance(
    pos1: GeodeticPosition,
    pos2: GeodeticPosition,
    digits: int = 6,
) -> Decimal:
    """
    Haversine distance rounded (half-even) to `digits` decimal places of a meter.
    Threshold decisions compare this value, so noise below the quantum cannot
    move a sample across the boundary.

    Args:
        pos1:
            A position

        pos2:
            A second position

        digits:
            (Default 6) decimal places of a meter to keep

    Returns:
        Decimal
    """
    quantum = Decimal(1).scaleb(-digits)
    with localcontext(DECIMAL_CONTEXT):
        return haversine_distance(pos1, pos2).quantize(quantum, rounding=ROUND_HALF_EVEN)
