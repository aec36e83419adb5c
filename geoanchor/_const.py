"""
Constants declarations for geoanchor
"""

from decimal import Context, Decimal, ROUND_HALF_EVEN

# WGS84 Ellipsoid Constants
WGS84_A = 6378137.0  # Major axis (meters)
WGS84_F = 1 / 298.257223563  # Flattening
WGS84_B = (1 - WGS84_F) * WGS84_A
WGS84_E2 = WGS84_F * (2 - WGS84_F)  # First eccentricity squared

# Mean Earth Radius (approximate for Haversine)
EARTH_RADIUS_METERS = 6_371_000.0

# Position-scale arithmetic is carried out in decimal at this precision
DECIMAL_CONTEXT = Context(prec=40, rounding=ROUND_HALF_EVEN)

DEC_A = Decimal('6378137.0')
DEC_F = DECIMAL_CONTEXT.divide(Decimal(1), Decimal('298.257223563'))
DEC_E2 = DECIMAL_CONTEXT.multiply(DEC_F, DECIMAL_CONTEXT.subtract(Decimal(2), DEC_F))
DEC_EARTH_RADIUS = Decimal('6371000')
