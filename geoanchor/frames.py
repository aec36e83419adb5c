"""
Conversions between geodetic, Earth-Centered-Earth-Fixed (ECEF) and local
East-North-Up (ENU) frames on the WGS84 ellipsoid.

Trigonometry is evaluated in ordinary floating point; everything scaled up to
position magnitude (radii of curvature, ECEF components, deltas) is carried in
Decimal under DECIMAL_CONTEXT so that a one meter offset is not rounded away
against a 6,378,137 meter base.
"""

__all__ = [
    'compare_default_height', 'ecef_delta_to_enu', 'ecef_to_geodetic',
    'enu_delta_to_ecef_delta', 'enu_offset_to_geodetic', 'enu_rotation_matrix',
    'geodetic_to_ecef', 'iterate_latitude', 'small_offset_approx',
]

from decimal import Decimal, localcontext
import math
from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from geoanchor._const import DEC_A, DEC_E2, DECIMAL_CONTEXT, WGS84_E2
from geoanchor.config import DEFAULT_CONFIG, RelocationConfig
from geoanchor.coordinates import EcefPosition, EnuVector, GeodeticPosition
from geoanchor.errors import InvalidPosition, NumericDivergence

_ONE = Decimal(1)


def _prime_vertical_radius(sin_lat: float) -> Decimal:
    """N = a / sqrt(1 - e^2 sin^2(lat))"""
    with localcontext(DECIMAL_CONTEXT):
        sin_sq = Decimal(sin_lat) * Decimal(sin_lat)
        return DEC_A / (_ONE - DEC_E2 * sin_sq).sqrt()


def _meridional_radius(sin_lat: float) -> Decimal:
    """M = a (1 - e^2) / (1 - e^2 sin^2(lat))^1.5"""
    with localcontext(DECIMAL_CONTEXT):
        sin_sq = Decimal(sin_lat) * Decimal(sin_lat)
        denom = _ONE - DEC_E2 * sin_sq
        return DEC_A * (_ONE - DEC_E2) / (denom * denom.sqrt())


def enu_rotation_matrix(reference: GeodeticPosition) -> np.ndarray:
    """
    The 3x3 rotation taking ECEF displacements into the ENU frame at `reference`.
    Rows are the east, north and up unit vectors expressed in ECEF; the matrix is
    orthonormal, so its transpose takes ENU back into ECEF.

    Args:
        reference:
            The tangent point of the ENU frame

    Returns:
        numpy object array of Decimals, shape (3, 3)
    """
    lat, lon = reference.radians
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    sin_lon, cos_lon = math.sin(lon), math.cos(lon)
    rotation = np.array([
        [-sin_lon, cos_lon, 0.0],
        [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
        [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
    ])
    return np.array(
        [[Decimal(float(value)) for value in row] for row in rotation],
        dtype=object
    )


def geodetic_to_ecef(
    position: GeodeticPosition,
    config: RelocationConfig = DEFAULT_CONFIG,
) -> EcefPosition:
    """
    Closed-form conversion of a geodetic position to ECEF.

    Args:
        position:
            The geodetic position. If it carries no height, the configured
            default height is used.

        config:
            (Optional) runtime configuration

    Returns:
        EcefPosition
    """
    lat, lon = position.radians
    height = Decimal(position.resolve_height(config.default_height_meters))
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    sin_lon, cos_lon = math.sin(lon), math.cos(lon)

    n = _prime_vertical_radius(sin_lat)
    with localcontext(DECIMAL_CONTEXT):
        n_plus_h = n + height
        return EcefPosition(
            n_plus_h * Decimal(cos_lat * cos_lon),
            n_plus_h * Decimal(cos_lat * sin_lon),
            (n * (_ONE - DEC_E2) + height) * Decimal(sin_lat),
        )


def enu_delta_to_ecef_delta(vector: EnuVector) -> EcefPosition:
    """
    Rotates an ENU vector into an ECEF displacement. No translation is applied;
    add the result to the ECEF position of `vector.reference` to obtain a point.

    Args:
        vector:
            The ENU vector, tied to the reference it was measured from

    Returns:
        EcefPosition (a displacement)
    """
    rotation = enu_rotation_matrix(vector.reference)
    with localcontext(DECIMAL_CONTEXT):
        d_x, d_y, d_z = rotation.T @ np.array(vector.components, dtype=object)

    return EcefPosition(d_x, d_y, d_z)


def ecef_delta_to_enu(delta: EcefPosition, reference: GeodeticPosition) -> EnuVector:
    """
    Rotates an ECEF displacement into the ENU frame at `reference`. The inverse
    of enu_delta_to_ecef_delta.

    Args:
        delta:
            The ECEF displacement

        reference:
            The tangent point of the target ENU frame

    Returns:
        EnuVector tied to `reference`
    """
    rotation = enu_rotation_matrix(reference)
    with localcontext(DECIMAL_CONTEXT):
        east, north, up = rotation @ np.array(list(delta), dtype=object)

    return EnuVector(east, north, up, reference)


def iterate_latitude(ecef: EcefPosition) -> Iterator[float]:
    """
    Yields successive latitude estimates (radians) of the Bowring-style fixed
    point iteration used to invert ECEF to geodetic. The first value is the
    initial estimate atan2(z, p (1 - e^2)); the generator never terminates on its
    own, so callers bound it.

    Args:
        ecef:
            The ECEF position to invert; must not lie on the polar axis

    Yields:
        float
    """
    with localcontext(DECIMAL_CONTEXT):
        p = (ecef.x * ecef.x + ecef.y * ecef.y).sqrt()

    p_float, z_float = float(p), float(ecef.z)
    lat = math.atan2(z_float, p_float * (1 - WGS84_E2))
    yield lat

    while True:
        n = _prime_vertical_radius(math.sin(lat))
        with localcontext(DECIMAL_CONTEXT):
            h = p / Decimal(math.cos(lat)) - n
            ratio = float(n / (n + h))

        lat = math.atan2(z_float, p_float * (1 - WGS84_E2 * ratio))
        yield lat


def ecef_to_geodetic(
    ecef: EcefPosition,
    tolerance: Optional[float] = None,
    max_iterations: Optional[int] = None,
    config: RelocationConfig = DEFAULT_CONFIG,
) -> GeodeticPosition:
    """
    Iterative inversion of an ECEF position to geodetic latitude, longitude and
    ellipsoidal height.

    Args:
        ecef:
            The ECEF position

        tolerance:
            (Optional) Stop once successive latitude estimates differ by less than
            this many radians. Defaults to config.ecef_inverse_tolerance.

        max_iterations:
            (Optional) Iteration cap. Defaults to config.ecef_inverse_max_iterations.

        config:
            (Optional) runtime configuration

    Raises:
        InvalidPosition: if the position is non-finite or the Earth's center
        NumericDivergence: if the latitude fails to settle within the cap

    Returns:
        GeodeticPosition
    """
    tolerance = config.ecef_inverse_tolerance if tolerance is None else tolerance
    max_iterations = (
        config.ecef_inverse_max_iterations if max_iterations is None else max_iterations
    )
    if not all(x.is_finite() for x in ecef):
        raise InvalidPosition(f'ECEF components must be finite, got {ecef!r}')

    lon = math.atan2(float(ecef.y), float(ecef.x))
    if ecef.x == 0 and ecef.y == 0:
        if ecef.z == 0:
            raise InvalidPosition('The ECEF origin has no geodetic position')

        # On the polar axis; N(1 - e^2) at the pole is a * sqrt(1 - e^2)
        with localcontext(DECIMAL_CONTEXT):
            height = abs(ecef.z) - DEC_A * (_ONE - DEC_E2).sqrt()

        return GeodeticPosition(math.copysign(90., float(ecef.z)), 0., float(height))

    estimates = iterate_latitude(ecef)
    lat = next(estimates)
    update = math.inf
    for _ in range(max_iterations):
        prev, lat = lat, next(estimates)
        update = abs(lat - prev)
        if update < tolerance:
            break
    else:
        raise NumericDivergence(max_iterations, update)

    # h = p cos(lat) + z sin(lat) - a sqrt(1 - e^2 sin^2(lat)) stays well
    # conditioned near the poles, where p / cos(lat) - N does not
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    with localcontext(DECIMAL_CONTEXT):
        p = (ecef.x * ecef.x + ecef.y * ecef.y).sqrt()
        height = (
            p * Decimal(cos_lat)
            + ecef.z * Decimal(sin_lat)
            - DEC_A * DEC_A / _prime_vertical_radius(sin_lat)
        )

    return GeodeticPosition(math.degrees(lat), math.degrees(lon), float(height))


def enu_offset_to_geodetic(
    vector: EnuVector,
    config: RelocationConfig = DEFAULT_CONFIG,
) -> GeodeticPosition:
    """
    Exact geodetic position of the point `vector` meters away from its reference,
    computed through ECEF.

    Args:
        vector:
            The offset from its reference position

        config:
            (Optional) runtime configuration

    Returns:
        GeodeticPosition
    """
    origin = geodetic_to_ecef(vector.reference, config)
    return ecef_to_geodetic(origin + enu_delta_to_ecef_delta(vector), config=config)


def small_offset_approx(
    vector: EnuVector,
    config: RelocationConfig = DEFAULT_CONFIG,
) -> GeodeticPosition:
    """
    Linearized approximation of enu_offset_to_geodetic. North offsets are scaled
    by the meridional radius of curvature M and east offsets by the prime
    vertical radius N, both evaluated at the reference latitude.

    Only valid for offsets that are small relative to the Earth's radius (tens of
    meters to a few kilometers); error grows quadratically with the offset and
    the approximation breaks down entirely near the poles.

    Args:
        vector:
            The offset from its reference position

        config:
            (Optional) runtime configuration

    Returns:
        GeodeticPosition
    """
    lat, lon = vector.reference.radians
    height = vector.reference.resolve_height(config.default_height_meters)
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    east, north, up = vector.components

    with localcontext(DECIMAL_CONTEXT):
        dec_height = Decimal(height)
        d_lat = north / (_meridional_radius(sin_lat) + dec_height)
        d_lon = east / (_prime_vertical_radius(sin_lat) + dec_height) / Decimal(cos_lat)

    # Offsets across the antimeridian wrap back into [-180, 180)
    longitude = (math.degrees(lon + float(d_lon)) + 180.) % 360. - 180.
    return GeodeticPosition(
        math.degrees(lat + float(d_lat)),
        longitude,
        height + float(up),
    )


def compare_default_height(
    vector: EnuVector,
    config: RelocationConfig = DEFAULT_CONFIG,
) -> Dict[str, float]:
    """
    Diagnostic showing how much the assumed reference height moves a placed
    object. The offset is placed from the reference at the configured default
    height and again at height zero, and the horizontal shift between the two
    results is reported in meters.

    Args:
        vector:
            The offset from its reference position (the reference's own height
            is ignored)

        config:
            (Optional) runtime configuration

    Returns:
        dict with the two placements' coordinates and the north/east shift
    """
    at_default = enu_offset_to_geodetic(
        EnuVector(*vector.components, vector.reference.with_height(config.default_height_meters)),
        config
    )
    at_zero = enu_offset_to_geodetic(
        EnuVector(*vector.components, vector.reference.with_height(0.)),
        config
    )
    shift = _approx_shift_meters(at_zero, at_default)
    return {
        'default_height': at_default.to_float(),
        'zero_height': at_zero.to_float(),
        'delta_north_meters': shift[0],
        'delta_east_meters': shift[1],
    }


def _approx_shift_meters(
    start: GeodeticPosition,
    end: GeodeticPosition,
) -> Tuple[float, float]:
    """Equirectangular (north, east) shift between two nearby positions"""
    lat_rad = math.radians(start.latitude)
    d_north = math.radians(end.latitude - start.latitude) * float(DEC_A)
    d_east = math.radians(end.longitude - start.longitude) * float(DEC_A) * math.cos(lat_rad)
    return d_north, d_east
