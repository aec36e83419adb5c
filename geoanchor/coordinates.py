"""
Representations of positions on (and vectors near) the WGS84 ellipsoid
"""

__all__ = ['EcefPosition', 'EnuVector', 'GeodeticPosition']

from decimal import Decimal, InvalidOperation, localcontext
import math
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from geoanchor._const import DECIMAL_CONTEXT
from geoanchor.errors import InvalidPosition
from geoanchor.utils.functions import ensure_finite, to_decimal
from geoanchor.utils.logging import warn_once

_NUMBER = Union[float, int, str, Decimal]


def _parse_decimal(name: str, value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise InvalidPosition(f'{name} must be a number, got {value!r}') from exc


class GeodeticPosition:
    """
    Representation of a geodetic position (latitude, longitude and ellipsoidal
    height) on the WGS84 ellipsoid.

    Unlike a map coordinate, out-of-range latitudes and longitudes are not wrapped;
    they are rejected with InvalidPosition. Height may be left unset, in which case
    the configured default height is substituted at conversion time.

    Args:
        latitude:
            Degrees, -90 to 90

        longitude:
            Degrees, -180 to 180

        height:
            (Optional) meters above the ellipsoid
    """

    __slots__ = ('_latitude', '_longitude', '_height')

    def __init__(
        self,
        latitude: _NUMBER,
        longitude: _NUMBER,
        height: Optional[_NUMBER] = None,
    ):
        lat = ensure_finite('latitude', latitude)
        lon = ensure_finite('longitude', longitude)
        if not -90 <= lat <= 90:
            raise InvalidPosition(f'latitude must be within [-90, 90], got {lat}')

        if not -180 <= lon <= 180:
            raise InvalidPosition(f'longitude must be within [-180, 180], got {lon}')

        object.__setattr__(self, '_latitude', lat)
        object.__setattr__(self, '_longitude', lon)
        object.__setattr__(
            self, '_height', None if height is None else ensure_finite('height', height)
        )

    def __setattr__(self, key, value):
        raise AttributeError(f'{self.__class__.__name__} is immutable')

    def __eq__(self, other):
        if not isinstance(other, GeodeticPosition):
            return False

        return (
            self.latitude == other.latitude and
            self.longitude == other.longitude and
            self.height == other.height
        )

    def __hash__(self):
        return hash((self.latitude, self.longitude, self.height))

    def __repr__(self):
        parts = filter(lambda x: x is not None, (self.latitude, self.longitude, self.height))
        return f'<GeodeticPosition({", ".join(map(str, parts))})>'

    @property
    def latitude(self) -> float:
        return self._latitude

    @property
    def longitude(self) -> float:
        return self._longitude

    @property
    def height(self) -> Optional[float]:
        return self._height

    @property
    def radians(self) -> Tuple[float, float]:
        """The (latitude, longitude) pair in radians"""
        return math.radians(self.latitude), math.radians(self.longitude)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeodeticPosition':
        """
        Creates a GeodeticPosition from a mapping, accepting either the short keys
        used by transport messages ('lat', 'lon', 'h') or the full names.
        """
        try:
            lat = data['lat'] if 'lat' in data else data['latitude']
            lon = data['lon'] if 'lon' in data else data['longitude']
        except KeyError as exc:
            raise InvalidPosition(f'position is missing {exc.args[0]!r}') from exc

        height = data.get('h', data.get('height'))
        return cls(lat, lon, height)

    def resolve_height(self, default: float) -> float:
        """Returns this position's height, or `default` when none was recorded"""
        if self.height is None:
            warn_once(
                'Position height not provided; the configured default height is assumed. '
                '(this warning will not repeat)'
            )
            return default

        return self.height

    def with_height(self, height: Optional[float]) -> 'GeodeticPosition':
        """Returns a copy of this position at a different height"""
        return GeodeticPosition(self.latitude, self.longitude, height)

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {'lat': self.latitude, 'lon': self.longitude, 'h': self.height}

    def to_float(self) -> Tuple:
        """
        Converts the position to a tuple of (latitude, longitude), extended with
        height when one is present.
        """
        if self.height is None:
            return self.latitude, self.longitude

        return self.latitude, self.longitude, self.height


class EcefPosition:
    """
    A point (or, when produced by a subtraction or rotation, a displacement) in the
    Earth-Centered-Earth-Fixed frame. Components are held as Decimal so that
    meter-scale differences survive against Earth-radius-scale magnitudes.
    """

    __slots__ = ('x', 'y', 'z')

    def __init__(self, x: _NUMBER, y: _NUMBER, z: _NUMBER):
        object.__setattr__(self, 'x', to_decimal(x))
        object.__setattr__(self, 'y', to_decimal(y))
        object.__setattr__(self, 'z', to_decimal(z))

    def __setattr__(self, key, value):
        raise AttributeError(f'{self.__class__.__name__} is immutable')

    def __add__(self, other: 'EcefPosition') -> 'EcefPosition':
        if not isinstance(other, EcefPosition):
            return NotImplemented

        with localcontext(DECIMAL_CONTEXT):
            return EcefPosition(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: 'EcefPosition') -> 'EcefPosition':
        if not isinstance(other, EcefPosition):
            return NotImplemented

        with localcontext(DECIMAL_CONTEXT):
            return EcefPosition(self.x - other.x, self.y - other.y, self.z - other.z)

    def __eq__(self, other):
        if not isinstance(other, EcefPosition):
            return False

        return tuple(self) == tuple(other)

    def __hash__(self):
        return hash(tuple(self))

    def __iter__(self) -> Iterator[Decimal]:
        return iter((self.x, self.y, self.z))

    def __repr__(self):
        return f'<EcefPosition({self.x}, {self.y}, {self.z})>'

    @property
    def norm(self) -> Decimal:
        """Euclidean length"""
        with localcontext(DECIMAL_CONTEXT):
            return (self.x * self.x + self.y * self.y + self.z * self.z).sqrt()

    def to_float(self) -> Tuple[float, float, float]:
        return float(self.x), float(self.y), float(self.z)

    def to_str(self) -> Tuple[str, str, str]:
        return str(self.x), str(self.y), str(self.z)


class EnuVector:
    """
    An East-North-Up offset, in meters, in the local tangent plane at `reference`.

    The reference position is mandatory: a bare east/north/up triple has no meaning
    until it is tied to the point it was measured from, and every operation that
    consumes an EnuVector reads the frame from it.

    Args:
        east:
            Meters east of the reference

        north:
            Meters north of the reference

        up:
            Meters along the ellipsoid normal at the reference

        reference:
            The GeodeticPosition whose tangent plane the vector is expressed in
    """

    __slots__ = ('_components', '_reference')

    def __init__(
        self,
        east: _NUMBER,
        north: _NUMBER,
        up: _NUMBER,
        reference: GeodeticPosition,
    ):
        if not isinstance(reference, GeodeticPosition):
            raise TypeError(
                f'EnuVector reference must be a GeodeticPosition, got {type(reference).__name__}'
            )

        components = []
        for name, value in (('east', east), ('north', north), ('up', up)):
            if isinstance(value, str):
                value = _parse_decimal(name, value)
            if isinstance(value, Decimal):
                if not value.is_finite():
                    raise InvalidPosition(f'{name} must be finite, got {value!r}')
                components.append(value)
            else:
                components.append(to_decimal(ensure_finite(name, value)))

        object.__setattr__(self, '_components', tuple(components))
        object.__setattr__(self, '_reference', reference)

    def __setattr__(self, key, value):
        raise AttributeError(f'{self.__class__.__name__} is immutable')

    def __eq__(self, other):
        if not isinstance(other, EnuVector):
            return False

        return self.components == other.components and self.reference == other.reference

    def __hash__(self):
        return hash((self.components, self.reference))

    def __repr__(self):
        return (
            f'<EnuVector({self.east}, {self.north}, {self.up}) '
            f'@ {self.reference.latitude}, {self.reference.longitude}>'
        )

    @property
    def components(self) -> Tuple[Decimal, Decimal, Decimal]:
        """Full-precision (east, north, up)"""
        return self._components

    @property
    def east(self) -> float:
        return float(self._components[0])

    @property
    def north(self) -> float:
        return float(self._components[1])

    @property
    def up(self) -> float:
        return float(self._components[2])

    @property
    def reference(self) -> GeodeticPosition:
        return self._reference

    @property
    def magnitude(self) -> float:
        with localcontext(DECIMAL_CONTEXT):
            return float(sum(x * x for x in self._components).sqrt())

    def to_dict(self, exact: bool = False) -> Dict[str, Union[float, str]]:
        """
        Serializes the components as {e, n, u}. Floats by default; with
        `exact=True` the full-precision Decimal strings, which EnuVector accepts
        back without loss.
        """
        if exact:
            east, north, up = self._components
            return {'e': str(east), 'n': str(north), 'u': str(up)}

        return {'e': self.east, 'n': self.north, 'u': self.up}

    def to_float(self) -> Tuple[float, float, float]:
        return self.east, self.north, self.up
