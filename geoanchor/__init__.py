from geoanchor._version import __version__  # noqa: F401
from geoanchor.utils.logging import LOGGER
from geoanchor.config import DEFAULT_CONFIG, RelocationConfig
from geoanchor.errors import (
    GeoAnchorError, InvalidPosition, NumericDivergence, RefinementUnavailable
)
from geoanchor.coordinates import EcefPosition, EnuVector, GeodeticPosition
from geoanchor.frames import (
    ecef_delta_to_enu, ecef_to_geodetic, enu_delta_to_ecef_delta,
    enu_offset_to_geodetic, geodetic_to_ecef, small_offset_approx
)
from geoanchor.anchors import Anchor
from geoanchor.resolver import ResolvedAnchor, resolve_anchors, resolve_observer_vector
from geoanchor.proximity import (
    ObserverSession, ProximityEvent, ProximityState, ProximityTracker, ProximityUpdate
)
from geoanchor.session import PositionSampleHandler, RefinedFix


__all__ = [
    'Anchor',
    'DEFAULT_CONFIG',
    'EcefPosition',
    'EnuVector',
    'GeoAnchorError',
    'GeodeticPosition',
    'InvalidPosition',
    'NumericDivergence',
    'ObserverSession',
    'PositionSampleHandler',
    'ProximityEvent',
    'ProximityState',
    'ProximityTracker',
    'ProximityUpdate',
    'RefinedFix',
    'RefinementUnavailable',
    'RelocationConfig',
    'ResolvedAnchor',
    'LOGGER',
    'ecef_delta_to_enu',
    'ecef_to_geodetic',
    'enu_delta_to_ecef_delta',
    'enu_offset_to_geodetic',
    'geodetic_to_ecef',
    'resolve_anchors',
    'resolve_observer_vector',
    'small_offset_approx',
]
