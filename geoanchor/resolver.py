"""
Relocation of anchored vectors into an observer's local frame
"""

__all__ = [
    'ResolvedAnchor', 'resolve_anchors', 'resolve_observer_vector',
    'resolve_observer_vector_debug',
]

from concurrent.futures import Executor
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from geoanchor.anchors import Anchor
from geoanchor.config import DEFAULT_CONFIG, RelocationConfig
from geoanchor.coordinates import EcefPosition, EnuVector, GeodeticPosition
from geoanchor.frames import ecef_delta_to_enu, enu_delta_to_ecef_delta, geodetic_to_ecef
from geoanchor.utils.logging import LOGGER


class ResolvedAnchor(NamedTuple):
    """An anchor paired with the vector at which it renders for one observer"""
    anchor: Anchor
    vector: EnuVector

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.anchor.id, 'vector': self.vector.to_dict()}


def _check_inputs(creator_vector: EnuVector, observer: GeodeticPosition):
    if not isinstance(creator_vector, EnuVector):
        raise TypeError(
            f'creator_vector must be an EnuVector, got {type(creator_vector).__name__}'
        )
    if not isinstance(observer, GeodeticPosition):
        raise TypeError(
            f'observer must be a GeodeticPosition, got {type(observer).__name__}'
        )


def _relocate(
    creator_vector: EnuVector,
    observer: GeodeticPosition,
    config: RelocationConfig,
) -> Tuple[EcefPosition, EcefPosition, EnuVector]:
    """Returns (object ECEF, observer ECEF, observer-to-object vector)"""
    creator_ecef = geodetic_to_ecef(creator_vector.reference, config)
    object_ecef = creator_ecef + enu_delta_to_ecef_delta(creator_vector)
    observer_ecef = geodetic_to_ecef(observer, config)
    return (
        object_ecef,
        observer_ecef,
        ecef_delta_to_enu(object_ecef - observer_ecef, observer),
    )


def resolve_observer_vector(
    creator_vector: EnuVector,
    observer: GeodeticPosition,
    config: RelocationConfig = DEFAULT_CONFIG,
) -> EnuVector:
    """
    Given the vector from an anchor's creator to the anchored object (expressed in
    the creator's ENU frame), computes the vector from `observer` to the same
    object, expressed in the observer's ENU frame.

    When the observer stands exactly where the creator stood, the input vector is
    returned unchanged (to within numeric tolerance). The function is pure and
    may be called concurrently.

    Args:
        creator_vector:
            The creator-to-object vector. Its reference is the creator's position.

        observer:
            The observer's position

        config:
            (Optional) runtime configuration; supplies the height used for
            positions that carry none

    Returns:
        EnuVector referenced to `observer`
    """
    _check_inputs(creator_vector, observer)
    return _relocate(creator_vector, observer, config)[2]


def resolve_observer_vector_debug(
    creator_vector: EnuVector,
    observer: GeodeticPosition,
    config: RelocationConfig = DEFAULT_CONFIG,
) -> Dict[str, Any]:
    """
    As resolve_observer_vector, but also returns the intermediate values as
    strings so that the full decimal precision can be inspected.

    Returns:
        {
            'vector': EnuVector,
            'object_ecef': (x, y, z),
            'observer_ecef': (x, y, z),
            'vector_decimal': (east, north, up),
        }
    """
    _check_inputs(creator_vector, observer)
    object_ecef, observer_ecef, vector = _relocate(creator_vector, observer, config)
    return {
        'vector': vector,
        'object_ecef': object_ecef.to_str(),
        'observer_ecef': observer_ecef.to_str(),
        'vector_decimal': tuple(str(x) for x in vector.components),
    }


def resolve_anchors(
    anchors: Iterable[Anchor],
    observer: GeodeticPosition,
    config: RelocationConfig = DEFAULT_CONFIG,
    executor: Optional[Executor] = None,
) -> List[ResolvedAnchor]:
    """
    Resolves every anchor in `anchors` into the observer's frame. Output order
    matches input order (anchor lookups return nearest first).

    Args:
        anchors:
            The anchors near the observer

        observer:
            The observer's position

        config:
            (Optional) runtime configuration

        executor:
            (Optional) a concurrent.futures Executor to fan the work out over

    Returns:
        List[ResolvedAnchor]
    """
    anchors = list(anchors)

    def _resolve(anchor: Anchor) -> ResolvedAnchor:
        return ResolvedAnchor(
            anchor, resolve_observer_vector(anchor.creator_vector, observer, config)
        )

    if executor is None:
        resolved = [_resolve(anchor) for anchor in anchors]
    else:
        resolved = list(executor.map(_resolve, anchors))

    LOGGER.debug('Resolved %d anchor(s) for observer at %s', len(resolved), observer.to_float())
    return resolved
