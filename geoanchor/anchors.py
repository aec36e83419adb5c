"""
Digital objects anchored at the real-world position where they were created
"""

__all__ = ['Anchor']

from typing import Any, Dict, Hashable, Optional

from geoanchor.config import DEFAULT_CONFIG, RelocationConfig
from geoanchor.coordinates import EnuVector, GeodeticPosition
from geoanchor.frames import enu_offset_to_geodetic
from geoanchor.utils.logging import LOGGER


class Anchor:
    """
    An object placed in the world by a creator. The creator's position and the
    creator-to-object vector are kept together (the vector's reference *is* the
    creator position), along with the object's derived geodetic position.

    Anchors are immutable; moving an object means replacing its anchor.

    Args:
        anchor_id:
            An identifier assigned by whoever stores the anchor

        creator_vector:
            The creator-to-object vector, in the creator's ENU frame

        object_position:
            (Optional) The object's geodetic position, if already known (e.g. read
            back from storage). Use Anchor.place() to derive it.
    """

    __slots__ = ('_id', '_creator_vector', '_object_position')

    def __init__(
        self,
        anchor_id: Hashable,
        creator_vector: EnuVector,
        object_position: Optional[GeodeticPosition] = None,
    ):
        if not isinstance(creator_vector, EnuVector):
            raise TypeError(
                f'creator_vector must be an EnuVector, got {type(creator_vector).__name__}'
            )

        object.__setattr__(self, '_id', anchor_id)
        object.__setattr__(self, '_creator_vector', creator_vector)
        object.__setattr__(self, '_object_position', object_position)

    def __setattr__(self, key, value):
        raise AttributeError(f'{self.__class__.__name__} is immutable')

    def __eq__(self, other):
        if not isinstance(other, Anchor):
            return False

        return (
            self.id == other.id and
            self.creator_vector == other.creator_vector and
            self.object_position == other.object_position
        )

    def __hash__(self):
        return hash((self.id, self.creator_vector))

    def __repr__(self):
        return f'<Anchor({self.id!r}) {self.creator_vector!r}>'

    @property
    def id(self) -> Hashable:
        return self._id

    @property
    def creator_position(self) -> GeodeticPosition:
        return self._creator_vector.reference

    @property
    def creator_vector(self) -> EnuVector:
        return self._creator_vector

    @property
    def object_position(self) -> Optional[GeodeticPosition]:
        return self._object_position

    @classmethod
    def place(
        cls,
        anchor_id: Hashable,
        creator_vector: EnuVector,
        config: RelocationConfig = DEFAULT_CONFIG,
    ) -> 'Anchor':
        """
        Creates an anchor, deriving the object's geodetic position from the
        creator's position and the creator-to-object vector.

        Args:
            anchor_id:
                An identifier for the anchor

            creator_vector:
                The creator-to-object vector, in the creator's ENU frame. The
                creator position should already be refined.

            config:
                (Optional) runtime configuration

        Returns:
            Anchor
        """
        object_position = enu_offset_to_geodetic(creator_vector, config)
        LOGGER.debug(
            'Placed anchor %r: creator %s + %s -> object %s',
            anchor_id, creator_vector.reference.to_float(),
            creator_vector.to_float(), object_position.to_float()
        )
        return cls(anchor_id, creator_vector, object_position)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Anchor':
        """
        Creates an anchor from a mapping of the form

            {
                'id': ...,
                'creator': {'lat': ..., 'lon': ..., 'h': ...},
                'vector': {'e': ..., 'n': ..., 'u': ...},
                'object': {'lat': ..., 'lon': ..., 'h': ...}   # optional
            }
        """
        creator = GeodeticPosition.from_dict(data['creator'])
        vector = data['vector']
        obj = data.get('object')
        return cls(
            data['id'],
            EnuVector(vector['e'], vector['n'], vector['u'], creator),
            GeodeticPosition.from_dict(obj) if obj else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Inverse of from_dict. Vector components are written as exact decimal strings."""
        return {
            'id': self.id,
            'creator': self.creator_position.to_dict(),
            'vector': self.creator_vector.to_dict(exact=True),
            'object': self.object_position.to_dict() if self.object_position else None,
        }
