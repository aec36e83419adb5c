"""
Per-observer proximity tracking: decides, from a stream of position samples,
when an observer has strayed far enough from their reference point that the
anchors around them need to be re-resolved.
"""

__all__ = [
    'ObserverSession', 'ProximityEvent', 'ProximityState', 'ProximityTracker',
    'ProximityUpdate',
]

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Hashable, List, NamedTuple, Optional, Tuple, TYPE_CHECKING

from geoanchor.config import DEFAULT_CONFIG, RelocationConfig
from geoanchor.coordinates import GeodeticPosition
from geoanchor.distance import quantized_distance
from geoanchor.errors import InvalidPosition
from geoanchor.utils.mixins import LoggingMixin

if TYPE_CHECKING:  # pragma: no cover
    from geoanchor.resolver import ResolvedAnchor


class ProximityState(Enum):
    INITIALIZING = 'Initializing'
    SETTLED = 'Settled'
    OUT_OF_RANGE = 'OutOfRange'


class ProximityEvent(Enum):
    POSITION_RECORDED = 'PositionRecorded'
    POSITION_UPDATED = 'PositionUpdated'
    BOUNDARY_CROSSED = 'BoundaryCrossed'
    RETURNED_IN_RANGE = 'ReturnedInRange'
    SAMPLE_REJECTED = 'SampleRejected'


class ObserverSession:
    """
    The proximity state of one connected observer. Owned by whoever owns the
    connection and mutated only by ProximityTracker, one sample at a time and in
    arrival order.

    Args:
        session_id:
            An opaque identifier assigned by the transport layer
    """

    def __init__(self, session_id: Hashable):
        self.session_id = session_id
        self.reference_position: Optional[GeodeticPosition] = None
        self.current_position: Optional[GeodeticPosition] = None
        self.state = ProximityState.INITIALIZING
        self.last_distance: Optional[Decimal] = None

    def __repr__(self):
        return f'<ObserverSession({self.session_id!r}) {self.state.value}>'

    def snapshot(self) -> Tuple:
        """The mutable part of the session, for restore()"""
        return (
            self.reference_position, self.current_position, self.state, self.last_distance
        )

    def restore(self, snapshot: Tuple) -> None:
        (
            self.reference_position, self.current_position, self.state, self.last_distance
        ) = snapshot


class ProximityUpdate(NamedTuple):
    """The outcome of feeding one sample to a session"""
    event: ProximityEvent
    state: ProximityState
    position: Optional[GeodeticPosition]
    distance: Optional[Decimal] = None
    reason: Optional[str] = None
    resolved_assets: Optional[List['ResolvedAnchor']] = None

    def to_message(self) -> Dict[str, Any]:
        """
        Serializes the update into the message handed back to the transport
        layer. `resolvedAssets` is only present once anchors have been resolved,
        and `reason` only for rejected samples.
        """
        message: Dict[str, Any] = {
            'event': self.event.value,
            'state': self.state.value,
            'position': self.position.to_dict() if self.position else None,
            'distance': None if self.distance is None else float(self.distance),
        }
        if self.reason is not None:
            message['reason'] = self.reason
        if self.resolved_assets is not None:
            message['resolvedAssets'] = [x.to_dict() for x in self.resolved_assets]
        return message


class ProximityTracker(LoggingMixin):
    """
    Drives ObserverSession state transitions.

        Initializing --first sample--> Settled
        Settled --distance > threshold--> OutOfRange
        OutOfRange --distance <= threshold--> Settled

    The first sample becomes the session's reference position. Every later
    sample is measured against it (Haversine, quantized to
    config.distance_precision_digits decimal places); a distance exactly equal
    to the threshold counts as in range. The reference is never moved
    automatically; see reset_reference().

    A bad sample never raises: it is logged, reported as SAMPLE_REJECTED and the
    session is left untouched.

    Args:
        config:
            (Optional) runtime configuration
    """

    def __init__(self, config: RelocationConfig = DEFAULT_CONFIG):
        super().__init__()
        self.config = config
        self.threshold = Decimal(str(config.boundary_threshold_meters))

    @staticmethod
    def start_session(session_id: Hashable) -> ObserverSession:
        return ObserverSession(session_id)

    def reject(self, session: ObserverSession, reason: str) -> ProximityUpdate:
        """Reports a sample that could not be used; the session is not modified"""
        self.logger.warning('Session %r: sample rejected (%s)', session.session_id, reason)
        return ProximityUpdate(
            ProximityEvent.SAMPLE_REJECTED,
            session.state,
            session.current_position,
            session.last_distance,
            reason=reason,
        )

    def ingest(
        self,
        session: ObserverSession,
        latitude: Any,
        longitude: Any,
        height: Any = None,
    ) -> ProximityUpdate:
        """
        Builds a position from raw values and processes it. Invalid values are
        rejected rather than raised.
        """
        try:
            sample = GeodeticPosition(latitude, longitude, height)
        except InvalidPosition as exc:
            return self.reject(session, str(exc))

        return self.process_sample(session, sample)

    def process_sample(
        self,
        session: ObserverSession,
        sample: GeodeticPosition,
    ) -> ProximityUpdate:
        """
        Applies one (already refined) position sample to the session.

        Args:
            session:
                The observer's session; mutated in place

            sample:
                The observer's latest position

        Returns:
            ProximityUpdate
        """
        if not isinstance(sample, GeodeticPosition):
            return self.reject(session, f'expected a GeodeticPosition, got {sample!r}')

        if session.reference_position is None:
            session.reference_position = sample
            session.current_position = sample
            session.state = ProximityState.SETTLED
            session.last_distance = Decimal(0)
            self.logger.info(
                'Session %r: reference position recorded at %s',
                session.session_id, sample.to_float()
            )
            return ProximityUpdate(
                ProximityEvent.POSITION_RECORDED, session.state, sample, session.last_distance
            )

        distance = quantized_distance(
            session.reference_position, sample, self.config.distance_precision_digits
        )
        session.current_position = sample
        session.last_distance = distance

        if distance > self.threshold and session.state is ProximityState.SETTLED:
            session.state = ProximityState.OUT_OF_RANGE
            event = ProximityEvent.BOUNDARY_CROSSED
            self.logger.info(
                'Session %r: left range (%s m > %s m)',
                session.session_id, distance, self.threshold
            )
        elif distance <= self.threshold and session.state is ProximityState.OUT_OF_RANGE:
            session.state = ProximityState.SETTLED
            event = ProximityEvent.RETURNED_IN_RANGE
            self.logger.info(
                'Session %r: returned in range (%s m)', session.session_id, distance
            )
        else:
            event = ProximityEvent.POSITION_UPDATED
            self.logger.debug(
                'Session %r: %s m from reference, %s',
                session.session_id, distance, session.state.value
            )

        return ProximityUpdate(event, session.state, sample, distance)

    def reset_reference(
        self,
        session: ObserverSession,
        position: Optional[GeodeticPosition] = None,
    ) -> None:
        """
        Moves (or clears) a session's reference position. With no position, the
        next sample becomes the new reference and is reported as
        POSITION_RECORDED. The session never returns to INITIALIZING.
        """
        session.reference_position = position
        session.last_distance = None
        if position is not None:
            session.state = ProximityState.SETTLED

        self.logger.info(
            'Session %r: reference reset to %s',
            session.session_id, position.to_float() if position else None
        )
