"""
Glue between the proximity state machine and the collaborators around it:
position refinement, anchor lookup and the transport that delivers samples.
"""

__all__ = [
    'AnchorLookup', 'PositionRefiner', 'PositionSampleHandler', 'RefinedFix',
]

from concurrent.futures import Executor
from typing import Any, Iterable, Mapping, NamedTuple, Optional, Protocol, Union

from geoanchor.anchors import Anchor
from geoanchor.config import RelocationConfig
from geoanchor.coordinates import GeodeticPosition
from geoanchor.errors import InvalidPosition, RefinementUnavailable
from geoanchor.proximity import (
    ObserverSession, ProximityEvent, ProximityTracker, ProximityUpdate
)
from geoanchor.resolver import resolve_anchors
from geoanchor.utils.mixins import LoggingMixin


class RefinedFix(NamedTuple):
    refined_lat: float
    refined_lon: float


class PositionRefiner(Protocol):
    """Maps a raw GPS fix to a corrected one. Raises RefinementUnavailable on failure."""

    def refine(self, latitude: float, longitude: float) -> Union[RefinedFix, Mapping[str, Any]]:
        ...  # pragma: no cover


class AnchorLookup(Protocol):
    """Returns the anchors within `radius_meters` of a position, nearest first."""

    def find_nearby(self, latitude: float, longitude: float, radius_meters: float) -> Iterable[Anchor]:
        ...  # pragma: no cover


def _coerce_fix(fix: Union[RefinedFix, Mapping[str, Any]]) -> RefinedFix:
    if not isinstance(fix, RefinedFix):
        try:
            fix = RefinedFix(fix['refinedLat'], fix['refinedLon'])
        except (KeyError, TypeError) as exc:
            raise RefinementUnavailable(f'Malformed refinement result: {fix!r}', exc) from exc

    try:
        position = GeodeticPosition(fix.refined_lat, fix.refined_lon)
    except InvalidPosition as exc:
        raise RefinementUnavailable(f'Invalid refinement result: {exc}', exc) from exc

    return RefinedFix(position.latitude, position.longitude)


class PositionSampleHandler(LoggingMixin):
    """
    Processes one raw position sample for a session:

        raw fix -> refinement -> proximity state machine
                -> (on boundary crossing) anchor lookup -> vector resolution

    Samples for a given session must be handled one at a time, in arrival order.
    Refinement failures of any kind are absorbed according to
    config.use_raw_on_refinement_failure and never raised to the caller. If the
    anchor lookup or resolution fails after a boundary crossing, the session is
    restored to its state before the sample and the error is re-raised.

    Args:
        tracker:
            The proximity state machine; its config is used throughout

        refiner:
            (Optional) refinement collaborator. Without one, raw fixes are used.

        anchor_lookup:
            (Optional) anchor lookup collaborator. Without one, boundary
            crossings are reported without resolved anchors and the caller may
            attach them later with attach_anchors().

        executor:
            (Optional) executor used to fan anchor resolution out
    """

    def __init__(
        self,
        tracker: ProximityTracker,
        refiner: Optional[PositionRefiner] = None,
        anchor_lookup: Optional[AnchorLookup] = None,
        executor: Optional[Executor] = None,
    ):
        super().__init__()
        self.tracker = tracker
        self.refiner = refiner
        self.anchor_lookup = anchor_lookup
        self.executor = executor

    @property
    def config(self) -> RelocationConfig:
        return self.tracker.config

    def _request_fix(self, latitude: float, longitude: float) -> Union[RefinedFix, Mapping[str, Any]]:
        """Calls the refiner, reporting any failure of it as RefinementUnavailable"""
        try:
            return self.refiner.refine(latitude, longitude)
        except RefinementUnavailable:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            raise RefinementUnavailable(f'Refiner raised {exc!r}', exc) from exc

    def refine(self, latitude: float, longitude: float) -> Optional[RefinedFix]:
        """
        Refines a raw fix. Returns None when refinement failed and the raw
        fallback is disabled.
        """
        if self.refiner is None:
            return RefinedFix(latitude, longitude)

        try:
            return _coerce_fix(self._request_fix(latitude, longitude))
        except RefinementUnavailable as exc:
            if not self.config.use_raw_on_refinement_failure:
                self.logger.warning(
                    'Refinement failed for (%s, %s) and raw fallback is disabled: %s',
                    latitude, longitude, exc
                )
                return None

            self.logger.warning(
                'Refinement failed for (%s, %s), using raw fix: %s', latitude, longitude, exc
            )
            return RefinedFix(latitude, longitude)

    def handle_sample(
        self,
        session: ObserverSession,
        latitude: float,
        longitude: float,
    ) -> ProximityUpdate:
        """
        Runs one raw sample through refinement and the state machine, resolving
        nearby anchors when the observer crosses out of range.

        Args:
            session:
                The observer's session; mutated in place

            latitude:
                Raw latitude, degrees

            longitude:
                Raw longitude, degrees

        Returns:
            ProximityUpdate
        """
        try:
            raw = GeodeticPosition(latitude, longitude)
        except InvalidPosition as exc:
            return self.tracker.reject(session, str(exc))

        fix = self.refine(raw.latitude, raw.longitude)
        if fix is None:
            return self.tracker.reject(session, 'position refinement unavailable')

        snapshot = session.snapshot()
        update = self.tracker.ingest(session, fix.refined_lat, fix.refined_lon)
        if update.event is not ProximityEvent.BOUNDARY_CROSSED or self.anchor_lookup is None:
            return update

        try:
            anchors = self.anchor_lookup.find_nearby(
                update.position.latitude,
                update.position.longitude,
                self.config.nearby_radius_meters,
            )
            return self.attach_anchors(update, anchors)
        except Exception:
            # Undo the crossing so the next sample reports it again
            session.restore(snapshot)
            self.logger.warning(
                'Session %r: anchor resolution failed, boundary crossing rolled back',
                session.session_id
            )
            raise

    def attach_anchors(self, update: ProximityUpdate, anchors: Iterable[Anchor]) -> ProximityUpdate:
        """
        Resolves `anchors` against the update's position and returns a copy of
        the update carrying them. For callers that look anchors up themselves.
        """
        if update.position is None:
            raise ValueError('Cannot resolve anchors for an update without a position.')

        resolved = resolve_anchors(anchors, update.position, self.config, self.executor)
        self.logger.info(
            'Resolved %d nearby anchor(s) at %s', len(resolved), update.position.to_float()
        )
        return update._replace(resolved_assets=resolved)

    def handle_message(self, session: ObserverSession, payload: Mapping[str, Any]) -> dict:
        """
        Transport-facing convenience: accepts a `{lat, lon}` payload and returns the
        serialized outgoing message.
        """
        try:
            latitude, longitude = payload['lat'], payload['lon']
        except (KeyError, TypeError):
            return self.tracker.reject(
                session, f'malformed position payload: {payload!r}'
            ).to_message()

        return self.handle_sample(session, latitude, longitude).to_message()
