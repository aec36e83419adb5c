from concurrent.futures import ThreadPoolExecutor
import math

import pytest

from geoanchor import (
    Anchor, EnuVector, GeodeticPosition, PositionSampleHandler, ProximityEvent,
    ProximityState, ProximityTracker, RefinedFix, RefinementUnavailable,
    RelocationConfig, resolve_observer_vector,
)

REFERENCE = GeodeticPosition(49.2781, -122.9199)
FAR_AWAY = (49.2790, -122.9180)


class ShiftingRefiner:
    """Nudges every fix a fixed amount, recording what it was asked"""

    def __init__(self, d_lat=0.00001, d_lon=0.):
        self.d_lat, self.d_lon = d_lat, d_lon
        self.calls = []

    def refine(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        return RefinedFix(latitude + self.d_lat, longitude + self.d_lon)


class MappingRefiner:
    def refine(self, latitude, longitude):
        return {'refinedLat': latitude, 'refinedLon': longitude}


class FailingRefiner:
    def refine(self, latitude, longitude):
        raise RefinementUnavailable('triangulation returned no results')


class MalformedRefiner:
    def refine(self, latitude, longitude):
        return {'lat': latitude}


class BrokenServiceRefiner:
    def refine(self, latitude, longitude):
        raise ConnectionError('refinement service down')


class NaNRefiner:
    def refine(self, latitude, longitude):
        return RefinedFix(math.nan, longitude)


class OutOfRangeRefiner:
    def refine(self, latitude, longitude):
        return {'refinedLat': 91., 'refinedLon': longitude}


class StaticLookup:
    def __init__(self, anchors):
        self.anchors = anchors
        self.calls = []

    def find_nearby(self, latitude, longitude, radius_meters):
        self.calls.append((latitude, longitude, radius_meters))
        return list(self.anchors)



class FlakyLookup(StaticLookup):
    """Fails its first call, then behaves like StaticLookup"""

    def find_nearby(self, latitude, longitude, radius_meters):
        result = super().find_nearby(latitude, longitude, radius_meters)
        if len(self.calls) == 1:
            raise ConnectionError('anchor store unreachable')
        return result


@pytest.fixture
def anchors():
    return [
        Anchor.place(1, EnuVector(5, 10, 0, GeodeticPosition(49.2789, -122.9181, 370.))),
        Anchor.place(2, EnuVector(-2, 0, 1, GeodeticPosition(49.2792, -122.9178, 370.))),
    ]


def test_refined_samples(anchors):
    refiner = ShiftingRefiner()
    handler = PositionSampleHandler(ProximityTracker(), refiner=refiner)
    session = handler.tracker.start_session('s')

    update = handler.handle_sample(session, REFERENCE.latitude, REFERENCE.longitude)
    assert refiner.calls == [(REFERENCE.latitude, REFERENCE.longitude)]
    assert update.event is ProximityEvent.POSITION_RECORDED
    assert update.position.latitude == pytest.approx(REFERENCE.latitude + 0.00001)


def test_mapping_refinement_result():
    handler = PositionSampleHandler(ProximityTracker(), refiner=MappingRefiner())
    session = handler.tracker.start_session('s')
    update = handler.handle_sample(session, 1., 2.)
    assert update.position == GeodeticPosition(1., 2.)


def test_refinement_failure_uses_raw(caplog):
    handler = PositionSampleHandler(ProximityTracker(), refiner=FailingRefiner())
    session = handler.tracker.start_session('s')

    update = handler.handle_sample(session, REFERENCE.latitude, REFERENCE.longitude)
    assert update.event is ProximityEvent.POSITION_RECORDED
    assert update.position == REFERENCE
    assert 'using raw fix' in caplog.text


def test_malformed_refinement_uses_raw():
    handler = PositionSampleHandler(ProximityTracker(), refiner=MalformedRefiner())
    session = handler.tracker.start_session('s')
    assert handler.handle_sample(session, 1., 2.).position == GeodeticPosition(1., 2.)


@pytest.mark.parametrize('refiner', [BrokenServiceRefiner(), NaNRefiner(), OutOfRangeRefiner()])
def test_any_refinement_failure_uses_raw(refiner, caplog):
    handler = PositionSampleHandler(ProximityTracker(), refiner=refiner)
    session = handler.tracker.start_session('s')

    update = handler.handle_sample(session, REFERENCE.latitude, REFERENCE.longitude)
    assert update.event is ProximityEvent.POSITION_RECORDED
    assert update.position == REFERENCE
    assert 'using raw fix' in caplog.text


def test_refiner_error_without_fallback():
    tracker = ProximityTracker(RelocationConfig(use_raw_on_refinement_failure=False))
    handler = PositionSampleHandler(tracker, refiner=BrokenServiceRefiner())
    session = tracker.start_session('s')

    update = handler.handle_sample(session, REFERENCE.latitude, REFERENCE.longitude)
    assert update.event is ProximityEvent.SAMPLE_REJECTED
    assert session.reference_position is None


def test_refinement_failure_without_fallback(caplog):
    tracker = ProximityTracker(RelocationConfig(use_raw_on_refinement_failure=False))
    handler = PositionSampleHandler(tracker, refiner=FailingRefiner())
    session = tracker.start_session('s')

    update = handler.handle_sample(session, REFERENCE.latitude, REFERENCE.longitude)
    assert update.event is ProximityEvent.SAMPLE_REJECTED
    assert update.state is ProximityState.INITIALIZING
    assert session.reference_position is None
    assert 'raw fallback is disabled' in caplog.text


def test_invalid_raw_sample_skips_refinement():
    refiner = ShiftingRefiner()
    handler = PositionSampleHandler(ProximityTracker(), refiner=refiner)
    session = handler.tracker.start_session('s')

    update = handler.handle_sample(session, math.nan, 0.)
    assert update.event is ProximityEvent.SAMPLE_REJECTED
    assert refiner.calls == []


def test_boundary_crossing_resolves_anchors(anchors):
    lookup = StaticLookup(anchors)
    config = RelocationConfig(nearby_radius_meters=250)
    handler = PositionSampleHandler(ProximityTracker(config), anchor_lookup=lookup)
    session = handler.tracker.start_session('s')

    handler.handle_sample(session, REFERENCE.latitude, REFERENCE.longitude)
    update = handler.handle_sample(session, 49.2782, -122.9199)
    assert update.event is ProximityEvent.POSITION_UPDATED
    assert update.resolved_assets is None
    assert lookup.calls == []

    update = handler.handle_sample(session, *FAR_AWAY)
    assert update.event is ProximityEvent.BOUNDARY_CROSSED
    assert lookup.calls == [(*FAR_AWAY, 250.)]
    assert [x.anchor.id for x in update.resolved_assets] == [1, 2]

    observer = GeodeticPosition(*FAR_AWAY)
    for item in update.resolved_assets:
        assert item.vector == resolve_observer_vector(item.anchor.creator_vector, observer)

    message = update.to_message()
    assert message['event'] == 'BoundaryCrossed'
    assert [x['id'] for x in message['resolvedAssets']] == [1, 2]
    assert set(message['resolvedAssets'][0]['vector']) == {'e', 'n', 'u'}

    # Only the crossing itself triggers a lookup
    handler.handle_sample(session, 49.2795, -122.9175)
    assert len(lookup.calls) == 1


def test_failed_lookup_rolls_back_crossing(anchors, caplog):
    lookup = FlakyLookup(anchors)
    handler = PositionSampleHandler(ProximityTracker(), anchor_lookup=lookup)
    session = handler.tracker.start_session('s')
    handler.handle_sample(session, REFERENCE.latitude, REFERENCE.longitude)
    before = session.snapshot()

    with pytest.raises(ConnectionError):
        handler.handle_sample(session, *FAR_AWAY)

    assert session.snapshot() == before
    assert session.state is ProximityState.SETTLED
    assert 'boundary crossing rolled back' in caplog.text

    update = handler.handle_sample(session, *FAR_AWAY)
    assert update.event is ProximityEvent.BOUNDARY_CROSSED
    assert session.state is ProximityState.OUT_OF_RANGE
    assert len(lookup.calls) == 2
    assert [x.anchor.id for x in update.resolved_assets] == [1, 2]


def test_attach_anchors(anchors):
    handler = PositionSampleHandler(ProximityTracker())
    session = handler.tracker.start_session('s')
    handler.handle_sample(session, REFERENCE.latitude, REFERENCE.longitude)

    update = handler.handle_sample(session, *FAR_AWAY)
    assert update.event is ProximityEvent.BOUNDARY_CROSSED
    assert update.resolved_assets is None

    with ThreadPoolExecutor(max_workers=2) as executor:
        handler.executor = executor
        attached = handler.attach_anchors(update, anchors)

    assert [x.anchor.id for x in attached.resolved_assets] == [1, 2]
    assert attached.event is update.event

    rejected = handler.tracker.ingest(handler.tracker.start_session('t'), math.nan, 0.)
    with pytest.raises(ValueError):
        handler.attach_anchors(rejected, anchors)


def test_handle_message(anchors):
    handler = PositionSampleHandler(ProximityTracker(), anchor_lookup=StaticLookup(anchors))
    session = handler.tracker.start_session('s')

    message = handler.handle_message(session, {'lat': REFERENCE.latitude, 'lon': REFERENCE.longitude})
    assert message['event'] == 'PositionRecorded'
    assert message['state'] == 'Settled'

    message = handler.handle_message(session, {'lat': FAR_AWAY[0], 'lon': FAR_AWAY[1]})
    assert message['event'] == 'BoundaryCrossed'
    assert len(message['resolvedAssets']) == 2

    message = handler.handle_message(session, {'latitude': 1.})
    assert message['event'] == 'SampleRejected'
    assert message['state'] == 'OutOfRange'
