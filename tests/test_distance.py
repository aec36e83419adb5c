from decimal import Decimal
import math

import pytest

from geoanchor import GeodeticPosition
from geoanchor._const import EARTH_RADIUS_METERS
from geoanchor.distance import haversine_distance, quantized_distance


def test_haversine_distance():
    # Sourced from haversine package
    actual_dist_meters = 157.25359
    calc_dist = haversine_distance(GeodeticPosition(0.0, 0.0), GeodeticPosition(0.001, 0.001))
    assert isinstance(calc_dist, Decimal)
    assert round(actual_dist_meters) == round(calc_dist)

    actual_dist_meters = 157_249.59847
    calc_dist = haversine_distance(GeodeticPosition(0.0, 0.0), GeodeticPosition(1.0, 1.0))
    assert abs(round(actual_dist_meters) - round(calc_dist)) < 2

    # Antimeridian test
    actual_dist_meters = 222390
    calc_dist = haversine_distance(GeodeticPosition(0., 179.), GeodeticPosition(0., -179.))
    assert round(calc_dist) == actual_dist_meters

    # Heights are ignored
    assert haversine_distance(
        GeodeticPosition(10., 10., 0.), GeodeticPosition(10., 10., 500.)
    ) == 0


def test_haversine_distance_antipodal():
    calc_dist = haversine_distance(GeodeticPosition(0., 0.), GeodeticPosition(0., 180.))
    assert float(calc_dist) == pytest.approx(math.pi * EARTH_RADIUS_METERS)


def test_quantized_distance():
    ref = GeodeticPosition(49.2781, -122.9199)
    north = GeodeticPosition(49.2781 + math.degrees(50 / EARTH_RADIUS_METERS), -122.9199)
    assert quantized_distance(ref, north) == Decimal('50.000000')
    assert quantized_distance(ref, north, digits=2) == Decimal('50.00')
    assert quantized_distance(ref, ref) == 0
