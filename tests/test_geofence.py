import pytest

from geofence import OutOfRangeError, check_geofence, haversine_distance

CAFE = {'lat': -6.7063803, 'lng': 108.5619729, 'radius': 200}


def test_same_point_is_zero_distance():
    assert haversine_distance(CAFE['lat'], CAFE['lng'], CAFE['lat'], CAFE['lng']) == 0


def test_one_hundredth_degree_of_latitude():
    distance = haversine_distance(0, 0, 0.01, 0)
    assert distance == pytest.approx(1111.95, abs=0.1)


def test_inside_radius_returns_distance():
    distance = check_geofence(CAFE['lat'] + 0.001, CAFE['lng'], CAFE)
    assert distance == pytest.approx(111.2, abs=0.5)


def test_outside_radius_raises_with_rounded_distance():
    with pytest.raises(OutOfRangeError) as exc_info:
        check_geofence(CAFE['lat'] + 0.01, CAFE['lng'], CAFE)
    assert exc_info.value.radius == 200
    assert str(exc_info.value) == 'Anda terlalu jauh dari cafe (1112m). Maksimal 200m.'


def test_radius_boundary_is_accepted():
    distance = haversine_distance(CAFE['lat'], CAFE['lng'], CAFE['lat'] + 0.001, CAFE['lng'])
    location = dict(CAFE, radius=distance)
    assert check_geofence(CAFE['lat'] + 0.001, CAFE['lng'], location) == pytest.approx(distance)


def test_default_radius_when_missing():
    location = {'lat': CAFE['lat'], 'lng': CAFE['lng']}
    with pytest.raises(OutOfRangeError):
        check_geofence(CAFE['lat'] + 0.002, CAFE['lng'], location)


@pytest.mark.parametrize('a, b', [
    ((CAFE['lat'], CAFE['lng']), (-6.2, 106.8)),
    ((0, 0), (0.01, 0.02)),
    ((51.5, -0.12), (-33.86, 151.2)),
])
def test_distance_is_symmetric(a, b):
    assert haversine_distance(*a, *b) == pytest.approx(haversine_distance(*b, *a))
