import pytest

from aeras.src import geo
from aeras.src.constants import LOCATIONS

PAHARTOLI = (22.4725, 91.9845)
CUET_CAMPUS = (22.4633, 91.9714)


def test_distance_is_zero_for_same_point():
    assert geo.distanceMeters(PAHARTOLI, PAHARTOLI) == 0


def test_distance_is_symmetric():
    assert geo.distanceMeters(PAHARTOLI, CUET_CAMPUS) == pytest.approx(
        geo.distanceMeters(CUET_CAMPUS, PAHARTOLI)
    )


def test_distance_between_blocks():
    # roughly 1.7 km between Pahartoli and the campus
    assert 1500 < geo.distanceMeters(PAHARTOLI, CUET_CAMPUS) < 1900


def test_distance_of_one_millidegree_latitude():
    assert geo.distanceMeters((22.0, 91.0), (22.001, 91.0)) == pytest.approx(111.19, abs=0.01)


@pytest.mark.parametrize(
    "distance, points",
    [
        (0, 10),
        (-1, 10),
        (5, 10),
        (9.99, 10),
        (10, 9),
        (19.5, 9),
        (20, 8),
        (35, 8),
        (50, 8),
        (50.01, 5),
        (75, 5),
        (100, 5),
        (100.01, 0),
        (150, 0),
        (5000, 0),
    ],
)
def test_score_bands(distance, points):
    assert geo.scoreForDistance(distance) == points


def test_review_cutoff():
    assert not geo.needsReview(0)
    assert not geo.needsReview(100)
    assert geo.needsReview(100.01)


def test_catalog_blocks_are_far_apart():
    coordinates = [(latitude, longitude) for _, _, latitude, longitude in LOCATIONS]
    for i, a in enumerate(coordinates):
        for b in coordinates[i + 1 :]:
            assert geo.distanceMeters(a, b) > 100
