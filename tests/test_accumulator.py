import numpy as np
import pytest

from data_models import EdgeImage, round_half_away
from exceptions import InvalidParameter
from hough_core import build_accumulator


def test_round_half_away_from_zero():
    values = np.array([-2.5, -1.5, -0.5, -0.4, 0.0, 0.4, 0.5, 1.5, 2.5])
    expected = np.array([-3, -2, -1, 0, 0, 0, 1, 2, 3])
    np.testing.assert_array_equal(round_half_away(values), expected)


def test_accumulator_shape():
    acc = build_accumulator(EdgeImage(np.zeros((100, 100), dtype=bool)))
    # round(hypot(100, 100) - 1) = round(140.42) = 140
    assert acc.offset == 140
    assert acc.counts.shape == (281, 180)
    assert acc.num_distance_bins == 281
    assert acc.num_angle_bins == 180


def test_uneven_angle_step_rounds_bin_count():
    acc = build_accumulator(EdgeImage(np.ones((5, 5), dtype=bool)), anginc=7)
    # 180 / 7 = 25.7
    assert acc.num_angle_bins == 26
    assert acc.to_polar(acc.offset, 25)[1] < 180.0


def test_every_pixel_votes_once_per_angle(single_line_image):
    acc = build_accumulator(single_line_image)
    assert acc.total_votes == single_line_image.num_edge_pixels * acc.num_angle_bins
    np.testing.assert_array_equal(acc.counts.sum(axis=0),
                                  np.full(acc.num_angle_bins, single_line_image.num_edge_pixels))


@pytest.mark.parametrize("distinc,anginc", [(1, 1), (0.5, 2), (2.5, 0.75)])
def test_vote_total_for_random_image(distinc, anginc):
    rng = np.random.default_rng(7)
    image = EdgeImage(rng.random((37, 53)) < 0.1)
    acc = build_accumulator(image, distinc, anginc)
    assert acc.total_votes == image.num_edge_pixels * acc.num_angle_bins
    assert acc.counts.min() >= 0


def test_no_edges_gives_zero_accumulator(blank_image):
    acc = build_accumulator(blank_image)
    assert acc.counts.shape[1] == 180
    assert not acc.counts.any()


def test_single_pixel_votes():
    pixels = np.zeros((10, 10), dtype=bool)
    pixels[4, 3] = True  # x=3, y=4
    acc = build_accumulator(EdgeImage(pixels))
    assert acc.counts[acc.offset + 3, 0] == 1
    assert acc.counts[acc.offset + 4, 90] == 1
    # dist = 3*cos(135) + 4*sin(135) = 0.707 -> bin 1
    assert acc.counts[acc.offset + 1, 135] == 1


def test_origin_pixel_votes_at_zero_distance():
    pixels = np.zeros((8, 8), dtype=bool)
    pixels[0, 0] = True
    acc = build_accumulator(EdgeImage(pixels))
    np.testing.assert_array_equal(acc.counts[acc.offset], np.ones(acc.num_angle_bins))


@pytest.mark.parametrize("distinc,anginc", [
    (0, 1), (-1, 1), (1, 0), (1, -2),
    (float("inf"), 1), (1, float("inf")), (float("nan"), 1), (1, float("nan")),
])
def test_non_positive_steps_rejected(single_line_image, distinc, anginc):
    with pytest.raises(InvalidParameter):
        build_accumulator(single_line_image, distinc, anginc)


@pytest.mark.parametrize("distinc,anginc", [(1, 1), (0.7, 1.5), (3, 4)])
def test_bin_round_trip(distinc, anginc):
    acc = build_accumulator(EdgeImage(np.zeros((50, 80), dtype=bool)), distinc, anginc)
    for d in range(0, acc.num_distance_bins, 3):
        for a in range(0, acc.num_angle_bins, 5):
            dist, theta = acc.to_polar(d, a)
            assert 0 <= theta < 180
            assert acc.to_bin(dist, theta) == (d, a)


def test_edge_image_is_read_only(single_line_image):
    with pytest.raises(ValueError):
        single_line_image.pixels[0, 0] = True
