import logging
import math

import numpy as np
import pytest

from data_models import EdgeImage, Peak
from hough_core import build_accumulator, reconstruct_line, select_endpoints


@pytest.fixture
def grid():
    return build_accumulator(EdgeImage(np.zeros((100, 100), dtype=bool)))


def peak_at(acc, dist, theta):
    d, a = acc.to_bin(dist, theta)
    return Peak(d=d, a=a, count=1)


def test_horizontal_line(grid):
    line = reconstruct_line(peak_at(grid, 30, 90), grid, 100, 100)
    assert line.p1 == pytest.approx((0, 30))
    assert line.p2 == pytest.approx((99, 30))
    assert line.slope == pytest.approx(0, abs=1e-9)
    assert line.intercept == pytest.approx(30)


def test_vertical_line(grid):
    line = reconstruct_line(peak_at(grid, 70, 0), grid, 100, 100)
    assert line.p1 == pytest.approx((70, 0))
    assert line.p2 == pytest.approx((70, 99))
    assert abs(line.slope) > 1e6


def test_diagonal_through_corners(grid, caplog):
    with caplog.at_level(logging.WARNING):
        line = reconstruct_line(peak_at(grid, 0, 135), grid, 100, 100)
    assert line.p1 == pytest.approx((0, 0))
    assert line.p2 == pytest.approx((99, 99))
    assert line.slope == pytest.approx(1)
    assert not caplog.records


def test_line_outside_image_is_dropped(grid, caplog):
    with caplog.at_level(logging.WARNING):
        line = reconstruct_line(peak_at(grid, -50, 0), grid, 100, 100)
    assert line is None
    assert "misses the image" in caplog.text


def test_endpoints_lie_on_line(grid):
    line = reconstruct_line(peak_at(grid, 40, 60), grid, 100, 100)
    rad = math.radians(line.theta)
    for x, y in (line.p1, line.p2):
        assert x * math.cos(rad) + y * math.sin(rad) == pytest.approx(line.dist, abs=1e-6)


def test_endpoints_contained_for_all_bins():
    width, height = 120, 80
    acc = build_accumulator(EdgeImage(np.zeros((height, width), dtype=bool)), 1.0, 3.0)
    kept = 0
    for d in range(0, acc.num_distance_bins, 4):
        for a in range(acc.num_angle_bins):
            line = reconstruct_line(Peak(d=d, a=a, count=1), acc, width, height)
            if line is None:
                continue
            kept += 1
            for x, y in (line.p1, line.p2):
                assert 0 <= x <= width - 1
                assert 0 <= y <= height - 1
            assert line.p1 != line.p2
    assert kept > 0


def test_select_endpoints_keeps_first_two(caplog):
    with caplog.at_level(logging.WARNING):
        ends = select_endpoints([(0, 1), (5, 0), (9, 4)])
    assert ends == ((0, 1), (5, 0))
    assert "keeping the first two" in caplog.text


def test_select_endpoints_merges_coincident_points():
    assert select_endpoints([(0, 0), (0, 0), (9, 9)]) == ((0, 0), (9, 9))
    assert select_endpoints([(0, 0), (0, 0)]) is None
    assert select_endpoints([]) is None
