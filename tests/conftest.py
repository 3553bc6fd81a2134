import numpy as np
import pytest

from data_models import EdgeImage


def line_pixels(width=100, height=100, slope=0.5, intercept=10.0):
    """Digital line y = round(slope*x + intercept) on a blank canvas."""
    pixels = np.zeros((height, width), dtype=bool)
    xs = np.arange(width)
    ys = np.floor(slope * xs + intercept + 0.5).astype(int)
    keep = (ys >= 0) & (ys < height)
    pixels[ys[keep], xs[keep]] = True
    return pixels


@pytest.fixture
def single_line_image():
    return EdgeImage(line_pixels())


@pytest.fixture
def cross_image():
    """A horizontal line at y=30 and a vertical line at x=70."""
    pixels = np.zeros((100, 100), dtype=bool)
    pixels[30, :] = True
    pixels[:, 70] = True
    return EdgeImage(pixels)


@pytest.fixture
def blank_image():
    return EdgeImage(np.zeros((40, 60), dtype=bool))
