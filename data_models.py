import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
from PIL import ImageColor

from exceptions import InvalidParameter


Point = Tuple[float, float]


def round_half_away(value):
    """Round to the nearest integer, ties away from zero (works on arrays)."""
    return np.sign(value) * np.floor(np.abs(value) + 0.5)


@dataclass
class HoughConfig:
    """Parameters accepted by the line detection pipeline."""
    distinc: float = 1.0            # distance bin width in pixels
    anginc: float = 1.0             # angle bin width in degrees
    threshold_percent: float = 45.0  # peak mask threshold, % of the max
    mask_radius: int = 4            # dilation radius for the peak mask
    max_peaks: int = 100
    min_votes: int = 1
    line_color: str = "white"
    background: str = "black"
    thickness: int = 1

    @property
    def threshold_fraction(self) -> float:
        return self.threshold_percent / 100.0

    def validate(self) -> "HoughConfig":
        if not (math.isfinite(self.distinc) and self.distinc > 0):
            raise InvalidParameter(f"distinc must be a finite number > 0, got {self.distinc}")
        if not (math.isfinite(self.anginc) and self.anginc > 0):
            raise InvalidParameter(f"anginc must be a finite number > 0, got {self.anginc}")
        if not 0 < self.threshold_percent < 100:
            raise InvalidParameter(
                f"threshold must be between 0 and 100 percent, got {self.threshold_percent}")
        if (not math.isfinite(self.mask_radius) or int(self.mask_radius) != self.mask_radius
                or self.mask_radius < 1):
            raise InvalidParameter(f"mask radius must be an integer >= 1, got {self.mask_radius}")
        if self.max_peaks < 1:
            raise InvalidParameter(f"max peaks must be >= 1, got {self.max_peaks}")
        if self.min_votes < 1:
            raise InvalidParameter(f"min votes must be >= 1, got {self.min_votes}")
        if self.thickness < 1:
            raise InvalidParameter(f"thickness must be >= 1, got {self.thickness}")
        for name in ("line_color", "background"):
            try:
                ImageColor.getrgb(getattr(self, name))
            except ValueError as e:
                raise InvalidParameter(f"unknown {name.replace('_', ' ')} {getattr(self, name)!r}") from e
        return self


@dataclass(frozen=True)
class EdgeImage:
    """Binary edge map; True marks a foreground (voting) pixel."""
    pixels: np.ndarray  # H x W bool

    def __post_init__(self):
        pixels = np.array(self.pixels, dtype=bool)
        if pixels.ndim != 2:
            raise ValueError(f"edge image must be 2-D, got shape {pixels.shape}")
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def num_edge_pixels(self) -> int:
        return int(np.count_nonzero(self.pixels))

    def coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return the (xs, ys) of all foreground pixels."""
        ys, xs = np.nonzero(self.pixels)
        return xs, ys


@dataclass
class Accumulator:
    """Dense vote grid indexed by [distance bin, angle bin]."""
    counts: np.ndarray
    distinc: float
    anginc: float
    offset: int  # added to the signed distance bin so indices start at 0

    @property
    def num_distance_bins(self) -> int:
        return self.counts.shape[0]

    @property
    def num_angle_bins(self) -> int:
        return self.counts.shape[1]

    @property
    def total_votes(self) -> int:
        return int(self.counts.sum())

    def to_polar(self, d: int, a: int) -> Tuple[float, float]:
        """Map a bin back to (distance in pixels, angle in degrees)."""
        dist = self.distinc * (d - self.offset)
        theta = (self.anginc * a) % 180.0
        return dist, theta

    def to_bin(self, dist: float, theta: float) -> Tuple[int, int]:
        d = int(round_half_away(dist / self.distinc)) + self.offset
        a = int(round_half_away(theta / self.anginc))
        return d, a


@dataclass(frozen=True)
class Peak:
    d: int
    a: int
    count: int


@dataclass(frozen=True)
class Line:
    """A detected line clipped to the image rectangle."""
    peak: Peak
    dist: float
    theta: float  # degrees in [0, 180)
    slope: float
    intercept: float
    p1: Point
    p2: Point

    def rounded_endpoints(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        (x1, y1), (x2, y2) = self.p1, self.p2
        return (int(round(x1)), int(round(y1))), (int(round(x2)), int(round(y2)))


@dataclass
class HoughResult:
    accumulator: Accumulator
    width: int
    height: int
    peaks: List[Peak] = field(default_factory=list)
    lines: List[Line] = field(default_factory=list)
    config: Optional[HoughConfig] = None
