import json
import logging
import math
from collections import deque
from dataclasses import asdict
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from data_models import (
    Accumulator,
    EdgeImage,
    HoughConfig,
    HoughResult,
    Line,
    Peak,
    Point,
    round_half_away,
)
from exceptions import ImageWriteError, InvalidParameter
from image_utils import dilate_mask, parse_color

LOGGER = logging.getLogger(__name__)

EPS = 1e-15            # keeps tan/cot finite at 0 and 90 degrees
BOUNDS_TOLERANCE = 1e-9
SAME_POINT_TOLERANCE = 1e-6

_NEIGHBOURS = [(-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1)]


# =========================
# Accumulator
# =========================
def build_accumulator(edge_image: EdgeImage, distinc: float = 1.0,
                      anginc: float = 1.0) -> Accumulator:
    """Vote every edge pixel into every angle bin of a (distance, angle) grid.

    Row ``d`` is the signed distance ``distinc * (d - offset)`` and column
    ``a`` the angle ``anginc * a`` degrees.
    """
    if not (math.isfinite(distinc) and distinc > 0):
        raise InvalidParameter(f"distinc must be a finite number > 0, got {distinc}")
    if not (math.isfinite(anginc) and anginc > 0):
        raise InvalidParameter(f"anginc must be a finite number > 0, got {anginc}")

    W, H = edge_image.width, edge_image.height
    diagonal = math.hypot(W, H)
    offset = max(0, int(round_half_away((diagonal - 1) / distinc)))
    num_angles = max(1, int(round_half_away(180.0 / anginc)))

    thetas = np.deg2rad(anginc * np.arange(num_angles))
    cos_t = np.cos(thetas)
    sin_t = np.sin(thetas)

    counts = np.zeros((2 * offset + 1, num_angles), dtype=np.int64)
    accumulator = Accumulator(counts=counts, distinc=float(distinc),
                              anginc=float(anginc), offset=offset)

    xs, ys = edge_image.coordinates()
    if xs.size == 0:
        LOGGER.info("edge image has no foreground pixels")
        return accumulator

    xs = xs.astype(np.float64)
    ys = ys.astype(np.float64)
    num_rows = counts.shape[0]
    for a in range(num_angles):
        dist = xs * cos_t[a] + ys * sin_t[a]
        rows = round_half_away(dist / distinc).astype(np.int64) + offset
        counts[:, a] = np.bincount(rows, minlength=num_rows)

    LOGGER.debug("accumulator %dx%d from %d edge pixels, max %d votes",
                 num_rows, num_angles, xs.size, counts.max())
    return accumulator


# =========================
# Peak extraction
# =========================
def build_peak_mask(counts: np.ndarray, mask_radius: int,
                    threshold_fraction: float) -> np.ndarray:
    """Cells that may hold a peak: dilated, max-normalised votes above threshold."""
    peak_max = counts.max() if counts.size else 0
    if peak_max <= 0:
        return np.zeros(counts.shape, dtype=bool)
    scaled = counts.astype(np.float32) * np.float32(255.0 / peak_max)
    dilated = dilate_mask(scaled, mask_radius)
    return dilated > threshold_fraction * 255.0


def suppress_region(mask: np.ndarray, votes: np.ndarray, start: Tuple[int, int]) -> int:
    """Clear the 8-connected mask region around ``start`` in both arrays.

    Returns the number of cells cleared.
    """
    rows, cols = mask.shape
    mask[start] = False
    votes[start] = 0
    queue = deque([start])
    cleared = 1
    while queue:
        d, a = queue.popleft()
        for dd, da in _NEIGHBOURS:
            nd, na = d + dd, a + da
            if 0 <= nd < rows and 0 <= na < cols and mask[nd, na]:
                mask[nd, na] = False
                votes[nd, na] = 0
                queue.append((nd, na))
                cleared += 1
    return cleared


def extract_peaks(accumulator: Accumulator,
                  mask_radius: int = 4,
                  threshold_fraction: float = 0.45,
                  max_peaks: int = 100,
                  min_votes: int = 1) -> List[Peak]:
    """
    Pull peaks out of the accumulator strongest first. Each found peak removes
    its whole connected vote cluster from the candidate mask, so one line is
    reported once even though it lights up a smear of neighbouring bins.
    The accumulator passed in is left untouched.
    """
    if not math.isfinite(mask_radius) or int(mask_radius) != mask_radius or mask_radius < 1:
        raise InvalidParameter(f"mask radius must be an integer >= 1, got {mask_radius}")
    if not 0 < threshold_fraction < 1:
        raise InvalidParameter(
            f"threshold fraction must be between 0 and 1, got {threshold_fraction}")
    if max_peaks < 1:
        raise InvalidParameter(f"max peaks must be >= 1, got {max_peaks}")
    min_votes = max(1, min_votes)

    counts = accumulator.counts
    mask = build_peak_mask(counts, int(mask_radius), threshold_fraction)
    if not mask.any():
        LOGGER.info("no accumulator cell passes the peak mask")
        return []

    masked = np.where(mask, counts, 0)
    peaks = []
    while len(peaks) < max_peaks:
        d, a = np.unravel_index(np.argmax(masked), masked.shape)
        count = int(masked[d, a])
        if count < min_votes:
            break
        peaks.append(Peak(d=int(d), a=int(a), count=count))
        cleared = suppress_region(mask, masked, (int(d), int(a)))
        LOGGER.debug("peak %d at (%d, %d) with %d votes, cleared %d cells",
                     len(peaks), d, a, count, cleared)

    if len(peaks) == max_peaks:
        LOGGER.info("stopped after the maximum of %d peaks", max_peaks)
    return peaks


# =========================
# Line reconstruction
# =========================
def select_endpoints(candidates: Sequence[Point]) -> Optional[Tuple[Point, Point]]:
    """Pick the segment ends from border intersections in scan order."""
    distinct = []
    for x, y in candidates:
        if any(abs(x - px) <= SAME_POINT_TOLERANCE and abs(y - py) <= SAME_POINT_TOLERANCE
               for px, py in distinct):
            continue
        distinct.append((x, y))

    if len(distinct) < 2:
        return None
    if len(distinct) > 2:
        LOGGER.warning("line meets the border %d times, keeping the first two: %s",
                       len(distinct), distinct)
    return distinct[0], distinct[1]


def _within(value: float, upper: float) -> bool:
    return -BOUNDS_TOLERANCE <= value <= upper + BOUNDS_TOLERANCE


def _clamp(value: float, upper: float) -> float:
    return min(max(value, 0.0), upper)


def reconstruct_line(peak: Peak, accumulator: Accumulator,
                     width: int, height: int) -> Optional[Line]:
    """Turn a peak into a line clipped to the image, or None if it misses it."""
    dist, theta = accumulator.to_polar(peak.d, peak.a)
    rad = math.radians(theta % 180.0)
    cos_t = math.cos(rad)
    sin_t = math.sin(rad)

    # foot of the perpendicular from the origin; the line runs along (-sin, cos)
    x0 = dist * cos_t
    y0 = dist * sin_t
    tan_t = sin_t / (cos_t + EPS)
    cot_t = cos_t / (sin_t + EPS)

    xmax = float(width - 1)
    ymax = float(height - 1)

    # left, top, right, bottom
    candidates = []
    y_left = y0 + x0 * cot_t
    if _within(y_left, ymax):
        candidates.append((0.0, _clamp(y_left, ymax)))
    x_top = x0 + y0 * tan_t
    if _within(x_top, xmax):
        candidates.append((_clamp(x_top, xmax), 0.0))
    y_right = y0 + (x0 - xmax) * cot_t
    if _within(y_right, ymax):
        candidates.append((xmax, _clamp(y_right, ymax)))
    x_bottom = x0 + (y0 - ymax) * tan_t
    if _within(x_bottom, xmax):
        candidates.append((_clamp(x_bottom, xmax), ymax))

    endpoints = select_endpoints(candidates)
    if endpoints is None:
        LOGGER.warning("dropping line at bin (%d, %d): dist=%.2f theta=%.2f misses the image",
                       peak.d, peak.a, dist, theta)
        return None

    p1, p2 = endpoints
    return Line(
        peak=peak,
        dist=dist,
        theta=theta,
        slope=-cot_t,
        intercept=dist / (sin_t + EPS),
        p1=p1,
        p2=p2,
    )


# =========================
# Pipeline
# =========================
def detect_lines(edge_image: EdgeImage, config: Optional[HoughConfig] = None) -> HoughResult:
    """Run accumulation, peak extraction and line reconstruction."""
    config = (config or HoughConfig()).validate()

    accumulator = build_accumulator(edge_image, config.distinc, config.anginc)
    result = HoughResult(accumulator=accumulator, width=edge_image.width,
                         height=edge_image.height, config=config)
    if edge_image.num_edge_pixels == 0:
        LOGGER.info("no lines found")
        return result

    result.peaks = extract_peaks(
        accumulator,
        mask_radius=config.mask_radius,
        threshold_fraction=config.threshold_fraction,
        max_peaks=config.max_peaks,
        min_votes=config.min_votes,
    )
    for peak in result.peaks:
        line = reconstruct_line(peak, accumulator, edge_image.width, edge_image.height)
        if line is not None:
            result.lines.append(line)

    if result.lines:
        LOGGER.info("found %d lines from %d peaks", len(result.lines), len(result.peaks))
    else:
        LOGGER.info("no lines found")
    return result


# =========================
# Rendering & reports
# =========================
def draw_lines(result: HoughResult, color: str = "white", background: str = "black",
               thickness: int = 1, base: Optional[np.ndarray] = None) -> np.ndarray:
    """Draw the detected lines on a background canvas, or on a copy of ``base``."""
    if thickness < 1:
        raise InvalidParameter(f"thickness must be >= 1, got {thickness}")
    line_bgr = parse_color(color)
    if base is None:
        out = np.empty((result.height, result.width, 3), dtype=np.uint8)
        out[:] = parse_color(background)
    elif base.ndim == 2:
        out = cv2.cvtColor(base, cv2.COLOR_GRAY2BGR)
    else:
        out = base.copy()

    for line in result.lines:
        p1, p2 = line.rounded_endpoints()
        cv2.line(out, p1, p2, line_bgr, int(thickness))
    return out


def accumulator_image(accumulator: Accumulator) -> np.ndarray:
    """Accumulator scaled to 0-255 for display, distance down and angle across."""
    counts = accumulator.counts
    peak_max = counts.max() if counts.size else 0
    if peak_max <= 0:
        return np.zeros(counts.shape, dtype=np.uint8)
    return (counts * (255.0 / peak_max)).astype(np.uint8)


def write_image(path, image: np.ndarray) -> None:
    try:
        ok = cv2.imwrite(str(path), image)
    except cv2.error as e:
        raise ImageWriteError(f"cannot write image {path}: {e}") from e
    if not ok:
        raise ImageWriteError(f"cannot write image {path}")


def write_json(path, data: Dict) -> None:
    try:
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        raise ImageWriteError(f"cannot write JSON {path}: {e}") from e


def format_report(result: HoughResult) -> str:
    """One line per detected line: index, votes, bin, slope/intercept, endpoints."""
    if not result.lines:
        return "no lines found"
    rows = []
    for index, line in enumerate(result.lines, start=1):
        (x1, y1), (x2, y2) = line.p1, line.p2
        rows.append(
            f"{index}: count={line.peak.count} bin=({line.peak.d},{line.peak.a}) "
            f"slope,intercept=({line.slope:.4g},{line.intercept:.4g}) "
            f"p1=({x1:.1f},{y1:.1f}) p2=({x2:.1f},{y2:.1f})"
        )
    return "\n".join(rows)


def build_json(result: HoughResult) -> Dict:
    """Build JSON output from a detection result."""
    acc = result.accumulator
    return {
        "image_size": {"width": result.width, "height": result.height},
        "accumulator": {
            "distance_bins": acc.num_distance_bins,
            "angle_bins": acc.num_angle_bins,
            "distinc": acc.distinc,
            "anginc": acc.anginc,
            "offset": acc.offset,
        },
        "config": asdict(result.config) if result.config is not None else None,
        "lines": [
            {
                "index": index,
                "count": line.peak.count,
                "bin": [line.peak.d, line.peak.a],
                "dist": round(line.dist, 5),
                "theta": round(line.theta, 5),
                "slope": round(line.slope, 5),
                "intercept": round(line.intercept, 5),
                "points": [list(line.p1), list(line.p2)],
            }
            for index, line in enumerate(result.lines, start=1)
        ],
    }
