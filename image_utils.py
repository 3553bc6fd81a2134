import logging
from typing import Dict, Tuple

import cv2
import numpy as np
from PIL import Image, ImageColor

from data_models import EdgeImage
from exceptions import ImageLoadError, InvalidParameter

LOGGER = logging.getLogger(__name__)

# modes Pillow can hand us as a single plane without conversion
_SINGLE_PLANE_MODES = ("1", "L", "I", "I;16", "F")


def pil_to_cv(img_pil: Image.Image) -> np.ndarray:
    """Convert PIL RGB image to OpenCV BGR."""
    return cv2.cvtColor(np.array(img_pil.convert("RGB")), cv2.COLOR_RGB2BGR)


def cv_to_rgb(cv_img: np.ndarray) -> np.ndarray:
    """Convert OpenCV BGR to RGB (for Streamlit display)."""
    if cv_img.ndim == 2:
        return cv2.cvtColor(cv_img, cv2.COLOR_GRAY2RGB)
    return cv2.cvtColor(cv_img, cv2.COLOR_BGR2RGB)


def resize_max_width(img_bgr: np.ndarray, max_w: int = 1280) -> np.ndarray:
    """Resize image to maximum width while maintaining aspect ratio."""
    h, w = img_bgr.shape[:2]
    if w <= max_w:
        return img_bgr
    scale = max_w / float(w)
    new_size = (max_w, int(h * scale))
    return cv2.resize(img_bgr, new_size, interpolation=cv2.INTER_NEAREST)


def edge_image_from_array(array: np.ndarray) -> EdgeImage:
    """Build an EdgeImage from a gray, BGR or RGB(A) array.

    Any pixel that is not pure black in its color channels counts as an edge
    pixel; an alpha channel is ignored.
    """
    array = np.asarray(array)
    if array.ndim == 3:
        array = array[..., :3].max(axis=2)
    elif array.ndim != 2:
        raise ValueError(f"expected a 2-D or 3-D image array, got shape {array.shape}")
    return EdgeImage(array > 0)


def load_edge_image(path) -> EdgeImage:
    """Decode an image file into an EdgeImage.

    Raises ImageLoadError when the file is missing or cannot be decoded.
    """
    try:
        with Image.open(path) as img:
            img.load()
            if img.mode not in _SINGLE_PLANE_MODES:
                img = img.convert("RGB")
            array = np.array(img)
    except (OSError, ValueError) as e:
        raise ImageLoadError(f"cannot read image {path}: {e}") from e

    edge_image = edge_image_from_array(array)
    LOGGER.debug("loaded %s: %dx%d, %d edge pixels", path,
                 edge_image.width, edge_image.height, edge_image.num_edge_pixels)
    return edge_image


def load_image_bgr(path) -> np.ndarray:
    """Decode an image file into an OpenCV BGR array."""
    try:
        with Image.open(path) as img:
            return pil_to_cv(img)
    except (OSError, ValueError) as e:
        raise ImageLoadError(f"cannot read image {path}: {e}") from e


def dilate_mask(mask: np.ndarray, radius: int) -> np.ndarray:
    """Grow the foreground of a mask with a disk of the given radius."""
    size = 2 * int(radius) + 1
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))
    return cv2.dilate(mask, kernel, iterations=1)


def parse_color(color: str) -> Tuple[int, int, int]:
    """Resolve a color name or hex string to an OpenCV BGR tuple."""
    try:
        r, g, b = ImageColor.getrgb(color)[:3]
    except ValueError as e:
        raise InvalidParameter(f"unknown color {color!r}") from e
    return b, g, r


def preprocess_for_edges(img_bgr: np.ndarray, use_clahe: bool = True,
                         low: int = 50, high: int = 150) -> Tuple[np.ndarray, Dict]:
    """Turn a photograph into a binary Canny edge map.

    Args:
        img_bgr: Input image in BGR format
        use_clahe: Whether to apply CLAHE contrast enhancement
        low, high: Canny hysteresis thresholds

    Returns:
        edges: Canny edge detection result (0/255)
        debug: Dictionary with the intermediate images
    """
    if img_bgr.ndim == 2:
        gray = img_bgr.copy()
    else:
        gray = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2GRAY)

    if use_clahe:
        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        gray = clahe.apply(gray)

    blurred = cv2.GaussianBlur(gray, (5, 5), 0)
    edges = cv2.Canny(blurred, low, high, apertureSize=3)

    debug = {
        "gray": gray,
        "blurred": blurred,
        "edges": edges,
    }

    return edges, debug
