#!/usr/bin/env python3
"""Detect straight lines in a binary edge image with the Hough transform.

Writes the lines, extended to the image border, onto a canvas of the input
size and prints one report line per detected line.
"""

import argparse
import logging
import os
import sys

from data_models import HoughConfig
from exceptions import HoughError, ImageWriteError
from hough_core import build_json, detect_lines, draw_lines, format_report, write_image, write_json
from image_utils import edge_image_from_array, load_edge_image, load_image_bgr, preprocess_for_edges

PROG_NAME = "houghlines"

LOGGER = logging.getLogger(PROG_NAME)


def make_ap_args(argv=None):
    defaults = HoughConfig()
    ap = argparse.ArgumentParser(
        prog=PROG_NAME,
        description="Hough transform straight line detection on a binary edge image.")
    ap.add_argument("infile", help="input edge image (white edges on black)")
    ap.add_argument("outfile", help="output image with the detected lines")
    ap.add_argument("-d", "--distinc", type=float, default=defaults.distinc, metavar="num",
                    help="distance bin width in pixels")
    ap.add_argument("-a", "--anginc", type=float, default=defaults.anginc, metavar="num",
                    help="angle bin width in degrees")
    ap.add_argument("-t", "--threshold", type=float, default=defaults.threshold_percent,
                    metavar="percent", help="peak mask threshold as a percent of the max votes")
    ap.add_argument("-r", "--radius", type=int, default=defaults.mask_radius, metavar="num",
                    help="dilation radius used to merge each peak's vote cluster")
    ap.add_argument("-n", "--max-peaks", type=int, default=defaults.max_peaks, metavar="num",
                    help="maximum number of lines to report")
    ap.add_argument("-m", "--min-votes", type=int, default=defaults.min_votes, metavar="num",
                    help="ignore peaks with fewer votes")
    ap.add_argument("-c", "--color", default=defaults.line_color, metavar="color",
                    help="line color name or hex")
    ap.add_argument("-b", "--bgcolor", default=defaults.background, metavar="color",
                    help="background color name or hex")
    ap.add_argument("-w", "--thickness", type=int, default=defaults.thickness, metavar="num",
                    help="line thickness in pixels")
    ap.add_argument("--canny", action="store_true",
                    help="input is a photograph: run CLAHE and Canny first")
    ap.add_argument("--json", default="", metavar="path",
                    help="also write the detected lines as JSON")
    ap.add_argument("-v", "--verbose", action="store_true", help="print debug messages")
    return ap.parse_args(argv)


def load_input(path, canny: bool):
    if not canny:
        return load_edge_image(path)
    edges, _ = preprocess_for_edges(load_image_bgr(path))
    return edge_image_from_array(edges)


def check_writable(path) -> None:
    """Fail before any output is written if ``path`` cannot be created."""
    directory = os.path.dirname(os.path.abspath(path))
    if not os.path.isdir(directory) or not os.access(directory, os.W_OK):
        raise ImageWriteError(f"cannot write {path}: directory {directory} is not writable")
    if os.path.isdir(path):
        raise ImageWriteError(f"cannot write {path}: it is a directory")


def run(args) -> int:
    config = HoughConfig(
        distinc=args.distinc,
        anginc=args.anginc,
        threshold_percent=args.threshold,
        mask_radius=args.radius,
        max_peaks=args.max_peaks,
        min_votes=args.min_votes,
        line_color=args.color,
        background=args.bgcolor,
        thickness=args.thickness,
    ).validate()

    if args.json:
        check_writable(args.json)

    LOGGER.info("loading %s", args.infile)
    edge_image = load_input(args.infile, args.canny)
    result = detect_lines(edge_image, config)

    image = draw_lines(result, config.line_color, config.background, config.thickness)
    write_image(args.outfile, image)
    LOGGER.info("wrote %d lines to %s", len(result.lines), args.outfile)

    if args.json:
        write_json(args.json, build_json(result))

    print(format_report(result))
    return 0


def main(argv=None) -> int:
    """Parses arguments and runs the detector; returns the exit code."""
    args = make_ap_args(argv)
    logging.basicConfig(format="%(levelname)s: %(message)s", stream=sys.stderr,
                        level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        return run(args)
    except HoughError as e:
        LOGGER.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
