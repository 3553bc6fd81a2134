import json

import cv2
import numpy as np
from PIL import Image
import streamlit as st

from data_models import HoughConfig
from exceptions import HoughError
from hough_core import accumulator_image, build_json, detect_lines, draw_lines, format_report
from image_utils import cv_to_rgb, edge_image_from_array, pil_to_cv, preprocess_for_edges, resize_max_width


# =========================
# Streamlit UI
# =========================
st.set_page_config(page_title="Hough Line Detector", page_icon="📐", layout="wide")
st.title("📐 Hough Line Detection")
st.caption("Detect straight lines in an edge image with a full Hough transform. "
           "Each line is extended to the image border.")

defaults = HoughConfig()

with st.sidebar:
    st.header("Accumulator")
    distinc = st.slider("Distance bin width (px)", 0.5, 5.0, float(defaults.distinc), 0.5)
    anginc = st.slider("Angle bin width (deg)", 0.25, 5.0, float(defaults.anginc), 0.25)

    st.header("Peak Extraction")
    threshold_percent = st.slider("Mask threshold (% of max votes)", 5, 95,
                                  int(defaults.threshold_percent), 1)
    mask_radius = st.slider("Mask dilation radius", 1, 20, defaults.mask_radius, 1)
    max_peaks = st.slider("Max lines", 1, 200, 20, 1)
    min_votes = st.number_input("Min votes per line", min_value=1, value=defaults.min_votes)

    st.header("Rendering")
    line_color = st.color_picker("Line color", "#ffffff")
    background = st.color_picker("Background color", "#000000")
    thickness = st.slider("Line thickness", 1, 10, defaults.thickness, 1)

    st.header("Input")
    is_photo = st.checkbox("Input is a photograph (run Canny first)", value=False)
    use_clahe = st.checkbox("Use CLAHE (contrast boost)", value=True, disabled=not is_photo)

uploaded = st.file_uploader("Upload an edge image (PNG/JPG/WEBP)", type=["png", "jpg", "jpeg", "webp"])

if uploaded:
    image = Image.open(uploaded)
    img_bgr = resize_max_width(pil_to_cv(image), 1280)

    if is_photo:
        edges, _ = preprocess_for_edges(img_bgr, use_clahe=use_clahe)
    else:
        edges = img_bgr
    edge_image = edge_image_from_array(edges)

    config = HoughConfig(
        distinc=distinc,
        anginc=anginc,
        threshold_percent=threshold_percent,
        mask_radius=mask_radius,
        max_peaks=max_peaks,
        min_votes=int(min_votes),
        line_color=line_color,
        background=background,
        thickness=thickness,
    )

    try:
        result = detect_lines(edge_image, config)
    except HoughError as e:
        st.error(str(e))
        st.stop()

    col1, col2 = st.columns([2, 1])

    with col1:
        st.subheader("Detected Lines")
        rendered = draw_lines(result, line_color, background, thickness)
        if result.lines:
            st.image(cv_to_rgb(rendered), caption=f"{len(result.lines)} lines", use_container_width=True)
            overlay = draw_lines(result, line_color, background, thickness, base=img_bgr)
            st.image(cv_to_rgb(overlay), caption="Lines over input", use_container_width=True)
        else:
            st.warning("No lines found. Try lowering the mask threshold or using larger bins.")

        st.subheader("Report")
        st.code(format_report(result), language="text")

        out_json = build_json(result)
        st.subheader("Lines (JSON)")
        st.code(json.dumps(out_json, indent=2), language="json")

        _, buf_img = cv2.imencode(".png", rendered)
        st.download_button(
            "Download Line Image (PNG)",
            data=buf_img.tobytes(),
            file_name="houghlines.png",
            mime="image/png"
        )
        st.download_button(
            "Download Lines (JSON)",
            data=json.dumps(out_json).encode("utf-8"),
            file_name="houghlines.json",
            mime="application/json"
        )

    with col2:
        st.subheader("Debug Visualizations")
        st.image(edge_image.pixels.astype(np.uint8) * 255, caption="Edge pixels",
                 use_container_width=True, clamp=True)
        acc_img = accumulator_image(result.accumulator)
        st.image(cv2.applyColorMap(acc_img, cv2.COLORMAP_INFERNO)[..., ::-1],
                 caption="Accumulator (distance down, angle across)", use_container_width=True)
        st.caption(f"{result.accumulator.num_distance_bins} x {result.accumulator.num_angle_bins} bins, "
                   f"{edge_image.num_edge_pixels} edge pixels, {len(result.peaks)} peaks")

else:
    st.info("Upload an image to begin. Use the sidebar to tune detection parameters.")
