# app.py
import logging

import streamlit as st

# --- Local Imports ---
import config_manager as cm
from metadata_extractor import ImageMetadataExtractor
from metadata_viewer import (
    build_parameter_items,
    format_file_size,
    format_image_info,
    is_supported_upload,
    to_parameters_text,
)

logger = logging.getLogger(__name__)

APP_TITLE = "StableParser"
APP_VERSION = "1.0"
GRID_COLUMNS = 3
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

st.set_page_config(
    page_title=APP_TITLE,
    page_icon="🔍",
    layout="wide"
)

# --- Session State Initialization ---
def init_session_state():
    if "config" not in st.session_state:
        st.session_state.config = cm.load_config()
        cm.configure_logging(st.session_state.config)
    if "extractor" not in st.session_state: st.session_state.extractor = ImageMetadataExtractor()
    if "parse_result" not in st.session_state: st.session_state.parse_result = None
    if "parsed_file_id" not in st.session_state: st.session_state.parsed_file_id = None

init_session_state()

def parse_uploaded_file(uploaded_file):
    """Runs the extractor on an uploaded file, once per distinct upload."""
    file_id = (uploaded_file.name, uploaded_file.size)
    if st.session_state.parsed_file_id == file_id:
        return st.session_state.parse_result

    logger.info(f"Parsing uploaded file {uploaded_file.name}")
    if not is_supported_upload(uploaded_file.name):
        result = {"success": False, "error": "Please drop a PNG or JPEG image."}
    else:
        with st.spinner(f"Reading metadata from {uploaded_file.name}..."):
            result = st.session_state.extractor.parse_image(uploaded_file.getvalue(), uploaded_file.name)

    st.session_state.parse_result = result
    st.session_state.parsed_file_id = file_id
    return result

def render_text_panel(title, text):
    st.markdown(f"**{title}**")
    st.code(text or "", language=None)  # Shows a copy button with wrapping

def render_metadata(result):
    config = st.session_state.config
    metadata = result["metadata"]
    image_info = result.get("image_info")

    info_col, size_col = st.columns([3, 2])
    with info_col:
        st.caption(result.get("filename", ""))
    with size_col:
        if image_info:
            st.caption(f"{format_image_info(image_info)} • {format_file_size(image_info['size'])}")

    render_text_panel("Prompt", metadata["prompt"])
    render_text_panel("Negative Prompt", metadata["negative_prompt"])

    st.markdown("**Parameters**")
    items = build_parameter_items(
        metadata,
        min_side=int(config["min_display_resolution"]),
        include_other=config["show_other_params"]
    )
    cols = st.columns(GRID_COLUMNS)
    for idx, (label, value) in enumerate(items):
        with cols[idx % GRID_COLUMNS]:
            st.caption(label)
            st.text(value or "-")

    with st.expander("Copy all parameters"):
        st.code(to_parameters_text(metadata), language=None)

# --- Sidebar ---
with st.sidebar:
    st.header("Settings")
    config = st.session_state.config
    min_side = st.number_input(
        "Minimum displayed resolution",
        min_value=1, max_value=8192, step=64,
        value=int(config["min_display_resolution"]),
        help="Resolutions with a side below this value are shown as Unknown."
    )
    show_other = st.checkbox("Show other parameters", value=config["show_other_params"])
    show_preview = st.checkbox("Show image preview", value=config["show_preview"])
    current_level = str(config["log_level"]).upper()
    log_level = st.selectbox(
        "Log level", LOG_LEVELS,
        index=LOG_LEVELS.index(current_level) if current_level in LOG_LEVELS else 1
    )
    if st.button("Save Settings", use_container_width=True):
        config.update({
            "min_display_resolution": int(min_side),
            "show_other_params": show_other,
            "show_preview": show_preview,
            "log_level": log_level
        })
        path = cm.save_config(config)
        cm.configure_logging(config)
        st.toast(f"Settings saved to {path}", icon="✅")

# --- Main Page ---
st.title(APP_TITLE)
st.caption("Drop an AUTOMATIC1111 generated image to read its generation parameters.")

left, right = st.columns([2, 3])

with left:
    uploaded_file = st.file_uploader(
        "Drop your image here",
        type=["png", "jpg", "jpeg"],
        accept_multiple_files=False
    )
    if uploaded_file is not None and st.session_state.config["show_preview"]:
        st.image(uploaded_file.getvalue(), use_container_width=True)

with right:
    if uploaded_file is not None:
        result = parse_uploaded_file(uploaded_file)
        if result["success"]:
            render_metadata(result)
        else:
            st.error(result.get("error") or "Failed to extract metadata")
    else:
        st.session_state.parse_result = None
        st.session_state.parsed_file_id = None
        st.info("No image loaded yet.")

st.caption(f"{APP_TITLE} v{APP_VERSION}")

# --- CSS for code block wrapping ---
st.markdown("""
    <style>
    .stCode code {
        white-space: pre-wrap !important;
        word-break: break-word !important;
    }
    </style>
    """, unsafe_allow_html=True
)
