#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
StyleReplicator: Streamlit App (app.py)

Features
- Step 1: upload or photograph a reference style image
- Gemini extracts outfit, accessories, pose, camera angle, lighting, aesthetic
  and a cohesive prompt that re-applies the whole look
- Step 2: upload or take a selfie; Gemini restyles it with the cohesive prompt
- Download the result and both inputs, copy the prompt
- No user images saved to disk

Run
  pip install -e .
  # macOS/Linux
  export GEMINI_API_KEY="..."
  # Windows PowerShell
  setx GEMINI_API_KEY "..."
  streamlit run app.py
"""

from __future__ import annotations

import logging
import textwrap
from typing import List, Optional, Tuple

import streamlit as st

from capture import ACCEPTED_TYPES, from_camera_frame, from_uploaded_file
from errors import CaptureError
from gemini import GeminiStyleService
from models import EncodedImage, Step, StyleDescription
from settings import ANALYSIS_MODELS, GENERATION_MODELS, api_key_source, load_settings
from workflow import MILESTONES, StyleService, Workflow, progress_index

# =============================================================================
# Configuration & Constants
# =============================================================================

st.set_page_config(
    page_title="StyleReplicator",
    layout="centered",
)

SETTINGS = load_settings()
logging.basicConfig(level=SETTINGS.log_level)
logger = logging.getLogger(__name__)

APP_TITLE = "StyleReplicator"

PRIVACY_NOTE = (
    "Images are sent to the Gemini API for analysis and generation. "
    "Do not upload sensitive content."
)

LOADING_MESSAGES = {
    Step.ANALYZING: "Analyzing style elements...",
    Step.GENERATING: "Applying style to your photo...",
}

MILESTONE_LABELS = ["Reference", "Style Prompt", "Your Photo", "Result"]

RESULT_FILENAME = "restyled-photo.png"
REFERENCE_FILENAME = "reference-style.png"
SOURCE_FILENAME = "base-photo.png"

# =============================================================================
# Session helpers
# =============================================================================

def get_workflow() -> Workflow:
    if "workflow" not in st.session_state:
        st.session_state["workflow"] = Workflow()
    return st.session_state["workflow"]


def get_style_service(analysis_model: str, generation_model: str) -> Optional[StyleService]:
    """Return the session's style service.

    A service placed in st.session_state["style_service"] wins; otherwise a
    Gemini client is built from settings, or None when no API key is set.
    """
    injected = st.session_state.get("style_service")
    if injected is not None:
        return injected
    if not SETTINGS.api_key:
        return None
    return GeminiStyleService.from_settings(
        SETTINGS,
        analysis_model=analysis_model,
        generation_model=generation_model,
    )


def _with_default(default: str, options: List[str]) -> List[str]:
    return list(dict.fromkeys([default] + options))


def style_components(desc: StyleDescription) -> List[Tuple[str, str]]:
    return [
        ("Outfit", desc.outfit),
        ("Accessories", desc.accessories),
        ("Pose & Angle", f"{desc.pose} / {desc.camera_angle}"),
        ("Lighting", desc.lighting),
        ("Aesthetic", desc.aesthetic),
    ]

# =============================================================================
# UI Helpers
# =============================================================================

def show_header_and_privacy():
    st.title(APP_TITLE)
    st.caption(PRIVACY_NOTE)


def sidebar_controls(wf: Workflow) -> Tuple[str, str]:
    """Render reset, model pickers and the README block.

    Returns:
        analysis_model (str): model used to describe the reference image
        generation_model (str): model used to restyle the source image
    """
    st.sidebar.markdown("### Settings")

    if st.sidebar.button("Reset", key="sidebar_reset"):
        wf.reset()
        st.session_state["capture_error"] = None
        st.rerun()

    analysis_model = st.sidebar.selectbox(
        "Analysis model",
        options=_with_default(SETTINGS.analysis_model, ANALYSIS_MODELS),
        index=0,
        help="Reads the reference photo and returns the structured style.",
    )
    generation_model = st.sidebar.selectbox(
        "Generation model",
        options=_with_default(SETTINGS.generation_model, GENERATION_MODELS),
        index=0,
        help="Must support image output.",
    )

    st.sidebar.caption(f"API key source: {api_key_source()}")

    with st.sidebar.expander("README / How to run", expanded=False):
        st.markdown(
            textwrap.dedent(
                """
                Run locally:
                - pip install -e .
                - Set API key:
                  - macOS/Linux: export GEMINI_API_KEY="..."
                  - Windows PowerShell: setx GEMINI_API_KEY "..."
                  - or put GEMINI_API_KEY=... in a .env file
                - streamlit run app.py

                Optional environment:
                - STYLE_ANALYSIS_MODEL, STYLE_GENERATION_MODEL
                - GEMINI_TIMEOUT (seconds), LOG_LEVEL

                Streamlit Cloud:
                - In the app's Settings → Secrets, add GEMINI_API_KEY = your_key
                """
            )
        )

    return analysis_model, generation_model


def render_progress(step: Step):
    current = progress_index(step)
    cols = st.columns(len(MILESTONES))
    for idx, (col, label) in enumerate(zip(cols, MILESTONE_LABELS)):
        if idx < current:
            marker = "✓"
        elif idx == current:
            marker = "●"
        else:
            marker = "○"
        with col:
            st.markdown(f"**{marker} {idx + 1}. {label}**" if idx == current else f"{marker} {idx + 1}. {label}")


def capture_panel(wf: Workflow, slot: str, label: str, description: str, camera_label: str) -> Optional[EncodedImage]:
    """File picker or camera, depending on capture mode.

    Widget keys carry the attempt number so an upload from a previous attempt
    does not fire again. Returns the captured image, or None.
    """
    key = f"{slot}_{wf.attempt}"

    if not wf.state.is_capture_mode_active:
        uploaded = st.file_uploader(label, type=ACCEPTED_TYPES, help=description, key=f"{key}_file")
        st.caption("or")
        if st.button(camera_label, key=f"{key}_camera_on"):
            st.session_state["capture_error"] = None
            wf.enter_capture_mode()
            st.rerun()
        return from_uploaded_file(uploaded)

    error = st.session_state.get("capture_error")
    if error:
        st.error(error)
        if st.button("Go back to file upload", key=f"{key}_fallback"):
            st.session_state["capture_error"] = None
            wf.cancel_capture()
            st.rerun()
        return None

    frame = st.camera_input("Camera", key=f"{key}_frame", label_visibility="collapsed")
    if st.button("Cancel", key=f"{key}_camera_off"):
        wf.cancel_capture()
        st.rerun()
    try:
        return from_camera_frame(frame)
    except CaptureError as ex:
        logger.warning("Camera capture failed: %s", ex)
        st.session_state["capture_error"] = str(ex)
        st.rerun()

# =============================================================================
# Step Views
# =============================================================================

def view_upload_reference(wf: Workflow, service: StyleService):
    st.header("Reference Style Photo")
    st.write("Upload or take a photo of the style you want to replicate.")

    image = capture_panel(
        wf,
        slot="reference",
        label="Select Reference Image",
        description="Upload a high-quality photo of a style you love",
        camera_label="Take Photo with Camera",
    )
    if image is not None:
        with st.spinner(LOADING_MESSAGES[Step.ANALYZING]):
            wf.capture_reference(image, service)
        st.rerun()

    if not wf.state.is_capture_mode_active:
        st.info("Analyze any style, pose, or outfit instantly.")


def view_in_flight(wf: Workflow, service: StyleService):
    st.info(LOADING_MESSAGES[wf.state.step])
    st.caption("Press Reset in the sidebar to start over.")


def view_prompt_ready(wf: Workflow, service: StyleService):
    desc = wf.state.style_description
    left, right = st.columns(2)

    with left:
        st.subheader("Style Components")
        for label, value in style_components(desc):
            st.caption(label)
            st.write(value)

    with right:
        st.subheader("Generated Style Prompt")
        # st.code renders a copy-to-clipboard button
        st.code(desc.cohesive_prompt, language=None, wrap_lines=True)
        if st.button("Continue", type="primary", key="continue"):
            wf.continue_to_source()
            st.rerun()


def view_upload_source(wf: Workflow, service: StyleService):
    st.header("Your Photo")
    st.write("Now upload or take a photo of yourself to transform.")

    image = capture_panel(
        wf,
        slot="source",
        label="Select Your Image",
        description="This photo will be restyled with the reference elements",
        camera_label="Take Selfie",
    )
    if image is not None:
        with st.spinner(LOADING_MESSAGES[Step.GENERATING]):
            wf.capture_source(image, service)
        st.rerun()

    if not wf.state.is_capture_mode_active:
        if st.button("Go back to prompt", key="back"):
            wf.back_to_prompt()
            st.rerun()


def view_result(wf: Workflow, service: StyleService):
    generated = wf.state.generated_image
    result_bytes = generated.to_bytes()

    st.image(result_bytes, caption="Restyled Result")
    st.download_button(
        "Save Final Result",
        data=result_bytes,
        file_name=RESULT_FILENAME,
        mime=generated.media_type,
        type="primary",
        key="download_result",
    )
    if st.button("Start Over", key="start_over"):
        wf.reset()
        st.session_state["capture_error"] = None
        st.rerun()

    c1, c2 = st.columns(2)
    inputs = [
        (c1, "Style Source", wf.state.reference_image, REFERENCE_FILENAME, "Reference Image"),
        (c2, "Base Image", wf.state.source_image, SOURCE_FILENAME, "Base Photo"),
    ]
    for col, caption, image, file_name, button_label in inputs:
        if image is None:
            continue
        data = image.to_bytes()
        with col:
            st.caption(caption)
            st.image(data)
            st.download_button(
                button_label,
                data=data,
                file_name=file_name,
                mime=image.media_type,
                key=f"download_{file_name}",
            )


VIEWS = {
    Step.UPLOAD_REFERENCE: view_upload_reference,
    Step.ANALYZING: view_in_flight,
    Step.PROMPT_READY: view_prompt_ready,
    Step.UPLOAD_SOURCE: view_upload_source,
    Step.GENERATING: view_in_flight,
    Step.RESULT: view_result,
}

# =============================================================================
# App Entry
# =============================================================================

def main():
    show_header_and_privacy()

    st.session_state.setdefault("capture_error", None)
    wf = get_workflow()
    analysis_model, generation_model = sidebar_controls(wf)

    service = get_style_service(analysis_model, generation_model)
    if service is None:
        st.error("GEMINI_API_KEY not found. Set the environment variable or add it to Streamlit Secrets.")
        return

    render_progress(wf.state.step)

    if wf.state.error_message:
        st.error(wf.state.error_message)

    VIEWS[wf.state.step](wf, service)


if __name__ == "__main__":
    main()
