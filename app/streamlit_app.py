"""fingerboard — Streamlit violin fingering UI.

Minimal interactive application:
    1. Upload the recognised score (.musicxml / .xml / .mxl)
    2. Optionally upload the page image it was recognised from
    3. Run the fingering pipeline
    4. View summary statistics, the fingering table and the diagnostic log
    5. Download the analysis JSON

Constraints:
    - No drawing: placements are listed, not rendered onto the page
    - Simple, readable code
"""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import streamlit as st

# Ensure the package is importable when run from a source checkout
_SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

from fingerboard.config import load_overlay_config  # noqa: E402
from fingerboard.fingering_engine.annotate import analysis_to_json_bytes, analyze_document  # noqa: E402

# ── Page config ───────────────────────────────────────────────
st.set_page_config(
    page_title="fingerboard — Violin Fingering",
    page_icon="🎻",
    layout="wide",
)

st.title("🎻 fingerboard — Violin Fingering")
st.markdown(
    "Upload a recognised score and its page image, assign a fingering to every "
    "note, and download the placements for drawing."
)
st.divider()

# ── Sidebar: overlay options ──────────────────────────────────
defaults = load_overlay_config()
st.sidebar.header("Overlay")
scale = st.sidebar.number_input("Render scale", min_value=0.5, value=float(defaults.get("scale", 2)), step=0.5)
offsets = defaults.get("axis_offsets", {}) or {}
offset_x = st.sidebar.number_input("X offset (px)", value=float(offsets.get("x", 15)))
offset_y = st.sidebar.number_input("Y offset (px)", value=float(offsets.get("y", 0)))
anchor_offset = st.sidebar.number_input(
    "Badge distance below note (px)", value=float(defaults.get("anchor_offset", 35))
)

# ── File uploaders ────────────────────────────────────────────
score_file = st.file_uploader(
    "Choose a MusicXML file",
    type=["musicxml", "xml", "mxl"],
    help="Output of the optical music recognition engine.",
)
image_file = st.file_uploader(
    "Choose the page image (optional)",
    type=["png", "jpg", "jpeg", "tif", "tiff"],
    help="Used for the page bounds; fingerings outside it are flagged as clipped.",
)

if score_file is not None:
    st.success(f"Loaded: **{score_file.name}**")

    if st.button("▶  Assign Fingerings", type="primary"):
        with st.spinner("Parsing score …"):
            result = analyze_document(
                score_file.getvalue(),
                image_bytes=image_file.getvalue() if image_file is not None else None,
                overlay={
                    "scale": scale,
                    "axis_offsets": {"x": offset_x, "y": offset_y},
                    "anchor_offset": anchor_offset,
                },
            )

        if not result.success:
            st.error(result.error or "Analysis failed")
        else:
            # ── Summary stats ─────────────────────────────────
            st.subheader("Summary")
            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Key", f"{result.key.name} {result.key.mode.value}")
            c2.metric("Notes", len(result.notes))
            c3.metric("Fingerings", len(result.fingerings))
            c4.metric("Unplayable", result.unplayable_count)

            # ── Fingering table ───────────────────────────────
            st.subheader("Fingering Table")
            rows = [
                {
                    "Note": f"{f.note.name}{f.note.octave}",
                    "String": f.string.value,
                    "Position": f.position.value,
                    "Finger": f.finger,
                    "Anchor X": round(p.anchor_x, 1),
                    "Anchor Y": round(p.anchor_y, 1),
                    "Clipped": p.clipped,
                }
                for f, p in zip(result.fingerings, result.placements)
            ]
            st.dataframe(pd.DataFrame(rows), use_container_width=True, height=400)

            if image_file is not None:
                st.image(image_file.getvalue(), caption="Source page")

            # ── Downloads ─────────────────────────────────────
            st.subheader("Downloads")
            st.download_button(
                label="⬇  Download fingering.json",
                data=analysis_to_json_bytes(result),
                file_name=f"{score_file.name.rsplit('.', 1)[0]}_fingering.json",
                mime="application/json",
            )

        with st.expander("Diagnostic log"):
            st.code("\n".join(result.logs) or "(empty)")
