import logging

import streamlit as st

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(
    page_title="Delta Robot Animator",
    page_icon="🤖",
    layout="wide",
)

st.title("Delta Robot Animator")
st.write(
    "A three-arm planar delta robot whose end-effector traces a Lissajous path, with every elbow "
    "placed by closed-form two-link inverse kinematics on each frame."
)

st.markdown(
    """
    Use the sidebar to navigate between pages:
    - **Delta Animator**: Tune the base, link lengths and trajectory, then play the animation or run it live.
    - **Fundamental Formulas**: The law-of-cosines IK behind each arm, with a single-arm calculator.

    Built with reference to [delta robots](https://en.wikipedia.org/wiki/Delta_robot),
    [Lissajous curves](https://en.wikipedia.org/wiki/Lissajous_curve),
    and the [two-link planar IK derivation](https://www.mathworks.com/discovery/inverse-kinematics.html).
    """
)

st.info(
    "Targets outside an arm's reach are clamped to the nearest straight or folded pose instead of failing; "
    "the animator page reports when the configured trajectory leaves the reachable region."
)
