import math

import numpy as np
import plotly.graph_objects as go
import streamlit as st

from deltabot.robot import Point, TrajectoryParams, arm_residuals, end_effector_position, solve_arms, solve_ik

st.title("Fundamental Formulas")
st.write(
    "A quick reference for the trajectory and the closed-form two-link inverse kinematics used on every frame."
)
st.markdown(
    "References: [Law of cosines](https://en.wikipedia.org/wiki/Law_of_cosines) | "
    "[Inverse kinematics overview](https://www.mathworks.com/discovery/inverse-kinematics.html) | "
    "[Lissajous curve](https://en.wikipedia.org/wiki/Lissajous_curve)"
)

with st.expander("End-effector trajectory"):
    st.latex(r"x(t) = c_x + A_x \sin(\omega_x t + \varphi)")
    st.latex(r"y(t) = c_y + y_{off} + A_y \sin(\omega_y t)")
    st.markdown(
        "The path stays inside the box $[c_x \\pm A_x] \\times [c_y + y_{off} \\pm A_y]$, "
        "which is what the reachability check tests against each arm's annulus."
    )
    defaults = TrajectoryParams()
    t_end = st.slider("Plot duration (s)", 1.0, 70.0, 20.0, 1.0)
    ts = np.linspace(0.0, t_end, 600)
    path = [end_effector_position(t, 0.0, 0.0, defaults) for t in ts]
    fig = go.Figure(go.Scatter(x=[p.x for p in path], y=[p.y for p in path], mode="lines", name="Path"))
    fig.update_layout(
        yaxis=dict(autorange="reversed", scaleanchor="x", scaleratio=1),
        height=320,
        margin=dict(l=0, r=0, b=0, t=30),
        title="Default Lissajous path around the base centre",
    )
    st.plotly_chart(fig, use_container_width=True)

with st.expander("Two-link inverse kinematics", expanded=True):
    st.latex(r"d = \lVert p_{target} - p_{anchor} \rVert")
    st.latex(r"\cos A_2 = \mathrm{clamp}\left(\frac{d^2 - L_1^2 - L_2^2}{2 L_1 L_2}, -1, 1\right)")
    st.latex(r"A_1 = \operatorname{atan2}(d_y, d_x) - \operatorname{atan2}(L_2 \sin A_2, L_1 + L_2 \cos A_2)")
    st.latex(r"p_{elbow} = p_{anchor} + L_1 (\cos A_1, \sin A_1)")
    st.markdown(
        "Only one of the two mirror solutions is used, so elbows never flip between frames. "
        "Targets outside $|L_1 - L_2| \\le d \\le L_1 + L_2$ are clamped to a straight or folded arm."
    )

    col1, col2, col3 = st.columns(3)
    with col1:
        l1 = st.number_input("L1", min_value=1.0, value=150.0, step=5.0)
        l2 = st.number_input("L2", min_value=1.0, value=150.0, step=5.0)
    with col2:
        ax = st.number_input("Anchor x", value=0.0, step=5.0)
        ay = st.number_input("Anchor y", value=0.0, step=5.0)
    with col3:
        tx = st.number_input("Target x", value=200.0, step=5.0)
        ty = st.number_input("Target y", value=0.0, step=5.0)

    anchor = Point(ax, ay)
    target = Point(tx, ty)
    solution = solve_ik(anchor, target, l1, l2)
    arm = solve_arms([anchor], target, l1, l2)[0]
    upper_err, lower_err = arm_residuals(arm, l1, l2)

    st.write(
        f"A2 = {math.degrees(solution.elbow_angle):.3f}° | A1 = {math.degrees(solution.shoulder_angle):.3f}° | "
        f"Elbow = ({solution.elbow.x:.2f}, {solution.elbow.y:.2f})"
    )
    if solution.clamped:
        st.warning(
            f"Target is {anchor.distance_to(target):.2f} from the anchor, outside the reachable annulus "
            f"[{abs(l1 - l2):.2f}, {l1 + l2:.2f}]; the elbow shown is the clamped approximation."
        )
    else:
        st.info(f"Link-length residuals: upper {upper_err:.2e}, lower {lower_err:.2e}")

    arm_fig = go.Figure()
    arm_fig.add_trace(
        go.Scatter(
            x=[anchor.x, solution.elbow.x, target.x],
            y=[anchor.y, solution.elbow.y, target.y],
            mode="lines+markers",
            marker=dict(size=[10, 8, 9], color=["#2ca02c", "#1f77b4", "#d62728"]),
            line=dict(width=5, color="#1f77b4"),
            name="Arm",
        )
    )
    arm_fig.update_layout(
        yaxis=dict(autorange="reversed", scaleanchor="x", scaleratio=1),
        height=360,
        margin=dict(l=0, r=0, b=0, t=30),
        title="Anchor → elbow → target (canvas y points down)",
    )
    st.plotly_chart(arm_fig, use_container_width=True)

st.info(
    "Key references: the law of cosines for the elbow angle, the MathWorks inverse-kinematics overview for branch "
    "selection, and Lissajous curves for the end-effector path."
)
