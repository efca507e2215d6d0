import json
import logging
import math
from typing import Optional

import numpy as np
import streamlit as st

from deltabot.animator import DeltaAnimator, frame_timestamps, run_forever
from deltabot.render import animate_scenes, render_scene, workspace_figure
from deltabot.robot import (
    DeltaConfig,
    arm_residuals,
    build_config,
    config_from_json,
    config_to_dict,
    reachability_report,
    sample_workspace_points,
    validate_config,
)

logger = logging.getLogger(__name__)

MAX_PRERENDERED_FRAMES = 600


def load_setup(uploaded) -> Optional[DeltaConfig]:
    if not uploaded:
        return None
    try:
        return config_from_json(uploaded.read())
    except ValueError as exc:
        logger.warning("Rejected uploaded setup: %s", exc)
        st.error(f"Failed to load setup: {exc}")
        return None


def sidebar_config() -> DeltaConfig:
    st.sidebar.header("Robot setup")
    uploaded = st.sidebar.file_uploader("Load setup (JSON)", type=["json"], key="setup_upload")
    loaded = load_setup(uploaded)
    base = loaded or DeltaConfig()
    if loaded is not None:
        st.sidebar.success("Setup loaded; fields below start from the uploaded values.")

    base_radius = st.sidebar.number_input("Base radius R (px)", 10.0, 400.0, float(base.base_radius), 5.0)
    l1 = st.sidebar.number_input("Upper link L1 (px)", 10.0, 400.0, float(base.l1), 5.0)
    l2 = st.sidebar.number_input("Lower link L2 (px)", 10.0, 400.0, float(base.l2), 5.0)
    trail_length = st.sidebar.slider("Trail length (points)", 2, 400, int(base.trail_length))
    arm_width = st.sidebar.slider("Arm width (px)", 2.0, 30.0, float(base.arm_width), 0.5)

    st.sidebar.header("Trajectory")
    traj = base.trajectory
    amp_x = st.sidebar.number_input("Amplitude X (px)", 0.0, 400.0, float(traj.amp_x), 5.0)
    amp_y = st.sidebar.number_input("Amplitude Y (px)", 0.0, 400.0, float(traj.amp_y), 5.0)
    omega_x = st.sidebar.number_input("ωx (rad/s)", 0.0, 10.0, float(traj.omega_x), 0.05)
    omega_y = st.sidebar.number_input("ωy (rad/s)", 0.0, 10.0, float(traj.omega_y), 0.05)
    phase = st.sidebar.number_input("Phase φ (rad)", -math.pi, math.pi, float(traj.phase), 0.05, format="%.3f")
    y_offset = st.sidebar.number_input("Vertical offset (px)", -400.0, 400.0, float(traj.y_offset), 5.0)

    return build_config(
        trajectory={
            "amp_x": amp_x,
            "amp_y": amp_y,
            "omega_x": omega_x,
            "omega_y": omega_y,
            "phase": phase,
            "y_offset": y_offset,
        },
        base_radius=base_radius,
        l1=l1,
        l2=l2,
        trail_length=trail_length,
        arm_width=arm_width,
        line_base=base.line_base,
        line_link=base.line_link,
        line_end_effector=base.line_end_effector,
        grid_color=base.grid_color,
        trail_rgb=base.trail_rgb,
        background=base.background,
    )


def main():
    st.title("Delta Robot Animator")
    st.markdown(
        "References: [Delta robot](https://en.wikipedia.org/wiki/Delta_robot) | "
        "[Lissajous curve](https://en.wikipedia.org/wiki/Lissajous_curve) | "
        "[Inverse kinematics overview](https://www.mathworks.com/discovery/inverse-kinematics.html)"
    )

    config = sidebar_config()

    st.sidebar.header("Canvas")
    width = st.sidebar.number_input("Canvas width (px)", 200, 2400, 800, 50)
    height = st.sidebar.number_input("Canvas height (px)", 200, 1600, 450, 50)

    for message in validate_config(config):
        st.warning(message)

    preview = DeltaAnimator(config, width, height)
    first = preview.tick(0.0)
    feasible, reasons = reachability_report(config, first.anchors, first.center)
    if not feasible:
        st.warning(
            "The trajectory leaves the reachable region; elbows will be clamped on some frames:\n"
            + "\n".join(reasons)
        )

    st.subheader("Animation")
    fps = st.slider("Frames per second", 10, 60, 30, 5)
    duration = st.slider(
        "Pre-rendered duration (s)",
        min_value=2,
        max_value=30,
        value=10,
        help="Length of the looped playback; the Lissajous path repeats every 20π s at the default speeds.",
    )
    live = st.toggle(
        "Run live",
        value=False,
        help="Redraw continuously from the wall clock instead of pre-rendering frames. Interacting with the page stops the loop.",
    )

    if live:
        if "live_animator" not in st.session_state or st.session_state.get("live_config") != config:
            st.session_state.live_animator = DeltaAnimator(config, width, height)
            st.session_state.live_config = config
        animator: DeltaAnimator = st.session_state.live_animator
        animator.resize(width, height)
        placeholder = st.empty()
        counter = {"frame": 0}

        def draw(scene):
            counter["frame"] += 1
            placeholder.plotly_chart(
                render_scene(scene, config),
                use_container_width=True,
                key=f"live-frame-{counter['frame']}",
            )

        run_forever(animator, draw, fps=fps)
        return

    animator = DeltaAnimator(config, width, height)
    if duration * fps > MAX_PRERENDERED_FRAMES:
        st.caption(
            f"Playback capped at {MAX_PRERENDERED_FRAMES} frames ({MAX_PRERENDERED_FRAMES / fps:.1f} s at {fps} FPS); "
            "use live mode for longer runs."
        )
    scenes = list(animator.frames(frame_timestamps(duration, fps, max_frames=MAX_PRERENDERED_FRAMES)))
    fig = animate_scenes(scenes, config, fps=fps, title="Delta robot")
    st.plotly_chart(fig, use_container_width=True, config={"scrollZoom": False})

    scene = scenes[-1]
    st.markdown("### Arm state at the last frame")
    st.caption("Shoulder angle is measured from the canvas x-axis; elbow angle is the law-of-cosines interior angle.")
    rows = []
    residual_max = 0.0
    for idx, arm in enumerate(scene.arms, start=1):
        upper_err, lower_err = arm_residuals(arm, config.l1, config.l2)
        residual_max = max(residual_max, abs(upper_err), abs(lower_err))
        rows.append(
            {
                "Arm": idx,
                "Anchor": (round(arm.anchor.x, 2), round(arm.anchor.y, 2)),
                "Elbow": (round(arm.elbow.x, 2), round(arm.elbow.y, 2)),
                "Shoulder (rad)": round(arm.shoulder_angle, 5),
                "Shoulder (deg)": round(math.degrees(arm.shoulder_angle), 3),
                "Elbow (deg)": round(math.degrees(arm.elbow_angle), 3),
                "Clamped": "Yes" if arm.clamped else "No",
            }
        )
    st.dataframe(rows, hide_index=True, use_container_width=True)
    st.write(
        f"End-effector: ({scene.target.x:.2f}, {scene.target.y:.2f}) | t = {scene.t:.3f} s | "
        f"Largest link-length residual: {residual_max:.2e} px"
    )

    clamped_frames = sum(1 for s in scenes if any(arm.clamped for arm in s.arms))
    if clamped_frames:
        st.error(f"{clamped_frames} of {len(scenes)} frames clamp at least one arm.")

    st.subheader("Workspace envelope")
    cloud_samples = st.slider(
        "Number of workspace samples",
        min_value=200,
        max_value=8000,
        value=2000,
        step=200,
        help="Random planar samples kept when every arm can reach them without clamping.",
    )
    regenerate = st.button("Generate workspace cloud", help="Refresh the samples with the current geometry.")
    cloud_key = (config, width, height, cloud_samples)
    if regenerate or st.session_state.get("workspace_key") != cloud_key:
        st.session_state.workspace_cloud = sample_workspace_points(config, scene.anchors, samples=cloud_samples)
        st.session_state.workspace_key = cloud_key
    cloud_points = st.session_state.get("workspace_cloud", np.empty((0, 2)))
    st.plotly_chart(workspace_figure(cloud_points, scene, config), use_container_width=True)

    st.subheader("Download report")
    report = {
        "config": config_to_dict(config),
        "canvas": {"width": scene.width, "height": scene.height},
        "fps": fps,
        "duration_s": duration,
        "reachable": feasible,
        "reachability_notes": reasons,
        "clamped_frames": clamped_frames,
        "last_frame": {
            "t": scene.t,
            "anchors": [[p.x, p.y] for p in scene.anchors],
            "elbows": [[p.x, p.y] for p in scene.elbows],
            "target": [scene.target.x, scene.target.y],
        },
        "trail": [[p.x, p.y] for p in scene.trail],
    }
    st.download_button("Download JSON report", data=json.dumps(report, indent=2), file_name="delta_report.json")


if __name__ == "__main__":
    main()
