from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
import plotly.graph_objects as go
from scipy.spatial import ConvexHull, QhullError

from deltabot.animator import Scene
from deltabot.robot import DeltaConfig, Point

logger = logging.getLogger(__name__)

GRID_SPACING = 24.0
GRID_SPEED = 20.0
FLOOR_OFFSET = 40.0

SHADOW = "rgba(10,16,40,0.95)"
SHEEN = "rgba(215,225,255,0.30)"
BASE_TRIANGLE = "rgba(120,132,255,0.7)"


def grid_lines(
    t: float,
    cy: float,
    width: float,
    height: float,
    spacing: float = GRID_SPACING,
    speed: float = GRID_SPEED,
) -> Tuple[List[float], List[float], List[float], List[float]]:
    """Scrolling floor grid below the base, as (hx, hy, vx, vy) polyline coordinates.

    Horizontals start one spacing under the floor line (cy + 40) and verticals span the
    width; both are shifted by the same phase so the floor appears to slide.
    """

    phase = (t * speed) % spacing
    floor = cy + FLOOR_OFFSET

    hx: List[float] = []
    hy: List[float] = []
    y = floor + spacing - phase
    while y < height + spacing:
        hx.extend([0.0, width, None])
        hy.extend([y, y, None])
        y += spacing

    vx: List[float] = []
    vy: List[float] = []
    x = spacing - phase
    while x < width + spacing:
        vx.extend([x, x, None])
        vy.extend([floor, height, None])
        x += spacing
    return hx, hy, vx, vy


def _segments(pairs: Sequence[Tuple[Point, Point]]) -> Tuple[List[float], List[float]]:
    xs: List[float] = []
    ys: List[float] = []
    for a, b in pairs:
        xs.extend([a.x, b.x, None])
        ys.extend([a.y, b.y, None])
    return xs, ys


def _stroked_link(xs, ys, widths, colors, name: str) -> List[go.Scatter]:
    # shadow, sheen and core strokes stacked like a single bevelled bar
    return [
        go.Scatter(
            x=xs,
            y=ys,
            mode="lines",
            line=dict(width=w, color=c),
            hoverinfo="skip",
            showlegend=idx == len(widths) - 1,
            name=name,
            connectgaps=False,
        )
        for idx, (w, c) in enumerate(zip(widths, colors))
    ]


def _joint_markers(points: Sequence[Point], outer: float, inner: float, rim: str, fill: str, hub: str, name: str):
    xs = [p.x for p in points]
    ys = [p.y for p in points]
    return [
        go.Scatter(
            x=xs,
            y=ys,
            mode="markers",
            marker=dict(size=2 * outer, color=fill, line=dict(width=1.3, color=rim)),
            name=name,
        ),
        go.Scatter(
            x=xs,
            y=ys,
            mode="markers",
            marker=dict(size=2 * inner, color=hub),
            hoverinfo="skip",
            showlegend=False,
        ),
    ]


def build_frame_data(scene: Scene, config: DeltaConfig) -> List[go.Scatter]:
    """Traces for one animation frame, in back-to-front drawing order."""

    hx, hy, vx, vy = grid_lines(scene.t, scene.center.y, scene.width, scene.height)
    traces: List[go.Scatter] = [
        go.Scatter(
            x=hx + vx,
            y=hy + vy,
            mode="lines",
            line=dict(width=1, color=config.grid_color),
            hoverinfo="skip",
            name="Floor grid",
            connectgaps=False,
        ),
        go.Scatter(
            x=[p.x for p in scene.base_polygon],
            y=[p.y for p in scene.base_polygon],
            mode="lines",
            line=dict(width=2, color=BASE_TRIANGLE),
            name="Base",
        ),
    ]

    w = config.arm_width
    upper_x, upper_y = _segments([(arm.anchor, arm.elbow) for arm in scene.arms])
    lower_x, lower_y = _segments([(arm.elbow, arm.target) for arm in scene.arms])
    traces.extend(
        _stroked_link(upper_x, upper_y, [w + 4, w, w * 0.6], [SHADOW, SHEEN, config.line_base], "Upper arms")
    )
    traces.extend(
        _stroked_link(lower_x, lower_y, [w + 3, w * 0.9, w * 0.6], [SHADOW, SHEEN, config.line_link], "Lower arms")
    )

    traces.extend(
        _joint_markers(
            scene.anchors,
            config.base_joint_radius + 3,
            config.base_joint_radius - 2,
            "rgba(130,150,255,0.9)",
            "rgba(14,18,40,0.96)",
            "#dde4ff",
            "Base joints",
        )
    )
    traces.extend(
        _joint_markers(
            scene.elbows,
            config.elbow_joint_radius + 2,
            config.elbow_joint_radius - 1,
            "rgba(155,180,255,0.9)",
            "rgba(20,28,70,0.96)",
            "#e3e8ff",
            "Elbow joints",
        )
    )

    r, g, b = config.trail_rgb
    if scene.trail_segments:
        traces.append(
            go.Scatter(
                x=[seg.end.x for seg in scene.trail_segments],
                y=[seg.end.y for seg in scene.trail_segments],
                mode="markers",
                marker=dict(size=3, color=[f"rgba({r},{g},{b},{seg.alpha:.2f})" for seg in scene.trail_segments]),
                hoverinfo="skip",
                name="Trail",
            )
        )
    else:
        traces.append(go.Scatter(x=[], y=[], mode="markers", name="Trail"))

    traces.append(
        go.Scatter(
            x=[scene.target.x],
            y=[scene.target.y],
            mode="markers",
            marker=dict(
                size=2 * config.end_effector_radius,
                color=config.line_end_effector,
                line=dict(width=2.3, color="rgba(26,32,68,0.85)"),
            ),
            name="End effector",
        )
    )
    return traces


def _canvas_layout(fig: go.Figure, width: float, height: float, config: DeltaConfig, title: str = "") -> None:
    fig.update_layout(
        xaxis=dict(range=[0, width], visible=False, constrain="domain"),
        yaxis=dict(range=[height, 0], visible=False, scaleanchor="x", scaleratio=1),
        plot_bgcolor=config.background,
        paper_bgcolor=config.background,
        font=dict(color="#c8d2ff"),
        height=max(300, int(height)),
        margin=dict(l=0, r=0, b=0, t=30 if title else 0),
        legend=dict(yanchor="top", y=0.99, xanchor="left", x=0.01, bgcolor="rgba(0,0,0,0)"),
        title=title,
        uirevision="delta-view",
    )


def render_scene(scene: Optional[Scene], config: DeltaConfig, title: str = "") -> go.Figure:
    if scene is None:
        logger.debug("No scene to render; returning an empty canvas")
        fig = go.Figure()
        _canvas_layout(fig, 800, 420, config, title)
        return fig
    fig = go.Figure(data=build_frame_data(scene, config))
    _canvas_layout(fig, scene.width, scene.height, config, title)
    return fig


def animate_scenes(scenes: Sequence[Scene], config: DeltaConfig, fps: float = 60.0, title: str = "") -> go.Figure:
    """Figure with one go.Frame per scene and a looping play button at ``fps``."""

    if not scenes:
        return render_scene(None, config, title)

    fig = render_scene(scenes[0], config, title)
    frames = [go.Frame(data=build_frame_data(scene, config), name=f"frame{i}") for i, scene in enumerate(scenes)]
    fig.update(frames=frames)
    fig.update_layout(
        updatemenus=[
            {
                "type": "buttons",
                "showactive": True,
                "bgcolor": "#d2b48c",
                "font": {"color": "#000", "size": 12},
                "buttons": [
                    {
                        "label": f"Play {fps:g} FPS",
                        "method": "animate",
                        "args": [
                            None,
                            {
                                "frame": {"duration": 1000 / fps, "redraw": False},
                                "fromcurrent": True,
                                "mode": "immediate",
                                "transition": {"duration": 0, "easing": "linear"},
                            },
                        ],
                    },
                    {
                        "label": "Pause",
                        "method": "animate",
                        "args": [[None], {"frame": {"duration": 0, "redraw": False}, "mode": "immediate"}],
                    },
                ],
            }
        ],
        sliders=[],
    )
    return fig


def workspace_figure(
    cloud_points: np.ndarray, scene: Scene, config: DeltaConfig
) -> go.Figure:
    """Reachable region shared by all arms, drawn as a hull around the samples."""

    fig = go.Figure()
    hull_added = False
    if len(cloud_points) >= 3:
        try:
            hull = ConvexHull(cloud_points)
            ring = np.append(hull.vertices, hull.vertices[0])
            fig.add_trace(
                go.Scatter(
                    x=cloud_points[ring, 0],
                    y=cloud_points[ring, 1],
                    mode="lines",
                    fill="toself",
                    fillcolor="rgba(127,127,127,0.35)",
                    line=dict(color="#7f7f7f"),
                    name="Workspace envelope",
                )
            )
            hull_added = True
        except QhullError:
            logger.warning("Workspace hull is degenerate; showing raw samples instead")

    if not hull_added and len(cloud_points) > 0:
        fig.add_trace(
            go.Scatter(
                x=cloud_points[:, 0],
                y=cloud_points[:, 1],
                mode="markers",
                marker=dict(size=3, color="rgba(100,100,100,0.45)"),
                name="Workspace samples",
            )
        )

    fig.add_trace(
        go.Scatter(
            x=[p.x for p in scene.base_polygon],
            y=[p.y for p in scene.base_polygon],
            mode="lines+markers",
            line=dict(width=2, color=BASE_TRIANGLE),
            name="Base",
        )
    )
    if scene.trail:
        fig.add_trace(
            go.Scatter(
                x=[p.x for p in scene.trail],
                y=[p.y for p in scene.trail],
                mode="lines",
                line=dict(color="#7eb6ff", width=3),
                name="End-effector path",
            )
        )

    combined = np.vstack([cloud_points.reshape(-1, 2), scene.positions()])
    x_min, x_max = combined[:, 0].min(), combined[:, 0].max()
    y_min, y_max = combined[:, 1].min(), combined[:, 1].max()
    pad = 0.1 * max(x_max - x_min, y_max - y_min, 1e-3)
    fig.update_layout(
        xaxis=dict(range=[x_min - pad, x_max + pad], title="X"),
        yaxis=dict(range=[y_max + pad, y_min - pad], title="Y", scaleanchor="x", scaleratio=1),
        height=500,
        legend=dict(yanchor="top", y=0.99, xanchor="left", x=0.01),
        title="Reachable workspace envelope",
        uirevision="workspace-view",
    )
    return fig
