"""Plotly traces and figures built from animator scenes."""

from __future__ import annotations

import numpy as np
import plotly.graph_objects as go
import pytest

from deltabot.animator import DeltaAnimator, frame_timestamps
from deltabot.render import (
    animate_scenes,
    build_frame_data,
    grid_lines,
    render_scene,
    workspace_figure,
)
from deltabot.robot import DeltaConfig, sample_workspace_points


@pytest.fixture
def config() -> DeltaConfig:
    return DeltaConfig()


def test_grid_scrolls_with_time() -> None:
    hx, hy, vx, vy = grid_lines(0.5, 247.5, 800, 450)

    # phase = (0.5 * 20) % 24 = 10
    assert vx[0] == pytest.approx(14.0)
    assert hy[0] == pytest.approx(247.5 + 40 + 24 - 10)
    assert min(y for y in hy if y is not None) > 247.5 + 40
    assert max(x for x in vx if x is not None) < 800 + 24
    assert set(y for y in vy if y is not None) == {287.5, 450}


def test_grid_phase_wraps_every_spacing() -> None:
    assert grid_lines(0.0, 200, 400, 300) == grid_lines(6.0, 200, 400, 300)


def test_trace_count_is_stable_across_frames(config: DeltaConfig) -> None:
    """Animation frames must line up trace-for-trace with the initial figure."""
    animator = DeltaAnimator(config)
    first = animator.tick(0.0)
    later = animator.tick(500.0)

    first_traces = build_frame_data(first, config)
    later_traces = build_frame_data(later, config)

    assert len(first_traces) == len(later_traces)
    names = [t.name for t in later_traces]
    assert "End effector" in names
    assert "Trail" in names


def test_end_effector_trace_is_last(config: DeltaConfig) -> None:
    scene = DeltaAnimator(config).tick(1234.0)

    ee = build_frame_data(scene, config)[-1]

    assert ee.name == "End effector"
    assert ee.x == (scene.target.x,)
    assert ee.y == (scene.target.y,)


def test_trail_trace_fades_in(config: DeltaConfig) -> None:
    animator = DeltaAnimator(config)
    for ts in frame_timestamps(0.1, 60):
        scene = animator.tick(ts)

    trail = next(t for t in build_frame_data(scene, config) if t.name == "Trail")

    colors = list(trail.marker.color)
    assert len(colors) == len(scene.trail) - 1
    assert colors[-1].endswith(",0.83)")


def test_render_scene_uses_canvas_axes(config: DeltaConfig) -> None:
    scene = DeltaAnimator(config, 640, 360).tick(0.0)

    fig = render_scene(scene, config)

    assert tuple(fig.layout.yaxis.range) == (360.0, 0)
    assert tuple(fig.layout.xaxis.range) == (0, 640.0)


def test_missing_scene_renders_empty_canvas(config: DeltaConfig) -> None:
    fig = render_scene(None, config)

    assert isinstance(fig, go.Figure)
    assert len(fig.data) == 0


def test_animate_scenes_adds_a_frame_per_scene(config: DeltaConfig) -> None:
    animator = DeltaAnimator(config)
    scenes = list(animator.frames(frame_timestamps(0.5, 20)))

    fig = animate_scenes(scenes, config, fps=20)

    assert len(fig.frames) == len(scenes) == 10
    assert fig.frames[0].name == "frame0"
    assert all(len(frame.data) == len(fig.data) for frame in fig.frames)
    play = fig.layout.updatemenus[0].buttons[0]
    assert play.method == "animate"
    assert play.args[1]["frame"]["duration"] == pytest.approx(50.0)


def test_animate_without_scenes_is_empty(config: DeltaConfig) -> None:
    assert len(animate_scenes([], config).data) == 0


def test_workspace_figure_draws_hull(config: DeltaConfig) -> None:
    scene = DeltaAnimator(config).tick(0.0)
    cloud = sample_workspace_points(config, scene.anchors, samples=1500, rng=np.random.default_rng(1))

    fig = workspace_figure(cloud, scene, config)

    assert fig.data[0].name == "Workspace envelope"
    assert fig.data[0].fill == "toself"


def test_workspace_figure_falls_back_to_markers(config: DeltaConfig) -> None:
    scene = DeltaAnimator(config).tick(0.0)
    collinear = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]])

    fig = workspace_figure(collinear, scene, config)

    assert fig.data[0].name == "Workspace samples"


def test_workspace_figure_without_samples(config: DeltaConfig) -> None:
    scene = DeltaAnimator(config).tick(0.0)

    fig = workspace_figure(np.empty((0, 2)), scene, config)

    assert [t.name for t in fig.data] == ["Base", "End-effector path"]
