"""Trail buffer, per-tick scene assembly and the cooperative render loop."""

from __future__ import annotations

import itertools

import numpy as np
import pytest

from deltabot.animator import (
    FALLBACK_HEIGHT,
    FALLBACK_WIDTH,
    DeltaAnimator,
    Trail,
    frame_timestamps,
    run_forever,
)
from deltabot.robot import DeltaConfig, Point, base_anchors, end_effector_position


def _points(n: int):
    return [Point(float(i), float(-i)) for i in range(n)]


def test_trail_keeps_the_newest_points_in_order() -> None:
    capacity = 80
    trail = Trail(capacity)
    pushed = _points(capacity + 5)

    for p in pushed:
        trail.push(p)

    assert len(trail) == capacity
    assert list(trail.points) == pushed[-capacity:]


def test_trail_render_ramps_alpha_towards_newest() -> None:
    trail = Trail(4)
    for p in _points(4):
        trail.push(p)

    segments = trail.render()

    assert [seg.alpha for seg in segments] == pytest.approx([0.25, 0.5, 0.75])
    assert segments[0].start == Point(0.0, 0.0)
    assert segments[-1].end == Point(3.0, -3.0)


def test_trail_with_single_point_renders_nothing() -> None:
    trail = Trail(3)
    trail.push(Point(1.0, 1.0))

    assert trail.render() == []

    trail.clear()
    assert len(trail) == 0


@pytest.mark.parametrize("capacity", [0, -3])
def test_trail_rejects_non_positive_capacity(capacity: int) -> None:
    with pytest.raises(ValueError):
        Trail(capacity)


def test_tick_builds_scene_from_timestamp() -> None:
    config = DeltaConfig()
    animator = DeltaAnimator(config, 800, 450)

    scene = animator.tick(2500.0)

    assert scene.t == pytest.approx(2.5)
    assert list(scene.anchors) == base_anchors(800, 450, config.base_radius)
    expected = end_effector_position(2.5, scene.center.x, scene.center.y, config.trajectory)
    assert scene.target == expected
    assert len(scene.arms) == 3
    assert all(arm.target == scene.target for arm in scene.arms)
    assert scene.base_polygon[0] == scene.base_polygon[-1]
    assert len(scene.base_polygon) == 4
    assert scene.trail == (scene.target,)
    assert scene.positions().shape == (7, 2)


def test_trail_persists_across_ticks_and_stays_bounded() -> None:
    animator = DeltaAnimator(DeltaConfig(trail_length=5))

    scenes = list(animator.frames(frame_timestamps(0.2, 60)))

    assert len(scenes) == 12
    assert [len(s.trail) for s in scenes] == [1, 2, 3, 4, 5, 5, 5, 5, 5, 5, 5, 5]
    assert scenes[-1].trail[-1] == scenes[-1].target
    assert scenes[-1].trail[0] == scenes[-5].target
    assert len(scenes[-1].trail_segments) == 4


def test_scenes_are_snapshots() -> None:
    """Later ticks do not mutate the trail held by an earlier scene."""
    animator = DeltaAnimator()
    first = animator.tick(0.0)
    animator.tick(16.0)

    assert len(first.trail) == 1


def test_resize_applies_on_next_tick() -> None:
    animator = DeltaAnimator(DeltaConfig(), 800, 450)
    before = animator.tick(0.0)

    animator.resize(1200, 600)
    after = animator.tick(16.0)

    assert before.center.x == pytest.approx(400.0)
    assert after.center.x == pytest.approx(600.0)
    assert after.center.y == pytest.approx(330.0)
    assert (after.width, after.height) == (1200.0, 600.0)


@pytest.mark.parametrize(
    "width, height",
    [(0, 0), (None, None), (-10, 300), (float("inf"), 300), (640, float("nan")), (640, float("-inf"))],
)
def test_resize_falls_back_on_unusable_sizes(width, height) -> None:
    animator = DeltaAnimator()

    animator.resize(width, height)

    assert animator.width == (640.0 if width == 640 else FALLBACK_WIDTH)
    assert animator.height == (300.0 if height == 300 else FALLBACK_HEIGHT)
    elbows = animator.tick(0.0).elbows
    assert all(np.isfinite([p.x, p.y]).all() for p in elbows)


def test_frame_timestamps_are_even_milliseconds() -> None:
    stamps = frame_timestamps(1.0, 30)

    assert len(stamps) == 30
    assert stamps[0] == 0.0
    np.testing.assert_allclose(np.diff(stamps), 1000.0 / 30)


def test_run_forever_ticks_from_the_clock() -> None:
    ticks = itertools.count()
    clock = lambda: next(ticks) * 0.001  # noqa: E731
    naps = []
    drawn = []

    count = run_forever(DeltaAnimator(), drawn.append, clock=clock, sleep=naps.append, fps=60, max_frames=3)

    assert count == 3
    assert [s.t for s in drawn] == pytest.approx([0.001, 0.003, 0.005])
    assert len(naps) == 3
    assert all(0 < nap < 1 / 60 for nap in naps)


def test_frame_timestamps_respect_a_frame_cap() -> None:
    stamps = frame_timestamps(60.0, 60, max_frames=600)

    assert len(stamps) == 600
    assert stamps[-1] == pytest.approx(599 * 1000.0 / 60)
    assert len(frame_timestamps(1.0, 30, max_frames=600)) == 30


def test_restarted_loop_keeps_time_moving_forward() -> None:
    """A second run on the same animator resumes from its time instead of rewinding."""
    ticks = itertools.count()
    clock = lambda: float(next(ticks))  # noqa: E731
    animator = DeltaAnimator()
    first_run = []
    second_run = []

    run_forever(animator, first_run.append, clock=clock, sleep=lambda _: None, max_frames=3)
    last_t = animator.t
    run_forever(animator, second_run.append, clock=clock, sleep=lambda _: None, max_frames=3)

    times = [s.t for s in first_run + second_run]
    assert all(later > earlier for earlier, later in zip(times, times[1:]))
    assert second_run[0].t > last_t
    assert second_run[0].trail[-2] == first_run[-1].target


def test_run_forever_stops_when_draw_raises() -> None:
    class PageClosed(RuntimeError):
        pass

    calls = []

    def draw(scene):
        calls.append(scene)
        if len(calls) == 2:
            raise PageClosed

    with pytest.raises(PageClosed):
        run_forever(DeltaAnimator(), draw, clock=lambda: 0.0, sleep=lambda _: None)

    assert len(calls) == 2
