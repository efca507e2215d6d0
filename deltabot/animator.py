from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from deltabot.robot import (
    Arm,
    DeltaConfig,
    Point,
    base_anchors,
    base_center,
    end_effector_position,
    solve_arms,
)

logger = logging.getLogger(__name__)

FALLBACK_WIDTH = 800.0
FALLBACK_HEIGHT = 420.0


@dataclass(frozen=True)
class TrailSegment:
    start: Point
    end: Point
    alpha: float


class Trail:
    """Bounded history of end-effector positions, oldest first."""

    def __init__(self, capacity: int = 80):
        if capacity <= 0:
            raise ValueError(f"Trail capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self._points: Deque[Point] = deque()

    def __len__(self) -> int:
        return len(self._points)

    def push(self, point: Point) -> None:
        self._points.append(point)
        while len(self._points) > self.capacity:
            self._points.popleft()

    def clear(self) -> None:
        self._points.clear()

    @property
    def points(self) -> Tuple[Point, ...]:
        return tuple(self._points)

    def render(self) -> List[TrailSegment]:
        """Segments between consecutive points; newer segments get higher alpha (i / len)."""

        pts = self._points
        count = len(pts)
        if count < 2:
            return []
        return [TrailSegment(pts[i - 1], pts[i], i / count) for i in range(1, count)]


@dataclass(frozen=True)
class Scene:
    t: float
    width: float
    height: float
    center: Point
    anchors: Tuple[Point, ...]
    arms: Tuple[Arm, ...]
    target: Point
    trail: Tuple[Point, ...]
    trail_segments: Tuple[TrailSegment, ...]

    @property
    def base_polygon(self) -> Tuple[Point, ...]:
        return self.anchors + self.anchors[:1]

    @property
    def elbows(self) -> Tuple[Point, ...]:
        return tuple(arm.elbow for arm in self.arms)

    def positions(self) -> np.ndarray:
        """Anchor, elbow and target coordinates stacked as a (7, 2) array."""

        pts = list(self.anchors) + list(self.elbows) + [self.target]
        return np.array([[p.x, p.y] for p in pts])


def _usable_size(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and value > 0


class DeltaAnimator:
    """Owns the mutable animation state (viewport, time, trail) for one delta robot."""

    def __init__(self, config: DeltaConfig | None = None, width: float = FALLBACK_WIDTH, height: float = 450.0):
        self.config = config or DeltaConfig()
        self.trail = Trail(self.config.trail_length)
        self.t = 0.0
        self.width = FALLBACK_WIDTH
        self.height = FALLBACK_HEIGHT
        self.resize(width, height)

    def resize(self, width: float | None, height: float | None) -> None:
        new_width = float(width) if _usable_size(width) else FALLBACK_WIDTH
        new_height = float(height) if _usable_size(height) else FALLBACK_HEIGHT
        if (new_width, new_height) != (width, height):
            logger.info("Viewport %rx%r unusable; falling back to %gx%g", width, height, new_width, new_height)
        self.width, self.height = new_width, new_height

    def tick(self, timestamp_ms: float) -> Scene:
        self.t = timestamp_ms * 0.001
        cfg = self.config

        center = base_center(self.width, self.height)
        anchors = base_anchors(self.width, self.height, cfg.base_radius)
        target = end_effector_position(self.t, center.x, center.y, cfg.trajectory)
        arms = solve_arms(anchors, target, cfg.l1, cfg.l2)

        self.trail.push(target)

        return Scene(
            t=self.t,
            width=self.width,
            height=self.height,
            center=center,
            anchors=tuple(anchors),
            arms=tuple(arms),
            target=target,
            trail=self.trail.points,
            trail_segments=tuple(self.trail.render()),
        )

    def frames(self, timestamps_ms: Iterable[float]) -> Iterator[Scene]:
        for ts in timestamps_ms:
            yield self.tick(ts)


def frame_timestamps(duration_s: float, fps: float = 60.0, max_frames: Optional[int] = None) -> np.ndarray:
    """Evenly spaced frame timestamps in milliseconds covering [0, duration_s).

    With ``max_frames`` the sequence is truncated, shortening the covered duration.
    """

    count = max(1, int(round(duration_s * fps)))
    if max_frames is not None:
        count = min(count, max(1, max_frames))
    return np.arange(count) * (1000.0 / fps)


def run_forever(
    animator: DeltaAnimator,
    draw: Callable[[Scene], None],
    clock: Callable[[], float] = time.perf_counter,
    sleep: Callable[[float], None] = time.sleep,
    fps: float = 60.0,
    max_frames: Optional[int] = None,
) -> int:
    """Cooperative single-threaded render loop; returns the number of frames drawn.

    Each iteration ticks the animator with the elapsed monotonic time, hands the scene
    to ``draw`` and sleeps for what remains of the frame budget. Without ``max_frames``
    the loop only ends when ``draw`` raises (e.g. the hosting page goes away).
    """

    budget = 1.0 / fps
    # resume from the animator's own time so a restarted loop never rewinds t
    start = clock() - animator.t
    drawn = 0
    while max_frames is None or drawn < max_frames:
        frame_start = clock()
        draw(animator.tick((frame_start - start) * 1000.0))
        drawn += 1
        remaining = budget - (clock() - frame_start)
        if remaining > 0:
            sleep(remaining)
    return drawn
