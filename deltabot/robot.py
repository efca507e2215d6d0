from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, List, Mapping, Sequence, Tuple

import numpy as np
import plotly.graph_objects as go

logger = logging.getLogger(__name__)

ARM_COUNT = 3
BASE_HEIGHT_RATIO = 0.55
DISTANCE_EPS = 1e-6


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)


@dataclass(frozen=True)
class TrajectoryParams:
    amp_x: float = 90.0
    amp_y: float = 50.0
    omega_x: float = 0.8
    omega_y: float = 1.3
    phase: float = math.pi / 4
    y_offset: float = -70.0


@dataclass(frozen=True)
class DeltaConfig:
    """Geometry and styling of one delta robot, fixed for an animator's lifetime."""

    base_radius: float = 140.0
    l1: float = 150.0
    l2: float = 150.0
    arm_width: float = 10.0
    base_joint_radius: float = 10.0
    elbow_joint_radius: float = 8.0
    end_effector_radius: float = 9.0
    trail_length: int = 80
    line_base: str = "rgba(125,155,255,0.9)"
    line_link: str = "rgba(190,205,255,0.9)"
    line_end_effector: str = "#ffffff"
    grid_color: str = "rgba(70,86,180,0.45)"
    trail_rgb: Tuple[int, int, int] = (214, 232, 255)
    background: str = "#05071a"
    trajectory: TrajectoryParams = field(default_factory=TrajectoryParams)


@dataclass(frozen=True)
class IKSolution:
    elbow: Point
    shoulder_angle: float
    elbow_angle: float
    clamped: bool


@dataclass(frozen=True)
class Arm:
    anchor: Point
    elbow: Point
    target: Point
    shoulder_angle: float = 0.0
    elbow_angle: float = 0.0
    clamped: bool = False


def _safe_scalar(value: Any, fallback: float, positive: bool = False) -> float:
    if value is None:
        return fallback
    try:
        val = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(val):
        return fallback
    if positive and val <= 0:
        return fallback
    return val


def _safe_color(value: Any, fallback: str) -> str:
    if not isinstance(value, str) or not value.strip():
        return fallback
    try:
        go.scatter.Line(color=value)
    except ValueError:
        return fallback
    return value


_POSITIVE_FIELDS = {
    "base_radius",
    "l1",
    "l2",
    "arm_width",
    "base_joint_radius",
    "elbow_joint_radius",
    "end_effector_radius",
    "trail_length",
}


def build_config(trajectory: Mapping[str, Any] | None = None, **overrides: Any) -> DeltaConfig:
    """Construct a DeltaConfig from loosely typed values (sidebar widgets, uploaded JSON).

    Numeric entries that are not finite numbers, or not positive where a length is
    expected, fall back to the defaults instead of failing. Colour strings are checked
    with Plotly's own colour validator and trail RGB parts are clamped to 0..255, so a
    loaded setup always renders. Unknown keys are ignored so older reports still load.
    """

    defaults = DeltaConfig()
    values = {}
    for f in fields(DeltaConfig):
        if f.name == "trajectory" or f.name not in overrides:
            continue
        raw = overrides[f.name]
        current = getattr(defaults, f.name)
        if isinstance(current, str):
            values[f.name] = _safe_color(raw, current)
            if values[f.name] != raw:
                logger.info("Config colour %s=%r is not a valid colour; using %r", f.name, raw, current)
            continue
        if f.name == "trail_rgb":
            try:
                parts = list(raw)
            except TypeError:
                parts = []
            if len(parts) == 3:
                rgb = tuple(min(255, max(0, int(_safe_scalar(c, d)))) for c, d in zip(parts, current))
            else:
                rgb = current
            if list(rgb) != parts:
                logger.info("Config trail_rgb=%r coerced to %r", raw, rgb)
            values[f.name] = rgb
            continue

        val = _safe_scalar(raw, current, positive=f.name in _POSITIVE_FIELDS)
        if f.name == "trail_length":
            val = max(1, int(val))
        if _safe_scalar(raw, math.nan) != val:
            logger.info("Config field %s=%r coerced to %r", f.name, raw, val)
        values[f.name] = val

    traj_defaults = TrajectoryParams()
    traj_values = {}
    for f in fields(TrajectoryParams):
        if trajectory is not None and f.name in trajectory:
            traj_values[f.name] = _safe_scalar(trajectory[f.name], getattr(traj_defaults, f.name))

    return replace(defaults, trajectory=TrajectoryParams(**traj_values), **values)


def config_to_dict(config: DeltaConfig) -> dict:
    data = asdict(config)
    data["trail_rgb"] = list(config.trail_rgb)
    return data


def config_from_json(raw: str | bytes) -> DeltaConfig:
    """Parse an uploaded setup; raises ValueError when the payload is not a JSON object."""

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Setup is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Setup must be a JSON object of configuration fields.")
    trajectory = parsed.pop("trajectory", None)
    if trajectory is not None and not isinstance(trajectory, dict):
        logger.warning("Ignoring non-object trajectory entry in setup: %r", trajectory)
        trajectory = None
    return build_config(trajectory=trajectory, **parsed)


def validate_config(config: DeltaConfig) -> List[str]:
    warnings: List[str] = []
    if config.l1 + config.l2 <= config.base_radius:
        warnings.append(
            f"Arms (L1 + L2 = {config.l1 + config.l2:.1f}) cannot reach the base centre "
            f"from a base radius of {config.base_radius:.1f}; elbows will be clamped straight."
        )
    traj = config.trajectory
    if traj.amp_x < 0 or traj.amp_y < 0:
        warnings.append("Negative trajectory amplitudes mirror the path; use positive values.")
    if config.trail_length < 2:
        warnings.append("A trail shorter than 2 points draws nothing.")
    return warnings


def end_effector_position(t: float, cx: float, cy: float, params: TrajectoryParams | None = None) -> Point:
    """Lissajous path of the end-effector around the base centre."""

    params = params or TrajectoryParams()
    return Point(
        x=cx + params.amp_x * math.sin(t * params.omega_x + params.phase),
        y=cy + params.y_offset + params.amp_y * math.sin(t * params.omega_y),
    )


def trajectory_bounds(cx: float, cy: float, params: TrajectoryParams | None = None) -> Tuple[Point, Point]:
    """Return (min corner, max corner) of the box that contains every trajectory point."""

    params = params or TrajectoryParams()
    amp_x, amp_y = abs(params.amp_x), abs(params.amp_y)
    mid_y = cy + params.y_offset
    return Point(cx - amp_x, mid_y - amp_y), Point(cx + amp_x, mid_y + amp_y)


def base_center(width: float, height: float) -> Point:
    return Point(width / 2, height * BASE_HEIGHT_RATIO)


def base_anchors(width: float, height: float, radius: float) -> List[Point]:
    # first anchor points up (canvas y grows downward), then +120 deg steps
    center = base_center(width, height)
    anchors = []
    for i in range(ARM_COUNT):
        angle = -math.pi / 2 + i * 2 * math.pi / ARM_COUNT
        anchors.append(Point(center.x + radius * math.cos(angle), center.y + radius * math.sin(angle)))
    return anchors


def solve_ik(anchor: Point, target: Point, l1: float, l2: float) -> IKSolution:
    """Closed-form planar 2-link IK from an anchor to a target.

    Uses the law of cosines for the elbow angle and always picks the same branch so the
    elbow moves continuously along a smooth trajectory. Coincident points are nudged by
    a small epsilon and unreachable targets are clamped to the nearest straight or folded
    pose; the solver never raises and never returns NaN.
    """

    dx = target.x - anchor.x
    dy = target.y - anchor.y
    d = math.hypot(dx, dy) or DISTANCE_EPS

    raw = (d * d - l1 * l1 - l2 * l2) / (2 * l1 * l2)
    cos_a2 = max(-1.0, min(1.0, raw))
    clamped = raw != cos_a2
    if clamped:
        logger.debug("Target %.3f away from anchor is outside reach; clamping elbow", d)

    a2 = math.acos(cos_a2)
    a1 = math.atan2(dy, dx) - math.atan2(l2 * math.sin(a2), l1 + l2 * math.cos(a2))
    elbow = Point(anchor.x + l1 * math.cos(a1), anchor.y + l1 * math.sin(a1))
    return IKSolution(elbow=elbow, shoulder_angle=a1, elbow_angle=a2, clamped=clamped)


def solve_elbow(anchor: Point, target: Point, l1: float, l2: float) -> Point:
    return solve_ik(anchor, target, l1, l2).elbow


def solve_arms(anchors: Sequence[Point], target: Point, l1: float, l2: float) -> List[Arm]:
    arms = []
    for anchor in anchors:
        solution = solve_ik(anchor, target, l1, l2)
        arms.append(
            Arm(
                anchor=anchor,
                elbow=solution.elbow,
                target=target,
                shoulder_angle=solution.shoulder_angle,
                elbow_angle=solution.elbow_angle,
                clamped=solution.clamped,
            )
        )
    return arms


def arm_residuals(arm: Arm, l1: float, l2: float) -> Tuple[float, float]:
    """Return (upper link error, lower link error) of a solved arm."""

    return arm.anchor.distance_to(arm.elbow) - l1, arm.elbow.distance_to(arm.target) - l2


def reachability_report(
    config: DeltaConfig, anchors: Sequence[Point], center: Point
) -> Tuple[bool, List[str]]:
    """Check the trajectory envelope against every arm's reachable annulus.

    The bounding box of the trajectory is a conservative stand-in for the path itself:
    the farthest box corner must be within L1 + L2 of each anchor and the nearest box
    point no closer than |L1 - L2|. Failing either means the solver will clamp on some
    frames, which still animates but no longer satisfies both link lengths.
    """

    reasons: List[str] = []
    low, high = trajectory_bounds(center.x, center.y, config.trajectory)
    max_reach = config.l1 + config.l2
    min_reach = abs(config.l1 - config.l2)

    corners = np.array([[low.x, low.y], [low.x, high.y], [high.x, low.y], [high.x, high.y]])
    for idx, anchor in enumerate(anchors, start=1):
        a = anchor.as_array()
        farthest = float(np.max(np.linalg.norm(corners - a, axis=1)))
        nearest_point = np.clip(a, [low.x, low.y], [high.x, high.y])
        nearest = float(np.linalg.norm(nearest_point - a))
        if farthest > max_reach + 1e-6:
            reasons.append(
                f"Arm {idx}: trajectory reaches {farthest:.1f} from its anchor, beyond L1 + L2 = {max_reach:.1f}."
            )
        if nearest < min_reach - 1e-6:
            reasons.append(
                f"Arm {idx}: trajectory comes within {nearest:.1f} of its anchor, inside |L1 - L2| = {min_reach:.1f}."
            )

    feasible = len(reasons) == 0
    return feasible, reasons


def sample_workspace_points(
    config: DeltaConfig,
    anchors: Sequence[Point],
    samples: int = 800,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Sample planar points that every arm can reach without clamping.

    Candidates are drawn uniformly from the box spanned by the anchors grown by the
    arm reach, then filtered against each anchor's annulus. The result can be empty
    when the annuli do not overlap.
    """

    if rng is None:
        rng = np.random.default_rng()

    pts = np.array([a.as_array() for a in anchors])
    reach = config.l1 + config.l2
    min_reach = abs(config.l1 - config.l2)
    lows = pts.min(axis=0) - reach
    highs = pts.max(axis=0) + reach

    draws = rng.uniform(lows, highs, size=(max(1, samples), 2))
    distances = np.linalg.norm(draws[:, None, :] - pts[None, :, :], axis=2)
    mask = np.all((distances <= reach) & (distances >= min_reach), axis=1)
    return draws[mask]
