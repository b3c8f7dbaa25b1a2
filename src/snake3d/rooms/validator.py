"""Plausibility checks for submitted runs.

Runs are rejected before admission when the recorded path cannot explain the
score or when the path itself is discontinuous. The checks never look at
room state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypeAlias

from ..geom import Vec3, grid_steps
from ..replay.recorder import initial_pose
from ..replay.types import ReplayData
from .config import (
    CONTINUITY_EPSILON,
    FREE_SCORE_WITHOUT_TURNS,
    HIGH_SCORE_MIN_CHANGES,
    HIGH_SCORE_THRESHOLD,
    SCORE_PER_STEP_CAP,
)

ValidationCode: TypeAlias = Literal[
    "ok",
    "score_without_trajectory",
    "score_too_high_for_distance",
    "low_complexity",
    "not_continuous",
]


@dataclass(frozen=True, slots=True)
class ValidationResult:
    ok: bool
    code: ValidationCode = "ok"
    reason: str = ""


def _path_points(replay: ReplayData) -> list[Vec3]:
    start, _direction = initial_pose(replay.start_params)
    points = [start]
    points.extend(change.position for change in replay.trajectory_log)
    points.append(replay.death_position)
    return points


def total_distance(replay: ReplayData) -> float:
    """Sum of straight segments: start -> every turn -> death."""
    points = _path_points(replay)
    return sum(a.distance_to(b) for a, b in zip(points, points[1:]))


def max_plausible_score(distance: float, *, score_per_step_cap: int = SCORE_PER_STEP_CAP) -> float:
    return max(float(FREE_SCORE_WITHOUT_TURNS), float(distance) * float(score_per_step_cap))


def first_discontinuity(replay: ReplayData, *, epsilon: float = CONTINUITY_EPSILON) -> int | None:
    """Index of the first point not a whole number of grid steps ahead, or None.

    Indices address the trajectory log; `len(trajectory_log)` means the death
    position.
    """

    position, direction = initial_pose(replay.start_params)
    for idx, change in enumerate(replay.trajectory_log):
        if grid_steps(position, direction, change.position, epsilon=epsilon) is None:
            return idx
        position = change.position
        direction = change.direction
    if grid_steps(position, direction, replay.death_position, epsilon=epsilon) is None:
        return len(replay.trajectory_log)
    return None


def validate_replay(replay: ReplayData, *, score_per_step_cap: int = SCORE_PER_STEP_CAP) -> ValidationResult:
    score = int(replay.final_score)
    change_count = len(replay.trajectory_log)

    if score > FREE_SCORE_WITHOUT_TURNS and change_count == 0:
        return ValidationResult(
            ok=False,
            code="score_without_trajectory",
            reason="score without trajectory",
        )

    distance = total_distance(replay)
    limit = max_plausible_score(distance, score_per_step_cap=score_per_step_cap)
    if score > limit:
        return ValidationResult(
            ok=False,
            code="score_too_high_for_distance",
            reason=f"score too high for distance ({score} > {round(limit)} for {round(distance)} steps)",
        )

    if score > HIGH_SCORE_THRESHOLD and change_count < HIGH_SCORE_MIN_CHANGES:
        return ValidationResult(
            ok=False,
            code="low_complexity",
            reason=f"suspicious low complexity for high score ({change_count} turns)",
        )

    broken = first_discontinuity(replay)
    if broken is not None:
        where = "death position" if broken == change_count else f"change {broken}"
        return ValidationResult(
            ok=False,
            code="not_continuous",
            reason=f"trajectory is not continuous at {where}",
        )

    return ValidationResult(ok=True)
