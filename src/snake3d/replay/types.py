from __future__ import annotations

from dataclasses import dataclass, field

from ..geom import Vec3

DEFAULT_INITIAL_SPEED = 300.0  # steps per minute


@dataclass(frozen=True, slots=True)
class TrajectoryChange:
    """At `position` the heading changed to `direction` (a unit vector)."""

    position: Vec3
    direction: Vec3


@dataclass(frozen=True, slots=True)
class StartParams:
    seed: int
    spawn_index: int
    initial_speed: float = DEFAULT_INITIAL_SPEED
    start_position: Vec3 | None = None
    start_direction: Vec3 | None = None


@dataclass(slots=True)
class ReplayData:
    id: str
    player_id: str
    player_name: str
    timestamp: int
    start_params: StartParams
    final_score: int
    death_position: Vec3
    trajectory_log: list[TrajectoryChange] = field(default_factory=list)


@dataclass(slots=True)
class ReplayDraft:
    """A run as submitted by a client; the server fills in identity fields."""

    player_name: str | None = None
    start_params: StartParams | None = None
    final_score: int | None = None
    death_position: Vec3 | None = None
    trajectory_log: list[TrajectoryChange] | None = None
