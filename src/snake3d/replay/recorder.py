from __future__ import annotations

from ..geom import Vec3
from ..spawn_points import spawn_point
from .types import ReplayDraft, StartParams, TrajectoryChange


def initial_pose(params: StartParams) -> tuple[Vec3, Vec3]:
    """Return `(position, direction)` a run starts from.

    Explicit start fields win; missing ones fall back to the spawn point.
    """

    spawn = spawn_point(params.spawn_index)
    position = params.start_position if params.start_position is not None else spawn.position
    direction = params.start_direction if params.start_direction is not None else spawn.direction
    return position, direction


class TrajectoryRecorder:
    def __init__(self, start_params: StartParams) -> None:
        self._start_params = start_params
        self._log: list[TrajectoryChange] = []
        _position, self._heading = initial_pose(start_params)

    @property
    def start_params(self) -> StartParams:
        return self._start_params

    @property
    def heading(self) -> Vec3:
        return self._heading

    @property
    def change_count(self) -> int:
        return len(self._log)

    def record_change(self, position: Vec3, direction: Vec3) -> bool:
        """Record a heading change at `position`.

        Returns False (and records nothing) when the heading is unchanged.
        """

        if direction.is_close(self._heading, epsilon=1e-6):
            return False
        self._log.append(TrajectoryChange(position=position, direction=direction))
        self._heading = direction
        return True

    def finish(self, *, final_score: int, death_position: Vec3, player_name: str | None = None) -> ReplayDraft:
        return ReplayDraft(
            player_name=player_name,
            start_params=self._start_params,
            final_score=int(final_score),
            death_position=death_position,
            trajectory_log=list(self._log),
        )

    def reset(self, start_params: StartParams | None = None) -> None:
        if start_params is not None:
            self._start_params = start_params
        self._log = []
        _position, self._heading = initial_pose(self._start_params)
