"""Deterministic phantom playback from a position-indexed trajectory log.

The player never counts wall-clock ticks. It walks the grid one unit per step
and turns exactly where the log says the original run turned; death happens
when the walk reaches `death_position` with no turns left. Every log point
must lie a whole number of grid steps ahead, the same rule the admission
validator enforces.
"""

from __future__ import annotations

from ..geom import GRID_EPSILON, Vec3, grid_steps
from .recorder import initial_pose
from .types import ReplayData

MIN_SPEED_SPM = 60.0


class ReplayPlayer:
    def __init__(self, replay: ReplayData) -> None:
        self._replay = replay
        self._start_position, self._start_direction = initial_pose(replay.start_params)
        self._head = self._start_position
        self._heading = self._start_direction
        self._next_change = 0
        self._steps = 0
        self._dead = False
        self._malformed = False
        self._accumulated = 0.0
        self._steps_to_target = 0
        self._aim()

    @property
    def replay_id(self) -> str:
        return self._replay.id

    @property
    def head(self) -> Vec3:
        return self._head

    @property
    def heading(self) -> Vec3:
        return self._heading

    @property
    def steps(self) -> int:
        return int(self._steps)

    @property
    def dead(self) -> bool:
        return self._dead

    @property
    def malformed(self) -> bool:
        """True when playback was killed because the log could not be followed."""
        return self._malformed

    @property
    def pending_changes(self) -> int:
        return len(self._replay.trajectory_log) - self._next_change

    @property
    def step_interval(self) -> float:
        speed = max(MIN_SPEED_SPM, float(self._replay.start_params.initial_speed))
        return 60.0 / speed

    def reset(self) -> None:
        self._head = self._start_position
        self._heading = self._start_direction
        self._next_change = 0
        self._steps = 0
        self._dead = False
        self._malformed = False
        self._accumulated = 0.0
        self._steps_to_target = 0
        self._aim()

    def _next_target(self) -> Vec3:
        log = self._replay.trajectory_log
        if self._next_change < len(log):
            return log[self._next_change].position
        return self._replay.death_position

    def _aim(self) -> None:
        steps = grid_steps(self._head, self._heading, self._next_target(), epsilon=GRID_EPSILON)
        if steps is None:
            self._dead = True
            self._malformed = True
            return
        self._steps_to_target = steps

    def _arrive(self) -> None:
        """Consume every log entry recorded at the current head."""
        log = self._replay.trajectory_log
        while not self._dead and self._steps_to_target == 0:
            if self._next_change >= len(log):
                self._head = self._replay.death_position
                self._dead = True
                return
            change = log[self._next_change]
            # Snap onto the recorded point so rounding never accumulates.
            self._head = change.position
            self._heading = change.direction
            self._next_change += 1
            self._aim()

    def step(self) -> bool:
        """Advance one grid unit. Returns False once the phantom is dead."""
        if self._dead:
            return False
        self._arrive()
        if self._dead:
            return False
        self._head = self._head + self._heading
        self._steps_to_target -= 1
        self._steps += 1
        return True

    def update(self, delta: float) -> int:
        """Advance by `delta` seconds at the run's initial speed; returns steps taken."""
        if self._dead:
            return 0
        self._accumulated += float(delta)
        interval = self.step_interval
        taken = 0
        while self._accumulated >= interval and not self._dead:
            self._accumulated -= interval
            if self.step():
                taken += 1
        return taken

    def step_progress(self) -> float:
        return min(self._accumulated / self.step_interval, 1.0)
